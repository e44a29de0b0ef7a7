"""
Base routing functionality shared by all third-party service routes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple
import re

import httpx

from config import ProxySettings
from models.proxy import ProxyRequest
from .errors import ProxyValidationError, UnsupportedOperation

# Body encodings a route can ask for
FORM = "form"
JSON = "json"
OAUTH_FORM = "oauth_form"

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.\-~:@,]+$")


@dataclass(frozen=True)
class RouteRule:
    """One supported endpoint shape, e.g. ``accounts/{id}/login_links``."""

    pattern: str
    methods: FrozenSet[str]

    def matches(self, endpoint: str, method: str) -> bool:
        if method not in self.methods:
            return False
        expected = self.pattern.split('/')
        actual = endpoint.split('/')
        if len(expected) != len(actual):
            return False
        for want, got in zip(expected, actual):
            if want.startswith('{') and want.endswith('}'):
                continue
            if want != got:
                return False
        return True


def build_rules(*specs: Tuple[str, str]) -> Tuple[RouteRule, ...]:
    """Build rules from ``(pattern, "get post ...")`` pairs."""
    return tuple(RouteRule(pattern, frozenset(methods.split())) for pattern, methods in specs)


@dataclass(frozen=True)
class ResolvedRoute:
    """
    Where and how a proxy request goes on the wire.
    """

    service: str
    display_name: str
    method: str
    base_url: str
    resolved_path: str
    auth_header_name: str
    auth_header_value: str
    encoding: str
    extra_headers: Dict[str, str] = field(default_factory=dict)
    is_oauth: bool = False

    @property
    def url(self) -> str:
        if not self.resolved_path:
            return self.base_url
        return f"{self.base_url}/{self.resolved_path}"

    def headers(self) -> Dict[str, str]:
        headers = {self.auth_header_name: self.auth_header_value}
        headers.update(self.extra_headers)
        return headers


def normalize_endpoint(endpoint: str) -> str:
    """Strip surrounding whitespace and slashes: ``/accounts/`` -> ``accounts``."""
    return (endpoint or '').strip().strip('/')


def is_safe_path(endpoint: str) -> bool:
    """
    Check that an endpoint is a relative path made of plain segments.

    Args:
        endpoint: Normalized endpoint

    Returns:
        False for empty paths, absolute URLs and ``.``/``..`` segments
    """
    if not endpoint:
        return False
    for segment in endpoint.split('/'):
        if segment in ('.', '..') or not _SEGMENT_RE.match(segment):
            return False
    return True


def bearer(token: str) -> str:
    return f"Bearer {token}"


class BaseServiceRoute(ABC):
    """
    Abstract base class for third-party service routes.
    """

    rules: Tuple[RouteRule, ...] = ()
    encoding = JSON

    def __init__(self, service: str, display_name: str):
        self.service = service
        self.display_name = display_name

    @abstractmethod
    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        """
        Get the base URL for this service.

        Args:
            settings: Process settings (environment flag, configured URLs)
            request: The proxy request being routed

        Returns:
            Base URL without a trailing slash
        """
        pass

    @abstractmethod
    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        """
        Get the authentication header for this service.

        Args:
            settings: Process settings
            request: The proxy request being routed

        Returns:
            Tuple of (header_name, header_value)
        """
        pass

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        """
        Get additional headers specific to this service.

        Returns:
            Headers to include besides auth and content type
        """
        return {}

    def get_target_path(self, endpoint: str, request: ProxyRequest) -> str:
        """Transform the normalized endpoint into the path under the base URL."""
        return endpoint

    def get_wire_method(self, endpoint: str, method: str) -> str:
        return method

    def supports(self, endpoint: str, method: str) -> bool:
        """Whether the (endpoint, method) pair is in this service's routing table."""
        if not is_safe_path(endpoint):
            return False
        return any(rule.matches(endpoint, method) for rule in self.rules)

    def supported_endpoints(self) -> List[str]:
        return sorted({rule.pattern for rule in self.rules})

    def resolve(self, request: ProxyRequest, settings: ProxySettings) -> ResolvedRoute:
        """
        Map a proxy request onto a concrete wire operation.

        Args:
            request: The proxy request to route
            settings: Process settings

        Returns:
            The resolved route

        Raises:
            UnsupportedOperation: The endpoint/method pair is not routable
            ProxyValidationError: Credentials or context needed for the route are missing
        """
        endpoint = normalize_endpoint(request.endpoint)
        method = self.get_wire_method(endpoint, (request.method or '').lower())
        if not self.supports(endpoint, method):
            raise UnsupportedOperation(self.service, request.endpoint, request.method)

        header_name, header_value = self.get_auth_header(settings, request)
        return ResolvedRoute(
            service=self.service,
            display_name=self.display_name,
            method=method,
            base_url=self.get_base_url(settings, request).rstrip('/'),
            resolved_path=self.get_target_path(endpoint, request),
            auth_header_name=header_name,
            auth_header_value=header_value,
            encoding=self.encoding,
            extra_headers=self.get_additional_headers(settings, request),
            is_oauth=self.encoding == OAUTH_FORM,
        )


def require_token(request: ProxyRequest, name: str = "accessToken") -> str:
    if not request.auth_token:
        raise ProxyValidationError.missing([name])
    return request.auth_token


def get_httpx_client_config(settings: ProxySettings, timeout: float) -> Dict[str, Any]:
    """
    Get the configuration for httpx client.

    Args:
        settings: Process settings (connection retries)
        timeout: Per-call ceiling in seconds

    Returns:
        Dictionary with httpx client configuration
    """
    return {
        'timeout': httpx.Timeout(timeout),
        'transport': httpx.AsyncHTTPTransport(retries=settings.connect_retries),
        'follow_redirects': False,
    }


def describe_routes(routes: Iterable[BaseServiceRoute]) -> Dict[str, List[str]]:
    return {route.service: route.supported_endpoints() for route in routes}
