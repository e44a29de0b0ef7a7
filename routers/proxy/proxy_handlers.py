"""
Proxy pipeline: route, encode, make the wire call, normalize.
"""

from typing import Dict, Tuple
import logging

import httpx

from config import ProxySettings
from models.proxy import NormalizedResult, ProxyRequest, WireCall
from .backend_handler import BackendRoute
from .base import BaseServiceRoute, ResolvedRoute, get_httpx_client_config
from .encoding import encode_request
from .errors import UnsupportedOperation
from .normalizer import normalize_response, normalize_transport_error, parse_response_body
from .qbo_handler import QBORoute
from .stripe_handler import StripeRoute

logger = logging.getLogger(__name__)


# Route registry
_routes: Dict[str, BaseServiceRoute] = {
    'stripe': StripeRoute(),
    'qbo': QBORoute(),
    'backend': BackendRoute(),
}


def get_routes() -> Dict[str, BaseServiceRoute]:
    return dict(_routes)


def get_route(request: ProxyRequest) -> BaseServiceRoute:
    """
    Get the route for a request's service.

    Raises:
        UnsupportedOperation: Unknown service
    """
    route = _routes.get(request.service)
    if route is None:
        raise UnsupportedOperation(request.service, request.endpoint, request.method)
    return route


def build_wire_call(request: ProxyRequest, settings: ProxySettings) -> Tuple[ResolvedRoute, WireCall]:
    """
    Resolve and encode a proxy request without sending it.

    Raises:
        UnsupportedOperation: No route for the request
        ProxyValidationError: Missing credentials or fields for the route
    """
    resolved = get_route(request).resolve(request, settings)
    return resolved, encode_request(resolved, request)


def create_client(settings: ProxySettings, timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(**get_httpx_client_config(settings, timeout))


async def send_wire_call(route: ResolvedRoute, wire_call: WireCall, settings: ProxySettings) -> NormalizedResult:
    """
    Make exactly one upstream call and normalize its outcome.

    The client lives only for this call, so cancelling the caller's request
    closes the upstream connection with it.
    """
    timeout = settings.oauth_timeout_seconds if route.is_oauth else settings.timeout_seconds
    logger.info(f"🔄 {route.display_name}: {wire_call.method.upper()} {wire_call.url.split('?')[0]}")

    try:
        async with create_client(settings, timeout) as client:
            response = await client.request(
                wire_call.method.upper(),
                wire_call.url,
                headers=wire_call.headers,
                content=wire_call.content,
            )
    except httpx.TimeoutException as e:
        logger.error(f"⏰ Timeout calling {route.display_name}: {e}")
        return normalize_transport_error(route.service, e)
    except httpx.HTTPError as e:
        logger.error(f"❌ Connection error calling {route.display_name}: {e}")
        return normalize_transport_error(route.service, e)

    result = normalize_response(
        route.service,
        response.status_code,
        parse_response_body(response),
        media_type=response.headers.get("content-type"),
    )
    if result.ok:
        logger.info(f"✅ {route.display_name} responded {response.status_code}")
    else:
        logger.warning(
            f"⚠️  {route.display_name} responded {response.status_code} ({result.error_kind}: {result.message})"
        )
    return result


async def proxy_request(request: ProxyRequest, settings: ProxySettings) -> NormalizedResult:
    """
    Proxy one request to its third-party service.

    Validation and routing errors are raised before any network call;
    upstream outcomes come back as a NormalizedResult.
    """
    route, wire_call = build_wire_call(request, settings)
    return await send_wire_call(route, wire_call, settings)
