"""
Backend (database/storage platform) route. Requests pass through unchanged
apart from the caller's bearer token.
"""

from typing import Dict, Tuple

from config import ProxySettings
from models.proxy import METHODS, ProxyRequest
from .base import BaseServiceRoute, JSON, bearer, is_safe_path, require_token
from .errors import ProxyValidationError


class BackendRoute(BaseServiceRoute):
    encoding = JSON

    def __init__(self):
        super().__init__("backend", "Backend")

    def supports(self, endpoint: str, method: str) -> bool:
        return method in METHODS and is_safe_path(endpoint)

    def supported_endpoints(self):
        return ["*"]

    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        if not settings.backend_url:
            raise ProxyValidationError(
                "BACKEND_URL is not configured",
                error="Backend URL is not configured",
            )
        return settings.backend_url

    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        return "Authorization", bearer(require_token(request, "authToken"))

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if settings.backend_api_key:
            headers["apikey"] = settings.backend_api_key
        return headers
