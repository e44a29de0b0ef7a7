"""
Response/error normalization for upstream calls.

Maps an upstream outcome (HTTP response or transport failure) to a
``NormalizedResult``. Success bodies pass through untouched.
"""

from typing import Any, Dict, Optional, Tuple
import json
import logging

import httpx

from models.proxy import NormalizedResult

logger = logging.getLogger(__name__)

AUTHENTICATION_ERROR = "AuthenticationError"
CONNECTION_ERROR = "ConnectionError"
UPSTREAM_ERROR = "UpstreamError"

STRIPE_AUTH_TYPES = ("StripeAuthenticationError", "authentication_error")
STRIPE_CONNECTION_TYPES = ("StripeConnectionError", "api_connection_error")

STRIPE_CONFIG_HELP = (
    "Check that STRIPE_SECRET_KEY (or the accessToken/secretKey sent with the "
    "request) is a valid Stripe secret key for this environment."
)

TEXT_MEDIA_TYPES = ("application/x-www-form-urlencoded", "application/javascript")

DISPLAY_NAMES = {
    "stripe": "Stripe",
    "stripe_oauth": "Stripe OAuth",
    "qbo": "QBO",
    "qbo_oauth": "QBO OAuth",
    "backend": "Backend",
}

# (type, code, message) pulled out of a provider error body
ErrorInfo = Tuple[Optional[str], Optional[str], Optional[str]]


def _get_ci(body: Dict[str, Any], key: str) -> Any:
    """Case-insensitive key lookup; QBO sends both ``Fault`` and ``fault``."""
    for candidate, value in body.items():
        if candidate.lower() == key.lower():
            return value
    return None


def _stripe_error(body: Dict[str, Any]) -> ErrorInfo:
    error = body.get("error")
    if not isinstance(error, dict):
        error = body
    return error.get("type"), error.get("code"), error.get("message")


def _qbo_error(body: Dict[str, Any]) -> ErrorInfo:
    fault = _get_ci(body, "Fault")
    if not isinstance(fault, dict):
        return None, None, None
    errors = _get_ci(fault, "Error") or []
    first = errors[0] if isinstance(errors, list) and errors else {}
    if not isinstance(first, dict):
        first = {}
    message = _get_ci(first, "Message")
    detail = _get_ci(first, "Detail")
    if message and detail and detail != message:
        message = f"{message}: {detail}"
    return _get_ci(fault, "type"), _get_ci(first, "code"), message or detail


def _oauth_error(body: Dict[str, Any]) -> ErrorInfo:
    error = body.get("error")
    if isinstance(error, dict):
        return _stripe_error(body)
    return None, error, body.get("error_description") or error


def _backend_error(body: Dict[str, Any]) -> ErrorInfo:
    message = body.get("message") or body.get("msg") or body.get("error_description")
    error = body.get("error")
    if not message and isinstance(error, str):
        message = error
    code = body.get("code") or (error if isinstance(error, str) else None)
    return None, str(code) if code is not None else None, message


_EXTRACTORS = {
    "stripe": _stripe_error,
    "stripe_oauth": _oauth_error,
    "qbo": _qbo_error,
    "qbo_oauth": _oauth_error,
    "backend": _backend_error,
}


def is_binary_media_type(content_type: str) -> bool:
    """True for content types that are not JSON or text (PDFs, images, octet streams)."""
    media_type = content_type.split(";")[0].strip().lower()
    if not media_type:
        return False
    if media_type.startswith("text/") or "json" in media_type or media_type.endswith("xml"):
        return False
    return media_type not in TEXT_MEDIA_TYPES


def parse_response_body(response: httpx.Response) -> Any:
    """
    Decode a response body: JSON when possible, ``{}`` when empty.

    Binary bodies (e.g. a QBO invoice PDF) are returned as bytes untouched.
    """
    if not response.content:
        return {}
    if is_binary_media_type(response.headers.get("content-type", "")):
        return response.content
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"raw": response.text}


def extract_error(service: str, body: Any) -> ErrorInfo:
    if not isinstance(body, dict):
        return None, None, None
    extractor = _EXTRACTORS.get(service, _backend_error)
    return extractor(body)


def normalize_response(
    service: str, status_code: int, body: Any, media_type: Optional[str] = None
) -> NormalizedResult:
    """
    Normalize an upstream HTTP response.

    Args:
        service: Route service key (``stripe``, ``qbo_oauth``, ...)
        status_code: Upstream HTTP status
        body: Parsed upstream body
        media_type: Upstream content type, kept for binary success bodies

    Returns:
        Success result with the body verbatim, or a classified error
    """
    if 200 <= status_code < 300:
        return NormalizedResult.success(body, status_code, media_type if isinstance(body, bytes) else None)
    if isinstance(body, bytes):
        body = {"raw": body.decode(errors="replace")}

    display_name = DISPLAY_NAMES.get(service, service)
    error_type, code, upstream_message = extract_error(service, body)
    message = upstream_message or f"{display_name} API returned HTTP {status_code}"

    if service in ("stripe", "stripe_oauth"):
        if error_type in STRIPE_AUTH_TYPES or status_code == 401:
            return NormalizedResult.failure(
                AUTHENTICATION_ERROR,
                upstream_message or "Invalid API key provided",
                401,
                details=body,
                error="Invalid API key provided",
                type="StripeAuthenticationError",
                code=code,
                configHelp=STRIPE_CONFIG_HELP,
                service=display_name,
            )
        if error_type in STRIPE_CONNECTION_TYPES:
            return NormalizedResult.failure(
                CONNECTION_ERROR,
                message,
                503,
                details=body,
                type="StripeConnectionError",
                code=code,
                service=display_name,
            )

    return NormalizedResult.failure(
        UPSTREAM_ERROR,
        message,
        status_code,
        details=body,
        error=f"{display_name} API error",
        type=error_type,
        code=code,
        needsRefresh=True if service == "qbo" and status_code == 401 else None,
        service=display_name,
    )


def normalize_transport_error(service: str, exc: Exception) -> NormalizedResult:
    """No response was received (timeout, DNS, connection refused)."""
    display_name = DISPLAY_NAMES.get(service, service)
    message = str(exc) or exc.__class__.__name__
    return NormalizedResult.failure(
        CONNECTION_ERROR,
        message,
        500,
        error="Internal server error",
        service=display_name,
    )
