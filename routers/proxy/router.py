"""
FastAPI router for the integration proxy.

Every route validates its body at the boundary, builds a ProxyRequest and
hands it to the proxy pipeline. Nothing reaches the network until the body
is valid.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from typing import Any, Dict, Type, TypeVar
import json
import logging

from config import ProxySettings, get_settings
from models.proxy import NormalizedResult, ProxyRequest
from models.schemas import (
    BackendProxyRequest, ProxyBody, QBODataOperationRequest, QBORefreshRequest,
    QBOTestConnectionRequest, QBOTokenRequest, StripeProxyRequest, StripeTokenRequest,
)
from .base import describe_routes
from .encoding import FORM_CONTENT_TYPE, parse_form
from .errors import ProxyValidationError
from .proxy_handlers import get_routes, proxy_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy", tags=["proxy"])

BodyT = TypeVar("BodyT", bound=ProxyBody)


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Read a JSON or bracket-notation form body into a dict.

    Raises:
        ProxyValidationError: Body is not a JSON object or cannot be decoded
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    content_type = request.headers.get("content-type", "")
    try:
        if FORM_CONTENT_TYPE in content_type:
            payload = parse_form(raw.decode())
        else:
            payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProxyValidationError(f"Request body could not be decoded: {e}", error="Invalid request body") from e
    if not isinstance(payload, dict):
        raise ProxyValidationError("Request body must be a JSON object", error="Invalid request body")
    return payload


def parse_body(model: Type[BodyT], payload: Dict[str, Any]) -> BodyT:
    try:
        body = model.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        raise ProxyValidationError(
            "; ".join(f"{error['field']}: {error['message']}" for error in errors),
            error="Invalid request body",
            details=errors,
        ) from e
    missing = body.missing_fields()
    if missing:
        raise ProxyValidationError.missing(missing)
    return body


def render(result: NormalizedResult) -> Response:
    # 204 and 304 responses never carry a body
    if result.status_code in (204, 304):
        return Response(status_code=result.status_code)
    if result.ok and isinstance(result.data, bytes):
        return Response(content=result.data, status_code=result.status_code, media_type=result.media_type)
    return JSONResponse(status_code=result.status_code, content=result.to_body())


@router.get("")
async def list_supported_operations():
    """
    List the endpoints each service route accepts.
    """
    return {'services': describe_routes(get_routes().values())}


# ---------------------------
# QBO
# ---------------------------

@router.post("/qbo/token")
async def qbo_token(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Exchange an authorization code for QBO tokens."""
    body = parse_body(QBOTokenRequest, await read_payload(request))
    logger.info("🔑 QBO token exchange requested")
    result = await proxy_request(
        ProxyRequest(
            service="qbo",
            endpoint="token",
            method="post",
            data={"code": body.code, "redirect_uri": body.redirect_uri},
            client_credentials=(body.client_id, body.client_secret),
        ),
        settings,
    )
    return render(result)


@router.post("/qbo/refresh")
async def qbo_refresh(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Refresh QBO tokens."""
    body = parse_body(QBORefreshRequest, await read_payload(request))
    logger.info("🔑 QBO token refresh requested")
    result = await proxy_request(
        ProxyRequest(
            service="qbo",
            endpoint="refresh",
            method="post",
            data={"refresh_token": body.refresh_token},
            client_credentials=(body.client_id, body.client_secret),
        ),
        settings,
    )
    return render(result)


@router.post("/qbo/data-operation")
async def qbo_data_operation(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Forward a call to the QBO company data API."""
    body = parse_body(QBODataOperationRequest, await read_payload(request))
    result = await proxy_request(
        ProxyRequest(
            service="qbo",
            endpoint=body.endpoint,
            method=body.method,
            data=body.data,
            auth_token=body.access_token,
            realm_id=body.realm_id,
        ),
        settings,
    )
    return render(result)


@router.post("/qbo/test-connection")
async def qbo_test_connection(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Check a QBO connection by fetching the company info."""
    body = parse_body(QBOTestConnectionRequest, await read_payload(request))
    result = await proxy_request(
        ProxyRequest(
            service="qbo",
            endpoint=f"companyinfo/{body.realm_id}",
            method="get",
            auth_token=body.access_token,
            realm_id=body.realm_id,
        ),
        settings,
    )
    if not result.ok:
        result.extra["success"] = False
        return render(result)

    data = result.data if isinstance(result.data, dict) else {}
    return {
        "success": True,
        "companyInfo": data.get("CompanyInfo", data),
        "message": "QBO connection is working properly",
    }


# ---------------------------
# Stripe
# ---------------------------

@router.post("/stripe")
async def stripe_api(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Forward a call to the Stripe API."""
    body = parse_body(StripeProxyRequest, await read_payload(request))
    token = body.token or settings.stripe_secret_key
    if not token:
        raise ProxyValidationError.missing(["accessToken"])
    result = await proxy_request(
        ProxyRequest(
            service="stripe",
            endpoint=body.endpoint,
            method=body.method,
            data=body.data,
            auth_token=token,
            account_context=body.account_id,
        ),
        settings,
    )
    return render(result)


@router.post("/stripe/token")
async def stripe_token(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Exchange a Stripe Connect authorization code for the connected account's tokens."""
    body = parse_body(StripeTokenRequest, await read_payload(request))
    if body.grant_type != "authorization_code":
        raise ProxyValidationError(
            f"Unsupported grantType: {body.grant_type!r}",
            error="Invalid grantType",
        )
    logger.info("🔑 Stripe Connect token exchange requested")
    result = await proxy_request(
        ProxyRequest(
            service="stripe",
            endpoint="oauth/token",
            method="post",
            data={"code": body.code},
        ),
        settings,
    )
    return render(result)


# ---------------------------
# Backend
# ---------------------------

@router.post("/backend")
async def backend_api(request: Request, settings: ProxySettings = Depends(get_settings)):
    """Forward a call to the backend platform with the caller's bearer token."""
    body = parse_body(BackendProxyRequest, await read_payload(request))
    result = await proxy_request(
        ProxyRequest(
            service="backend",
            endpoint=body.endpoint,
            method=body.method,
            data=body.data,
            auth_token=body.auth_token,
        ),
        settings,
    )
    return render(result)
