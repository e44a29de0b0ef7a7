"""
QuickBooks Online routes: the company data API and the OAuth2 token endpoint.
"""

from typing import Dict, Tuple
import base64
import re

from config import ProxySettings
from models.proxy import ProxyRequest
from .base import (
    BaseServiceRoute, JSON, OAUTH_FORM, ResolvedRoute, bearer, build_rules,
    normalize_endpoint, require_token,
)
from .errors import ProxyValidationError

QBO_SANDBOX_BASE = "https://sandbox-quickbooks.api.intuit.com/v3"
QBO_PRODUCTION_BASE = "https://quickbooks.api.intuit.com/v3"
QBO_OAUTH_TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"

OAUTH_OPERATIONS = ("token", "refresh")
QUERY_ENDPOINT = "query"

QBO_ENTITIES = (
    "account", "attachable", "bill", "billpayment", "class", "creditmemo",
    "customer", "department", "deposit", "employee", "estimate", "invoice",
    "item", "journalentry", "payment", "paymentmethod", "purchase",
    "purchaseorder", "refundreceipt", "salesreceipt", "taxcode", "taxrate",
    "term", "timeactivity", "transfer", "vendor", "vendorcredit",
)

QBO_RULES = build_rules(
    (QUERY_ENDPOINT, "get"),
    ("companyinfo/{id}", "get"),
    ("preferences", "get"),
    ("reports/{name}", "get"),
    ("cdc", "get"),
    ("batch", "post"),
    ("invoice/{id}/pdf", "get"),
    ("invoice/{id}/send", "post"),
    *[(entity, "post") for entity in QBO_ENTITIES],
    *[(f"{entity}/{{id}}", "get") for entity in QBO_ENTITIES],
)

_REALM_RE = re.compile(r"^[A-Za-z0-9]+$")


def basic_auth(client_id: str, client_secret: str) -> str:
    encoded = base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()
    return f"Basic {encoded}"


def qbo_base_url(settings: ProxySettings) -> str:
    return QBO_PRODUCTION_BASE if settings.is_production else QBO_SANDBOX_BASE


class QBOOAuthRoute(BaseServiceRoute):
    """
    Token exchange and refresh. Uses HTTP Basic auth built from the client
    credentials instead of a bearer token.
    """

    rules = build_rules(*[(operation, "post") for operation in OAUTH_OPERATIONS])
    encoding = OAUTH_FORM

    def __init__(self):
        super().__init__("qbo_oauth", "QBO OAuth")

    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        return QBO_OAUTH_TOKEN_URL

    def get_target_path(self, endpoint: str, request: ProxyRequest) -> str:
        # Both operations share one URL; grant_type tells them apart
        return ""

    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        client_id, client_secret = request.client_credentials or (None, None)
        client_id = client_id or settings.qbo_client_id
        client_secret = client_secret or settings.qbo_client_secret
        missing = [
            name for name, value in (("clientId", client_id), ("clientSecret", client_secret))
            if not value
        ]
        if missing:
            raise ProxyValidationError(
                "QBO client credentials are not configured; send "
                f"{' and '.join(missing)} or set QBO_CLIENT_ID/QBO_CLIENT_SECRET",
                error="Missing required parameters",
                requiredParams=missing,
            )
        return "Authorization", basic_auth(client_id, client_secret)

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        return {"Accept": "application/json"}


class QBORoute(BaseServiceRoute):
    """
    Route for the QBO company data API: ``{base}/company/{realmId}/{endpoint}``.
    """

    rules = QBO_RULES
    encoding = JSON

    def __init__(self):
        super().__init__("qbo", "QBO")
        self.oauth = QBOOAuthRoute()

    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        return qbo_base_url(settings)

    def get_target_path(self, endpoint: str, request: ProxyRequest) -> str:
        realm_id = (request.realm_id or "").strip()
        if not realm_id:
            raise ProxyValidationError.missing(["realmId"])
        if not _REALM_RE.match(realm_id):
            raise ProxyValidationError(f"Invalid realmId: {realm_id!r}", error="Invalid realmId")
        return f"company/{realm_id}/{endpoint}"

    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        return "Authorization", bearer(require_token(request))

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        if normalize_endpoint(request.endpoint).endswith("/pdf"):
            return {"Accept": "application/pdf"}
        return {"Accept": "application/json"}

    def resolve(self, request: ProxyRequest, settings: ProxySettings) -> ResolvedRoute:
        if normalize_endpoint(request.endpoint) in OAUTH_OPERATIONS:
            return self.oauth.resolve(request, settings)
        return super().resolve(request, settings)
