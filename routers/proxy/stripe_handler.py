"""
Stripe-specific routes: the v1 REST API and the Connect OAuth token exchange.
"""

from typing import Dict, Tuple

from config import ProxySettings
from models.proxy import ProxyRequest
from .base import (
    BaseServiceRoute, FORM, OAUTH_FORM, ResolvedRoute, bearer, build_rules,
    normalize_endpoint, require_token,
)
from .errors import ProxyValidationError

STRIPE_API_BASE = "https://api.stripe.com/v1"
STRIPE_CONNECT_BASE = "https://connect.stripe.com"
# Pinned so wire shapes do not change under us when the account default moves
STRIPE_API_VERSION = "2023-10-16"

OAUTH_TOKEN_ENDPOINT = "oauth/token"

STRIPE_RULES = build_rules(
    ("accounts", "get post"),
    ("accounts/{id}", "get post delete"),
    ("accounts/{id}/login_links", "post"),
    ("account_links", "post"),
    ("balance", "get"),
    ("charges", "get"),
    ("charges/{id}", "get"),
    ("checkout/sessions", "get post"),
    ("checkout/sessions/{id}", "get"),
    ("checkout/sessions/{id}/expire", "post"),
    ("checkout/sessions/{id}/line_items", "get"),
    ("customers", "get post"),
    ("customers/{id}", "get post delete"),
    ("invoiceitems", "get post"),
    ("invoiceitems/{id}", "get post delete"),
    ("invoices", "get post"),
    ("invoices/{id}", "get post delete"),
    ("invoices/{id}/finalize", "post"),
    ("invoices/{id}/send", "post"),
    ("invoices/{id}/pay", "post"),
    ("invoices/{id}/void", "post"),
    ("invoices/{id}/mark_uncollectible", "post"),
    ("payment_intents", "get post"),
    ("payment_intents/{id}", "get post"),
    ("payment_intents/{id}/capture", "post"),
    ("payment_intents/{id}/cancel", "post"),
    ("payment_intents/{id}/confirm", "post"),
    ("payment_links", "get post"),
    ("payment_links/{id}", "get post"),
    ("payment_links/{id}/line_items", "get"),
    ("prices", "get post"),
    ("prices/{id}", "get post"),
    ("products", "get post"),
    ("products/{id}", "get post delete"),
    ("refunds", "get post"),
    ("refunds/{id}", "get post"),
    ("subscriptions", "get post"),
    ("subscriptions/{id}", "get post delete"),
    ("transfers", "get post"),
    ("transfers/{id}", "get post"),
    ("webhook_endpoints", "get post"),
    ("webhook_endpoints/{id}", "get post delete"),
)


class StripeOAuthRoute(BaseServiceRoute):
    """
    Stripe Connect authorization-code exchange. Authenticated with the
    platform secret key, not the connected account's token.
    """

    rules = build_rules((OAUTH_TOKEN_ENDPOINT, "post"))
    encoding = OAUTH_FORM

    def __init__(self):
        super().__init__("stripe_oauth", "Stripe OAuth")

    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        return STRIPE_CONNECT_BASE

    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        secret_key = request.auth_token or settings.stripe_secret_key
        if not secret_key:
            raise ProxyValidationError(
                "STRIPE_SECRET_KEY is not configured",
                error="Stripe secret key is not configured",
            )
        return "Authorization", bearer(secret_key)

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        return {"Accept": "application/json"}


class StripeRoute(BaseServiceRoute):
    """
    Route for the Stripe v1 REST API.

    Bodies are form-encoded with bracket notation. An ``account_context``
    makes the call on behalf of a connected account.
    """

    rules = STRIPE_RULES
    encoding = FORM

    def __init__(self):
        super().__init__("stripe", "Stripe")
        self.oauth = StripeOAuthRoute()

    def get_base_url(self, settings: ProxySettings, request: ProxyRequest) -> str:
        return STRIPE_API_BASE

    def get_auth_header(self, settings: ProxySettings, request: ProxyRequest) -> Tuple[str, str]:
        return "Authorization", bearer(require_token(request))

    def get_additional_headers(self, settings: ProxySettings, request: ProxyRequest) -> Dict[str, str]:
        headers = {"Stripe-Version": STRIPE_API_VERSION}
        if request.account_context:
            headers["Stripe-Account"] = request.account_context
        return headers

    def get_wire_method(self, endpoint: str, method: str) -> str:
        # Stripe has no PUT; updates of a single object are POSTs
        if method == "put" and len(endpoint.split('/')) == 2:
            return "post"
        return method

    def resolve(self, request: ProxyRequest, settings: ProxySettings) -> ResolvedRoute:
        if normalize_endpoint(request.endpoint) == OAUTH_TOKEN_ENDPOINT:
            return self.oauth.resolve(request, settings)
        return super().resolve(request, settings)
