# Models package
# Re-export request-scoped proxy types and inbound body schemas
from models.proxy import (
    METHODS,
    SERVICES,
    NormalizedResult,
    ProxyRequest,
    WireCall,
)
from models.schemas import (
    BackendProxyRequest,
    HealthResponse,
    QBODataOperationRequest,
    QBORefreshRequest,
    QBOTestConnectionRequest,
    QBOTokenRequest,
    StripeProxyRequest,
    StripeTokenRequest,
)

__all__ = [
    "METHODS",
    "SERVICES",
    "NormalizedResult",
    "ProxyRequest",
    "WireCall",
    "BackendProxyRequest",
    "HealthResponse",
    "QBODataOperationRequest",
    "QBORefreshRequest",
    "QBOTestConnectionRequest",
    "QBOTokenRequest",
    "StripeProxyRequest",
    "StripeTokenRequest",
]
