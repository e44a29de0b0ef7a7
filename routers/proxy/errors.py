"""
Errors raised before a wire call is made. Upstream and transport failures
are not raised; they come back as ``NormalizedResult`` values.
"""

from typing import Any, Dict, List, Optional

from models.proxy import NormalizedResult


class ProxyError(Exception):
    error_kind = "ProxyError"
    status_code = 400

    def __init__(self, message: str, error: Optional[str] = None, details: Any = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.error = error
        self.details = details
        self.extra: Dict[str, Any] = extra

    def to_result(self) -> NormalizedResult:
        return NormalizedResult.failure(
            self.error_kind,
            self.message,
            self.status_code,
            details=self.details,
            error=self.error,
            **self.extra,
        )


class ProxyValidationError(ProxyError):
    """Missing or malformed request fields; always fixable by the caller."""

    error_kind = "ValidationError"

    @classmethod
    def missing(cls, params: List[str]) -> "ProxyValidationError":
        return cls(
            f"{', '.join(params)} {'is' if len(params) == 1 else 'are'} required",
            error="Missing required parameters",
            requiredParams=params,
        )


class UnsupportedOperation(ProxyError):
    """No route for this service/endpoint/method. Terminal, never retried."""

    error_kind = "UnsupportedOperation"

    def __init__(self, service: str, endpoint: str, method: str):
        super().__init__(
            f"Unsupported operation: {method.upper()} {endpoint} on {service}",
            error="Unsupported operation",
            service=service,
            endpoint=endpoint,
            method=method,
        )
        self.service = service
        self.endpoint = endpoint
        self.method = method
