"""
Request-scoped proxy types. Nothing here is persisted or shared between calls.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

SERVICES = ("stripe", "qbo", "backend")
METHODS = ("get", "post", "put", "delete")


@dataclass(frozen=True)
class ProxyRequest:
    service: str
    endpoint: str
    method: str = "get"
    data: Optional[Dict[str, Any]] = None
    auth_token: Optional[str] = None
    account_context: Optional[str] = None
    realm_id: Optional[str] = None
    # (client_id, client_secret) for the OAuth token endpoints
    client_credentials: Optional[Tuple[str, str]] = None


@dataclass(frozen=True)
class WireCall:
    method: str
    url: str
    headers: Dict[str, str]
    content: Optional[str] = None


@dataclass
class NormalizedResult:
    ok: bool
    status_code: int = 200
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    details: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)
    # Content type of a binary success body (PDFs and the like)
    media_type: Optional[str] = None

    @classmethod
    def success(cls, data: Any, status_code: int = 200, media_type: Optional[str] = None) -> "NormalizedResult":
        return cls(ok=True, status_code=status_code, data=data, media_type=media_type)

    @classmethod
    def failure(
        cls,
        error_kind: str,
        message: str,
        status_code: int,
        details: Any = None,
        error: Optional[str] = None,
        **extra: Any,
    ) -> "NormalizedResult":
        return cls(
            ok=False,
            status_code=status_code,
            error=error or message,
            error_kind=error_kind,
            message=message,
            details=details,
            extra={key: value for key, value in extra.items() if value is not None},
        )

    def to_body(self) -> Any:
        """Caller-facing JSON body."""
        if self.ok:
            return self.data
        body = {
            "error": self.error,
            "errorKind": self.error_kind,
            "message": self.message,
        }
        body.update(self.extra)
        if self.details is not None:
            body["details"] = self.details
        return body
