"""
Process configuration for the integration proxy.

Settings are read once at startup and injected into the app; routes reach
them through the ``get_settings`` dependency.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import os

from dotenv import load_dotenv
from fastapi import Request

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("sandbox", "production")


def _env_str(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_number(name: str, default, cast):
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class ProxySettings:
    environment: str = "sandbox"
    qbo_client_id: Optional[str] = None
    qbo_client_secret: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    backend_url: Optional[str] = None
    backend_api_key: Optional[str] = None
    port: int = 3030
    timeout_seconds: float = 30.0
    oauth_timeout_seconds: float = 10.0
    connect_retries: int = 0

    def __post_init__(self):
        if self.environment not in ENVIRONMENTS:
            raise ValueError(
                f"environment must be one of {', '.join(ENVIRONMENTS)}, got {self.environment!r}"
            )
        if self.timeout_seconds <= 0 or self.oauth_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.connect_retries < 0:
            raise ValueError("connect_retries cannot be negative")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ProxySettings":
        """Build settings from the process environment (and ``.env`` if present)."""
        load_dotenv(dotenv_path=env_file, override=False)
        environment = (_env_str("PROXY_ENVIRONMENT") or "sandbox").lower()
        return cls(
            environment=environment,
            qbo_client_id=_env_str("QBO_CLIENT_ID"),
            qbo_client_secret=_env_str("QBO_CLIENT_SECRET"),
            stripe_secret_key=_env_str("STRIPE_SECRET_KEY"),
            backend_url=_env_str("BACKEND_URL"),
            backend_api_key=_env_str("BACKEND_API_KEY"),
            port=_env_number("PROXY_PORT", 3030, int),
            timeout_seconds=_env_number("PROXY_TIMEOUT_SECONDS", 30.0, float),
            oauth_timeout_seconds=_env_number("PROXY_OAUTH_TIMEOUT_SECONDS", 10.0, float),
            connect_retries=_env_number("PROXY_CONNECT_RETRIES", 0, int),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def qbo_configured(self) -> bool:
        return bool(self.qbo_client_id and self.qbo_client_secret)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    def describe(self) -> Dict[str, str]:
        """Report which options are configured without exposing any secret."""
        def flag(value):
            return "set" if value else "not set"

        return {
            "PROXY_ENVIRONMENT": self.environment,
            "QBO_CLIENT_ID": flag(self.qbo_client_id),
            "QBO_CLIENT_SECRET": flag(self.qbo_client_secret),
            "STRIPE_SECRET_KEY": flag(self.stripe_secret_key),
            "BACKEND_URL": flag(self.backend_url),
            "BACKEND_API_KEY": flag(self.backend_api_key),
            "PROXY_PORT": str(self.port),
        }


def get_settings(request: Request) -> ProxySettings:
    """Settings dependency for routers."""
    return request.app.state.settings
