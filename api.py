from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Optional
import logging
import uvicorn

from config import ProxySettings
from models.schemas import HealthResponse

# Import all routers
from routers import environment
from routers.proxy.errors import ProxyError
from routers.proxy.router import router as proxy_router

PROXY_NAME = "CNSTRCT Unified CORS Proxy"
PROXY_VERSION = "1.0.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

ENDPOINTS = {
    "qbo": {
        "token": "/proxy/qbo/token",
        "refresh": "/proxy/qbo/refresh",
        "dataOperation": "/proxy/qbo/data-operation",
        "testConnection": "/proxy/qbo/test-connection",
    },
    "stripe": {
        "api": "/proxy/stripe",
        "token": "/proxy/stripe/token",
    },
    "backend": {
        "api": "/proxy/backend",
    },
}


async def proxy_error_handler(request: Request, exc: ProxyError):
    """Render validation and routing errors in the normalized error shape."""
    logger.warning(f"🚫 {request.method} {request.url.path} rejected: {exc.error_kind}: {exc.message}")
    result = exc.to_result()
    return JSONResponse(status_code=result.status_code, content=result.to_body())


def create_app(settings: Optional[ProxySettings] = None) -> FastAPI:
    """
    Build the proxy app around an explicit settings object.

    Args:
        settings: Process settings; read from the environment when omitted

    Returns:
        The configured FastAPI application
    """
    settings = settings or ProxySettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 {PROXY_NAME} v{PROXY_VERSION} starting ({settings.environment})")
        for service, routes in ENDPOINTS.items():
            for name, path in routes.items():
                logger.info(f"   {service} {name}: {path}")
        if not settings.stripe_configured:
            logger.warning("⚠️  STRIPE_SECRET_KEY is not set; Stripe calls need a per-request key")
        if not settings.qbo_configured:
            logger.warning("⚠️  QBO client credentials are not set; token calls need clientId/clientSecret")
        yield
        logger.info("👋 Proxy shutting down")

    app = FastAPI(title=PROXY_NAME, version=PROXY_VERSION, lifespan=lifespan)
    app.state.settings = settings

    # The browser dashboard calls the proxy directly from any deployed origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )
    app.add_exception_handler(ProxyError, proxy_error_handler)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Liveness and endpoint discovery."""
        return {
            "status": "ok",
            "name": PROXY_NAME,
            "version": PROXY_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoints": ENDPOINTS,
        }

    @app.get("/")
    async def read_root():
        return {
            "status": "ok",
            "name": PROXY_NAME,
            "message": f"{PROXY_NAME} is running",
            "environment": settings.environment,
            "qbo_configured": settings.qbo_configured,
            "stripe_configured": settings.stripe_configured,
            "services": ["qbo", "stripe", "backend"],
            "version": PROXY_VERSION,
        }

    # Include all routers
    app.include_router(environment.router)
    app.include_router(proxy_router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
