"""
FastAPI Application Factory
===========================

Entry point of the credential relay.

Architecture:
    Browser -> Relay (this service) -> Google OAuth / People API

Routes:
    - /         : Signed credential payload, or "Not signed in"
    - /me       : Parsed credential payload (401 when not signed in)
    - /login    : Redirect to Google sign-in
    - /auth     : OAuth callback, sets the credentials cookie pair
    - /health   : Health check endpoint

Environment Variables Required:
    - GOOGLE_CLIENT_ID: OAuth client ID
    - GOOGLE_CLIENT_SECRET: OAuth client secret
    - GOOGLE_REDIRECT_URL: Callback URL registered with Google (ends in /auth)
    - SESSION_KEY: Secret for signing the credentials cookie
    - PORT: Port to listen on (default: 3000)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn utokyo_relay.main:create_app --factory --reload --port 3000

    Production:
        utokyo-relay
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from utokyo_relay import __version__
from utokyo_relay.auth import auth_router
from utokyo_relay.auth.oauth import GoogleOAuthClient
from utokyo_relay.auth.signer import Signer
from utokyo_relay.config import Settings, get_settings, validate_configuration
from utokyo_relay.errors import ConfigurationError
from utokyo_relay.models import ErrorResponse, HealthResponse

SERVICE_NAME = "utokyo-relay"

logger = logging.getLogger("utokyo_relay.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Report configuration warnings
        - Create the shared HTTP client and the Google OAuth client

    Shutdown tasks:
        - Close the shared HTTP client
    """
    settings: Settings = app.state.settings

    status = validate_configuration(settings)
    if not status["valid"]:
        raise ConfigurationError("; ".join(status["errors"]))
    for warning in status["warnings"]:
        logger.warning(warning)

    http_client = httpx.AsyncClient(timeout=settings.OAUTH_TIMEOUT_SECONDS)
    app.state.oauth_client = GoogleOAuthClient(settings, http_client)

    logger.info(
        "Relay service started",
        extra={
            "service": SERVICE_NAME,
            "version": __version__,
            "allowed_domain": settings.ALLOWED_DOMAIN,
            "port": settings.PORT,
        }
    )

    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("Relay service shutdown complete")


# Create FastAPI application
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Builds the Signer from SESSION_KEY here, so a missing key fails
    application creation rather than a request.

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="UTokyo Credential Relay",
        description="Google sign-in relay issuing signed credential cookies",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.signer = Signer(settings.SESSION_KEY)

    app.include_router(auth_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Service status and basic metadata."""
        return HealthResponse(status="ok", service=SERVICE_NAME, version=__version__)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response. The
        exception text is only logged, never returned.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        body = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
        )
        return JSONResponse(
            status_code=500,
            content=body.model_dump(mode="json", exclude_none=True),
        )

    return app


def main() -> None:
    """Run the relay with uvicorn, bound to HOST and PORT."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.critical(f"Refusing to start: {e}")
        sys.exit(1)

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
