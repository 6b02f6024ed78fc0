"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    CreatorError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from modules.credits.exceptions import InsufficientCreditsError
from modules.generation.exceptions import ProviderRateLimitedError
from modules.billing.routes import router as billing_router
from modules.credits.routes import router as credits_router
from modules.generation.routes import router as generation_router
from .routes import health, users

logger = logging.getLogger(__name__)

# Most specific first; the first match wins
ERROR_STATUS_CODES: list[tuple[type[CreatorError], int]] = [
    (InsufficientCreditsError, 402),
    (ProviderRateLimitedError, 429),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ConfigurationError, 500),
    (ExternalServiceError, 502),
]


def status_code_for(error: CreatorError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def creator_error_handler(request: Request, exc: CreatorError) -> JSONResponse:
    """Render CreatorError subclasses as {"error", "message", "details"}."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}")

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    # Startup
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Credits, payments and paid content generation for Creator",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_exception_handler(CreatorError, creator_error_handler)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(credits_router, prefix="/api/credits", tags=["credits"])
    app.include_router(billing_router, prefix="/api/billing", tags=["billing"])
    app.include_router(generation_router, prefix="/api/generate", tags=["generation"])

    return app


# Application instance for uvicorn
app = create_app()
