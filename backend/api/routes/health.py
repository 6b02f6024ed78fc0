"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shared.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    database: str
    payments: str
    generation: str


def _configured(*values: str) -> str:
    return "configured" if all(values) else "not_configured"


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running.
    """
    return HealthResponse(status="healthy", version=settings.app_version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(settings: Settings = Depends(get_settings)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Reports whether each external dependency has its settings in place.
    """
    database = _configured(settings.supabase_url, settings.supabase_service_role_key)
    payments = _configured(settings.stripe_secret_key, settings.stripe_webhook_secret)
    generation = _configured(settings.generation_gateway_url)
    ready = database == payments == generation == "configured"
    return ReadinessResponse(
        status="ready" if ready else "degraded",
        database=database,
        payments=payments,
        generation=generation,
    )
