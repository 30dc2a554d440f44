"""Liveness, readiness and service info endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.config import settings
from ..core.database import check_db, utcnow
from ..core.observability import SERVICE_NAME
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _health() -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        timestamp=utcnow(),
        version=__version__,
        environment=settings.environment
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """Liveness check; does not touch dependencies."""
    return JSONResponse(status_code=200, content=_health().model_dump(mode="json"))


@router.post("/v1/health/ping", response_model=HealthResponse)
async def health_ping() -> JSONResponse:
    response_data = _health()

    logger.debug(
        "Health check requested",
        extra={"status": response_data.status, "timestamp": response_data.timestamp.isoformat()}
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check() -> JSONResponse:
    """
    Readiness check.

    Returns 503 while the database cannot be reached.
    """
    checks: dict[str, str] = {}
    try:
        await check_db()
        checks["database"] = "ok"
    except Exception as e:
        logger.warning("Readiness database check failed", extra={"error": str(e)})
        checks["database"] = f"error: {type(e).__name__}"

    ready = all(result == "ok" for result in checks.values())
    response_data = ReadinessResponse(
        status=HealthStatus.READY if ready else HealthStatus.NOT_READY,
        service=SERVICE_NAME,
        checks=checks
    )
    return JSONResponse(status_code=200 if ready else 503, content=response_data.model_dump(mode="json"))


@router.get("/info", tags=["info"])
async def service_info() -> dict:
    return {
        "service": SERVICE_NAME,
        "version": __version__,
        "description": "Tour shop storefront and admin API",
        "environment": settings.environment,
        "debug": settings.debug,
        "features": {
            "authentication": True,
            "idempotency": True,
            "tracing": True,
            "problem_details": True,
            "payments": "paypal",
        },
        "endpoints": {
            "health": "/health",
            "readiness": "/ready",
            "metrics": "/metrics",
            "docs": "/docs" if settings.debug else None,
        },
    }
