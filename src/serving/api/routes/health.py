"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from src.config.settings import Settings
from src.database.connection import get_database
from src.serving.api.dependencies import get_app_settings
from src.serving.cache import get_redis

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity, when caching is enabled
    """
    checks = {}
    overall_status = "healthy"

    db_health = await get_database(request).check_health()
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    if settings.redis.enabled:
        redis = get_redis()
        if redis is None:
            checks["redis"] = {"status": "unavailable"}
            if overall_status == "healthy":
                overall_status = "degraded"
        else:
            try:
                await redis.ping()
                checks["redis"] = {"status": "healthy"}
            except Exception as e:
                checks["redis"] = {"status": "unhealthy", "error": str(e)}
                if overall_status == "healthy":
                    overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 if the application is ready to receive traffic.
    """
    db_health = await get_database(request).check_health()

    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}

    return {"status": "ready"}
