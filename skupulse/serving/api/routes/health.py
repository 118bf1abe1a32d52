"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from skupulse.config.settings import Settings
from skupulse.database.models import SyncRun
from skupulse.sync import JOB_NAME
from skupulse.serving.api.dependencies import get_app_settings, get_database

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
    - Last successful sync
    - Redis connectivity (when configured)
    """
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    db = get_database(request)
    if db is None:
        checks["database"] = {"status": "unconfigured"}
        overall_status = "degraded"
    else:
        db_health = await db.health()
        checks["database"] = db_health
        if db_health.get("status") != "healthy":
            overall_status = "unhealthy"
        else:
            async with db.session() as session:
                last_run = await session.get(SyncRun, JOB_NAME)
            checks["last_sync"] = {
                "last_success_at": last_run.last_success_at.isoformat() if last_run else None,
                "products": last_run.products if last_run else 0,
                "orders": last_run.orders if last_run else 0,
            }

    cache = request.app.state.skus_cache
    if cache.enabled:
        try:
            await cache.client.ping()
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
    """Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Returns 200 if the database is reachable."""
    db = get_database(request)
    if db is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unconfigured"}

    db_health = await db.health()
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
