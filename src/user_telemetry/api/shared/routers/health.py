"""
Health Check Endpoints

Provides health, readiness, and liveness endpoints for container orchestration.
"""

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Request, Response

from ....core.errors import DataAccessError

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Basic health check.

    Returns 200 if the service is running.
    """
    telemetry = request.app.state.telemetry
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": telemetry.config.service_name,
        "version": telemetry.config.service_version
    }


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness check.

    Returns 200 if the process is alive.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, Any]:
    """
    Readiness check.

    Returns 200 if the service is ready to accept traffic.
    Checks database connectivity and the telemetry pipeline.
    """
    checks = {}
    all_healthy = True

    database = request.app.state.database
    try:
        if not database.connected:
            raise DataAccessError("pool not connected")
        await database.fetchval("SELECT 1")
        checks["database"] = "healthy"
    except DataAccessError as e:
        checks["database"] = f"unhealthy: {e.detail[:100]}"
        all_healthy = False

    if request.app.state.telemetry.is_shutdown:
        checks["telemetry"] = "shut down"
        all_healthy = False
    else:
        checks["telemetry"] = "running"

    if not all_healthy:
        response.status_code = 503

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "timestamp": _now()
    }
