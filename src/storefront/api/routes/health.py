"""Liveness (/health) and readiness (/health/ready) probes."""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.storefront.config import CacheBackend, get_settings
from src.storefront.core.database import get_engine
from src.storefront.core.redis import ping_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Process is up; no dependency is contacted."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "tenant_mode": settings.TENANT_MODE.value,
    }


async def _check_database(checks: dict) -> None:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)


async def _check_redis(checks: dict) -> None:
    # Redis only matters when it backs the tenant cache
    if get_settings().TENANT_CACHE_BACKEND != CacheBackend.redis:
        checks["redis"] = "not_used"
        return
    try:
        if not await ping_redis():
            checks["redis"] = "error"
            checks["redis_error"] = "PING did not return PONG"
    except Exception as e:
        checks["redis"] = "error"
        checks["redis_error"] = str(e)


@router.get("/health/ready")
async def readiness_check():
    """200 when the database (and Redis, if used) answer, 503 otherwise."""
    checks: dict = {"database": "ok", "redis": "ok"}
    await _check_database(checks)
    await _check_redis(checks)

    healthy = checks["database"] == "ok" and checks["redis"] in ("ok", "not_used")
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
