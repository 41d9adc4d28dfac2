"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
requires the database; Redis is only checked when it backs the daily
summary cache.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.pharmameet.config import CacheBackend, get_settings
from src.pharmameet.core.database import ping_db
from src.pharmameet.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies() -> dict:
    """Check database, Redis (when used), and OpenAI key configuration."""
    settings = get_settings()
    checks: dict = {"database": "ok", "redis": "unused", "openai": "ok"}

    try:
        await ping_db()
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    if settings.DAILY_SUMMARY_CACHE == CacheBackend.redis:
        try:
            pong = await get_redis_pool().ping()
            checks["redis"] = "ok" if pong else "error"
        except Exception as e:
            checks["redis"] = "error"
            checks["redis_error"] = str(e)

    if not settings.OPENAI_API_KEY:
        checks["openai"] = "no_key"

    return checks


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: 200 if the database (and Redis, when used) respond."""
    checks = await _check_dependencies()
    all_healthy = checks.get("database") == "ok" and checks.get("redis") in ("ok", "unused")

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
