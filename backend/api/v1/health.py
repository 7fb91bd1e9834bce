"""
Health Check API

Liveness and readiness probes for uptime monitors and load balancers.
Only status strings are returned, never connection details.

Routes
------
GET /health        - status, environment and active predictor
GET /health/ready  - store and cache connectivity
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from api.dependencies import get_db_session
from config.database import db_manager
from config.settings import settings

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_startup_time = time.time()


# =============================================================================
# Helpers
# =============================================================================


async def _check_database(db: AsyncSession) -> Dict[str, Any]:
    """Verify DB connectivity with a lightweight SELECT 1 and measure latency."""
    if db is None:
        return {"status": "not_configured"}
    start = time.monotonic()
    try:
        await db.execute(text("SELECT 1"))
        latency_ms = round((time.monotonic() - start) * 1000, 2)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as exc:
        logger.warning("health_check_db_failed", error=str(exc))
        return {"status": "unhealthy"}


async def _check_redis() -> Dict[str, Any]:
    """Verify Redis connectivity with a PING and measure latency."""
    redis = await db_manager.get_redis_client()
    if redis is None:
        return {"status": "not_configured"}
    start = time.monotonic()
    try:
        await redis.ping()
        latency_ms = round((time.monotonic() - start) * 1000, 2)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as exc:
        logger.warning("health_check_redis_failed", error=str(exc))
        return {"status": "unhealthy"}


# =============================================================================
# Endpoints
# =============================================================================


@router.get("")
async def health_check():
    """Basic health check with deployment metadata"""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "predictor_version": settings.predictor_version,
        "uptime_seconds": round(time.time() - _startup_time, 2),
    }


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db_session)):
    """
    Readiness check.

    An unconfigured database or cache is fine (in-memory store, no cache);
    a configured one that does not answer makes the service not ready.
    """
    checks = {
        "database": await _check_database(db),
        "redis": await _check_redis(),
    }
    ready = all(c["status"] != "unhealthy" for c in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not ready", "checks": checks},
    )


@router.get("/live")
async def liveness_check():
    """Liveness check - verify application is running"""
    return {"status": "alive"}
