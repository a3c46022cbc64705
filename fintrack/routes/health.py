"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from fintrack.db.pool import db_health_check
from fintrack.services.infrastructure.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "fintrack"}


@router.get("/readyz")
async def readyz():
    """Readiness check. Redis is optional and only checked when configured."""
    checks = {}
    overall_ok = True

    t0 = time.time()
    db_health = await db_health_check()
    checks["database"] = {
        "ok": db_health.get("healthy", False),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if not checks["database"]["ok"]:
        checks["database"]["error"] = db_health.get("error")
        overall_ok = False

    if fast_redis.configured:
        t0 = time.time()
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and redis_ok

    body = {"status": "ready" if overall_ok else "not_ready", "checks": checks}
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)
