"""
Stagehand - Health Check Route
==============================

What:  Reports whether the database and the response cache are reachable.
How:   SELECT 1 against the engine and a Redis PING.

Status levels:
    healthy:   database reachable, cache reachable or disabled
    degraded:  database reachable, enabled cache unreachable (requests still
               succeed, the cache stages degrade to pass-through)
    unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from stagehand import __version__
from stagehand.cache.store import response_cache
from stagehand.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    cache_status = "disabled"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        from stagehand.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Cache ───────────────────────────────────────────────────────
    if response_cache.enabled:
        if await response_cache.ping():
            cache_status = "connected"
        else:
            cache_status = "unreachable"
            overall = "degraded" if overall != "unhealthy" else overall

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
