"""Liveness and readiness checks.

/health answers "is the process alive" and reports each backing
service; it returns 200 even when degraded so the orchestrator does not
restart a process that is merely waiting on a dependency.

/ready answers "can this instance take traffic". PostgreSQL holds every
enrollment and payment, so a configured but unreachable database makes
the instance not ready (503). Redis only backs the cache and the
notification queue, so it never affects readiness.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status
from redis.exceptions import RedisError

from coursehub.core.metrics import QUEUE_DEPTH
from coursehub.db import engine as db_engine
from coursehub.db.redis import redis_pool
from coursehub.services.task_queue import NOTIFICATIONS_QUEUE, task_queue

router = APIRouter(tags=["health"])


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        return "degraded"
    return "ok"


async def _database_status() -> str:
    if db_engine.engine is None:
        return "not_configured"
    return "ok" if await db_engine.ping_database() else "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _database_status(),
        "redis": await _redis_status(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"

    queue_depth: int | None = None
    if checks["redis"] != "degraded":
        queue_depth = await task_queue.queue_length(NOTIFICATIONS_QUEUE)
        QUEUE_DEPTH.labels(queue_name=NOTIFICATIONS_QUEUE).set(queue_depth)

    return {
        "status": overall,
        "checks": checks,
        "notifications_queue_depth": queue_depth,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
