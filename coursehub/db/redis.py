"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a connection pool is
created at import time; when it is None (local dev, tests) the cache and
the notification queue fall back to in-memory implementations.

Redis holds only derived or transient data here: cached course
structures and queued domain events. Nothing in it is a source of
truth, so losing it on restart costs a cache miss or an undelivered
notification, never an enrollment or a payment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,  # return str instead of bytes
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirroring lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, using in-memory cache and queue")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Degrade instead of failing startup: the cache is optional and
        # event publishing logs its own failures.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
