"""Read-through cache for catalog reads.

Course structures are read on every lesson page and change only when a
teacher edits the course, so the HTTP layer caches the serialized
structure and deletes the entry on every catalog write:

    GET  -> cache hit?  return it
         -> miss        load from the repos, store with TTL, return
    write -> delete the course's key

The TTL is a backstop for a missed invalidation; explicit deletes keep
the common case fresh. Nothing here is a source of truth.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from coursehub.core.metrics import CACHE_OPERATIONS
from coursehub.db.redis import redis_pool


def course_structure_key(course_id: UUID | str) -> str:
    return f"course:{course_id}:structure"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests. TTLs are ignored."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._store.get(key)
        CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheService:
    """Redis-backed cache shared by every API instance."""

    # Key prefix keeps cache entries apart from the task queue lists
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
