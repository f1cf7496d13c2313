"""Read-through cache for course progress reports.

Reports join every enrollment, topic, and progress record of a course, so
the admin dashboard reads them through this cache.  Entries expire after
REPORT_CACHE_TTL seconds and are dropped explicitly whenever a mutation
touches the course.  The TTL bounds staleness if an invalidation is ever
missed.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from app.core.config import SETTINGS
from app.core.metrics import REPORT_CACHE_OPERATIONS
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)


def report_key(course_id: UUID) -> str:
    return f"report:course:{course_id}"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Process-local cache used when REDIS_URL is not configured."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache shared by every API instance."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


class ReportCache:
    """JSON report rows keyed by course."""

    def __init__(self, backend: CacheService, ttl_seconds: int) -> None:
        self._backend = backend
        self._ttl = ttl_seconds

    async def get(self, course_id: UUID) -> list[dict[str, Any]] | None:
        raw = await self._backend.get(report_key(course_id))
        if raw is None:
            REPORT_CACHE_OPERATIONS.labels(operation="miss").inc()
            return None
        REPORT_CACHE_OPERATIONS.labels(operation="hit").inc()
        return json.loads(raw)

    async def set(self, course_id: UUID, rows: list[dict[str, Any]]) -> None:
        await self._backend.set(report_key(course_id), json.dumps(rows), self._ttl)

    async def invalidate(self, course_id: UUID) -> None:
        await self._backend.delete(report_key(course_id))
        REPORT_CACHE_OPERATIONS.labels(operation="invalidate").inc()
        logger.debug("Invalidated cached report course=%s", course_id)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()

report_cache = ReportCache(cache_service, SETTINGS.report_cache_ttl)
