"""Redis connection management.

Mirrors engine.py: with REDIS_URL configured a shared connection pool is
created at import; without it redis_pool is None and the report cache
falls back to a process-local dict.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Verify the pool on startup and close it on shutdown.

    An unreachable Redis is logged but does not stop the app from
    starting; cache operations will fail until it comes back.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured; report cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except (aioredis.RedisError, OSError):
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
