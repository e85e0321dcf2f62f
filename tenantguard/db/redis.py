"""Redis connection management.

Mirrors engine.py: a pool exists only when REDIS_URL is configured.  The
one consumer today is the invite cooldown, a short-lived key per
(organization, inviter) pair whose TTL *is* the throttle window.  With
Redis the throttle holds across every API instance; without it each
process keeps its own map and the window resets on restart.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from tenantguard.core.config import SETTINGS

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
    """Ping on startup, close the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, invite cooldown is per-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Start anyway; cooldown calls will surface the outage per request.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
