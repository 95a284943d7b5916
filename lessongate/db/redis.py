"""Shared Redis client for the read cache and the analytics queue.

REDIS_URL unset means no client: ``redis_pool`` is None and both users
pick their in-memory implementation at import time.

Only losable data lives here.  Cached profile, enrollment and progress
reads can be re-derived from their stores, and preview analytics events
never gate access.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from lessongate.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    aioredis.from_url(SETTINGS.redis_url, decode_responses=True, max_connections=20)
    if SETTINGS.redis_url
    else None
)


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("REDIS_URL not set, cache and analytics queue are in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        # A cold cache only costs extra store reads, so start anyway.
        logger.exception("Redis unreachable at startup")
    else:
        logger.info("Redis reachable")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis client closed")
