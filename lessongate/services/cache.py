"""Per-user read cache for collaborator lookups.

WHAT IS CACHED
----------------
  profile:{user_id}                 academic profile        TTL ~5 min
  enrollment:{user_id}:{course_id}  enrollment row          TTL ~2 min
  progress:{user_id}:{course_id}    chapter progress rows   TTL ~2 min

Keys always start with the owning user, so nothing is shared across
users and a user's whole footprint can be dropped with one pattern.

INVALIDATION
--------------
TTL is the safety net; explicit invalidation is the contract.  Every
write path that changes one of these records calls the matching
``invalidate_*`` helper below (completion writes, group confirmation,
the staff invalidation endpoint used by external writers).  Nothing
relies on a viewing session ending to clear anything.

Reads follow the read-through pattern: check cache, on miss load from
the store, populate, return.  Lookup failures are never cached.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from lessongate.core.metrics import CACHE_OPERATIONS
from lessongate.db.redis import redis_pool

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on miss or expiry."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a trailing-* glob (e.g. 'progress:u1:*')."""
        ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: str
    fetched_at: float
    ttl_seconds: int

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl_seconds


class InMemoryCacheService:
    """Process-local cache with TTL enforcement.

    ``clock`` is injectable so tests can age entries without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            del self._store[key]
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = CacheEntry(
            key=key, value=value, fetched_at=self._clock(), ttl_seconds=ttl_seconds
        )

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared by all API instances."""

    # Key prefix prevents collisions with the analytics queue.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server while it walks every key.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


# ---------------------------------------------------------------------------
# Keys and invalidation
# ---------------------------------------------------------------------------


def profile_key(user_id: str) -> str:
    return f"profile:{user_id}"


def enrollment_key(user_id: str, course_id: str) -> str:
    return f"enrollment:{user_id}:{course_id}"


def progress_key(user_id: str, course_id: str) -> str:
    return f"progress:{user_id}:{course_id}"


async def invalidate_profile(cache: CacheService, user_id: str) -> None:
    await cache.delete(profile_key(user_id))


async def invalidate_enrollment(
    cache: CacheService, user_id: str, course_id: str | None = None
) -> None:
    if course_id is None:
        await cache.delete_pattern(f"enrollment:{user_id}:*")
    else:
        await cache.delete(enrollment_key(user_id, course_id))


async def invalidate_progress(
    cache: CacheService, user_id: str, course_id: str | None = None
) -> None:
    if course_id is None:
        await cache.delete_pattern(f"progress:{user_id}:*")
    else:
        await cache.delete(progress_key(user_id, course_id))


async def invalidate_user(cache: CacheService, user_id: str) -> None:
    await invalidate_profile(cache, user_id)
    await invalidate_enrollment(cache, user_id)
    await invalidate_progress(cache, user_id)


# ---------------------------------------------------------------------------
# Read-through helper
# ---------------------------------------------------------------------------


async def read_through(
    cache: CacheService,
    key: str,
    ttl_seconds: int,
    loader: Callable[[], Awaitable[T]],
    *,
    encode: Callable[[T], object],
    decode: Callable[[object], T],
) -> T:
    """Return the cached value for ``key`` or load, store and return it.

    ``encode``/``decode`` convert between the domain value and a
    JSON-serializable payload.  Exceptions from ``loader`` propagate and
    nothing is cached.
    """
    cached = await cache.get(key)
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return decode(json.loads(cached))

    CACHE_OPERATIONS.labels(operation="miss").inc()
    value = await loader()
    await cache.set(key, json.dumps(encode(value)), ttl_seconds)
    return value


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
