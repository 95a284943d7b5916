from __future__ import annotations

import asyncio

from lessongate.services.cache import (
    InMemoryCacheService,
    enrollment_key,
    invalidate_enrollment,
    invalidate_profile,
    invalidate_progress,
    invalidate_user,
    profile_key,
    progress_key,
    read_through,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _identity(value: object) -> object:
    return value


def test_entry_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = InMemoryCacheService(clock)

    async def run() -> None:
        await cache.set("k", "v", ttl_seconds=10)
        clock.now += 9
        assert await cache.get("k") == "v"
        clock.now += 1
        assert await cache.get("k") is None

    asyncio.run(run())


def test_read_through_loads_once_until_expiry() -> None:
    clock = FakeClock()
    cache = InMemoryCacheService(clock)
    calls: list[int] = []

    async def loader() -> dict:
        calls.append(1)
        return {"n": len(calls)}

    async def run() -> None:
        first = await read_through(cache, "k", 60, loader, encode=_identity, decode=_identity)
        second = await read_through(cache, "k", 60, loader, encode=_identity, decode=_identity)
        assert first == second == {"n": 1}
        clock.now += 61
        third = await read_through(cache, "k", 60, loader, encode=_identity, decode=_identity)
        assert third == {"n": 2}

    asyncio.run(run())


def test_read_through_caches_none() -> None:
    cache = InMemoryCacheService(FakeClock())
    calls: list[int] = []

    async def loader() -> None:
        calls.append(1)
        return None

    async def run() -> None:
        await read_through(cache, "k", 60, loader, encode=_identity, decode=_identity)
        await read_through(cache, "k", 60, loader, encode=_identity, decode=_identity)

    asyncio.run(run())
    assert len(calls) == 1


def test_read_through_does_not_cache_failures() -> None:
    cache = InMemoryCacheService(FakeClock())

    async def failing() -> dict:
        raise RuntimeError("down")

    async def run() -> None:
        try:
            await read_through(cache, "k", 60, failing, encode=_identity, decode=_identity)
        except RuntimeError:
            pass
        assert await cache.get("k") is None

    asyncio.run(run())


def test_invalidation_helpers_drop_only_matching_keys() -> None:
    cache = InMemoryCacheService(FakeClock())

    async def run() -> None:
        for key in (
            profile_key("u1"),
            enrollment_key("u1", "c1"),
            enrollment_key("u1", "c2"),
            progress_key("u1", "c1"),
            progress_key("u1", "c2"),
            profile_key("u10"),
            enrollment_key("u10", "c1"),
        ):
            await cache.set(key, "x", 60)

        await invalidate_enrollment(cache, "u1", "c1")
        assert await cache.get(enrollment_key("u1", "c1")) is None
        assert await cache.get(enrollment_key("u1", "c2")) == "x"

        await invalidate_progress(cache, "u1")
        assert await cache.get(progress_key("u1", "c1")) is None
        assert await cache.get(progress_key("u1", "c2")) is None

        await invalidate_profile(cache, "u1")
        assert await cache.get(profile_key("u1")) is None

        await invalidate_user(cache, "u1")
        assert await cache.get(enrollment_key("u1", "c2")) is None
        # a user id that shares a prefix is untouched
        assert await cache.get(profile_key("u10")) == "x"
        assert await cache.get(enrollment_key("u10", "c1")) == "x"

    asyncio.run(run())
