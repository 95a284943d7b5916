from __future__ import annotations

import asyncio

import pytest

from lessongate.core.errors import PersistenceWriteError
from lessongate.models.enrollment import CenterGroupMembership
from lessongate.repos.group_membership_repo import InMemoryGroupMembershipRepo
from lessongate.services.cache import InMemoryCacheService, profile_key
from lessongate.services.group_membership import confirm_center_group
from lessongate.services.retry import RetryPolicy

NO_DELAY = RetryPolicy(max_retries=1, delay_seconds=0)


class DroppingRepo(InMemoryGroupMembershipRepo):
    """Accepts writes but never stores them."""

    async def upsert(self, membership: CenterGroupMembership) -> None:
        return None


class FlakyRepo(InMemoryGroupMembershipRepo):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.writes = 0

    async def upsert(self, membership: CenterGroupMembership) -> None:
        self.writes += 1
        if self.writes <= self.failures:
            raise ConnectionError("write timed out")
        await super().upsert(membership)


class UncommittableRepo(InMemoryGroupMembershipRepo):
    """Stages writes but every commit fails, so nothing becomes durable."""

    def __init__(self) -> None:
        super().__init__()
        self.commits = 0
        self._staged: dict[tuple[str, str], CenterGroupMembership] = {}

    async def upsert(self, membership: CenterGroupMembership) -> None:
        self._staged[(membership.student_id, membership.group_id)] = membership

    async def commit(self) -> None:
        self.commits += 1
        self._staged.clear()
        raise ConnectionError("commit failed")


def test_confirm_writes_and_invalidates_profile() -> None:
    repo = InMemoryGroupMembershipRepo()
    cache = InMemoryCacheService()

    async def run() -> None:
        await cache.set(profile_key("s-1"), "{}", 60)
        membership = await confirm_center_group(repo, "s-1", "g-1", cache=cache, policy=NO_DELAY)
        assert membership.is_active is True
        assert await repo.get("s-1", "g-1") == membership
        assert await cache.get(profile_key("s-1")) is None

    asyncio.run(run())


def test_confirm_retries_one_failed_write() -> None:
    repo = FlakyRepo(failures=1)
    asyncio.run(
        confirm_center_group(repo, "s-1", "g-1", cache=InMemoryCacheService(), policy=NO_DELAY)
    )
    assert repo.writes == 2


def test_confirm_raises_after_second_failure() -> None:
    repo = FlakyRepo(failures=2)
    with pytest.raises(PersistenceWriteError):
        asyncio.run(
            confirm_center_group(repo, "s-1", "g-1", cache=InMemoryCacheService(), policy=NO_DELAY)
        )


def test_confirm_raises_when_write_is_not_visible() -> None:
    with pytest.raises(PersistenceWriteError, match="read-back"):
        asyncio.run(
            confirm_center_group(
                DroppingRepo(), "s-1", "g-1", cache=InMemoryCacheService(), policy=NO_DELAY
            )
        )


def test_confirm_fails_when_commit_fails() -> None:
    repo = UncommittableRepo()
    cache = InMemoryCacheService()

    async def run() -> None:
        await cache.set(profile_key("s-1"), "{}", 60)
        with pytest.raises(PersistenceWriteError, match="group confirmation failed"):
            await confirm_center_group(repo, "s-1", "g-1", cache=cache, policy=NO_DELAY)
        assert await cache.get(profile_key("s-1")) == "{}"

    asyncio.run(run())
    assert repo.commits == 2
    assert asyncio.run(repo.get("s-1", "g-1")) is None
