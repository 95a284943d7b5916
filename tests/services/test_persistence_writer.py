from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from lessongate.core.errors import PersistenceWriteError
from lessongate.models.course import Lesson
from lessongate.models.engagement import EngagementSession
from lessongate.models.principal import ANONYMOUS, Principal
from lessongate.repos.completion_repo import InMemoryCompletionRepo
from lessongate.repos.content_repo import InMemoryContentRepo
from lessongate.repos.engagement_repo import InMemoryEngagementRepo
from lessongate.services.cache import InMemoryCacheService, progress_key
from lessongate.services.focus_guard import FocusGuardResult, can_persist
from lessongate.services.persistence_writer import SessionPersistenceWriter

STUDENT = Principal(user_id="u-1", roles=frozenset({"student"}))
ADMIN = Principal(user_id="a-1", roles=frozenset({"admin"}))
LESSON = Lesson(id="l-1", course_id="c-1", chapter_id="ch-1")


def _session(user_id: str | None = "u-1") -> EngagementSession:
    return EngagementSession.new(
        user_id=user_id,
        lesson_id="l-1",
        course_id="c-1",
        started_at=100,
        ended_at=200,
        active_seconds=90,
        paused_seconds=10,
        interruptions=1,
        completed_segments=0,
    )


class BrokenEngagementRepo:
    async def add(self, session, *, counts_toward_metrics):  # noqa: ANN001
        raise ConnectionError("db down")


class BrokenCompletionRepo:
    async def add(self, record):  # noqa: ANN001
        raise ConnectionError("db down")


def _writes(result: str) -> float:
    return (
        REGISTRY.get_sample_value("engagement_writes_total", {"result": result}) or 0.0
    )


def _writer(engagement=None, completions=None) -> SessionPersistenceWriter:  # noqa: ANN001
    return SessionPersistenceWriter(
        completions or InMemoryCompletionRepo(InMemoryContentRepo()),
        engagement or InMemoryEngagementRepo(),
        InMemoryCacheService(),
        clock=lambda: 1_700_000_000,
    )


def test_learner_session_written_and_counted() -> None:
    repo = InMemoryEngagementRepo()
    writer = _writer(engagement=repo)
    before = _writes("written")

    ok = asyncio.run(writer.record_engagement(STUDENT, _session(), can_persist(STUDENT, None, True)))

    assert ok is True
    assert repo.stored[0].counts_toward_metrics is True
    assert _writes("written") - before == 1
    totals = asyncio.run(repo.lesson_totals("l-1"))
    assert totals.sessions == 1
    assert totals.active_seconds == 90


def test_staff_session_stored_but_excluded_from_totals() -> None:
    repo = InMemoryEngagementRepo()
    writer = _writer(engagement=repo)

    ok = asyncio.run(writer.record_engagement(ADMIN, _session("a-1"), can_persist(ADMIN, None, False)))

    assert ok is True
    assert repo.stored[0].counts_toward_metrics is False
    assert asyncio.run(repo.lesson_totals("l-1")).sessions == 0


def test_staff_excluded_even_if_guard_forgot_the_flag() -> None:
    repo = InMemoryEngagementRepo()
    writer = _writer(engagement=repo)
    guard = FocusGuardResult(can_persist=True, reason="staff")
    asyncio.run(writer.record_engagement(ADMIN, _session("a-1"), guard))
    assert repo.stored[0].counts_toward_metrics is False


def test_guard_refusal_skips_write() -> None:
    repo = InMemoryEngagementRepo()
    writer = _writer(engagement=repo)
    before = _writes("skipped")

    ok = asyncio.run(
        writer.record_engagement(ANONYMOUS, _session(None), can_persist(ANONYMOUS, None, True))
    )

    assert ok is False
    assert repo.stored == []
    assert _writes("skipped") - before == 1


def test_store_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    writer = _writer(engagement=BrokenEngagementRepo())
    before = _writes("failed")

    ok = asyncio.run(writer.record_engagement(STUDENT, _session(), can_persist(STUDENT, None, True)))

    assert ok is False
    assert _writes("failed") - before == 1
    assert any("write failed" in r.message for r in caplog.records)


def test_completion_recorded_and_progress_invalidated() -> None:
    cache = InMemoryCacheService()
    completions = InMemoryCompletionRepo(InMemoryContentRepo())
    writer = SessionPersistenceWriter(
        completions, InMemoryEngagementRepo(), cache, clock=lambda: 1_700_000_000
    )

    async def run():
        await cache.set(progress_key("u-1", "c-1"), "[]", 60)
        record = await writer.record_completion(STUDENT, LESSON)
        assert await cache.get(progress_key("u-1", "c-1")) is None
        assert await completions.has_completion("u-1", "l-1") is True
        return record

    record = asyncio.run(run())
    assert record.completed_at == 1_700_000_000
    assert record.counts_toward_metrics is True


def test_completion_is_idempotent() -> None:
    writer = _writer()

    async def run():
        first = await writer.record_completion(STUDENT, LESSON)
        second = await writer.record_completion(STUDENT, LESSON)
        return first, second

    first, second = asyncio.run(run())
    assert first.id == second.id


def test_staff_completion_excluded_from_metrics() -> None:
    record = asyncio.run(_writer().record_completion(ADMIN, LESSON))
    assert record.counts_toward_metrics is False


def test_anonymous_completion_rejected() -> None:
    with pytest.raises(ValueError):
        asyncio.run(_writer().record_completion(ANONYMOUS, LESSON))


def test_completion_store_failure_raises_persistence_error() -> None:
    writer = _writer(completions=BrokenCompletionRepo())
    with pytest.raises(PersistenceWriteError):
        asyncio.run(writer.record_completion(STUDENT, LESSON))
