from __future__ import annotations

import asyncio

import pytest

from lessongate.core.errors import WatchTimeNotMet
from lessongate.models.course import ContentTarget, Course, Lesson
from lessongate.models.enrollment import EnrollmentStatus
from lessongate.models.principal import ANONYMOUS, Principal
from lessongate.repos.completion_repo import InMemoryCompletionRepo
from lessongate.repos.content_repo import InMemoryContentRepo
from lessongate.repos.engagement_repo import InMemoryEngagementRepo
from lessongate.services.cache import InMemoryCacheService
from lessongate.services.persistence_writer import SessionPersistenceWriter
from lessongate.services.preview_timer import PreviewPhase
from lessongate.services.viewing_session import ViewingSession, ViewingSessionRegistry

STUDENT = Principal(user_id="u-1", roles=frozenset({"student"}))
ADMIN = Principal(user_id="a-1", roles=frozenset({"admin"}))

FREE_COURSE = Course(id="c-free", title="Intro", is_free=True)
PAID_COURSE = Course(id="c-paid", title="Physics", grade="third_secondary", is_free=False)


def _target(course: Course) -> ContentTarget:
    return ContentTarget(
        course=course, lesson=Lesson(id=f"{course.id}-l1", course_id=course.id, chapter_id="ch")
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Harness:
    def __init__(self) -> None:
        self.clock = FakeClock()
        self.engagement = InMemoryEngagementRepo()
        self.completions = InMemoryCompletionRepo(InMemoryContentRepo())
        self.writer = SessionPersistenceWriter(
            self.completions, self.engagement, InMemoryCacheService(), clock=lambda: 1000
        )

    def session(self, principal: Principal, course: Course, **kwargs) -> ViewingSession:  # noqa: ANN003
        kwargs.setdefault("preview_budget_seconds", 180)
        kwargs.setdefault("viewport_threshold", 0.6)
        return ViewingSession(
            principal=principal,
            target=_target(course),
            clock=self.clock,
            wall_clock=lambda: 1000,
            **kwargs,
        )

    def advance(self, session: ViewingSession, seconds: int) -> None:
        for _ in range(seconds):
            self.clock.now += 1
            session.tick()


def test_visitor_preview_runs_pauses_resumes_and_locks() -> None:
    h = Harness()
    session = h.session(ANONYMOUS, FREE_COURSE, preview=True)
    assert session.timer is not None
    assert session.timer.phase is PreviewPhase.IDLE

    session.on_player_state("playing")
    assert session.timer.phase is PreviewPhase.RUNNING
    h.advance(session, 30)
    assert session.state.preview.remaining_seconds == 150

    session.on_visibility(False)
    assert session.timer.phase is PreviewPhase.PAUSED
    assert session.state.lost_reason == "tab_inactive"
    h.advance(session, 20)
    assert session.state.preview.remaining_seconds == 150

    session.on_visibility(True)
    assert session.timer.phase is PreviewPhase.RUNNING
    h.advance(session, 150)

    state = session.state
    assert state.preview.is_locked is True
    assert state.force_pause is True
    assert session.drain_preview_analytics() == [180]
    assert session.drain_preview_analytics() == []

    # play attempts after the lock are force-paused and not tracked
    session.on_player_state("paused")
    session.on_player_state("playing")
    assert session.force_pause_required is True
    assert session.tracker.snapshot().active is False


def test_locked_preview_stops_engagement_accumulation() -> None:
    h = Harness()
    session = h.session(STUDENT, FREE_COURSE, preview=True, preview_budget_seconds=10)
    session.on_player_state("playing")
    h.advance(session, 10)
    assert session.force_pause_required is True
    h.clock.now += 500
    assert session.tracker.snapshot().active_seconds == 10


def test_active_learner_has_no_preview_timer() -> None:
    h = Harness()
    session = h.session(
        STUDENT, PAID_COURSE, preview=False, enrollment_status=EnrollmentStatus.ACTIVE
    )
    assert session.timer is None
    session.on_player_state("playing")
    h.advance(session, 600)
    assert session.state.preview is None
    assert session.force_pause_required is False


def test_suspended_review_never_writes_engagement() -> None:
    h = Harness()
    session = h.session(
        STUDENT,
        PAID_COURSE,
        preview=False,
        enrollment_status=EnrollmentStatus.SUSPENDED,
        completed_historically=True,
    )
    session.on_player_state("playing")
    h.advance(session, 120)
    assert session.state.engaged is True
    assert session.guard().can_persist is False

    flushed = asyncio.run(session.unmount(h.writer))
    assert flushed is False
    assert h.engagement.stored == []


def test_unmount_flushes_once_with_latest_enrollment() -> None:
    h = Harness()
    session = h.session(
        STUDENT, PAID_COURSE, preview=False, enrollment_status=EnrollmentStatus.ACTIVE
    )
    session.on_player_state("playing")
    h.advance(session, 45)
    session.update_enrollment_status(EnrollmentStatus.EXPIRED)

    assert asyncio.run(session.unmount(h.writer)) is False
    assert session.closed is True
    assert asyncio.run(session.unmount(h.writer)) is False
    assert h.engagement.stored == []


def test_unmount_writes_session_for_active_learner() -> None:
    h = Harness()
    session = h.session(
        STUDENT, PAID_COURSE, preview=False, enrollment_status=EnrollmentStatus.ACTIVE
    )
    session.on_player_state("playing")
    h.advance(session, 45)
    session.on_intersection(0.2)
    h.clock.now += 5
    session.on_intersection(1.0)
    h.advance(session, 15)

    assert asyncio.run(session.unmount(h.writer)) is True
    (stored,) = h.engagement.stored
    assert stored.session.active_seconds == 60
    assert stored.session.paused_seconds == 5
    assert stored.session.interruptions == 1
    assert stored.session.is_completed is False


def test_events_after_unmount_are_ignored() -> None:
    h = Harness()
    session = h.session(ANONYMOUS, FREE_COURSE, preview=True)
    session.on_player_state("playing")
    asyncio.run(session.unmount(h.writer))
    session.tick(60)
    assert session.state.preview.remaining_seconds == 180


def test_complete_records_completion_and_engagement() -> None:
    h = Harness()
    session = h.session(
        STUDENT,
        PAID_COURSE,
        preview=False,
        enrollment_status=EnrollmentStatus.ACTIVE,
        required_watch_seconds=30,
    )
    session.on_player_state("playing")
    h.advance(session, 30)

    outcome = asyncio.run(session.complete(h.writer))
    assert outcome.engagement_recorded is True
    assert outcome.completion is not None
    assert h.engagement.stored[0].session.is_completed is True
    assert asyncio.run(h.completions.has_completion("u-1", "c-paid-l1")) is True


def test_complete_before_required_watch_time_keeps_session_open() -> None:
    h = Harness()
    session = h.session(
        STUDENT,
        PAID_COURSE,
        preview=False,
        enrollment_status=EnrollmentStatus.ACTIVE,
        required_watch_seconds=60,
    )
    session.on_player_state("playing")
    h.advance(session, 20)
    session.on_visibility(False)
    h.advance(session, 100)
    assert session.state.watch_remaining_seconds == 40

    with pytest.raises(WatchTimeNotMet) as excinfo:
        asyncio.run(session.complete(h.writer))
    assert excinfo.value.remaining_seconds == 40
    assert session.closed is False
    assert h.engagement.stored == []

    session.on_visibility(True)
    h.advance(session, 40)
    outcome = asyncio.run(session.complete(h.writer))
    assert outcome.completion is not None
    assert h.engagement.stored[0].session.active_seconds == 60


def test_recompleting_a_finished_lesson_needs_no_watch_time() -> None:
    h = Harness()
    session = h.session(
        STUDENT,
        PAID_COURSE,
        preview=False,
        enrollment_status=EnrollmentStatus.ACTIVE,
        completed_historically=True,
        required_watch_seconds=60,
    )
    assert session.watch_remaining_seconds == 0
    outcome = asyncio.run(session.complete(h.writer))
    assert outcome.completion is not None


def test_staff_completion_excluded_from_metrics() -> None:
    h = Harness()
    session = h.session(ADMIN, PAID_COURSE, preview=False)
    session.on_player_state("playing")
    h.advance(session, 30)

    outcome = asyncio.run(session.complete(h.writer))
    assert outcome.completion.counts_toward_metrics is False
    assert h.engagement.stored[0].counts_toward_metrics is False


def test_session_requires_lesson() -> None:
    with pytest.raises(ValueError):
        ViewingSession(principal=STUDENT, target=ContentTarget(course=PAID_COURSE), preview=False)


def test_registry_add_get_remove() -> None:
    registry = ViewingSessionRegistry()
    session = Harness().session(STUDENT, FREE_COURSE, preview=False)
    registry.add(session)
    assert registry.get(session.id) is session
    assert registry.remove(session.id) is session
    assert registry.get(session.id) is None
    assert registry.remove(session.id) is None
