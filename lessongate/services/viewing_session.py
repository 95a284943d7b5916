"""One mounted viewing surface.

A ``ViewingSession`` wires the attention aggregator to its two consumers,
the preview timer (only when the preview policy applies) and the
engagement tracker.  The timer is notified before the tracker, and both
are notified synchronously, so a tick that follows an input event always
sees the recomputed engagement.

Once the preview locks, engagement no longer reaches the tracker: the
owner must force-pause playback, and anything the player reports after
that is not genuine viewing.

Completing needs the required watch time of active engagement.  Staff and
learners re-marking a lesson they already completed are exempt.

Unmounting cancels everything and attempts one best-effort flush of the
open engagement session.  The Focus Guard is evaluated at that moment,
with the latest known enrollment status.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

from lessongate.core.config import SETTINGS
from lessongate.core.errors import WatchTimeNotMet
from lessongate.core.metrics import ACTIVE_VIEWING_SESSIONS
from lessongate.models.course import ContentTarget
from lessongate.models.engagement import EngagementSession
from lessongate.models.enrollment import EnrollmentStatus
from lessongate.models.principal import Principal
from lessongate.models.progress import CompletionRecord
from lessongate.services.attention import AttentionAggregator, PlayerState
from lessongate.services.engagement_tracker import EngagementTracker
from lessongate.services.focus_guard import FocusGuardResult, can_persist
from lessongate.services.persistence_writer import SessionPersistenceWriter
from lessongate.services.preview_timer import PreviewTimer, PreviewTimerState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ViewingState:
    engaged: bool
    lost_reason: str | None
    force_pause: bool
    preview: PreviewTimerState | None
    watch_remaining_seconds: int = 0


@dataclass(frozen=True, slots=True)
class CompletionOutcome:
    completion: CompletionRecord | None
    engagement_recorded: bool


class ViewingSession:
    def __init__(
        self,
        *,
        principal: Principal,
        target: ContentTarget,
        preview: bool,
        enrollment_status: EnrollmentStatus | None = None,
        completed_historically: bool = False,
        preview_budget_seconds: int | None = None,
        viewport_threshold: float | None = None,
        required_watch_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        if target.lesson is None:
            raise ValueError("a viewing session needs a lesson")
        self.id = str(uuid4())
        self.principal = principal
        self.target = target
        self.enrollment_status = enrollment_status
        self.completed_historically = completed_historically
        self.required_watch_seconds = (
            SETTINGS.required_watch_seconds
            if required_watch_seconds is None
            else required_watch_seconds
        )

        self.attention = AttentionAggregator(viewport_threshold)
        self.tracker = EngagementTracker(
            lesson_id=target.lesson.id,
            course_id=target.course.id,
            user_id=principal.user_id,
            clock=clock,
            wall_clock=wall_clock,
        )
        self.timer: PreviewTimer | None = None
        if preview:
            self.timer = PreviewTimer(preview_budget_seconds, on_locked=self._on_locked)

        self._pending_analytics: list[int] = []
        self._closed = False
        self.attention.subscribe(self._on_engagement)

    @property
    def owner_id(self) -> str | None:
        return self.principal.user_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> ViewingState:
        return ViewingState(
            engaged=self.attention.is_engaged,
            lost_reason=self.attention.lost_reason,
            force_pause=self.force_pause_required,
            preview=self.timer.state if self.timer is not None else None,
            watch_remaining_seconds=self.watch_remaining_seconds,
        )

    @property
    def force_pause_required(self) -> bool:
        return self.timer is not None and self.timer.force_pause_required

    @property
    def watch_remaining_seconds(self) -> int:
        """Engaged seconds still needed before ``complete`` is accepted."""
        if self.principal.is_staff() or self.completed_historically:
            return 0
        watched = self.tracker.snapshot().active_seconds
        return max(0, math.ceil(self.required_watch_seconds - watched))

    # -- events ---------------------------------------------------------------

    def on_player_state(self, state: PlayerState | str) -> None:
        self.attention.on_player_state(state)

    def on_visibility(self, visible: bool) -> None:
        self.attention.on_visibility(visible)

    def on_window_focus(self, focused: bool) -> None:
        self.attention.on_window_focus(focused)

    def on_intersection(self, ratio: float) -> None:
        self.attention.on_intersection(ratio)

    def tick(self, seconds: int = 1) -> None:
        if self.timer is not None and not self._closed:
            self.timer.tick(seconds)

    def update_enrollment_status(self, status: EnrollmentStatus | None) -> None:
        self.enrollment_status = status

    def drain_preview_analytics(self) -> list[int]:
        """Final preview durations emitted since the last drain."""
        drained, self._pending_analytics = self._pending_analytics, []
        return drained

    # -- engagement fan-out ---------------------------------------------------

    def _on_engagement(self, engaged: bool) -> None:
        if self.timer is not None:
            self.timer.on_engagement_change(engaged)
            if self.timer.force_pause_required and engaged:
                return
        self.tracker.on_engagement_change(engaged)

    def _on_locked(self, final_duration: int) -> None:
        self._pending_analytics.append(final_duration)
        self.tracker.on_engagement_change(False)

    # -- lifecycle ------------------------------------------------------------

    def guard(self) -> FocusGuardResult:
        return can_persist(
            self.principal,
            self.enrollment_status,
            self.target.is_free is True,
            self.completed_historically,
        )

    async def complete(self, writer: SessionPersistenceWriter) -> CompletionOutcome:
        """Finish the lesson: finalize engagement and record the completion.

        Raises WatchTimeNotMet, leaving the session open, when the viewer
        has not been engaged for the required watch time yet.
        """
        remaining = self.watch_remaining_seconds
        if remaining > 0 and not self._closed:
            raise WatchTimeNotMet(remaining)
        session = self._close(completed=True)
        recorded = False
        if session is not None:
            recorded = await writer.record_engagement(self.principal, session, self.guard())
        completion = None
        if not self.principal.is_anonymous():
            completion = await writer.record_completion(self.principal, self.target.lesson)
        return CompletionOutcome(completion=completion, engagement_recorded=recorded)

    async def unmount(self, writer: SessionPersistenceWriter | None) -> bool:
        """Cancel timers and observers, then flush if allowed.  Never raises."""
        session = self._close(completed=False)
        if session is None or writer is None:
            return False
        guard = self.guard()
        if not guard.can_persist:
            return False
        try:
            return await writer.record_engagement(self.principal, session, guard)
        except Exception:
            logger.exception(
                "engagement flush on unmount failed",
                extra={"user_id": self.principal.user_id, "lesson_id": session.lesson_id},
            )
            return False

    def _close(self, *, completed: bool) -> EngagementSession | None:
        if self._closed:
            return None
        self._closed = True
        if self.timer is not None:
            self.timer.cancel()
        self.attention.clear_listeners()
        return self.tracker.end(completed=completed)


class ViewingSessionRegistry:
    """Mounted sessions of this process, keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[str, ViewingSession] = {}

    def add(self, session: ViewingSession) -> None:
        self._sessions[session.id] = session
        ACTIVE_VIEWING_SESSIONS.set(len(self._sessions))

    def get(self, session_id: str) -> ViewingSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> ViewingSession | None:
        session = self._sessions.pop(session_id, None)
        ACTIVE_VIEWING_SESSIONS.set(len(self._sessions))
        return session

    def clear(self) -> None:
        self._sessions.clear()
        ACTIVE_VIEWING_SESSIONS.set(0)


viewing_sessions = ViewingSessionRegistry()
