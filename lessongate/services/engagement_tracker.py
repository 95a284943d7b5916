"""Engagement session accumulator.

Calls follow ``is_engaged`` transitions one-to-one:

    first True   start    (session opens, active time starts)
    False        pause    (interruption counted, paused time starts)
    True         resume
    end()        finalize (EngagementSession returned, tracker closed)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from lessongate.core.config import SETTINGS
from lessongate.models.engagement import EngagementSession


@dataclass(frozen=True, slots=True)
class TrackerSnapshot:
    started: bool
    active: bool
    ended: bool
    active_seconds: float
    paused_seconds: float
    interruptions: int
    completed_segments: int


class EngagementTracker:
    def __init__(
        self,
        *,
        lesson_id: str,
        course_id: str,
        user_id: str | None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        segment_seconds: int | None = None,
    ) -> None:
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.user_id = user_id
        self._clock = clock
        self._wall_clock = wall_clock
        self._segment_seconds = (
            SETTINGS.focus_segment_seconds if segment_seconds is None else segment_seconds
        )

        self._started_at: int | None = None
        self._active_since: float | None = None
        self._paused_since: float | None = None
        self._active_seconds = 0.0
        self._paused_seconds = 0.0
        self._interruptions = 0
        self._ended = False

    @property
    def is_open(self) -> bool:
        return self._started_at is not None and not self._ended

    def on_engagement_change(self, engaged: bool) -> None:
        if self._ended:
            return
        now = self._clock()
        if engaged:
            if self._active_since is not None:
                return
            if self._started_at is None:
                self._started_at = int(self._wall_clock())
            elif self._paused_since is not None:
                self._paused_seconds += now - self._paused_since
                self._paused_since = None
            self._active_since = now
        else:
            if self._active_since is None:
                return
            self._active_seconds += now - self._active_since
            self._active_since = None
            self._paused_since = now
            self._interruptions += 1

    def snapshot(self) -> TrackerSnapshot:
        now = self._clock()
        active = self._active_seconds
        paused = self._paused_seconds
        if not self._ended:
            if self._active_since is not None:
                active += now - self._active_since
            if self._paused_since is not None:
                paused += now - self._paused_since
        return TrackerSnapshot(
            started=self._started_at is not None,
            active=self._active_since is not None and not self._ended,
            ended=self._ended,
            active_seconds=active,
            paused_seconds=paused,
            interruptions=self._interruptions,
            completed_segments=self._segments(active),
        )

    def end(self, completed: bool = False) -> EngagementSession | None:
        """Finalize and close the session.

        Returns None when the viewer was never engaged or the tracker was
        already ended.
        """
        if self._ended:
            return None
        snap = self.snapshot()
        self._ended = True
        self._active_since = None
        self._paused_since = None
        if self._started_at is None:
            return None
        return EngagementSession.new(
            user_id=self.user_id,
            lesson_id=self.lesson_id,
            course_id=self.course_id,
            started_at=self._started_at,
            ended_at=int(self._wall_clock()),
            active_seconds=round(snap.active_seconds),
            paused_seconds=round(snap.paused_seconds),
            interruptions=snap.interruptions,
            completed_segments=snap.completed_segments,
            is_completed=completed,
        )

    def _segments(self, active_seconds: float) -> int:
        if self._segment_seconds <= 0:
            return 0
        return int(active_seconds // self._segment_seconds)
