from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class EngagementSession:
    """Finalized interval of genuine attention to one lesson.

    Seconds are whole seconds, rounded when the session is finalized.
    """

    id: str
    user_id: str | None
    lesson_id: str
    course_id: str
    started_at: int
    ended_at: int
    active_seconds: int
    paused_seconds: int
    interruptions: int
    completed_segments: int
    is_completed: bool = False

    @staticmethod
    def new(
        *,
        user_id: str | None,
        lesson_id: str,
        course_id: str,
        started_at: int,
        ended_at: int,
        active_seconds: int,
        paused_seconds: int,
        interruptions: int,
        completed_segments: int,
        is_completed: bool = False,
    ) -> EngagementSession:
        return EngagementSession(
            id=str(uuid4()),
            user_id=user_id,
            lesson_id=lesson_id,
            course_id=course_id,
            started_at=started_at,
            ended_at=ended_at,
            active_seconds=active_seconds,
            paused_seconds=paused_seconds,
            interruptions=interruptions,
            completed_segments=completed_segments,
            is_completed=is_completed,
        )


@dataclass(frozen=True, slots=True)
class StoredEngagementSession:
    session: EngagementSession
    counts_toward_metrics: bool = True


@dataclass(frozen=True, slots=True)
class LessonEngagementTotals:
    lesson_id: str
    sessions: int
    active_seconds: int
    interruptions: int
