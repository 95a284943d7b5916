from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class CompletionRecord:
    """A learner finished a lesson.

    ``counts_toward_metrics`` is False for staff-originated records; they
    stay visible operationally but learner-facing aggregates skip them.
    """

    id: str
    user_id: str
    course_id: str
    lesson_id: str
    completed_at: int
    counts_toward_metrics: bool = True

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        lesson_id: str,
        completed_at: int,
        counts_toward_metrics: bool = True,
    ) -> CompletionRecord:
        return CompletionRecord(
            id=str(uuid4()),
            user_id=user_id,
            course_id=course_id,
            lesson_id=lesson_id,
            completed_at=completed_at,
            counts_toward_metrics=counts_toward_metrics,
        )


@dataclass(frozen=True, slots=True)
class ChapterProgressSnapshot:
    """Derived from (lessons, completions); never stored on its own."""

    completed: int
    total: int
    percent: int
    is_complete: bool


@dataclass(frozen=True, slots=True)
class ExamUnlockState:
    has_exam: bool
    unlocked: bool
    exam_id: str | None = None
    exam_completed: bool = False
    best_score: int | None = None


@dataclass(frozen=True, slots=True)
class ChapterProgress:
    chapter_id: str
    order_index: int
    title: str
    snapshot: ChapterProgressSnapshot
    exam: ExamUnlockState


@dataclass(frozen=True, slots=True)
class ChapterProgressRow:
    """One row of the batched per-chapter aggregation.

    ``total`` counts lessons with playable media; ``completed`` counts how
    many of those the learner completed.
    """

    chapter_id: str
    order_index: int
    title: str
    total: int
    completed: int
    exam_id: str | None = None
    exam_completed: bool = False
    best_score: int | None = None
