"""Chapter progress and exam unlock.

Everything here is recomputed from the current (lessons, completions,
exam, attempts) snapshot on every read.  There is no incremental update
path: adding or deleting a lesson shows up on the next read because the
totals are counted again, not patched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from lessongate.models.course import Chapter, Exam, ExamAttempt, Lesson
from lessongate.models.progress import (
    ChapterProgress,
    ChapterProgressRow,
    ChapterProgressSnapshot,
    ExamUnlockState,
)


def counts_toward_progress(lesson: Lesson) -> bool:
    return lesson.has_playable_media


def snapshot_from_counts(completed: int, total: int) -> ChapterProgressSnapshot:
    completed = min(max(completed, 0), max(total, 0))
    percent = round(completed / total * 100) if total > 0 else 0
    return ChapterProgressSnapshot(
        completed=completed,
        total=total,
        percent=percent,
        is_complete=total > 0 and completed >= total,
    )


def chapter_snapshot(
    lessons: Iterable[Lesson], completed_lesson_ids: set[str]
) -> ChapterProgressSnapshot:
    eligible = [l for l in lessons if counts_toward_progress(l)]
    completed = sum(1 for l in eligible if l.id in completed_lesson_ids)
    return snapshot_from_counts(completed, len(eligible))


def exam_unlock(
    exam: Exam | None,
    snapshot: ChapterProgressSnapshot,
    attempts: Sequence[ExamAttempt] = (),
) -> ExamUnlockState:
    """The exam opens only when every lesson of the chapter is done."""
    if exam is None:
        return ExamUnlockState(has_exam=False, unlocked=False)
    done = [a for a in attempts if a.completed and a.exam_id == exam.id]
    return ExamUnlockState(
        has_exam=True,
        unlocked=snapshot.is_complete,
        exam_id=exam.id,
        exam_completed=bool(done),
        best_score=max((a.score for a in done), default=None),
    )


def course_progress(
    chapters: Iterable[Chapter],
    lessons: Iterable[Lesson],
    completed_lesson_ids: set[str],
    exams: Iterable[Exam] = (),
    attempts: Sequence[ExamAttempt] = (),
) -> list[ChapterProgress]:
    """Per-chapter progress computed one chapter at a time."""
    lessons = list(lessons)
    exams_by_chapter = {e.chapter_id: e for e in exams if e.chapter_id is not None}
    result: list[ChapterProgress] = []
    for chapter in sorted(chapters, key=lambda c: c.order_index):
        snapshot = chapter_snapshot(
            (l for l in lessons if l.chapter_id == chapter.id), completed_lesson_ids
        )
        exam = exams_by_chapter.get(chapter.id)
        result.append(
            ChapterProgress(
                chapter_id=chapter.id,
                order_index=chapter.order_index,
                title=chapter.title,
                snapshot=snapshot,
                exam=exam_unlock(exam, snapshot, attempts),
            )
        )
    return result


def progress_from_rows(rows: Iterable[ChapterProgressRow]) -> list[ChapterProgress]:
    """Per-chapter progress from the batched aggregation rows."""
    result: list[ChapterProgress] = []
    for row in sorted(rows, key=lambda r: r.order_index):
        snapshot = snapshot_from_counts(row.completed, row.total)
        if row.exam_id is None:
            exam = ExamUnlockState(has_exam=False, unlocked=False)
        else:
            exam = ExamUnlockState(
                has_exam=True,
                unlocked=snapshot.is_complete,
                exam_id=row.exam_id,
                exam_completed=row.exam_completed,
                best_score=row.best_score,
            )
        result.append(
            ChapterProgress(
                chapter_id=row.chapter_id,
                order_index=row.order_index,
                title=row.title,
                snapshot=snapshot,
                exam=exam,
            )
        )
    return result


def overall_percent(chapters: Sequence[ChapterProgress]) -> int:
    completed = sum(c.snapshot.completed for c in chapters)
    total = sum(c.snapshot.total for c in chapters)
    return snapshot_from_counts(completed, total).percent
