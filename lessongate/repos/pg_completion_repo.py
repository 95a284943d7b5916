"""PostgreSQL implementations of CompletionRepo and EngagementRepo."""

from __future__ import annotations

from sqlalchemy import Select, and_, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from lessongate.db.tables import (
    ChapterRow,
    EngagementSessionRow,
    ExamAttemptRow,
    ExamRow,
    LessonCompletionRow,
    LessonRow,
)
from lessongate.models.course import ExamAttempt
from lessongate.models.engagement import EngagementSession, LessonEngagementTotals
from lessongate.models.progress import ChapterProgressRow, CompletionRecord


def chapter_progress_query(user_id: str, course_id: str) -> Select:
    """One grouped query for every chapter of a course.

    Replaces one lessons query plus one completions query per chapter.
    Lessons without playable media are excluded from both counts, and
    completions are unique per (user, lesson), so completed <= total.
    """
    lesson_stats = (
        select(
            LessonRow.chapter_id.label("chapter_id"),
            func.count(LessonRow.id).label("total"),
            func.count(LessonCompletionRow.id).label("completed"),
        )
        .select_from(LessonRow)
        .outerjoin(
            LessonCompletionRow,
            and_(
                LessonCompletionRow.lesson_id == LessonRow.id,
                LessonCompletionRow.user_id == user_id,
            ),
        )
        .where(
            LessonRow.course_id == course_id,
            LessonRow.has_playable_media.is_(True),
        )
        .group_by(LessonRow.chapter_id)
        .subquery("lesson_stats")
    )

    attempt_stats = (
        select(
            ExamAttemptRow.exam_id.label("exam_id"),
            func.bool_or(ExamAttemptRow.completed).label("exam_completed"),
            func.max(ExamAttemptRow.score)
            .filter(ExamAttemptRow.completed.is_(True))
            .label("best_score"),
        )
        .where(ExamAttemptRow.user_id == user_id)
        .group_by(ExamAttemptRow.exam_id)
        .subquery("attempt_stats")
    )

    return (
        select(
            ChapterRow.id.label("chapter_id"),
            ChapterRow.order_index,
            ChapterRow.title,
            func.coalesce(lesson_stats.c.total, 0).label("total"),
            func.coalesce(lesson_stats.c.completed, 0).label("completed"),
            ExamRow.id.label("exam_id"),
            func.coalesce(attempt_stats.c.exam_completed, False).label(
                "exam_completed"
            ),
            attempt_stats.c.best_score,
        )
        .select_from(ChapterRow)
        .outerjoin(lesson_stats, lesson_stats.c.chapter_id == ChapterRow.id)
        .outerjoin(ExamRow, ExamRow.chapter_id == ChapterRow.id)
        .outerjoin(attempt_stats, attempt_stats.c.exam_id == ExamRow.id)
        .where(ChapterRow.course_id == course_id)
        .order_by(ChapterRow.order_index)
    )


class PgCompletionRepo:
    """Satisfies the CompletionRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def has_completion(self, user_id: str, lesson_id: str) -> bool:
        stmt = select(LessonCompletionRow.id).where(
            LessonCompletionRow.user_id == user_id,
            LessonCompletionRow.lesson_id == lesson_id,
        )
        return (await self._session.execute(stmt)).first() is not None

    async def completed_lesson_ids(self, user_id: str, course_id: str) -> set[str]:
        stmt = select(LessonCompletionRow.lesson_id).where(
            LessonCompletionRow.user_id == user_id,
            LessonCompletionRow.course_id == course_id,
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def add(self, record: CompletionRecord) -> CompletionRecord:
        stmt = (
            insert(LessonCompletionRow)
            .values(
                id=record.id,
                user_id=record.user_id,
                course_id=record.course_id,
                lesson_id=record.lesson_id,
                completed_at=record.completed_at,
                counts_toward_metrics=record.counts_toward_metrics,
            )
            .on_conflict_do_nothing(constraint="uq_completion_user_lesson")
        )
        await self._session.execute(stmt)
        existing = select(LessonCompletionRow).where(
            LessonCompletionRow.user_id == record.user_id,
            LessonCompletionRow.lesson_id == record.lesson_id,
        )
        row = (await self._session.execute(existing)).scalar_one()
        return _row_to_completion(row)

    async def attempts_for(self, user_id: str, exam_id: str) -> list[ExamAttempt]:
        stmt = select(ExamAttemptRow).where(
            ExamAttemptRow.user_id == user_id, ExamAttemptRow.exam_id == exam_id
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            ExamAttempt(
                user_id=r.user_id, exam_id=r.exam_id, score=r.score, completed=r.completed
            )
            for r in rows
        ]

    async def chapter_progress_rows(
        self, user_id: str, course_id: str
    ) -> list[ChapterProgressRow]:
        result = await self._session.execute(chapter_progress_query(user_id, course_id))
        return [
            ChapterProgressRow(
                chapter_id=row.chapter_id,
                order_index=row.order_index,
                title=row.title,
                total=int(row.total),
                completed=int(row.completed),
                exam_id=row.exam_id,
                exam_completed=bool(row.exam_completed),
                best_score=row.best_score,
            )
            for row in result
        ]


class PgEngagementRepo:
    """Satisfies the EngagementRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self, session: EngagementSession, *, counts_toward_metrics: bool
    ) -> None:
        # Savepoint: a failed insert rolls back on its own and leaves the
        # request transaction usable for the completion write and commit.
        async with self._session.begin_nested():
            self._session.add(
                EngagementSessionRow(
                    id=session.id,
                    user_id=session.user_id,
                    lesson_id=session.lesson_id,
                    course_id=session.course_id,
                    started_at=session.started_at,
                    ended_at=session.ended_at,
                    active_seconds=session.active_seconds,
                    paused_seconds=session.paused_seconds,
                    interruptions=session.interruptions,
                    completed_segments=session.completed_segments,
                    is_completed=session.is_completed,
                    counts_toward_metrics=counts_toward_metrics,
                )
            )

    async def lesson_totals(self, lesson_id: str) -> LessonEngagementTotals:
        stmt = select(
            func.count(EngagementSessionRow.id),
            func.coalesce(func.sum(EngagementSessionRow.active_seconds), 0),
            func.coalesce(func.sum(EngagementSessionRow.interruptions), 0),
        ).where(
            EngagementSessionRow.lesson_id == lesson_id,
            EngagementSessionRow.counts_toward_metrics.is_(True),
        )
        sessions, active, interruptions = (await self._session.execute(stmt)).one()
        return LessonEngagementTotals(
            lesson_id=lesson_id,
            sessions=int(sessions),
            active_seconds=int(active),
            interruptions=int(interruptions),
        )


def _row_to_completion(row: LessonCompletionRow) -> CompletionRecord:
    return CompletionRecord(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        lesson_id=row.lesson_id,
        completed_at=row.completed_at,
        counts_toward_metrics=row.counts_toward_metrics,
    )
