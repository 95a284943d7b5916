"""PostgreSQL read repositories for records owned by other services.

Catalog, academic profiles, enrollments and center group memberships are
written elsewhere; the only write here is the verified group
confirmation.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from lessongate.db.tables import (
    AcademicProfileRow,
    CenterGroupMembershipRow,
    ChapterRow,
    CourseRow,
    EnrollmentRow,
    ExamRow,
    LessonRow,
)
from lessongate.models.course import Chapter, Course, Exam, Lesson
from lessongate.models.enrollment import (
    CenterGroupMembership,
    Enrollment,
    EnrollmentStatus,
)
from lessongate.models.profile import AcademicProfile, normalize_attendance_mode


class PgContentRepo:
    """Satisfies the ContentRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: str) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def get_chapter(self, chapter_id: str) -> Chapter | None:
        row = await self._session.get(ChapterRow, chapter_id)
        return _row_to_chapter(row) if row is not None else None

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return _row_to_lesson(row) if row is not None else None

    async def list_chapters(self, course_id: str) -> list[Chapter]:
        stmt = (
            select(ChapterRow)
            .where(ChapterRow.course_id == course_id)
            .order_by(ChapterRow.order_index)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_chapter(r) for r in rows]

    async def list_lessons(self, course_id: str) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_chapter_lessons(self, chapter_id: str) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.chapter_id == chapter_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_exams(self, course_id: str) -> list[Exam]:
        stmt = select(ExamRow).where(ExamRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_exam(r) for r in rows]

    async def exam_for_chapter(self, chapter_id: str) -> Exam | None:
        stmt = select(ExamRow).where(ExamRow.chapter_id == chapter_id).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_exam(row) if row is not None else None

    async def list_free_lessons(self) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.is_free_lesson.is_(True))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]


class PgProfileRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> AcademicProfile | None:
        row = await self._session.get(AcademicProfileRow, user_id)
        if row is None:
            return None
        return AcademicProfile(
            user_id=row.user_id,
            grade=row.grade,
            track=row.track,
            attendance_mode=normalize_attendance_mode(row.attendance_mode),
        )


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: str) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, (user_id, course_id))
        if row is None:
            return None
        return Enrollment(
            user_id=row.user_id,
            course_id=row.course_id,
            status=EnrollmentStatus(row.status),
            activated_at=row.activated_at,
        )


class PgGroupMembershipRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, group_id: str) -> CenterGroupMembership | None:
        stmt = select(CenterGroupMembershipRow).where(
            CenterGroupMembershipRow.student_id == student_id,
            CenterGroupMembershipRow.group_id == group_id,
        )
        # populate_existing: the read-back after a write must hit the
        # database, not the identity map.
        row = (
            await self._session.execute(
                stmt.execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if row is None:
            return None
        return CenterGroupMembership(
            student_id=row.student_id, group_id=row.group_id, is_active=row.is_active
        )

    async def upsert(self, membership: CenterGroupMembership) -> None:
        stmt = (
            insert(CenterGroupMembershipRow)
            .values(
                student_id=membership.student_id,
                group_id=membership.group_id,
                is_active=membership.is_active,
            )
            .on_conflict_do_update(
                index_elements=["student_id", "group_id"],
                set_={"is_active": membership.is_active},
            )
        )
        await self._session.execute(stmt)

    async def commit(self) -> None:
        """Commit the request transaction so the confirmation is durable.

        A failed commit is rolled back here, leaving the session usable for
        a retry.
        """
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id, title=row.title, grade=row.grade, track=row.track, is_free=row.is_free
    )


def _row_to_chapter(row: ChapterRow) -> Chapter:
    return Chapter(
        id=row.id, course_id=row.course_id, order_index=row.order_index, title=row.title
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        chapter_id=row.chapter_id,
        title=row.title,
        is_free_lesson=row.is_free_lesson,
        has_playable_media=row.has_playable_media,
    )


def _row_to_exam(row: ExamRow) -> Exam:
    return Exam(
        id=row.id, course_id=row.course_id, chapter_id=row.chapter_id, title=row.title
    )
