"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in lessongate/models/.
Repos convert between rows and dataclasses; nothing outside
lessongate/repos/pg_*.py touches a Row class.

Catalog, profile and enrollment tables are owned by other services and
only read here.  lesson_completions and engagement_sessions are written
by this service.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lessongate.db.engine import Base

# --- Catalog (read-only here) ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(32), nullable=True)
    track: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_free: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class ChapterRow(Base):
    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False, index=True
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")


class LessonRow(Base):
    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False, index=True
    )
    chapter_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("chapters.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_free_lesson: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_playable_media: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )


class ExamRow(Base):
    __tablename__ = "exams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False
    )
    chapter_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("chapters.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")


class ExamAttemptRow(Base):
    __tablename__ = "exam_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    exam_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("exams.id"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_exam_attempts_user_exam", "user_id", "exam_id"),)


# --- Learner records owned by other services (read-only here) ---


class AcademicProfileRow(Base):
    __tablename__ = "academic_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    grade: Mapped[str | None] = mapped_column(String(32), nullable=True)
    track: Mapped[str | None] = mapped_column(String(32), nullable=True)
    attendance_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), primary_key=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )  # pending|active|suspended|expired|cancelled
    activated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class CenterGroupMembershipRow(Base):
    __tablename__ = "center_group_memberships"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# --- Written by this service ---


class LessonCompletionRow(Base):
    __tablename__ = "lesson_completions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False
    )
    lesson_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("lessons.id"), nullable=False
    )
    completed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    counts_toward_metrics: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_completion_user_lesson"),
        Index("ix_completions_user_course", "user_id", "course_id"),
    )


class EngagementSessionRow(Base):
    __tablename__ = "engagement_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lesson_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[int] = mapped_column(Integer, nullable=False)
    ended_at: Mapped[int] = mapped_column(Integer, nullable=False)
    active_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paused_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    interruptions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_segments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    counts_toward_metrics: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
