"""initial schema

Revision ID: 3b1f0c2a9d41
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f0c2a9d41"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("grade", sa.String(length=32), nullable=True),
        sa.Column("track", sa.String(length=32), nullable=True),
        sa.Column("is_free", sa.Boolean(), nullable=True),
    )
    op.create_table(
        "chapters",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
    )
    op.create_index("ix_chapters_course_id", "chapters", ["course_id"])
    op.create_table(
        "lessons",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column(
            "chapter_id", sa.String(length=64), sa.ForeignKey("chapters.id"), nullable=True
        ),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column(
            "is_free_lesson", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "has_playable_media", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
    )
    op.create_index("ix_lessons_course_id", "lessons", ["course_id"])
    op.create_index("ix_lessons_chapter_id", "lessons", ["chapter_id"])
    op.create_table(
        "exams",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column(
            "chapter_id", sa.String(length=64), sa.ForeignKey("chapters.id"), nullable=True
        ),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
    )
    op.create_index("ix_exams_chapter_id", "exams", ["chapter_id"])
    op.create_table(
        "exam_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "exam_id", sa.String(length=64), sa.ForeignKey("exams.id"), nullable=False
        ),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_exam_attempts_user_exam", "exam_attempts", ["user_id", "exam_id"])
    op.create_table(
        "academic_profiles",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("grade", sa.String(length=32), nullable=True),
        sa.Column("track", sa.String(length=32), nullable=True),
        sa.Column("attendance_mode", sa.String(length=16), nullable=True),
    )
    op.create_table(
        "enrollments",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            primary_key=True,
        ),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("activated_at", sa.Integer(), nullable=True),
    )
    op.create_table(
        "center_group_memberships",
        sa.Column("student_id", sa.String(length=64), primary_key=True),
        sa.Column("group_id", sa.String(length=64), primary_key=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "lesson_completions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column(
            "lesson_id", sa.String(length=64), sa.ForeignKey("lessons.id"), nullable=False
        ),
        sa.Column("completed_at", sa.Integer(), nullable=False),
        sa.Column(
            "counts_toward_metrics", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.UniqueConstraint("user_id", "lesson_id", name="uq_completion_user_lesson"),
    )
    op.create_index(
        "ix_completions_user_course", "lesson_completions", ["user_id", "course_id"]
    )
    op.create_table(
        "engagement_sessions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("lesson_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("started_at", sa.Integer(), nullable=False),
        sa.Column("ended_at", sa.Integer(), nullable=False),
        sa.Column("active_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paused_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("interruptions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completed_segments", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "counts_toward_metrics", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
    )
    op.create_index(
        "ix_engagement_sessions_lesson_id", "engagement_sessions", ["lesson_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_engagement_sessions_lesson_id", table_name="engagement_sessions")
    op.drop_table("engagement_sessions")
    op.drop_index("ix_completions_user_course", table_name="lesson_completions")
    op.drop_table("lesson_completions")
    op.drop_table("center_group_memberships")
    op.drop_table("enrollments")
    op.drop_table("academic_profiles")
    op.drop_index("ix_exam_attempts_user_exam", table_name="exam_attempts")
    op.drop_table("exam_attempts")
    op.drop_index("ix_exams_chapter_id", table_name="exams")
    op.drop_table("exams")
    op.drop_index("ix_lessons_chapter_id", table_name="lessons")
    op.drop_index("ix_lessons_course_id", table_name="lessons")
    op.drop_table("lessons")
    op.drop_index("ix_chapters_course_id", table_name="chapters")
    op.drop_table("chapters")
    op.drop_table("courses")
