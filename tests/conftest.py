from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import lessongate` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lessongate.main import app  # noqa: E402
from lessongate.models.course import Chapter, Course, Exam, Lesson  # noqa: E402
from lessongate.models.enrollment import Enrollment, EnrollmentStatus  # noqa: E402
from lessongate.models.profile import AcademicProfile  # noqa: E402
from lessongate.services import token_service  # noqa: E402
from lessongate.services.analytics_queue import analytics_queue  # noqa: E402
from lessongate.services.cache import cache_service  # noqa: E402
from lessongate.services.stores import (  # noqa: E402
    content_repo,
    enrollment_repo,
    profile_repo,
    reset_in_memory_stores,
)
from lessongate.services.viewing_session import viewing_sessions  # noqa: E402


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Empty the in-memory repositories between tests."""
    reset_in_memory_stores()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_analytics_queue() -> None:
    if hasattr(analytics_queue, "_queues"):
        analytics_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_viewing_sessions() -> None:
    viewing_sessions.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(username: str = "test-student", roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_token() -> str:
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


@pytest.fixture
def assistant_token() -> str:
    return mint_token(username="test-assistant", roles=["assistant_teacher"])


# ---------------------------------------------------------------------------
# Catalog and learner seeding helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    chapters: list[Chapter] = field(default_factory=list)
    lessons: list[Lesson] = field(default_factory=list)
    exams: list[Exam] = field(default_factory=list)

    def chapter_lessons(self, index: int) -> list[Lesson]:
        chapter_id = self.chapters[index].id
        return [l for l in self.lessons if l.chapter_id == chapter_id]


def seed_course(
    *,
    title: str = "Chemistry",
    grade: str | None = "third_secondary",
    track: str | None = None,
    is_free: bool | None = False,
    chapters: int = 1,
    lessons_per_chapter: int = 2,
    with_exams: bool = False,
    free_lesson_first: bool = False,
) -> SeededCourse:
    course = Course.new(title=title, grade=grade, is_free=is_free, track=track)
    content_repo.add_course(course)
    seeded = SeededCourse(course=course)
    for c in range(chapters):
        chapter = Chapter.new(course_id=course.id, order_index=c, title=f"Chapter {c + 1}")
        content_repo.add_chapter(chapter)
        seeded.chapters.append(chapter)
        for n in range(lessons_per_chapter):
            lesson = Lesson.new(
                course_id=course.id,
                chapter_id=chapter.id,
                title=f"Lesson {c + 1}.{n + 1}",
                is_free_lesson=free_lesson_first and c == 0 and n == 0,
            )
            content_repo.add_lesson(lesson)
            seeded.lessons.append(lesson)
        if with_exams:
            exam = Exam.new(course_id=course.id, chapter_id=chapter.id, title=f"Exam {c + 1}")
            content_repo.add_exam(exam)
            seeded.exams.append(exam)
    return seeded


def give_profile(
    user_id: str = "test-student",
    grade: str | None = "third_secondary",
    track: str | None = None,
    attendance_mode: str | None = "online",
) -> AcademicProfile:
    profile = AcademicProfile(
        user_id=user_id, grade=grade, track=track, attendance_mode=attendance_mode
    )
    profile_repo.put(profile)
    return profile


def enroll(
    course_id: str,
    user_id: str = "test-student",
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
) -> Enrollment:
    enrollment = Enrollment(user_id=user_id, course_id=course_id, status=status)
    enrollment_repo.put(enrollment)
    return enrollment
