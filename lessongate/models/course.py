from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from lessongate.models.profile import AcademicPath, parse_academic_path


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str
    grade: str | None = None  # target academic path; None = open to all
    is_free: bool | None = False  # None = flag never configured
    track: str | None = None

    @property
    def target_path(self) -> AcademicPath:
        return parse_academic_path(self.grade, self.track)

    @staticmethod
    def new(
        *,
        title: str,
        grade: str | None = None,
        is_free: bool | None = False,
        track: str | None = None,
    ) -> Course:
        return Course(
            id=str(uuid4()), title=title, grade=grade, is_free=is_free, track=track
        )


@dataclass(frozen=True, slots=True)
class Chapter:
    id: str
    course_id: str
    order_index: int
    title: str = ""

    @staticmethod
    def new(*, course_id: str, order_index: int, title: str = "") -> Chapter:
        return Chapter(
            id=str(uuid4()), course_id=course_id, order_index=order_index, title=title
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: str
    course_id: str
    chapter_id: str | None
    title: str = ""
    is_free_lesson: bool = False
    has_playable_media: bool = True

    @staticmethod
    def new(
        *,
        course_id: str,
        chapter_id: str | None,
        title: str = "",
        is_free_lesson: bool = False,
        has_playable_media: bool = True,
    ) -> Lesson:
        return Lesson(
            id=str(uuid4()),
            course_id=course_id,
            chapter_id=chapter_id,
            title=title,
            is_free_lesson=is_free_lesson,
            has_playable_media=has_playable_media,
        )


@dataclass(frozen=True, slots=True)
class Exam:
    id: str
    course_id: str
    chapter_id: str | None
    title: str = ""

    @staticmethod
    def new(*, course_id: str, chapter_id: str | None, title: str = "") -> Exam:
        return Exam(
            id=str(uuid4()), course_id=course_id, chapter_id=chapter_id, title=title
        )


@dataclass(frozen=True, slots=True)
class ExamAttempt:
    user_id: str
    exam_id: str
    score: int = 0
    completed: bool = True


@dataclass(frozen=True, slots=True)
class ContentTarget:
    """The content item an access decision is about.

    A lesson is always evaluated together with its course: the course
    carries the free flag and the target academic path.
    """

    course: Course
    lesson: Lesson | None = None

    @property
    def is_free(self) -> bool | None:
        if self.lesson is not None and self.lesson.is_free_lesson:
            return True
        return self.course.is_free

    @property
    def item_id(self) -> str:
        return self.lesson.id if self.lesson is not None else self.course.id
