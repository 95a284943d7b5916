from __future__ import annotations

from typing import Protocol

from lessongate.models.course import Chapter, Course, Exam, Lesson


class ContentRepo(Protocol):
    async def get_course(self, course_id: str) -> Course | None: ...
    async def get_chapter(self, chapter_id: str) -> Chapter | None: ...
    async def get_lesson(self, lesson_id: str) -> Lesson | None: ...
    async def list_chapters(self, course_id: str) -> list[Chapter]: ...
    async def list_lessons(self, course_id: str) -> list[Lesson]: ...
    async def list_chapter_lessons(self, chapter_id: str) -> list[Lesson]: ...
    async def list_exams(self, course_id: str) -> list[Exam]: ...
    async def exam_for_chapter(self, chapter_id: str) -> Exam | None: ...
    async def list_free_lessons(self) -> list[Lesson]: ...


class InMemoryContentRepo:
    """Read side of the catalog.  The add_* methods exist for seeding."""

    def __init__(self) -> None:
        self._courses: dict[str, Course] = {}
        self._chapters: dict[str, Chapter] = {}
        self._lessons: dict[str, Lesson] = {}
        self._exams: dict[str, Exam] = {}

    def clear(self) -> None:
        self._courses.clear()
        self._chapters.clear()
        self._lessons.clear()
        self._exams.clear()

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def add_chapter(self, chapter: Chapter) -> None:
        self._chapters[chapter.id] = chapter

    def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    def remove_lesson(self, lesson_id: str) -> bool:
        return self._lessons.pop(lesson_id, None) is not None

    def add_exam(self, exam: Exam) -> None:
        self._exams[exam.id] = exam

    async def get_course(self, course_id: str) -> Course | None:
        return self._courses.get(course_id)

    async def get_chapter(self, chapter_id: str) -> Chapter | None:
        return self._chapters.get(chapter_id)

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_chapters(self, course_id: str) -> list[Chapter]:
        chapters = [c for c in self._chapters.values() if c.course_id == course_id]
        return sorted(chapters, key=lambda c: c.order_index)

    async def list_lessons(self, course_id: str) -> list[Lesson]:
        return [l for l in self._lessons.values() if l.course_id == course_id]

    async def list_chapter_lessons(self, chapter_id: str) -> list[Lesson]:
        return [l for l in self._lessons.values() if l.chapter_id == chapter_id]

    async def list_exams(self, course_id: str) -> list[Exam]:
        return [e for e in self._exams.values() if e.course_id == course_id]

    async def exam_for_chapter(self, chapter_id: str) -> Exam | None:
        for exam in self._exams.values():
            if exam.chapter_id == chapter_id:
                return exam
        return None

    async def list_free_lessons(self) -> list[Lesson]:
        return [l for l in self._lessons.values() if l.is_free_lesson]
