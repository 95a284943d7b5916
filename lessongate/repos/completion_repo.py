from __future__ import annotations

from typing import Protocol

from lessongate.models.course import ExamAttempt
from lessongate.models.progress import ChapterProgressRow, CompletionRecord
from lessongate.repos.content_repo import InMemoryContentRepo


class CompletionRepo(Protocol):
    async def has_completion(self, user_id: str, lesson_id: str) -> bool: ...
    async def completed_lesson_ids(self, user_id: str, course_id: str) -> set[str]: ...
    async def add(self, record: CompletionRecord) -> CompletionRecord: ...
    async def attempts_for(self, user_id: str, exam_id: str) -> list[ExamAttempt]: ...
    async def chapter_progress_rows(
        self, user_id: str, course_id: str
    ) -> list[ChapterProgressRow]: ...


class InMemoryCompletionRepo:
    """Completion and exam-attempt store.

    ``add`` is idempotent per (user, lesson): a second completion of the
    same lesson returns the first record.
    """

    def __init__(self, content: InMemoryContentRepo) -> None:
        self._content = content
        self._records: dict[tuple[str, str], CompletionRecord] = {}
        self._attempts: list[ExamAttempt] = []

    def clear(self) -> None:
        self._records.clear()
        self._attempts.clear()

    async def has_completion(self, user_id: str, lesson_id: str) -> bool:
        return (user_id, lesson_id) in self._records

    async def completed_lesson_ids(self, user_id: str, course_id: str) -> set[str]:
        return {
            r.lesson_id
            for r in self._records.values()
            if r.user_id == user_id and r.course_id == course_id
        }

    async def add(self, record: CompletionRecord) -> CompletionRecord:
        key = (record.user_id, record.lesson_id)
        existing = self._records.get(key)
        if existing is not None:
            return existing
        self._records[key] = record
        return record

    def add_attempt(self, attempt: ExamAttempt) -> None:
        self._attempts.append(attempt)

    async def attempts_for(self, user_id: str, exam_id: str) -> list[ExamAttempt]:
        return [
            a for a in self._attempts if a.user_id == user_id and a.exam_id == exam_id
        ]

    async def chapter_progress_rows(
        self, user_id: str, course_id: str
    ) -> list[ChapterProgressRow]:
        # Same shape the grouped SQL query in PgCompletionRepo returns.
        completed_ids = await self.completed_lesson_ids(user_id, course_id)
        lessons = await self._content.list_lessons(course_id)
        rows: list[ChapterProgressRow] = []
        for chapter in await self._content.list_chapters(course_id):
            playable = [
                l
                for l in lessons
                if l.chapter_id == chapter.id and l.has_playable_media
            ]
            exam = await self._content.exam_for_chapter(chapter.id)
            attempts = (
                await self.attempts_for(user_id, exam.id) if exam is not None else []
            )
            done = [a for a in attempts if a.completed]
            rows.append(
                ChapterProgressRow(
                    chapter_id=chapter.id,
                    order_index=chapter.order_index,
                    title=chapter.title,
                    total=len(playable),
                    completed=sum(1 for l in playable if l.id in completed_ids),
                    exam_id=exam.id if exam is not None else None,
                    exam_completed=bool(done),
                    best_score=max((a.score for a in done), default=None),
                )
            )
        return rows
