from __future__ import annotations

import asyncio

from sqlalchemy.dialects import postgresql

from lessongate.models.course import ExamAttempt, Lesson
from lessongate.models.progress import CompletionRecord
from lessongate.repos.pg_completion_repo import chapter_progress_query
from lessongate.services.progress_ledger import course_progress, progress_from_rows
from lessongate.services.stores import completion_repo, content_repo
from tests.conftest import seed_course


def _complete(user_id: str, lesson: Lesson) -> None:
    asyncio.run(
        completion_repo.add(
            CompletionRecord.new(
                user_id=user_id,
                course_id=lesson.course_id,
                lesson_id=lesson.id,
                completed_at=1,
            )
        )
    )


def test_chapter_progress_query_is_one_grouped_statement() -> None:
    sql = str(
        chapter_progress_query("u-1", "c-1").compile(dialect=postgresql.dialect())
    ).lower()
    assert sql.count("group by") == 2
    assert "left outer join lesson_completions" in sql
    assert "bool_or" in sql
    assert "order by chapters.order_index" in sql


def test_rows_match_sequential_progress() -> None:
    seeded = seed_course(chapters=3, lessons_per_chapter=3, with_exams=True)
    for lesson in seeded.chapter_lessons(0) + seeded.chapter_lessons(1)[:1]:
        _complete("u-1", lesson)
    _complete("someone-else", seeded.chapter_lessons(2)[0])
    completion_repo.add_attempt(
        ExamAttempt(user_id="u-1", exam_id=seeded.exams[0].id, score=75)
    )

    async def run():
        rows = await completion_repo.chapter_progress_rows("u-1", seeded.course.id)
        attempts = await completion_repo.attempts_for("u-1", seeded.exams[0].id)
        done = await completion_repo.completed_lesson_ids("u-1", seeded.course.id)
        sequential = course_progress(
            seeded.chapters, seeded.lessons, done, seeded.exams, attempts
        )
        return progress_from_rows(rows), sequential

    batched, sequential = asyncio.run(run())
    assert batched == sequential
    assert [c.snapshot.completed for c in batched] == [3, 1, 0]
    assert batched[0].exam.unlocked is True
    assert batched[0].exam.best_score == 75
    assert batched[1].exam.unlocked is False


def test_removing_a_lesson_is_reflected_on_next_read() -> None:
    seeded = seed_course(lessons_per_chapter=3)
    for lesson in seeded.lessons[:2]:
        _complete("u-1", lesson)

    async def rows():
        return await completion_repo.chapter_progress_rows("u-1", seeded.course.id)

    assert asyncio.run(rows())[0].completed == 2
    assert asyncio.run(rows())[0].total == 3

    content_repo.remove_lesson(seeded.lessons[2].id)
    (row,) = asyncio.run(rows())
    assert row.total == 2
    assert progress_from_rows([row])[0].snapshot.is_complete is True


def test_completion_add_is_idempotent() -> None:
    seeded = seed_course()
    lesson = seeded.lessons[0]
    _complete("u-1", lesson)
    _complete("u-1", lesson)
    ids = asyncio.run(completion_repo.completed_lesson_ids("u-1", seeded.course.id))
    assert ids == {lesson.id}
