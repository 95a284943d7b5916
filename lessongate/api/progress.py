"""Chapter progress, exam unlock and lesson completion.

GET /v1/progress/courses/{course_id}/chapters
  -> read-through cache (progress:{user}:{course})
  -> miss: one batched per-chapter aggregation from the completion store

GET /v1/progress/chapters/{chapter_id}/exam
  -> recomputed for one chapter from its lessons, completions and attempts

POST /v1/progress/completions
  -> access check (403 when blocked)
  -> completion row (idempotent per user + lesson)
  -> invalidate progress:{user}:{course}
  -> 201
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from lessongate.api.access import load_lesson_target, raise_if_blocked
from lessongate.api.dependencies import get_stores, request_language, require_user
from lessongate.core.errors import PersistenceWriteError, TransientFetchError
from lessongate.models.principal import Principal
from lessongate.models.progress import ChapterProgress, ExamUnlockState
from lessongate.services.learner_context import LearnerContextLoader
from lessongate.services.persistence_writer import SessionPersistenceWriter
from lessongate.services.progress_ledger import (
    chapter_snapshot,
    exam_unlock,
    overall_percent,
)
from lessongate.services.stores import Stores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class ExamUnlockOut(BaseModel):
    has_exam: bool
    unlocked: bool
    exam_id: str | None = None
    exam_completed: bool = False
    best_score: int | None = None

    @classmethod
    def from_state(cls, state: ExamUnlockState) -> ExamUnlockOut:
        return cls(
            has_exam=state.has_exam,
            unlocked=state.unlocked,
            exam_id=state.exam_id,
            exam_completed=state.exam_completed,
            best_score=state.best_score,
        )


class ChapterProgressOut(BaseModel):
    chapter_id: str
    order_index: int
    title: str
    completed: int
    total: int
    percent: int
    is_complete: bool
    exam: ExamUnlockOut

    @classmethod
    def from_progress(cls, p: ChapterProgress) -> ChapterProgressOut:
        return cls(
            chapter_id=p.chapter_id,
            order_index=p.order_index,
            title=p.title,
            completed=p.snapshot.completed,
            total=p.snapshot.total,
            percent=p.snapshot.percent,
            is_complete=p.snapshot.is_complete,
            exam=ExamUnlockOut.from_state(p.exam),
        )


class CourseProgressOut(BaseModel):
    course_id: str
    percent: int
    chapters: list[ChapterProgressOut]


class CompletionIn(BaseModel):
    lesson_id: str


class CompletionOut(BaseModel):
    id: str
    user_id: str
    course_id: str
    lesson_id: str
    completed_at: int


def _unavailable(detail: str = "Progress temporarily unavailable") -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


@router.get("/courses/{course_id}/chapters", response_model=CourseProgressOut)
async def get_course_progress(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CourseProgressOut:
    try:
        course = await stores.content.get_course(course_id)
    except Exception:
        logger.exception("catalog lookup failed", extra={"course_id": course_id})
        raise _unavailable() from None
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")

    try:
        chapters = await LearnerContextLoader(stores).chapter_progress(
            principal.user_id, course_id
        )
    except TransientFetchError:
        logger.exception(
            "progress lookup failed",
            extra={"user_id": principal.user_id, "course_id": course_id},
        )
        raise _unavailable() from None

    return CourseProgressOut(
        course_id=course_id,
        percent=overall_percent(chapters),
        chapters=[ChapterProgressOut.from_progress(c) for c in chapters],
    )


@router.get("/chapters/{chapter_id}/exam", response_model=ExamUnlockOut)
async def get_exam_unlock(
    chapter_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> ExamUnlockOut:
    try:
        chapter = await stores.content.get_chapter(chapter_id)
        if chapter is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="chapter not found"
            )
        lessons = await stores.content.list_chapter_lessons(chapter_id)
        completed = await stores.completions.completed_lesson_ids(
            principal.user_id, chapter.course_id
        )
        exam = await stores.content.exam_for_chapter(chapter_id)
        attempts = (
            await stores.completions.attempts_for(principal.user_id, exam.id)
            if exam is not None
            else []
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("exam unlock lookup failed", extra={"user_id": principal.user_id})
        raise _unavailable() from None

    snapshot = chapter_snapshot(lessons, completed)
    return ExamUnlockOut.from_state(exam_unlock(exam, snapshot, attempts))


@router.post(
    "/completions",
    response_model=CompletionOut,
    status_code=status.HTTP_201_CREATED,
)
async def mark_lesson_complete(
    body: CompletionIn,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    language: Annotated[str, Depends(request_language)],
) -> CompletionOut:
    loader = LearnerContextLoader(stores)
    target = await load_lesson_target(loader, body.lesson_id)
    ctx = await loader.decide(principal, target)
    raise_if_blocked(ctx.decision, language)

    writer = SessionPersistenceWriter(stores.completions, stores.engagement)
    try:
        record = await writer.record_completion(principal, target.lesson)
    except PersistenceWriteError:
        logger.exception(
            "completion write failed",
            extra={"user_id": principal.user_id, "lesson_id": body.lesson_id},
        )
        raise _unavailable("Could not save completion, please retry") from None

    return CompletionOut(
        id=record.id,
        user_id=record.user_id,
        course_id=record.course_id,
        lesson_id=record.lesson_id,
        completed_at=record.completed_at,
    )
