"""Free-lesson discovery.

This listing is filtered by academic path for logged-in learners, while
opening a free lesson by direct link is not (see eligibility rule 2).
The two paths are intentionally separate.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from lessongate.api.dependencies import get_stores, optional_principal
from lessongate.models.course import Course
from lessongate.models.principal import Principal
from lessongate.services.eligibility import filter_free_lessons
from lessongate.services.learner_context import LearnerContextLoader
from lessongate.services.stores import Stores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class FreeLessonOut(BaseModel):
    id: str
    course_id: str
    chapter_id: str | None
    title: str


@router.get("/free", response_model=list[FreeLessonOut])
async def list_free_lessons(
    principal: Annotated[Principal, Depends(optional_principal)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[FreeLessonOut]:
    try:
        lessons = await stores.content.list_free_lessons()
        courses: dict[str, Course] = {}
        for course_id in {l.course_id for l in lessons}:
            course = await stores.content.get_course(course_id)
            if course is not None:
                courses[course_id] = course
    except Exception:
        logger.exception("free lesson listing failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content temporarily unavailable",
        ) from None

    profile = None
    if principal.user_id is not None and not principal.is_staff():
        profile = await LearnerContextLoader(stores).profile(principal.user_id)

    visible = filter_free_lessons(principal, lessons, courses, profile)
    return [
        FreeLessonOut(id=l.id, course_id=l.course_id, chapter_id=l.chapter_id, title=l.title)
        for l in sorted(visible, key=lambda l: (l.course_id, l.title, l.id))
    ]
