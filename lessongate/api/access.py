"""Access decisions for lessons, plus helpers shared by other routers.

GET /v1/access/lessons/{lesson_id} answers with the decision itself
(200 even when blocked): the UI needs the reason and message to render
the right locked state.  Routers that perform an action on the lesson
(mounting a viewing session, marking it complete) use
``raise_if_blocked`` to turn a blocked decision into a 403.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from lessongate.api.dependencies import get_stores, optional_principal, request_language
from lessongate.core.config import SETTINGS
from lessongate.core.errors import TransientFetchError
from lessongate.models.access import AccessDecision, message_for
from lessongate.models.course import ContentTarget
from lessongate.models.principal import Principal
from lessongate.services.learner_context import AccessContext, LearnerContextLoader
from lessongate.services.stores import Stores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/access", tags=["access"])


class AccessDecisionOut(BaseModel):
    lesson_id: str
    course_id: str
    allowed: bool
    restriction: str
    reason: str
    message: str | None = None
    preview_budget_seconds: int | None = None

    @classmethod
    def from_context(cls, ctx: AccessContext, language: str) -> AccessDecisionOut:
        decision = ctx.decision
        return cls(
            lesson_id=ctx.target.item_id,
            course_id=ctx.target.course.id,
            allowed=decision.allowed,
            restriction=decision.restriction.value,
            reason=decision.reason,
            message=None if decision.allowed else message_for(decision.reason, language),
            preview_budget_seconds=SETTINGS.preview_budget_seconds if ctx.preview else None,
        )


async def load_lesson_target(loader: LearnerContextLoader, lesson_id: str) -> ContentTarget:
    """Lesson plus course, or 404.  A failed catalog read is a 503."""
    try:
        target = await loader.lesson_target(lesson_id)
    except TransientFetchError:
        logger.exception("catalog lookup failed", extra={"lesson_id": lesson_id})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content temporarily unavailable",
        ) from None
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lesson not found")
    return target


def raise_if_blocked(decision: AccessDecision, language: str) -> None:
    if decision.allowed:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "reason": decision.reason,
            "message": message_for(decision.reason, language),
        },
    )


@router.get("/lessons/{lesson_id}", response_model=AccessDecisionOut)
async def get_lesson_access(
    lesson_id: str,
    principal: Annotated[Principal, Depends(optional_principal)],
    stores: Annotated[Stores, Depends(get_stores)],
    language: Annotated[str, Depends(request_language)],
) -> AccessDecisionOut:
    loader = LearnerContextLoader(stores)
    target = await load_lesson_target(loader, lesson_id)
    ctx = await loader.decide(principal, target)
    return AccessDecisionOut.from_context(ctx, language)
