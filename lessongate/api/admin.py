from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from lessongate.api.dependencies import require_staff
from lessongate.models.principal import Principal
from lessongate.services.cache import (
    cache_service,
    invalidate_enrollment,
    invalidate_profile,
    invalidate_progress,
    invalidate_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class CacheInvalidationIn(BaseModel):
    """Sent by the systems that own profiles and enrollments after a write."""

    user_id: str
    scope: Literal["profile", "enrollment", "progress", "all"] = "all"
    course_id: str | None = None


@router.post("/cache/invalidate", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_cache(
    body: CacheInvalidationIn,
    principal: Annotated[Principal, Depends(require_staff)],
) -> Response:
    if body.scope == "profile":
        await invalidate_profile(cache_service, body.user_id)
    elif body.scope == "enrollment":
        await invalidate_enrollment(cache_service, body.user_id, body.course_id)
    elif body.scope == "progress":
        await invalidate_progress(cache_service, body.user_id, body.course_id)
    else:
        await invalidate_user(cache_service, body.user_id)
    logger.info(
        "cache invalidated scope=%s by staff=%s",
        body.scope,
        principal.user_id,
        extra={"user_id": body.user_id, "course_id": body.course_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
