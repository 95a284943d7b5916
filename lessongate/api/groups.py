from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from lessongate.api.dependencies import get_stores, require_staff
from lessongate.core.errors import PersistenceWriteError
from lessongate.models.principal import Principal
from lessongate.services.group_membership import confirm_center_group
from lessongate.services.stores import Stores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/groups", tags=["groups"])


class MembershipOut(BaseModel):
    student_id: str
    group_id: str
    is_active: bool


@router.post("/{group_id}/members/{student_id}/confirm", response_model=MembershipOut)
async def confirm_membership(
    group_id: str,
    student_id: str,
    principal: Annotated[Principal, Depends(require_staff)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> MembershipOut:
    """Confirm a student's center group.

    Only answers 200 once the membership has been read back; a write that
    cannot be verified is a 503 and the student stays blocked.
    """
    try:
        membership = await confirm_center_group(stores.groups, student_id, group_id)
    except PersistenceWriteError:
        logger.exception(
            "group confirmation failed by staff=%s", principal.user_id,
            extra={"user_id": student_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Group confirmation could not be saved, please retry",
        ) from None
    return MembershipOut(
        student_id=membership.student_id,
        group_id=membership.group_id,
        is_active=membership.is_active,
    )
