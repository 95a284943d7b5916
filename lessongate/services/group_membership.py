from __future__ import annotations

import logging

from lessongate.models.enrollment import CenterGroupMembership
from lessongate.repos.group_membership_repo import GroupMembershipRepo
from lessongate.services.cache import CacheService, cache_service, invalidate_profile
from lessongate.services.retry import WRITE_RETRY, RetryPolicy, verified_write

logger = logging.getLogger(__name__)


async def confirm_center_group(
    repo: GroupMembershipRepo,
    student_id: str,
    group_id: str,
    *,
    cache: CacheService = cache_service,
    policy: RetryPolicy = WRITE_RETRY,
) -> CenterGroupMembership:
    """Activate a student's mandatory center group membership.

    Center content stays blocked until this lands, so the write is
    committed and then verified by reading it back.  Raises
    PersistenceWriteError otherwise.
    """
    membership = CenterGroupMembership(
        student_id=student_id, group_id=group_id, is_active=True
    )

    async def _write() -> None:
        await repo.upsert(membership)
        await repo.commit()

    async def _verify() -> bool:
        stored = await repo.get(student_id, group_id)
        return stored is not None and stored.is_active

    await verified_write(_write, _verify, policy=policy, label="group confirmation")
    await invalidate_profile(cache, student_id)
    logger.info(
        "center group %s confirmed", group_id, extra={"user_id": student_id}
    )
    return membership
