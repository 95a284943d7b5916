"""Gate deciding whether an engagement session may be recorded.

Evaluated in priority order, first match wins:

  1. no identity            cannot persist
  2. staff                  can persist, excluded from learner metrics
  3. free content           can persist
  4. active enrollment      can persist
  5. suspended enrollment   cannot persist, even for completed-lesson review
  6. anything else          cannot persist

Rule 1 does not affect the preview countdown, which runs independently.
"""

from __future__ import annotations

from dataclasses import dataclass

from lessongate.models.enrollment import EnrollmentStatus
from lessongate.models.principal import Principal

GUARD_ANONYMOUS = "anonymous"
GUARD_STAFF = "staff"
GUARD_FREE = "free_content"
GUARD_ACTIVE = "active_enrollment"
GUARD_SUSPENDED = "suspended_review"
GUARD_INACTIVE = "inactive_enrollment"


@dataclass(frozen=True, slots=True)
class FocusGuardResult:
    can_persist: bool
    reason: str
    exclude_from_metrics: bool = False


def can_persist(
    principal: Principal,
    enrollment_status: EnrollmentStatus | None,
    is_free_content: bool,
    is_completed_historically: bool = False,
) -> FocusGuardResult:
    # is_completed_historically may grant viewing (review mode) but never
    # recording; it only matters for the suspended case below.
    if principal.is_anonymous():
        return FocusGuardResult(False, GUARD_ANONYMOUS)
    if principal.is_staff():
        return FocusGuardResult(True, GUARD_STAFF, exclude_from_metrics=True)
    if is_free_content:
        return FocusGuardResult(True, GUARD_FREE)
    if enrollment_status is EnrollmentStatus.ACTIVE:
        return FocusGuardResult(True, GUARD_ACTIVE)
    if enrollment_status is EnrollmentStatus.SUSPENDED:
        return FocusGuardResult(False, GUARD_SUSPENDED)
    return FocusGuardResult(False, GUARD_INACTIVE)
