"""Eligibility resolver: may this caller view this content item?

``resolve_access`` is a pure function of (principal, content, enrollment,
profile, completion).  It does no I/O and keeps no state; callers fetch
and cache its inputs.  Rules are evaluated in order, first match wins:

  1. staff                              allowed
  2. free course or free lesson         allowed
  3. anonymous, paid                    blocked  auth_required
  4. learner path != course path        blocked  academic_mismatch
  5. no enrollment                      blocked  not_enrolled
  6. enrollment active                  allowed
  7. enrollment suspended               completed_only if the lesson was
                                        completed, else blocked
  8. pending / expired / cancelled      blocked  status-specific

Inputs that could not be fetched arrive as ``UNAVAILABLE`` and block:
the resolver fails closed.  Any call site that fails open instead must
say so where it does it.

Rule 2 deliberately skips the academic-path check.  Opening a free lesson
by direct link always works, while the free-lesson *discovery* list
(``filter_free_lessons``) is filtered by path for logged-in learners.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping

from lessongate.models.access import (
    REASON_ACADEMIC_MISMATCH,
    REASON_AUTH_REQUIRED,
    REASON_CANCELLED,
    REASON_COMPLETED_REVIEW,
    REASON_ENROLLED,
    REASON_ENROLLMENT_UNAVAILABLE,
    REASON_EXPIRED,
    REASON_FREE,
    REASON_MISCONFIGURED,
    REASON_NOT_ENROLLED,
    REASON_PENDING,
    REASON_PROFILE_INCOMPLETE,
    REASON_PROFILE_UNAVAILABLE,
    REASON_STAFF,
    REASON_SUSPENDED,
    AccessDecision,
    Restriction,
)
from lessongate.models.course import ContentTarget, Course, Lesson
from lessongate.models.enrollment import Enrollment, EnrollmentStatus
from lessongate.models.principal import Principal
from lessongate.models.profile import AcademicProfile, paths_match


class Unavailable(enum.Enum):
    """Marker for an input whose lookup failed."""

    TOKEN = "unavailable"

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = Unavailable.TOKEN

_STATUS_REASONS = {
    EnrollmentStatus.PENDING: REASON_PENDING,
    EnrollmentStatus.EXPIRED: REASON_EXPIRED,
    EnrollmentStatus.CANCELLED: REASON_CANCELLED,
}


def resolve_access(
    principal: Principal,
    content: ContentTarget,
    enrollment: Enrollment | None | Unavailable = None,
    profile: AcademicProfile | None | Unavailable = None,
    *,
    has_completion: bool | Unavailable = False,
) -> AccessDecision:
    if principal.is_staff():
        return AccessDecision.allow(REASON_STAFF)

    is_free = content.is_free
    if is_free is None:
        return AccessDecision.block(REASON_MISCONFIGURED)
    if is_free:
        return AccessDecision.allow(REASON_FREE)

    if principal.is_anonymous():
        return AccessDecision.block(REASON_AUTH_REQUIRED)

    if profile is UNAVAILABLE:
        return AccessDecision.block(REASON_PROFILE_UNAVAILABLE)
    if profile is None:
        return AccessDecision.block(REASON_PROFILE_INCOMPLETE)
    if not paths_match(profile.path, content.course.target_path):
        return AccessDecision.block(REASON_ACADEMIC_MISMATCH)

    if enrollment is UNAVAILABLE:
        return AccessDecision.block(REASON_ENROLLMENT_UNAVAILABLE)
    if enrollment is None:
        return AccessDecision.block(REASON_NOT_ENROLLED)

    status = enrollment.status
    if status is EnrollmentStatus.ACTIVE:
        return AccessDecision.allow(REASON_ENROLLED)
    if status is EnrollmentStatus.SUSPENDED:
        # Review of finished lessons only; an unknown completion state is
        # treated as "not completed".
        if has_completion is True:
            return AccessDecision.allow(
                REASON_COMPLETED_REVIEW, Restriction.COMPLETED_ONLY
            )
        return AccessDecision.block(REASON_SUSPENDED)
    return AccessDecision.block(_STATUS_REASONS.get(status, REASON_NOT_ENROLLED))


def preview_applies(
    principal: Principal,
    content: ContentTarget,
    enrollment: Enrollment | None | Unavailable = None,
) -> bool:
    """Whether the anti-abuse preview countdown governs this viewing.

    Free content watched by a visitor, or by a learner without an active
    enrollment in the course.  Staff and active learners are never timed.
    """
    if principal.is_staff() or content.is_free is not True:
        return False
    if principal.is_anonymous():
        return True
    if isinstance(enrollment, Enrollment):
        return enrollment.status is not EnrollmentStatus.ACTIVE
    return True


def with_preview_restriction(decision: AccessDecision, applies: bool) -> AccessDecision:
    """Mark an allowed, unrestricted decision as preview-only."""
    if applies and decision.allowed and decision.restriction is Restriction.NONE:
        return AccessDecision.allow(decision.reason, Restriction.PREVIEW_ONLY)
    return decision


def filter_free_lessons(
    principal: Principal,
    lessons: Iterable[Lesson],
    courses: Mapping[str, Course],
    profile: AcademicProfile | None | Unavailable = None,
) -> list[Lesson]:
    """Free lessons the caller should see in discovery listings.

    Visitors and staff see all of them.  Logged-in learners only see
    lessons whose course targets their academic path (courses without a
    target grade are shown to everyone).  A learner with no profile yet
    sees all of them, so an unfinished profile never hides the free
    catalog.  A profile that could not be loaded hides the path-targeted
    ones.
    """
    free = [l for l in lessons if l.is_free_lesson]
    if principal.is_anonymous() or principal.is_staff() or profile is None:
        return free

    visible: list[Lesson] = []
    for lesson in free:
        course = courses.get(lesson.course_id)
        if course is None:
            continue
        target = course.target_path
        if target.grade is None:
            visible.append(lesson)
        elif isinstance(profile, AcademicProfile) and paths_match(profile.path, target):
            visible.append(lesson)
    return visible
