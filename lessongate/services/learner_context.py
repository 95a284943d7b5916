"""Fetching and caching the inputs of an access decision.

The eligibility resolver is pure; this module does the I/O for it.
Every lookup goes through the per-user read cache, and every failure is
turned into ``UNAVAILABLE`` so the resolver fails closed.  Profile
lookups get one extra attempt after a short delay: right after login the
profile row may not be readable yet.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import TypeVar

from lessongate.core.config import SETTINGS
from lessongate.core.errors import TransientFetchError
from lessongate.core.metrics import ACCESS_DECISIONS, FETCH_FAILURES
from lessongate.models.access import AccessDecision
from lessongate.models.course import ContentTarget
from lessongate.models.enrollment import Enrollment, EnrollmentStatus
from lessongate.models.principal import Principal
from lessongate.models.profile import AcademicProfile
from lessongate.models.progress import ChapterProgress, ChapterProgressRow
from lessongate.services.cache import (
    CacheService,
    cache_service,
    enrollment_key,
    profile_key,
    progress_key,
    read_through,
)
from lessongate.services.eligibility import (
    UNAVAILABLE,
    Unavailable,
    preview_applies,
    resolve_access,
    with_preview_restriction,
)
from lessongate.services.progress_ledger import progress_from_rows
from lessongate.services.retry import LOGIN_RACE_RETRY, RetryPolicy
from lessongate.services.stores import Stores

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AccessContext:
    """A decision together with the inputs it was made from."""

    decision: AccessDecision
    target: ContentTarget
    enrollment: Enrollment | None | Unavailable
    profile: AcademicProfile | None | Unavailable
    has_completion: bool | Unavailable
    preview: bool

    @property
    def enrollment_status(self) -> EnrollmentStatus | None:
        if isinstance(self.enrollment, Enrollment):
            return self.enrollment.status
        return None


def _encode_profile(profile: AcademicProfile | None) -> dict | None:
    return asdict(profile) if profile is not None else None


def _decode_profile(data: object) -> AcademicProfile | None:
    return AcademicProfile(**data) if isinstance(data, dict) else None


def _encode_enrollment(enrollment: Enrollment | None) -> dict | None:
    if enrollment is None:
        return None
    return {
        "user_id": enrollment.user_id,
        "course_id": enrollment.course_id,
        "status": enrollment.status.value,
        "activated_at": enrollment.activated_at,
    }


def _decode_enrollment(data: object) -> Enrollment | None:
    if not isinstance(data, dict):
        return None
    return Enrollment(
        user_id=data["user_id"],
        course_id=data["course_id"],
        status=EnrollmentStatus(data["status"]),
        activated_at=data.get("activated_at"),
    )


def _encode_rows(rows: list[ChapterProgressRow]) -> list[dict]:
    return [asdict(r) for r in rows]


def _decode_rows(data: object) -> list[ChapterProgressRow]:
    return [ChapterProgressRow(**r) for r in data]  # type: ignore[union-attr]


class LearnerContextLoader:
    def __init__(
        self,
        stores: Stores,
        cache: CacheService = cache_service,
        *,
        profile_retry: RetryPolicy = LOGIN_RACE_RETRY,
    ) -> None:
        self._stores = stores
        self._cache = cache
        self._profile_retry = profile_retry

    async def _fetch(self, source: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except TransientFetchError:
            raise
        except Exception as exc:
            raise TransientFetchError(source, str(exc)) from exc

    # -- individual inputs ----------------------------------------------------

    async def profile(self, user_id: str) -> AcademicProfile | None | Unavailable:
        async def _load() -> AcademicProfile | None:
            return await self._profile_retry.run(
                lambda: self._fetch("profile", lambda: self._stores.profiles.get(user_id)),
                label="profile fetch",
            )

        try:
            return await read_through(
                self._cache,
                profile_key(user_id),
                SETTINGS.profile_cache_ttl,
                _load,
                encode=_encode_profile,
                decode=_decode_profile,
            )
        except TransientFetchError as exc:
            FETCH_FAILURES.labels(source="profile").inc()
            logger.warning("%s", exc, extra={"user_id": user_id})
            return UNAVAILABLE

    async def enrollment(
        self, user_id: str, course_id: str
    ) -> Enrollment | None | Unavailable:
        try:
            return await read_through(
                self._cache,
                enrollment_key(user_id, course_id),
                SETTINGS.enrollment_cache_ttl,
                lambda: self._fetch(
                    "enrollment",
                    lambda: self._stores.enrollments.get(user_id, course_id),
                ),
                encode=_encode_enrollment,
                decode=_decode_enrollment,
            )
        except TransientFetchError as exc:
            FETCH_FAILURES.labels(source="enrollment").inc()
            logger.warning(
                "%s", exc, extra={"user_id": user_id, "course_id": course_id}
            )
            return UNAVAILABLE

    async def has_completion(self, user_id: str, lesson_id: str) -> bool | Unavailable:
        try:
            return await self._fetch(
                "completion",
                lambda: self._stores.completions.has_completion(user_id, lesson_id),
            )
        except TransientFetchError as exc:
            FETCH_FAILURES.labels(source="completion").inc()
            logger.warning(
                "%s", exc, extra={"user_id": user_id, "lesson_id": lesson_id}
            )
            return UNAVAILABLE

    async def chapter_progress(
        self, user_id: str, course_id: str
    ) -> list[ChapterProgress]:
        """Chapter progress for one course.

        Unlike the access inputs there is no safe default here, so a
        failed lookup raises TransientFetchError to the caller.
        """
        rows = await read_through(
            self._cache,
            progress_key(user_id, course_id),
            SETTINGS.progress_cache_ttl,
            lambda: self._fetch(
                "progress",
                lambda: self._stores.completions.chapter_progress_rows(
                    user_id, course_id
                ),
            ),
            encode=_encode_rows,
            decode=_decode_rows,
        )
        return progress_from_rows(rows)

    # -- catalog --------------------------------------------------------------

    async def lesson_target(self, lesson_id: str) -> ContentTarget | None:
        lesson = await self._fetch(
            "catalog", lambda: self._stores.content.get_lesson(lesson_id)
        )
        if lesson is None:
            return None
        course = await self._fetch(
            "catalog", lambda: self._stores.content.get_course(lesson.course_id)
        )
        if course is None:
            return None
        return ContentTarget(course=course, lesson=lesson)

    # -- decision -------------------------------------------------------------

    async def decide(self, principal: Principal, target: ContentTarget) -> AccessContext:
        """Load what the resolver needs for this caller and decide.

        Only the inputs a rule can actually reach are fetched: staff and
        visitors need none, free content only needs the enrollment (for
        the preview policy).
        """
        enrollment: Enrollment | None | Unavailable = None
        profile: AcademicProfile | None | Unavailable = None
        has_completion: bool | Unavailable = False
        user_id = principal.user_id

        if user_id is not None and not principal.is_staff():
            if target.is_free is True:
                enrollment = await self.enrollment(user_id, target.course.id)
            elif target.is_free is False:
                profile = await self.profile(user_id)
                if isinstance(profile, AcademicProfile):
                    enrollment = await self.enrollment(user_id, target.course.id)
                if (
                    isinstance(enrollment, Enrollment)
                    and enrollment.status is EnrollmentStatus.SUSPENDED
                    and target.lesson is not None
                ):
                    has_completion = await self.has_completion(user_id, target.lesson.id)

        decision = resolve_access(
            principal, target, enrollment, profile, has_completion=has_completion
        )
        preview = decision.allowed and preview_applies(principal, target, enrollment)
        decision = with_preview_restriction(decision, preview)

        ACCESS_DECISIONS.labels(
            allowed=str(decision.allowed).lower(), reason=decision.reason
        ).inc()
        logger.info(
            "access %s for %s",
            "allowed" if decision.allowed else "blocked",
            target.item_id,
            extra={
                "user_id": user_id,
                "course_id": target.course.id,
                "lesson_id": target.lesson.id if target.lesson else None,
                "reason": decision.reason,
            },
        )
        return AccessContext(
            decision=decision,
            target=target,
            enrollment=enrollment,
            profile=profile,
            has_completion=has_completion,
            preview=preview,
        )
