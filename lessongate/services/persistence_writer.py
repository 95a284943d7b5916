"""Durable writes of engagement sessions and lesson completions.

Both paths mark staff-originated rows with ``counts_toward_metrics=False``
so learner-facing aggregates skip them no matter which path wrote them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from lessongate.core.errors import PersistenceWriteError
from lessongate.core.metrics import ENGAGEMENT_WRITES
from lessongate.models.course import Lesson
from lessongate.models.engagement import EngagementSession
from lessongate.models.principal import Principal
from lessongate.models.progress import CompletionRecord
from lessongate.repos.completion_repo import CompletionRepo
from lessongate.repos.engagement_repo import EngagementRepo
from lessongate.services.cache import CacheService, cache_service, invalidate_progress
from lessongate.services.focus_guard import FocusGuardResult

logger = logging.getLogger(__name__)


class SessionPersistenceWriter:
    def __init__(
        self,
        completions: CompletionRepo,
        engagement: EngagementRepo,
        cache: CacheService = cache_service,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._completions = completions
        self._engagement = engagement
        self._cache = cache
        self._clock = clock

    async def record_engagement(
        self,
        principal: Principal,
        session: EngagementSession,
        guard: FocusGuardResult,
    ) -> bool:
        """Best-effort write.  Returns whether a row was written; never raises."""
        log_extra = {
            "user_id": principal.user_id,
            "lesson_id": session.lesson_id,
            "course_id": session.course_id,
            "reason": guard.reason,
        }
        if not guard.can_persist:
            ENGAGEMENT_WRITES.labels(result="skipped").inc()
            logger.info("engagement session not recorded", extra=log_extra)
            return False

        counts = not (guard.exclude_from_metrics or principal.is_staff())
        try:
            await self._engagement.add(session, counts_toward_metrics=counts)
        except Exception:
            ENGAGEMENT_WRITES.labels(result="failed").inc()
            logger.exception("engagement session write failed", extra=log_extra)
            return False

        ENGAGEMENT_WRITES.labels(result="written").inc()
        logger.info(
            "engagement session recorded active=%ss interruptions=%d",
            session.active_seconds,
            session.interruptions,
            extra=log_extra,
        )
        return True

    async def record_completion(
        self, principal: Principal, lesson: Lesson
    ) -> CompletionRecord:
        if principal.user_id is None:
            raise ValueError("anonymous viewers cannot complete lessons")

        record = CompletionRecord.new(
            user_id=principal.user_id,
            course_id=lesson.course_id,
            lesson_id=lesson.id,
            completed_at=int(self._clock()),
            counts_toward_metrics=not principal.is_staff(),
        )
        try:
            stored = await self._completions.add(record)
        except Exception as exc:
            raise PersistenceWriteError(f"completion write failed: {exc}") from exc

        await invalidate_progress(self._cache, principal.user_id, lesson.course_id)
        logger.info(
            "lesson completed",
            extra={
                "user_id": principal.user_id,
                "lesson_id": lesson.id,
                "course_id": lesson.course_id,
            },
        )
        return stored
