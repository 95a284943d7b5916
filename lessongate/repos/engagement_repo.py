from __future__ import annotations

from typing import Protocol

from lessongate.models.engagement import (
    EngagementSession,
    LessonEngagementTotals,
    StoredEngagementSession,
)


class EngagementRepo(Protocol):
    async def add(
        self, session: EngagementSession, *, counts_toward_metrics: bool
    ) -> None: ...
    async def lesson_totals(self, lesson_id: str) -> LessonEngagementTotals: ...


class InMemoryEngagementRepo:
    def __init__(self) -> None:
        self._sessions: list[StoredEngagementSession] = []

    def clear(self) -> None:
        self._sessions.clear()

    @property
    def stored(self) -> list[StoredEngagementSession]:
        return list(self._sessions)

    async def add(
        self, session: EngagementSession, *, counts_toward_metrics: bool
    ) -> None:
        self._sessions.append(
            StoredEngagementSession(
                session=session, counts_toward_metrics=counts_toward_metrics
            )
        )

    async def lesson_totals(self, lesson_id: str) -> LessonEngagementTotals:
        # Learner-facing aggregate: staff rows are stored but never counted.
        rows = [
            s.session
            for s in self._sessions
            if s.session.lesson_id == lesson_id and s.counts_toward_metrics
        ]
        return LessonEngagementTotals(
            lesson_id=lesson_id,
            sessions=len(rows),
            active_seconds=sum(r.active_seconds for r in rows),
            interruptions=sum(r.interruptions for r in rows),
        )
