from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from lessongate.models.enrollment import Enrollment, EnrollmentStatus


class EnrollmentRepo(Protocol):
    async def get(self, user_id: str, course_id: str) -> Enrollment | None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], Enrollment] = {}

    async def get(self, user_id: str, course_id: str) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    def put(self, enrollment: Enrollment) -> None:
        self._store[(enrollment.user_id, enrollment.course_id)] = enrollment

    def set_status(
        self, user_id: str, course_id: str, status: EnrollmentStatus
    ) -> Enrollment:
        key = (user_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            raise KeyError("enrollment not found")
        updated = replace(existing, status=status)
        self._store[key] = updated
        return updated
