from __future__ import annotations

from typing import Protocol

from lessongate.models.enrollment import CenterGroupMembership


class GroupMembershipRepo(Protocol):
    async def get(self, student_id: str, group_id: str) -> CenterGroupMembership | None: ...
    async def upsert(self, membership: CenterGroupMembership) -> None: ...
    async def commit(self) -> None: ...


class InMemoryGroupMembershipRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CenterGroupMembership] = {}

    async def get(self, student_id: str, group_id: str) -> CenterGroupMembership | None:
        return self._store.get((student_id, group_id))

    async def upsert(self, membership: CenterGroupMembership) -> None:
        self._store[(membership.student_id, membership.group_id)] = membership

    async def commit(self) -> None:
        # Writes are durable as soon as upsert returns.
        return None
