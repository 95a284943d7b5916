from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from lessongate.models.profile import AcademicProfile, normalize_attendance_mode


class ProfileRepo(Protocol):
    async def get(self, user_id: str) -> AcademicProfile | None: ...


class InMemoryProfileRepo:
    def __init__(self) -> None:
        self._store: dict[str, AcademicProfile] = {}

    async def get(self, user_id: str) -> AcademicProfile | None:
        profile = self._store.get(user_id)
        if profile is None:
            return None
        return replace(
            profile, attendance_mode=normalize_attendance_mode(profile.attendance_mode)
        )

    def put(self, profile: AcademicProfile) -> None:
        # Profiles are written by the profile service; this is a seeding hook.
        self._store[profile.user_id] = profile
