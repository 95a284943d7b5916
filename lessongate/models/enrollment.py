from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EnrollmentStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One row per (user, course) in the enrollment ledger."""

    user_id: str
    course_id: str
    status: EnrollmentStatus
    activated_at: int | None = None


@dataclass(frozen=True, slots=True)
class CenterGroupMembership:
    student_id: str
    group_id: str
    is_active: bool = True
