from __future__ import annotations

from dataclasses import dataclass

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"
ROLE_ASSISTANT = "assistant_teacher"

STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_ASSISTANT})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity resolved from the bearer token.

    Anonymous visitors are represented with ``user_id=None`` and no roles
    rather than with ``None``, so every decision function receives the same
    type.

        user_id: subject from JWT, or None for visitors
        roles:   student | admin | assistant_teacher
    """

    user_id: str | None
    roles: frozenset[str] = frozenset()

    def is_anonymous(self) -> bool:
        return self.user_id is None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return not self.is_anonymous() and self.has_any_role(STAFF_ROLES)

    def is_platform_admin(self) -> bool:
        return ROLE_ADMIN in self.roles


ANONYMOUS = Principal(user_id=None)
