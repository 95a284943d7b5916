"""Repository wiring.

Two bundles satisfy the same ``Stores`` shape:

  - the in-memory singletons below, used when DATABASE_URL is unset
    (local dev and tests; seed them through the module-level repos)
  - PostgreSQL repositories bound to one request-scoped AsyncSession,
    built by ``pg_stores``

Handlers never pick an implementation themselves; they receive a
``Stores`` from the ``get_stores`` dependency.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from lessongate.repos.completion_repo import CompletionRepo, InMemoryCompletionRepo
from lessongate.repos.content_repo import ContentRepo, InMemoryContentRepo
from lessongate.repos.engagement_repo import EngagementRepo, InMemoryEngagementRepo
from lessongate.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from lessongate.repos.group_membership_repo import (
    GroupMembershipRepo,
    InMemoryGroupMembershipRepo,
)
from lessongate.repos.pg_catalog_repo import (
    PgContentRepo,
    PgEnrollmentRepo,
    PgGroupMembershipRepo,
    PgProfileRepo,
)
from lessongate.repos.pg_completion_repo import PgCompletionRepo, PgEngagementRepo
from lessongate.repos.profile_repo import InMemoryProfileRepo, ProfileRepo


@dataclass(frozen=True, slots=True)
class Stores:
    content: ContentRepo
    profiles: ProfileRepo
    enrollments: EnrollmentRepo
    completions: CompletionRepo
    engagement: EngagementRepo
    groups: GroupMembershipRepo


content_repo = InMemoryContentRepo()
profile_repo = InMemoryProfileRepo()
enrollment_repo = InMemoryEnrollmentRepo()
completion_repo = InMemoryCompletionRepo(content_repo)
engagement_repo = InMemoryEngagementRepo()
group_repo = InMemoryGroupMembershipRepo()

IN_MEMORY_STORES = Stores(
    content=content_repo,
    profiles=profile_repo,
    enrollments=enrollment_repo,
    completions=completion_repo,
    engagement=engagement_repo,
    groups=group_repo,
)


def pg_stores(session: AsyncSession) -> Stores:
    return Stores(
        content=PgContentRepo(session),
        profiles=PgProfileRepo(session),
        enrollments=PgEnrollmentRepo(session),
        completions=PgCompletionRepo(session),
        engagement=PgEngagementRepo(session),
        groups=PgGroupMembershipRepo(session),
    )


def reset_in_memory_stores() -> None:
    """Empty every in-memory repository."""
    content_repo.clear()
    profile_repo._store.clear()
    enrollment_repo._store.clear()
    completion_repo.clear()
    engagement_repo.clear()
    group_repo._store.clear()
