"""Bounded retry policies.

Two situations need a retry, and both get exactly one:

  1. Login race: immediately after authentication the profile/role rows
     may not be readable yet.  One retry after a fixed delay covers it;
     a second failure is reported as unavailable and the caller fails
     closed.

  2. Access-defining writes (confirming a mandatory center group):
     retry the write once, then read it back.  The write includes its
     commit, so the read-back sees durable state.  Success is only
     reported after the read-back agrees.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from lessongate.core.config import SETTINGS
from lessongate.core.errors import PersistenceWriteError, TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries: int = 1
    delay_seconds: float = 0.5

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (TransientFetchError,),
        label: str = "operation",
    ) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except retry_on as exc:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s failed (%s), retrying %d/%d in %.2fs",
                    label,
                    exc,
                    attempt,
                    self.max_retries,
                    self.delay_seconds,
                )
                if self.delay_seconds > 0:
                    await asyncio.sleep(self.delay_seconds)


LOGIN_RACE_RETRY = RetryPolicy(
    max_retries=1, delay_seconds=SETTINGS.fetch_retry_delay_ms / 1000
)
WRITE_RETRY = RetryPolicy(max_retries=1, delay_seconds=0.0)


async def verified_write(
    write: Callable[[], Awaitable[None]],
    verify: Callable[[], Awaitable[bool]],
    *,
    policy: RetryPolicy = WRITE_RETRY,
    label: str = "write",
) -> None:
    """Perform a write that gates access, then prove it landed.

    ``write`` must leave the change durable (committed) before returning;
    ``verify`` reads it back afterwards.

    Raises PersistenceWriteError when the write fails twice or the
    read-back does not confirm it.  Any other exception from ``write`` is
    treated as a write failure too: the caller must never see a partial
    success.
    """

    async def _attempt() -> None:
        try:
            await write()
        except PersistenceWriteError:
            raise
        except Exception as exc:
            raise PersistenceWriteError(f"{label} failed: {exc}") from exc

    await policy.run(_attempt, retry_on=(PersistenceWriteError,), label=label)

    try:
        confirmed = await verify()
    except Exception as exc:
        raise PersistenceWriteError(f"{label} could not be verified: {exc}") from exc
    if not confirmed:
        raise PersistenceWriteError(f"{label} was not visible on read-back")
