"""Anti-abuse preview countdown for visitors and non-enrolled viewers.

    IDLE --engaged--> RUNNING --not engaged--> PAUSED --engaged--> RUNNING
                         |
                   remaining == 0
                         v
                      LOCKED   (terminal for the life of the mount)

The timer only counts down while RUNNING.  It is driven by a one-second
tick from the owner; engagement transitions come from the attention
aggregator.  Reaching zero locks it and emits the final preview duration
exactly once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from lessongate.core.config import SETTINGS
from lessongate.core.metrics import PREVIEW_LOCKS

logger = logging.getLogger(__name__)


class PreviewPhase(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    LOCKED = "locked"


@dataclass(frozen=True, slots=True)
class PreviewTimerState:
    remaining_seconds: int
    is_running: bool
    is_locked: bool


class PreviewTimer:
    def __init__(
        self,
        budget_seconds: int | None = None,
        on_locked: Callable[[int], None] | None = None,
    ) -> None:
        self._budget = (
            SETTINGS.preview_budget_seconds if budget_seconds is None else budget_seconds
        )
        if self._budget <= 0:
            raise ValueError("preview budget must be positive")
        self._remaining = self._budget
        self._phase = PreviewPhase.IDLE
        self._on_locked = on_locked
        self._cancelled = False

    @property
    def phase(self) -> PreviewPhase:
        return self._phase

    @property
    def budget_seconds(self) -> int:
        return self._budget

    @property
    def state(self) -> PreviewTimerState:
        return PreviewTimerState(
            remaining_seconds=self._remaining,
            is_running=self._phase is PreviewPhase.RUNNING,
            is_locked=self._phase is PreviewPhase.LOCKED,
        )

    @property
    def force_pause_required(self) -> bool:
        """Playback must be stopped by the owner while this is True."""
        return self._phase is PreviewPhase.LOCKED

    def on_engagement_change(self, engaged: bool) -> None:
        if self._cancelled or self._phase is PreviewPhase.LOCKED:
            return
        if engaged and self._phase in (PreviewPhase.IDLE, PreviewPhase.PAUSED):
            self._phase = PreviewPhase.RUNNING
        elif not engaged and self._phase is PreviewPhase.RUNNING:
            self._phase = PreviewPhase.PAUSED

    def tick(self, seconds: int = 1) -> PreviewTimerState:
        if seconds < 0:
            raise ValueError("tick must not be negative")
        if not self._cancelled and self._phase is PreviewPhase.RUNNING:
            self._remaining = max(0, self._remaining - seconds)
            if self._remaining == 0:
                self._lock()
        return self.state

    def cancel(self) -> None:
        """Stop reacting to ticks and engagement.  Called on unmount."""
        self._cancelled = True

    def _lock(self) -> None:
        self._phase = PreviewPhase.LOCKED
        final_duration = max(0, self._budget - self._remaining)
        PREVIEW_LOCKS.inc()
        logger.info("preview locked after %ss", final_duration)
        if self._on_locked is not None:
            self._on_locked(final_duration)
