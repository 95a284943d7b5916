"""Attention aggregation.

Three signals update independently of each other:

    player        playing | paused | buffering | ended
    tab           document visible AND window focused
    viewport      intersection ratio of the player container

``is_engaged`` is never stored.  It is computed from the current inputs
every time it is read, and after every input change the aggregator compares
it with the last value it announced and notifies listeners synchronously.
A listener therefore always sees the combination that caused the change,
and a timer tick that runs after an input event reads the new value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

from lessongate.core.config import SETTINGS

logger = logging.getLogger(__name__)

EngagementListener = Callable[[bool], None]

LOST_VIDEO_PAUSED = "video_paused"
LOST_TAB_INACTIVE = "tab_inactive"
LOST_OUT_OF_VIEWPORT = "out_of_viewport"


class PlayerState(StrEnum):
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    ENDED = "ended"


class AttentionAggregator:
    """Folds player, tab and viewport signals into one engagement boolean.

    A freshly mounted surface starts paused, visible, focused and fully in
    view: nothing counts until the player reports ``playing``.
    """

    def __init__(self, viewport_threshold: float | None = None) -> None:
        self._threshold = (
            SETTINGS.viewport_threshold
            if viewport_threshold is None
            else viewport_threshold
        )
        self._player_state = PlayerState.PAUSED
        self._document_visible = True
        self._window_focused = True
        self._intersection_ratio = 1.0
        self._listeners: list[EngagementListener] = []
        self._announced = False

    # -- inputs ---------------------------------------------------------------

    def on_player_state(self, state: PlayerState | str) -> None:
        self._player_state = PlayerState(state)
        self._publish()

    def on_visibility(self, visible: bool) -> None:
        self._document_visible = visible
        self._publish()

    def on_window_focus(self, focused: bool) -> None:
        self._window_focused = focused
        self._publish()

    def on_intersection(self, ratio: float) -> None:
        self._intersection_ratio = min(max(ratio, 0.0), 1.0)
        self._publish()

    # -- derived --------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self._player_state is PlayerState.PLAYING

    @property
    def is_tab_active(self) -> bool:
        return self._document_visible and self._window_focused

    @property
    def is_in_viewport(self) -> bool:
        return self._intersection_ratio >= self._threshold

    @property
    def is_engaged(self) -> bool:
        return self.is_playing and self.is_tab_active and self.is_in_viewport

    @property
    def lost_reason(self) -> str | None:
        """Why the viewer is not engaged, or None while engaged."""
        if not self.is_playing:
            return LOST_VIDEO_PAUSED
        if not self.is_tab_active:
            return LOST_TAB_INACTIVE
        if not self.is_in_viewport:
            return LOST_OUT_OF_VIEWPORT
        return None

    # -- listeners ------------------------------------------------------------

    def subscribe(self, listener: EngagementListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _publish(self) -> None:
        engaged = self.is_engaged
        if engaged == self._announced:
            return
        self._announced = engaged
        logger.debug("engagement changed to %s (%s)", engaged, self.lost_reason)
        for listener in list(self._listeners):
            listener(engaged)
