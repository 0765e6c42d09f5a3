from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from chartcore.models.chart import ViewportRange

log = logging.getLogger("viewport")

# Scrolling closer than this many bars to the left edge asks for older history.
NEAR_LEFT_EDGE = 20
# Bars shown after a fresh dataset arrives.
DEFAULT_VISIBLE_BARS = 100
# One edge-dwell fires at most one request inside this window.
LOAD_COOLDOWN_SECONDS = 1.0


def last_bars_range(bar_count: int, visible_bars: int = DEFAULT_VISIBLE_BARS) -> Optional[ViewportRange]:
    """Range covering the most recent `visible_bars` bars (or all of them)."""
    if bar_count <= 0:
        return None
    shown = min(visible_bars, bar_count)
    return ViewportRange(from_index=bar_count - shown, to_index=bar_count - 1)


class ViewportController:
    """
    Owns the visible logical range and decides when older history is needed.

    Triggers:
    - on_range_changed():     user scroll/zoom
    - on_history_merged():    older bars were prepended
    - on_dataset_replaced():  full window load or normal refresh
    """

    def __init__(
        self,
        on_load_more_requested: Callable[[], None],
        is_loading: Callable[[], bool],
        clock: Callable[[], float] = time.monotonic,
        threshold: int = NEAR_LEFT_EDGE,
        cooldown_seconds: float = LOAD_COOLDOWN_SECONDS,
    ):
        self._on_load_more_requested = on_load_more_requested
        self._is_loading = is_loading
        self._clock = clock
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds

        self.visible: Optional[ViewportRange] = None
        self.exhausted = False
        self._guard_until = 0.0

    def on_range_changed(self, new_range: ViewportRange) -> bool:
        """
        Record a user-driven range. Returns True when a backward load was requested.
        """
        self.visible = new_range

        if new_range.from_index >= self.threshold:
            return False
        if self.exhausted or self._is_loading():
            return False

        now = self._clock()
        if now < self._guard_until:
            return False

        self._guard_until = now + self.cooldown_seconds
        log.info("Near left edge from=%d, requesting older history", new_range.from_index)
        self._on_load_more_requested()
        return True

    def snapshot(self) -> Optional[ViewportRange]:
        """Range to hand back to on_history_merged() after the merge."""
        return self.visible

    def on_history_merged(self, previous: Optional[ViewportRange], bar_count: int) -> Optional[ViewportRange]:
        """
        Keep the range the user was looking at, untouched by the prepend.
        Falls back to the default window when nothing was recorded yet.
        """
        if previous is not None:
            self.visible = previous
        elif self.visible is None:
            self.visible = last_bars_range(bar_count)
        return self.visible

    def on_dataset_replaced(self, bar_count: int) -> Optional[ViewportRange]:
        self.visible = last_bars_range(bar_count)
        self.exhausted = False
        self._guard_until = 0.0
        return self.visible

    def mark_exhausted(self) -> None:
        if not self.exhausted:
            log.info("History exhausted, backward loads disabled until the dataset is replaced")
        self.exhausted = True

    def reset(self) -> None:
        self.visible = None
        self.exhausted = False
        self._guard_until = 0.0
