from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from chartcore.models.chart import ViewportRange

# Vertical layout, as fractions of the surface height.
PRICE_MARGIN_TOP = 0.08
PRICE_MARGIN_BOTTOM = 0.28
VOLUME_PANE_TOP = 0.72


@dataclass
class TimeScale:
    """
    Maps logical bar indices onto x pixels for the current visible range.

    Each visible bar gets an equal slot of bar_spacing pixels; x is the slot centre.
    """
    width: float
    visible: ViewportRange

    @property
    def bar_spacing(self) -> float:
        span = max(1, self.visible.span())
        return self.width / span

    def index_to_x(self, index: int) -> float:
        return (index - self.visible.from_index + 0.5) * self.bar_spacing

    def x_to_index(self, x: float, bar_count: int) -> Optional[int]:
        """Nearest bar index under x. None when no bar of the store sits there."""
        if self.bar_spacing <= 0:
            return None
        idx = int(round(self.visible.from_index + x / self.bar_spacing - 0.5))
        if idx < 0 or idx >= bar_count:
            return None
        return idx

    def is_visible(self, index: int) -> bool:
        return self.visible.from_index <= index <= self.visible.to_index


@dataclass
class PriceScale:
    """
    Linear price -> y mapping over [low, high], inset by the top/bottom margins.
    A flat range is widened by 1% around the price so it still has a height.
    """
    height: float
    low: float
    high: float
    margin_top: float = PRICE_MARGIN_TOP
    margin_bottom: float = PRICE_MARGIN_BOTTOM

    def __post_init__(self) -> None:
        if self.high <= self.low:
            pad = abs(self.high) * 0.01 or 1.0
            self.low -= pad
            self.high += pad

    @classmethod
    def fit(cls, height: float, values: Iterable[float]) -> Optional["PriceScale"]:
        vals = list(values)
        if not vals:
            return None
        return cls(height=height, low=min(vals), high=max(vals))

    def price_to_y(self, price: float) -> float:
        top = self.height * self.margin_top
        usable = self.height * (1.0 - self.margin_top - self.margin_bottom)
        return top + (self.high - price) / (self.high - self.low) * usable


@dataclass
class VolumeScale:
    """Volume pane pinned to the bottom of the surface; 0 sits on the bottom edge."""
    height: float
    max_volume: float
    pane_top: float = VOLUME_PANE_TOP

    def volume_to_y(self, volume: float) -> float:
        bottom = self.height
        if self.max_volume <= 0:
            return bottom
        pane = self.height * (1.0 - self.pane_top)
        return bottom - (volume / self.max_volume) * pane
