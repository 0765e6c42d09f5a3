from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from chartcore.models.chart import PlaceholderBar
from chartcore.models.market import Bar

MIN_BAR_WIDTH = 8
MAX_BARS = 100
MIN_BARS = 30
# Below this the animation is not worth showing and completes immediately.
MIN_ANIMATED_BARS = 40

GROW_MS = 1200
COLOR_MS = 600
DISPLAY_MS = 300
FADE_MS = 400
WAVE_DELAY_MS = 12

TOTAL_MS = GROW_MS + COLOR_MS + DISPLAY_MS + FADE_MS


def bar_count(width: float, data_length: int) -> int:
    """Real data shows its last 100 bars; otherwise fill the width."""
    if data_length > 0:
        return min(MAX_BARS, data_length)
    return max(MIN_BARS, min(MAX_BARS, int(width // MIN_BAR_WIDTH)))


def ease_out_back(t: float) -> float:
    c1 = 1.70158
    c3 = c1 + 1
    return 1 + c3 * (t - 1) ** 3 + c1 * (t - 1) ** 2


def _synthetic(count: int, seed: int) -> List[Tuple[float, float, float, float]]:
    rng = random.Random(seed)
    out = []
    price = 50.0
    for _ in range(count):
        o = price
        c = min(80.0, max(20.0, o + rng.uniform(-4, 4)))
        h = min(80.0, max(o, c) + rng.uniform(0, 2))
        l = max(20.0, min(o, c) - rng.uniform(0, 2))
        out.append((o, h, l, c))
        price = c
    return out


def _from_bars(bars: Sequence[Bar]) -> List[Tuple[float, float, float, float]]:
    lo = min(b.low for b in bars)
    hi = max(b.high for b in bars)
    span = (hi - lo) or 1.0

    def scale(p: float) -> float:
        return 20.0 + (p - lo) / span * 60.0

    return [(scale(b.open), scale(b.high), scale(b.low), scale(b.close)) for b in bars]


@dataclass
class PlaceholderAnimation:
    """
    Loading animation shown once per mount before the first real paint.

    Bars are in percent-of-height units (10..90). Phases: grow, colour, display, fade.
    """
    width: float
    bars: Sequence[Bar] = ()
    seed: int = 7
    _shapes: List[Tuple[float, float, float, float]] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        count = bar_count(self.width, len(self.bars))
        if self.bars:
            self._shapes = _from_bars(list(self.bars)[-count:])
        else:
            self._shapes = _synthetic(count, self.seed)

    @property
    def skip(self) -> bool:
        return len(self._shapes) < MIN_ANIMATED_BARS

    @property
    def duration_seconds(self) -> float:
        return 0.0 if self.skip else TOTAL_MS / 1000.0

    def phase(self, elapsed_ms: float) -> str:
        if elapsed_ms < GROW_MS:
            return "grow"
        if elapsed_ms < GROW_MS + COLOR_MS:
            return "color"
        if elapsed_ms < GROW_MS + COLOR_MS + DISPLAY_MS:
            return "display"
        if elapsed_ms < TOTAL_MS:
            return "fade"
        return "done"

    def frame(self, elapsed_ms: float) -> List[PlaceholderBar]:
        phase = self.phase(elapsed_ms)
        if phase == "done":
            return []

        fade = 1.0
        if phase == "fade":
            fade = 1.0 - (elapsed_ms - (TOTAL_MS - FADE_MS)) / FADE_MS

        out: List[PlaceholderBar] = []
        for i, (o, h, l, c) in enumerate(self._shapes):
            o, h, l, c = (10.0 + (v - 20.0) / 60.0 * 80.0 for v in (o, h, l, c))
            if phase == "grow":
                progress = min(1.0, max(0.0, elapsed_ms - i * WAVE_DELAY_MS) / GROW_MS)
            else:
                progress = 1.0
            eased = ease_out_back(progress)
            base = (o + c) / 2.0
            out.append(
                PlaceholderBar(
                    open=base + (o - base) * eased,
                    high=base + (h - base) * eased,
                    low=base + (l - base) * eased,
                    close=base + (c - base) * eased,
                    opacity=max(0.0, min(1.0, eased * 0.8 * fade)),
                )
            )
        return out
