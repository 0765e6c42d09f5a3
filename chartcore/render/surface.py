"""
Render Surface: turns the bar buffer, overlays and markers into a Scene
(display list) and answers pointer queries against the same geometry.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from chartcore.markers.projector import project
from chartcore.models.chart import (
    CandleShape,
    MarkerAnchor,
    Polyline,
    Scene,
    SeriesPoint,
    TooltipPayload,
    ViewportRange,
    VolumeShape,
)
from chartcore.models.market import Bar, CHART_TYPES, TradeEvent
from chartcore.render.placeholder import PlaceholderAnimation
from chartcore.render.scales import PriceScale, TimeScale, VolumeScale
from chartcore.render.tooltip import compose_tooltip

log = logging.getLogger("render_surface")

UNINITIALIZED = "uninitialized"
PLACEHOLDER = "placeholder"
READY = "ready"

UP_COLOR = "#ef4444"
DOWN_COLOR = "#22c55e"
LINE_COLOR = "#2563eb"
VOLUME_UP_COLOR = "rgba(239, 68, 68, 0.3)"
VOLUME_DOWN_COLOR = "rgba(34, 197, 94, 0.3)"
MA_COLORS = {"ma5": "#8b5cf6", "ma10": "#f97316"}


def volume_colors(bars: Sequence[Bar]) -> List[str]:
    """Up when close >= previous close; the first bar compares against its own open."""
    out: List[str] = []
    for i, bar in enumerate(bars):
        prev_close = bars[i - 1].close if i > 0 else bar.open
        out.append(VOLUME_UP_COLOR if bar.close >= prev_close else VOLUME_DOWN_COLOR)
    return out


class RenderSurface:
    """
    Draw state for one chart instance.

    state machine: uninitialized -> placeholder -> ready
      The placeholder plays once per mount and finishes on its own timer,
      independent of data loading.

    hover_index is the single hover source of truth: pointer_move() sets it
    and the shell resolves clicks from it.
    """

    def __init__(self, width: int, height: int, chart_type: str = "candlestick"):
        self.width = width
        self.height = height
        self.chart_type = chart_type
        self.state = UNINITIALIZED
        self.hover_index: Optional[int] = None
        self.placeholder: Optional[PlaceholderAnimation] = None
        self._placeholder_played = False

    # -------------------------
    # Lifecycle
    # -------------------------
    def begin_placeholder(self, bars: Sequence[Bar] = ()) -> float:
        """
        Enter the placeholder state. Returns how long (seconds) until
        complete_placeholder() should be called; 0 means it already completed.
        """
        if self._placeholder_played:
            self.state = READY
            return 0.0

        self.placeholder = PlaceholderAnimation(width=self.width, bars=bars)
        if self.placeholder.skip:
            self.complete_placeholder()
            return 0.0

        self.state = PLACEHOLDER
        return self.placeholder.duration_seconds

    def complete_placeholder(self) -> None:
        self.state = READY
        self._placeholder_played = True
        self.placeholder = None

    def reset(self) -> None:
        """Back to a fresh mount: the placeholder may play again."""
        self.state = UNINITIALIZED
        self.hover_index = None
        self.placeholder = None
        self._placeholder_played = False

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def set_chart_type(self, chart_type: str) -> None:
        if chart_type not in CHART_TYPES:
            raise ValueError(f"Unknown chart type '{chart_type}'. Expected one of {CHART_TYPES}")
        self.chart_type = chart_type

    # -------------------------
    # Geometry
    # -------------------------
    def layout(
        self,
        bars: Sequence[Bar],
        visible: ViewportRange,
        ma_series: Dict[str, List[SeriesPoint]],
    ) -> Tuple[TimeScale, Optional[PriceScale], VolumeScale, range]:
        time_scale = TimeScale(width=self.width, visible=visible)
        lo = max(0, visible.from_index)
        hi = min(len(bars) - 1, visible.to_index)
        indices = range(lo, hi + 1)

        values: List[float] = []
        if self.chart_type == "line":
            values.extend(bars[i].close for i in indices)
        else:
            for i in indices:
                values.append(bars[i].low)
                values.append(bars[i].high)

        if indices:
            first, last = bars[lo].time, bars[hi].time
            for points in ma_series.values():
                values.extend(p.value for p in points if first <= p.time <= last)

        price_scale = PriceScale.fit(self.height, values)
        max_volume = max((bars[i].volume for i in indices), default=0)
        volume_scale = VolumeScale(height=self.height, max_volume=max_volume)
        return time_scale, price_scale, volume_scale, indices

    # -------------------------
    # Drawing
    # -------------------------
    def draw(
        self,
        bars: Sequence[Bar],
        visible: Optional[ViewportRange],
        ma_series: Dict[str, List[SeriesPoint]],
        trade_events: Sequence[TradeEvent],
        status: str,
        loading_more: bool = False,
        message: Optional[str] = None,
        elapsed_ms: float = 0.0,
    ) -> Scene:
        scene = Scene(
            state=self.state,
            status=status,
            width=self.width,
            height=self.height,
            chart_type=self.chart_type,
            visible_range=visible,
            loading_more=loading_more and self.state == READY,
            message=message,
        )

        if self.state == PLACEHOLDER and self.placeholder is not None:
            scene.placeholder = self.placeholder.frame(elapsed_ms)
            return scene
        if self.state != READY or not bars or visible is None:
            return scene

        time_scale, price_scale, volume_scale, indices = self.layout(bars, visible, ma_series)
        if price_scale is None:
            return scene

        spacing = time_scale.bar_spacing
        body_width = max(1.0, spacing * 0.8)

        if self.chart_type == "line":
            scene.line = Polyline(
                name="price",
                color=LINE_COLOR,
                points=[[time_scale.index_to_x(i), price_scale.price_to_y(bars[i].close)] for i in indices],
            )
        else:
            scene.candles = [self._candle(bars[i], time_scale.index_to_x(i), body_width, price_scale) for i in indices]

        colors = volume_colors(bars)
        scene.volume = [
            VolumeShape(
                time=bars[i].time,
                x=time_scale.index_to_x(i),
                top_y=volume_scale.volume_to_y(bars[i].volume),
                bottom_y=float(self.height),
                width=body_width,
                color=colors[i],
            )
            for i in indices
        ]

        scene.moving_averages = self._ma_lines(bars, ma_series, time_scale, price_scale, indices)
        scene.markers = self.markers(bars, time_scale, price_scale, trade_events)
        return scene

    def markers(
        self,
        bars: Sequence[Bar],
        time_scale: TimeScale,
        price_scale: PriceScale,
        trade_events: Sequence[TradeEvent],
    ) -> List[MarkerAnchor]:
        # Pixel positions depend on the current geometry, so they are rebuilt every pass.
        return project(bars, time_scale, price_scale, trade_events)

    def _candle(self, bar: Bar, x: float, width: float, scale: PriceScale) -> CandleShape:
        return CandleShape(
            time=bar.time,
            x=x,
            open_y=scale.price_to_y(bar.open),
            close_y=scale.price_to_y(bar.close),
            high_y=scale.price_to_y(bar.high),
            low_y=scale.price_to_y(bar.low),
            width=width,
            color=UP_COLOR if bar.close >= bar.open else DOWN_COLOR,
        )

    def _ma_lines(
        self,
        bars: Sequence[Bar],
        ma_series: Dict[str, List[SeriesPoint]],
        time_scale: TimeScale,
        price_scale: PriceScale,
        indices: range,
    ) -> List[Polyline]:
        if not indices:
            return []
        first, last = bars[indices[0]].time, bars[indices[-1]].time
        index_by_time = {bars[i].time: i for i in indices}

        lines: List[Polyline] = []
        for name, points in ma_series.items():
            if not points:
                continue
            coords = [
                [time_scale.index_to_x(index_by_time[p.time]), price_scale.price_to_y(p.value)]
                for p in points
                if first <= p.time <= last and p.time in index_by_time
            ]
            lines.append(Polyline(name=name.upper(), color=MA_COLORS.get(name, LINE_COLOR), dashed=True, points=coords))
        return lines

    # -------------------------
    # Pointer
    # -------------------------
    def pointer_move(
        self,
        x: float,
        y: float,
        bars: Sequence[Bar],
        visible: Optional[ViewportRange],
        ma_series: Dict[str, List[SeriesPoint]],
    ) -> Optional[TooltipPayload]:
        """
        Update hover_index and build the tooltip. None hides the tooltip:
        pointer outside the surface, or no bar under it.
        """
        self.hover_index = None
        if self.state != READY or visible is None or not bars:
            return None
        if x < 0 or y < 0 or x > self.width or y > self.height:
            return None

        idx = TimeScale(width=self.width, visible=visible).x_to_index(x, len(bars))
        if idx is None:
            return None

        self.hover_index = idx
        bar = bars[idx]
        ma_values = {name: _value_at(points, bar.time) for name, points in ma_series.items()}
        return compose_tooltip(
            bar,
            self.chart_type,
            ma_values,
            pointer=(x, y),
            container=(float(self.width), float(self.height)),
        )

    def pointer_leave(self) -> None:
        self.hover_index = None


def _value_at(points: List[SeriesPoint], time: str) -> Optional[float]:
    # Points are ascending by time; scan from the end since hover is usually recent.
    for p in reversed(points):
        if p.time == time:
            return p.value
        if p.time < time:
            return None
    return None
