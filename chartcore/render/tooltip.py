from __future__ import annotations

from typing import Dict, Optional, Tuple

from chartcore.models.chart import SeriesPoint, TooltipPayload
from chartcore.models.market import Bar

# Pointer -> tooltip gap in pixels.
TOOLTIP_GAP = 15.0
# Estimated tooltip box sizes; the real box is measured by whoever paints it.
TOOLTIP_WIDTH = 180.0
TOOLTIP_HEIGHT_CANDLE = 96.0
TOOLTIP_HEIGHT_LINE = 60.0
TOOLTIP_MA_ROW = 24.0

VOLUME_ABBREVIATE_AT = 10_000


def format_volume(volume: float) -> str:
    """1234 -> "1,234", 123456 -> "12.35万"."""
    if volume >= VOLUME_ABBREVIATE_AT:
        return f"{volume / 10_000:,.2f}万"
    return f"{volume:,.0f}"


def tooltip_size(chart_type: str, has_ma: bool) -> Tuple[float, float]:
    height = TOOLTIP_HEIGHT_LINE if chart_type == "line" else TOOLTIP_HEIGHT_CANDLE
    if has_ma:
        height += TOOLTIP_MA_ROW
    return TOOLTIP_WIDTH, height


def place_tooltip(
    x: float,
    y: float,
    box: Tuple[float, float],
    container: Tuple[float, float],
) -> Tuple[float, float]:
    """
    Below-right of the pointer; flip left/above when that would overflow the
    right/bottom edge, then clamp so the box stays inside the container.
    """
    box_w, box_h = box
    width, height = container

    left = x + TOOLTIP_GAP
    top = y + TOOLTIP_GAP
    if left + box_w > width:
        left = x - box_w - TOOLTIP_GAP
    if top + box_h > height:
        top = y - box_h - TOOLTIP_GAP

    left = max(0.0, min(left, width - box_w))
    top = max(0.0, min(top, height - box_h))
    return left, top


def compose_tooltip(
    bar: Bar,
    chart_type: str,
    ma_values: Dict[str, Optional[float]],
    pointer: Tuple[float, float],
    container: Tuple[float, float],
) -> TooltipPayload:
    """One payload for every active series at the hovered bar."""
    active_ma = [
        SeriesPoint(time=name.upper(), value=round(value, 2))
        for name, value in ma_values.items()
        if value is not None
    ]
    left, top = place_tooltip(
        pointer[0], pointer[1], tooltip_size(chart_type, bool(active_ma)), container
    )

    payload = TooltipPayload(
        time=bar.time,
        left=left,
        top=top,
        volume=format_volume(bar.volume),
        moving_averages=active_ma,
    )
    if chart_type == "line":
        payload.price = round(bar.close, 2)
    else:
        payload.open = round(bar.open, 2)
        payload.high = round(bar.high, 2)
        payload.low = round(bar.low, 2)
        payload.close = round(bar.close, 2)
    return payload
