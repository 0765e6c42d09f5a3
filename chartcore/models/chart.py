from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ViewportRange(BaseModel):
    """
    Visible window over the Bar Store's logical index space (inclusive on both ends).
    """

    from_index: int
    to_index: int

    def span(self) -> int:
        return self.to_index - self.from_index + 1


class SeriesPoint(BaseModel):
    time: str
    value: float


class MarkerGroup(BaseModel):
    """Trade events aggregated by date key."""

    date: str
    buy_count: int = 0
    sell_count: int = 0


class MarkerAnchor(BaseModel):
    """
    One on-screen badge for one or more same-side trades on one date.

    badge:
      the number to print on the anchor; None when count == 1
    """

    date: str
    side: str
    count: int
    x: float
    y: float
    badge: Optional[int] = None


class IntradayMarker(BaseModel):
    """A trade placed on a 1-minute bucket of the drill-down chart."""

    time: str
    side: str
    price: float
    quantity: int
    exact: bool


class TooltipPayload(BaseModel):
    time: str
    left: float
    top: float
    price: Optional[float] = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[str] = None
    moving_averages: List[SeriesPoint] = []


class CandleShape(BaseModel):
    time: str
    x: float
    open_y: float
    close_y: float
    high_y: float
    low_y: float
    width: float
    color: str


class VolumeShape(BaseModel):
    time: str
    x: float
    top_y: float
    bottom_y: float
    width: float
    color: str


class Polyline(BaseModel):
    name: str
    color: str
    dashed: bool = False
    points: List[List[float]] = []


class PlaceholderBar(BaseModel):
    open: float
    high: float
    low: float
    close: float
    opacity: float


class Scene(BaseModel):
    """
    Display list for one render pass. Coordinates are pixels relative to the
    chart container's top-left corner.

    state:
      "uninitialized" | "placeholder" | "ready"
    status:
      "idle" | "loading" | "ok" | "empty" | "error"
    """

    state: str
    status: str
    width: int
    height: int
    chart_type: str
    visible_range: Optional[ViewportRange] = None
    candles: List[CandleShape] = []
    line: Optional[Polyline] = None
    volume: List[VolumeShape] = []
    moving_averages: List[Polyline] = []
    markers: List[MarkerAnchor] = []
    placeholder: List[PlaceholderBar] = []
    loading_more: bool = False
    message: Optional[str] = None


class ChartOptions(BaseModel):
    """Display options; none of them trigger a refetch."""

    chart_type: str = "candlestick"
    show_ma5: bool = True
    show_ma10: bool = True
    width: int = Field(800, gt=0)
    height: int = Field(400, gt=0)


class IntradayView(BaseModel):
    """
    Data for the 1-minute drill-down of one trading day.

    status:
      "ok" | "empty" | "error" | "stale"
    """

    date: str
    status: str
    bars: List[SeriesPoint] = []
    markers: List[IntradayMarker] = []
    message: Optional[str] = None
