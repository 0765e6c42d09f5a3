"""Trade-event markers for the daily chart and the intraday drill-down."""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from chartcore.models.chart import IntradayMarker, MarkerAnchor, MarkerGroup
from chartcore.models.market import Bar, TradeEvent
from chartcore.render.scales import PriceScale, TimeScale

log = logging.getLogger("marker_projector")

# Vertical gap between a bar's wick end and its anchor, in pixels.
ANCHOR_OFFSET_PX = 25.0

# Ledger timestamps that carry an offset are shown in exchange local time.
EXCHANGE_TZ = ZoneInfo("Asia/Shanghai")


def group_trade_events(events: Sequence[TradeEvent]) -> Dict[str, List[TradeEvent]]:
    """Events by date key, in first-seen date order."""
    groups: Dict[str, List[TradeEvent]] = OrderedDict()
    for ev in events:
        groups.setdefault(ev.date, []).append(ev)
    return groups


def summarize(events: Sequence[TradeEvent]) -> List[MarkerGroup]:
    out: List[MarkerGroup] = []
    for date, trades in group_trade_events(events).items():
        buys = sum(1 for t in trades if t.is_buy)
        out.append(MarkerGroup(date=date, buy_count=buys, sell_count=len(trades) - buys))
    return out


def project(
    bars: Sequence[Bar],
    time_scale: TimeScale,
    price_scale: PriceScale,
    trade_events: Sequence[TradeEvent],
) -> List[MarkerAnchor]:
    """
    Place buy/sell anchors for every date that has an exactly matching bar.

    - buy anchor:  below the bar's low
    - sell anchor: above the bar's high
    - dates without a bar, or whose bar is scrolled out of view, are skipped
    """
    index_by_time = {b.time: i for i, b in enumerate(bars)}
    anchors: List[MarkerAnchor] = []

    for group in summarize(trade_events):
        idx = index_by_time.get(group.date)
        if idx is None:
            log.debug("No bar for trade date=%s, marker dropped", group.date)
            continue
        if not time_scale.is_visible(idx):
            continue

        bar = bars[idx]
        x = time_scale.index_to_x(idx)

        if group.buy_count > 0:
            anchors.append(
                _anchor(group.date, "buy", group.buy_count, x, price_scale.price_to_y(bar.low) + ANCHOR_OFFSET_PX)
            )
        if group.sell_count > 0:
            anchors.append(
                _anchor(group.date, "sell", group.sell_count, x, price_scale.price_to_y(bar.high) - ANCHOR_OFFSET_PX)
            )

    return anchors


def _anchor(date: str, side: str, count: int, x: float, y: float) -> MarkerAnchor:
    return MarkerAnchor(
        date=date,
        side=side,
        count=count,
        x=x,
        y=y,
        badge=count if count > 1 else None,
    )


def hit_test(
    index: Optional[int],
    bars: Sequence[Bar],
    trade_events: Sequence[TradeEvent],
) -> Optional[Tuple[str, List[TradeEvent]]]:
    """
    Resolve a click (already snapped to the nearest bar index) to its date key
    and the trades on that date. None when there is nothing to open.
    """
    if index is None or not (0 <= index < len(bars)):
        return None
    date_key = bars[index].time
    matching = [ev for ev in trade_events if ev.date == date_key]
    if not matching:
        return None
    return date_key, matching


# -------------------------
# Intraday (1-minute) overlay
# -------------------------
def time_of_day(ev: TradeEvent) -> Optional[str]:
    """
    "HH:MM" of the trade, or None when the event has no usable timestamp.
    Aware timestamps are converted to exchange time first.
    """
    if not ev.full_timestamp:
        return None
    raw = ev.full_timestamp.strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(EXCHANGE_TZ)
    elif len(raw) <= 10:
        # Date-only ledger rows carry no time of day.
        return None
    return dt.strftime("%H:%M")


def minute_bucket(bar_time: str) -> str:
    """ "YYYY-MM-DD HH:MM[:SS]" or "HH:MM[:SS]" -> "HH:MM". """
    part = bar_time.split(" ")[-1]
    hour, minute = part.split(":")[:2]
    return f"{int(hour):02d}:{int(minute):02d}"


def _to_minutes(hhmm: str) -> int:
    h, m = hhmm.split(":")
    return int(h) * 60 + int(m)


def project_intraday(
    minute_bars: Sequence[Bar],
    trade_events: Sequence[TradeEvent],
    nearest_fallback: bool = True,
) -> List[IntradayMarker]:
    """
    Place trades on the 1-minute chart.

    Exact HH:MM bucket first; when missing and nearest_fallback is on, the
    bucket with the smallest absolute minute difference is used instead.
    """
    if not minute_bars:
        return []

    buckets = [minute_bucket(b.time) for b in minute_bars]
    bucket_set = set(buckets)
    out: List[IntradayMarker] = []

    for ev in trade_events:
        target = time_of_day(ev)
        if target is None:
            log.debug("Trade on date=%s has no time of day, skipped", ev.date)
            continue

        if target in bucket_set:
            out.append(_intraday(ev, target, exact=True))
            continue

        if not nearest_fallback:
            continue

        target_min = _to_minutes(target)
        nearest = min(buckets, key=lambda b: abs(_to_minutes(b) - target_min))
        out.append(_intraday(ev, nearest, exact=False))

    return out


def _intraday(ev: TradeEvent, bucket: str, exact: bool) -> IntradayMarker:
    return IntradayMarker(
        time=bucket,
        side=ev.side,
        price=ev.price,
        quantity=ev.quantity,
        exact=exact,
    )
