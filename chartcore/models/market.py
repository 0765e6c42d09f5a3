from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

BUY = "buy"
SELL = "sell"

CHART_TYPES = ("candlestick", "line")
INTERVALS = ("minute", "5min", "15min", "30min", "60min", "day", "week", "month", "year")
ADJUSTMENTS = ("none", "forward", "backward")

MINUTE_INTERVALS = ("minute", "5min", "15min", "30min", "60min")

# Provider wire codes per chart interval ("minute" has no native feed, 5m is the finest).
INTERVAL_CODES = {
    "minute": "5",
    "5min": "5",
    "15min": "15",
    "30min": "30",
    "60min": "60",
    "day": "d",
    "week": "w",
    "month": "m",
    "year": "y",
}

ADJUSTMENT_CODES = {"none": "n", "forward": "f", "backward": "b"}

DEFAULT_LIMITS = {
    "minute": 240,
    "5min": 240,
    "15min": 200,
    "30min": 200,
    "60min": 200,
    "day": 500,
    "week": 300,
    "month": 200,
    "year": 50,
}


def is_minute_interval(interval: str) -> bool:
    return interval in MINUTE_INTERVALS


def effective_adjustment(interval: str, adjustment: str) -> str:
    """Minute-level feeds carry no adjustment data, so they are always fetched unadjusted."""
    return "none" if is_minute_interval(interval) else adjustment


@dataclass(frozen=True)
class Bar:
    """
    Bar = one OHLCV sample for a fixed time bucket.

    time: "YYYY-MM-DD" for day+ intervals, "YYYY-MM-DD HH:MM" for minute intervals.
          Both forms sort lexicographically, which is what the store relies on.
    """
    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class ChartParams:
    """The (instrument, interval, adjustment) triple a Bar Store belongs to."""
    instrument: str
    interval: str = "day"
    adjustment: str = "forward"

    def __post_init__(self) -> None:
        if self.interval not in INTERVALS:
            raise ValueError(f"Unknown interval '{self.interval}'. Expected one of {INTERVALS}")
        if self.adjustment not in ADJUSTMENTS:
            raise ValueError(f"Unknown adjustment '{self.adjustment}'. Expected one of {ADJUSTMENTS}")


@dataclass(frozen=True)
class TradeEvent:
    """
    A single executed trade from the operations ledger.

    date: calendar key ("YYYY-MM-DD") used by the daily overlay
    side: "buy" or "sell"
    full_timestamp: original timestamp (with time of day), used by the intraday overlay
    """
    date: str
    side: str
    price: float
    quantity: int
    amount: float
    full_timestamp: Optional[str] = None

    @property
    def is_buy(self) -> bool:
        return self.side == BUY

    @classmethod
    def from_operation(cls, row: Dict[str, Any]) -> "TradeEvent":
        """Build an event from an operations-ledger row (OperationDate/OperationType/Price/...)."""
        raw_date = str(row["OperationDate"])
        return cls(
            date=to_date_key(raw_date),
            side=parse_side(str(row["OperationType"])),
            price=float(row["Price"]),
            quantity=int(float(row["Quantity"])),
            amount=float(row["Amount"]),
            full_timestamp=raw_date,
        )


def parse_side(operation_type: str) -> str:
    text = operation_type.strip().lower()
    if "买" in text or "buy" in text:
        return BUY
    if "卖" in text or "sell" in text:
        return SELL
    raise ValueError(f"Cannot infer trade side from operation type '{operation_type}'")


def to_date_key(raw: str) -> str:
    """Normalise a ledger/provider date to "YYYY-MM-DD"; unparseable input is returned as-is."""
    s = raw.strip()
    if len(s) == 8 and s.isdigit():
        return f"{s[:4]}-{s[4:6]}-{s[6:]}"
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).strftime("%Y-%m-%d")
    except ValueError:
        return s
