from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Dict, List, Optional

from chartcore.history.loader import compact_time
from chartcore.models.market import Bar
from chartcore.providers.base import BarProvider


def make_bars(count: int, start: date = date(2020, 1, 1), closes: Optional[List[float]] = None) -> List[Bar]:
    """Consecutive daily bars; close defaults to 10 + i."""
    out: List[Bar] = []
    for i in range(count):
        close = closes[i] if closes is not None else 10.0 + i
        out.append(
            Bar(
                time=(start + timedelta(days=i)).isoformat(),
                open=close - 0.5,
                high=close + 1.0,
                low=close - 1.0,
                close=close,
                volume=1000 + i,
            )
        )
    return out


class FakeProvider(BarProvider):
    """
    In-memory provider.

    - end_time is inclusive, like the real history endpoint
    - set `gate` to an asyncio.Event to hold every fetch until it is set
    - set `error` to make fetches raise
    """

    def __init__(self, bars: Optional[Dict[str, List[Bar]]] = None, intraday: Optional[Dict[str, List[Bar]]] = None):
        self.bars = bars or {}
        self.intraday = intraday or {}
        self.calls: List[dict] = []
        self.intraday_calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None
        self.closed = False

    async def fetch_bars(self, instrument, interval, adjustment, limit=None, start_time=None, end_time=None):
        self.calls.append(
            {"instrument": instrument, "interval": interval, "limit": limit, "end_time": end_time}
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

        bars = list(self.bars.get(instrument, []))
        if end_time:
            bars = [b for b in bars if compact_time(b.time) <= end_time]
        if limit:
            bars = bars[-limit:]
        return bars

    async def fetch_intraday_bars(self, instrument, date):
        self.intraday_calls.append((instrument, date))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.intraday.get(date, []))

    async def close(self):
        self.closed = True
