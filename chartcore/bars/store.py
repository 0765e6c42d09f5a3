from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from chartcore.models.market import Bar, ChartParams


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_bars(bars: Iterable[Bar]) -> List[Bar]:
    """
    De-duplicate by time key (first occurrence wins) and sort ascending.

    The same policy is used for raw provider windows and for backward merges.
    """
    seen: Dict[str, Bar] = {}
    for bar in bars:
        if bar.time not in seen:
            seen[bar.time] = bar
    return sorted(seen.values(), key=lambda b: b.time)


def merge_older(existing: List[Bar], fetched: List[Bar]) -> List[Bar]:
    """
    Merge a newly fetched (older) window ahead of the existing bars.

    - fetched empty -> existing returned unchanged
    - overlapping keys keep the first occurrence in fetched + existing
    - result is strictly ascending by time
    """
    if not fetched:
        return list(existing)
    return normalize_bars([*fetched, *existing])


@dataclass
class BarStore:
    """
    In-memory, time-ordered OHLCV buffer for one (instrument, interval, adjustment).

    bars          -> deduplicated bars, ascending by time
    last_updated  -> when the buffer was last replaced or extended
    """
    params: Optional[ChartParams] = None
    bars: List[Bar] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self.bars)

    def touch(self) -> None:
        self.last_updated = utcnow()

    def has_any_data(self) -> bool:
        return len(self.bars) > 0

    def get_bars(self) -> List[Bar]:
        return self.bars

    def earliest_time(self) -> Optional[str]:
        return self.bars[0].time if self.bars else None

    def latest_time(self) -> Optional[str]:
        return self.bars[-1].time if self.bars else None

    def index_of(self, time: str) -> Optional[int]:
        return self._index.get(time)

    def get(self, time: str) -> Optional[Bar]:
        idx = self._index.get(time)
        return None if idx is None else self.bars[idx]

    def replace(self, bars: Iterable[Bar], params: Optional[ChartParams] = None) -> None:
        """
        Replace the whole buffer in one shot.
        Used for full-window loads (params change) and normal refreshes.
        """
        if params is not None:
            self.params = params
        self.bars = normalize_bars(bars)
        self._reindex()
        self.touch()

    def prepend_older(self, fetched: List[Bar]) -> int:
        """Merge an older window in place. Returns how many new keys were added."""
        before = len(self.bars)
        self.bars = merge_older(self.bars, fetched)
        self._reindex()
        self.touch()
        return len(self.bars) - before

    def clear(self) -> None:
        self.bars = []
        self._index = {}
        self.last_updated = None

    def _reindex(self) -> None:
        self._index = {bar.time: i for i, bar in enumerate(self.bars)}
