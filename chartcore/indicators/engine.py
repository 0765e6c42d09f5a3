from __future__ import annotations

from typing import Dict, List, Sequence

from chartcore.models.chart import SeriesPoint
from chartcore.models.market import Bar

# Overlay name -> period. MA1/MA2 in the chart options.
MA_PERIODS: Dict[str, int] = {"ma5": 5, "ma10": 10}


# -------------------------
# SMA
# -------------------------
def sma_series(values: Sequence[float], period: int) -> List[float]:
    """Trailing simple mean; one value per index from period-1 onward."""
    if period <= 0:
        raise ValueError(f"period must be > 0, got {period}")
    if len(values) < period:
        return []

    out: List[float] = []
    window_sum = sum(values[:period])
    out.append(window_sum / period)
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        out.append(window_sum / period)
    return out


def compute_ma(bars: Sequence[Bar], period: int) -> List[SeriesPoint]:
    """
    Moving average of closes. The first period-1 bars get no point (no padding).
    """
    closes = [b.close for b in bars]
    series = sma_series(closes, period)
    offset = period - 1
    return [
        SeriesPoint(time=bars[offset + i].time, value=float(v))
        for i, v in enumerate(series)
    ]


def compute_ma_overlays(
    bars: Sequence[Bar],
    enabled: Dict[str, bool],
) -> Dict[str, List[SeriesPoint]]:
    """
    All overlays in MA_PERIODS. A disabled overlay gets an empty series so
    stale points never show up in tooltip lookups.
    """
    result: Dict[str, List[SeriesPoint]] = {}
    for name, period in MA_PERIODS.items():
        if enabled.get(name, False):
            result[name] = compute_ma(bars, period)
        else:
            result[name] = []
    return result
