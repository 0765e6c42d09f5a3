from __future__ import annotations

import asyncio
import csv
import logging
import os
from typing import List, Optional

from chartcore.bars.store import normalize_bars
from chartcore.config import Settings, get_settings
from chartcore.models.market import Bar
from chartcore.providers.base import BarProvider
from chartcore.providers.biying import normalize_stock_code

log = logging.getLogger("offline_provider")


def _compact(key: str) -> str:
    return key.replace("-", "").replace(" ", "").replace(":", "")


class OfflineProvider(BarProvider):
    """
    CSV-backed provider for local runs without a licence.

    Files (columns: time,open,high,low,close,volume):
      {data_dir}/{code}_{interval}.csv          history, e.g. 600000.SH_day.csv
      {data_dir}/intraday/{code}_{date}.csv     1-minute bars for one day

    A missing file means "no bars", which the chart shows as an empty state.
    """

    def __init__(self, settings: Optional[Settings] = None, data_dir: Optional[str] = None) -> None:
        settings = settings or get_settings()
        self.data_dir = data_dir or settings.offline_data_dir

    async def fetch_bars(
        self,
        instrument: str,
        interval: str,
        adjustment: str,
        limit: Optional[int] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> List[Bar]:
        code = normalize_stock_code(instrument)
        path = os.path.join(self.data_dir, f"{code}_{interval}.csv")
        bars = await asyncio.to_thread(self._read, path)

        # Same window semantics as the REST history endpoint: inclusive bounds, newest `limit`.
        if start_time:
            bars = [b for b in bars if _compact(b.time) >= start_time]
        if end_time:
            bars = [b for b in bars if _compact(b.time)[: len(end_time)] <= end_time]
        if limit:
            bars = bars[-limit:]
        return bars

    async def fetch_intraday_bars(self, instrument: str, date: str) -> List[Bar]:
        code = normalize_stock_code(instrument)
        path = os.path.join(self.data_dir, "intraday", f"{code}_{date}.csv")
        return await asyncio.to_thread(self._read, path)

    def _read(self, path: str) -> List[Bar]:
        if not os.path.exists(path):
            log.info("No offline data at %s", path)
            return []

        out: List[Bar] = []
        with open(path, "r", encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                try:
                    out.append(
                        Bar(
                            time=row["time"].strip(),
                            open=float(row["open"]),
                            high=float(row["high"]),
                            low=float(row["low"]),
                            close=float(row["close"]),
                            volume=max(0, int(float(row.get("volume") or 0))),
                        )
                    )
                except (KeyError, TypeError, ValueError):
                    log.debug("Skipping malformed row in %s: %s", path, row)
        return normalize_bars(out)
