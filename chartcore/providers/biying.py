from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

import httpx

from chartcore.bars.store import normalize_bars
from chartcore.config import Settings, get_settings
from chartcore.models.market import (
    ADJUSTMENT_CODES,
    INTERVAL_CODES,
    Bar,
    effective_adjustment,
    is_minute_interval,
)
from chartcore.providers.base import BarProvider

log = logging.getLogger("biying_provider")


def normalize_stock_code(code: str) -> str:
    """
    000001 -> 000001.SZ, 600000 -> 600000.SH. Codes with a suffix are kept.
    """
    code = code.strip().upper()
    if "." in code:
        return code
    if code.startswith("6"):
        return f"{code}.SH"
    if code.startswith("0") or code.startswith("3"):
        return f"{code}.SZ"
    return code


class BiyingProvider(BarProvider):
    """
    Biying provider (REST).

    History:
      GET {base_url}/hsstock/history/{code}/{interval}/{adjust}/{licence}?st=&et=&lt=
    1-minute bars for a day:
      GET {intraday_base_url}/webhook/StockHistory/1m?ts_code=&date=
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        settings = settings or get_settings()
        if not settings.biying_licence:
            raise RuntimeError("Missing Biying licence. Set BIYING_LICENCE in your .env.")

        self.base_url = settings.biying_base_url
        self.intraday_base_url = settings.intraday_base_url
        self.licence = settings.biying_licence
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    # -------------------------
    # Public interface used by the chart
    # -------------------------
    async def fetch_bars(
        self,
        instrument: str,
        interval: str,
        adjustment: str,
        limit: Optional[int] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> List[Bar]:
        """
        Returns bars ascending by time, deduplicated.

        start_time/end_time: "YYYYMMDD" or "YYYYMMDDhhmmss"
        """
        code = normalize_stock_code(instrument)
        interval_code = INTERVAL_CODES[interval]
        adjust_code = ADJUSTMENT_CODES[effective_adjustment(interval, adjustment)]

        url = f"{self.base_url}/hsstock/history/{code}/{interval_code}/{adjust_code}/{self.licence}"
        params = {}
        if start_time:
            params["st"] = start_time
        if end_time:
            params["et"] = end_time
        if limit:
            params["lt"] = str(limit)

        log.info("Fetching history code=%s interval=%s params=%s", code, interval_code, params)
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()

        data = resp.json()
        if not isinstance(data, list):
            log.warning("Unexpected history payload type code=%s type=%s", code, type(data))
            return []

        minute_level = is_minute_interval(interval)
        out: List[Bar] = []
        for row in data:
            if not isinstance(row, dict):
                continue
            bar = self._parse_row(
                row.get("t"), row.get("o"), row.get("h"), row.get("l"), row.get("c"), row.get("v"),
                minute_level,
            )
            if bar is not None:
                out.append(bar)

        return normalize_bars(out)

    async def fetch_intraday_bars(self, instrument: str, date: str) -> List[Bar]:
        """1-minute bars for one trading day (date "YYYY-MM-DD")."""
        code = normalize_stock_code(instrument)
        url = f"{self.intraday_base_url}/webhook/StockHistory/1m"
        params = {"ts_code": code, "date": date}

        log.info("Fetching 1m bars code=%s date=%s", code, date)
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()

        data = resp.json()
        if isinstance(data, dict) and "data" in data:
            data = data["data"]
        if not isinstance(data, list):
            log.warning("Unexpected intraday payload type code=%s type=%s", code, type(data))
            return []

        out: List[Bar] = []
        for row in data:
            if not isinstance(row, dict):
                continue
            ts_raw = row.get("trade_time") or row.get("time")
            vol = row.get("vol") if row.get("vol") is not None else row.get("volume", 0)
            bar = self._parse_row(
                ts_raw, row.get("open"), row.get("high"), row.get("low"), row.get("close"), vol,
                True,
            )
            if bar is not None:
                out.append(bar)

        return normalize_bars(out)

    # -------------------------
    # Row parsing
    # -------------------------
    def _parse_row(
        self, ts_raw: Any, o: Any, h: Any, l: Any, c: Any, v: Any, minute_level: bool
    ) -> Optional[Bar]:
        # Skip partial/invalid rows (prevents float(None) crashes)
        if ts_raw is None or o is None or h is None or l is None or c is None:
            return None
        try:
            return Bar(
                time=self._time_key(ts_raw, minute_level),
                open=float(o),
                high=float(h),
                low=float(l),
                close=float(c),
                volume=max(0, int(float(v or 0))),
            )
        except (TypeError, ValueError):
            log.debug("Skipping malformed row ts=%s", ts_raw)
            return None

    def _time_key(self, ts_raw: Any, minute_level: bool) -> str:
        """
        Converts provider timestamps to the store's sortable key:
          day+ intervals   -> "YYYY-MM-DD"
          minute intervals -> "YYYY-MM-DD HH:MM"
        Handles "YYYYMMDD", "YYYY-MM-DD", "YYYY-MM-DD HH:MM:SS" and ISO strings.
        """
        s = str(ts_raw).strip()
        if len(s) == 8 and s.isdigit():
            s = f"{s[:4]}-{s[4:6]}-{s[6:]}"
        dt = datetime.fromisoformat(s.replace(" ", "T"))
        if minute_level:
            return dt.strftime("%Y-%m-%d %H:%M")
        return dt.strftime("%Y-%m-%d")
