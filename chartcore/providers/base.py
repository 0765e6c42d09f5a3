from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from chartcore.models.market import Bar


class BarProvider(ABC):
    """
    Provider contract (interface).

    Any provider must implement:
    - fetch_bars(): OHLCV history for one instrument/interval/adjustment via REST
    - fetch_intraday_bars(): 1-minute bars for one trading day (drill-down)

    Both raise on transport/HTTP failure; the History Loader turns that into FetchError.
    """

    @abstractmethod
    async def fetch_bars(
        self,
        instrument: str,
        interval: str,
        adjustment: str,
        limit: Optional[int] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> List[Bar]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_intraday_bars(self, instrument: str, date: str) -> List[Bar]:
        raise NotImplementedError

    async def close(self) -> None:
        return None
