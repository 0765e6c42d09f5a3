from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from chartcore.bars.store import BarStore, normalize_bars
from chartcore.errors import EmptyResultError, FetchError, StaleResultDiscard
from chartcore.models.market import DEFAULT_LIMITS, Bar, ChartParams
from chartcore.providers.base import BarProvider

log = logging.getLogger("history_loader")

MERGED = "merged"
EXHAUSTED = "exhausted"
BUSY = "busy"


@dataclass(frozen=True)
class LoadOutcome:
    """
    Result of a backward-history load.

    status:
      - merged:    older bars were prepended
      - exhausted: bars (maybe none new) were merged, but the provider has no more history
      - busy:      skipped because another request is outstanding
    """
    status: str
    bars_added: int = 0
    fetched: int = 0


def compact_time(key: str) -> str:
    """ "2024-01-02" -> "20240102", "2024-01-02 10:30" -> "20240102103000". """
    date_part, _, time_part = key.partition(" ")
    compact = date_part.replace("-", "")
    if time_part:
        hhmmss = time_part.replace(":", "")
        compact += hhmmss.ljust(6, "0")
    return compact


class HistoryLoader:
    """
    Fetch orchestrator for one chart.

    - one in-flight flag per entry point (window / history / intraday)
    - every request is tagged with the generation it was issued under; a result
      that comes back after the params changed (or after unmount) is discarded
    """

    def __init__(self, provider: BarProvider, store: BarStore):
        self.provider = provider
        self.store = store
        self.params: Optional[ChartParams] = None
        self.generation = 0

        self.window_in_flight = False
        self.history_in_flight = False
        self.intraday_in_flight = False
        self._intraday_request: Optional[tuple] = None

    def is_loading_history(self) -> bool:
        return self.history_in_flight or self.window_in_flight

    def invalidate(self) -> None:
        """
        Make every pending result irrelevant. The transport calls are not
        aborted; their results are dropped when they resolve.
        """
        self.generation += 1
        self.window_in_flight = False
        self.history_in_flight = False
        self.intraday_in_flight = False
        self._intraday_request = None

    def limit_for(self, params: ChartParams) -> int:
        return DEFAULT_LIMITS[params.interval]

    # -------------------------
    # Full window
    # -------------------------
    async def load_window(self, params: ChartParams) -> List[Bar]:
        """
        Fetch the latest window for params and replace the store wholesale.

        Raises:
          FetchError          provider failed; the previous store is left untouched
          EmptyResultError    zero bars; the store is cleared (explicit empty state)
          StaleResultDiscard  params changed again while this request was out
        """
        self.invalidate()
        self.params = params
        gen = self.generation

        self.window_in_flight = True
        try:
            bars = await self.provider.fetch_bars(
                params.instrument,
                params.interval,
                params.adjustment,
                limit=self.limit_for(params),
            )
        except Exception as e:
            self._ensure_current(gen, params, "window")
            raise FetchError(
                "Full window load failed",
                instrument=params.instrument,
                interval=params.interval,
                cause=repr(e),
            ) from e
        finally:
            if gen == self.generation:
                self.window_in_flight = False

        self._ensure_current(gen, params, "window")

        if not bars:
            self.store.replace([], params)
            raise EmptyResultError("No bars for window", {"instrument": params.instrument, "interval": params.interval})

        self.store.replace(bars, params)
        log.info(
            "Window loaded instrument=%s interval=%s adjustment=%s bars=%d",
            params.instrument, params.interval, params.adjustment, len(self.store),
        )
        return self.store.get_bars()

    # -------------------------
    # Backward history
    # -------------------------
    async def load_older(self) -> LoadOutcome:
        """
        Fetch bars older than the earliest held bar and prepend them.

        A call while another backward (or full-window) request is outstanding is
        a no-op. Fewer bars than requested, or nothing new, means exhausted.

        Raises FetchError, EmptyResultError, StaleResultDiscard.
        """
        if self.history_in_flight or self.window_in_flight:
            return LoadOutcome(status=BUSY)
        params = self.params
        earliest = self.store.earliest_time()
        if params is None or earliest is None:
            return LoadOutcome(status=BUSY)
        if self.store.params != params:
            # Window for the current params never landed; the held bars belong to other params.
            log.debug("Store holds %s, not %s; backward load skipped", self.store.params, params)
            return LoadOutcome(status=BUSY)

        gen = self.generation
        limit = self.limit_for(params)

        self.history_in_flight = True
        try:
            fetched = await self.provider.fetch_bars(
                params.instrument,
                params.interval,
                params.adjustment,
                limit=limit,
                end_time=compact_time(earliest),
            )
        except Exception as e:
            self._ensure_current(gen, params, "history")
            raise FetchError(
                "Backward history load failed",
                instrument=params.instrument,
                before=earliest,
                cause=repr(e),
            ) from e
        finally:
            if gen == self.generation:
                self.history_in_flight = False

        self._ensure_current(gen, params, "history")

        if not fetched:
            raise EmptyResultError("No older bars", {"instrument": params.instrument, "before": earliest})

        added = self.store.prepend_older(fetched)
        exhausted = len(fetched) < limit or added == 0
        log.info(
            "Older history merged instrument=%s fetched=%d added=%d exhausted=%s",
            params.instrument, len(fetched), added, exhausted,
        )
        return LoadOutcome(status=EXHAUSTED if exhausted else MERGED, bars_added=added, fetched=len(fetched))

    # -------------------------
    # Intraday drill-down
    # -------------------------
    async def load_intraday(self, date: str) -> List[Bar]:
        """
        1-minute bars for one date. Does not touch the store.
        A newer request (other date, or params change) makes this one stale.
        """
        params = self.params
        if params is None:
            raise FetchError("No instrument selected for intraday load")

        token = (self.generation, date)
        self._intraday_request = token
        self.intraday_in_flight = True
        try:
            bars = await self.provider.fetch_intraday_bars(params.instrument, date)
        except Exception as e:
            if self._intraday_request != token:
                raise StaleResultDiscard("Intraday result superseded", {"date": date}) from e
            raise FetchError(
                "Intraday load failed",
                instrument=params.instrument,
                date=date,
                cause=repr(e),
            ) from e
        finally:
            if self._intraday_request == token:
                self.intraday_in_flight = False

        if self._intraday_request != token:
            raise StaleResultDiscard("Intraday result superseded", {"date": date})
        self._intraday_request = None

        if not bars:
            raise EmptyResultError("No intraday bars, probably not a trading day", {"date": date})
        return normalize_bars(bars)

    def _ensure_current(self, gen: int, params: ChartParams, kind: str) -> None:
        if gen != self.generation or params != self.params:
            log.debug("Discarding stale %s result for %s", kind, params)
            raise StaleResultDiscard(f"Stale {kind} result", {"instrument": params.instrument})
