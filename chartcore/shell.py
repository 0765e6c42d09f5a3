from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from chartcore.bars.store import BarStore
from chartcore.errors import EmptyResultError, FetchError, StaleResultDiscard
from chartcore.history.loader import EXHAUSTED, HistoryLoader, LoadOutcome
from chartcore.indicators.engine import compute_ma_overlays
from chartcore.markers.projector import hit_test, project_intraday
from chartcore.models.chart import (
    ChartOptions,
    IntradayView,
    Scene,
    SeriesPoint,
    TooltipPayload,
    ViewportRange,
)
from chartcore.models.market import ChartParams, TradeEvent
from chartcore.providers.base import BarProvider
from chartcore.render.surface import PLACEHOLDER, RenderSurface
from chartcore.viewport.controller import ViewportController

log = logging.getLogger("chart_shell")

IDLE = "idle"
LOADING = "loading"
OK = "ok"
EMPTY = "empty"
ERROR = "error"

MarkerCallback = Callable[[str, List[TradeEvent]], None]


class ChartShell:
    """
    One chart instance: Bar Store + History Loader + Viewport Controller +
    Render Surface, behind a small event-handler API.

    Host callbacks:
      on_load_more_requested()                 older history is being fetched
      on_marker_activated(date_key, events)    a marker (or its bar) was clicked

    Load errors never propagate out of this class; they become `status`.
    """

    def __init__(
        self,
        provider: BarProvider,
        params: ChartParams,
        options: Optional[ChartOptions] = None,
        on_load_more_requested: Optional[Callable[[], None]] = None,
        on_marker_activated: Optional[MarkerCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        options = options or ChartOptions()
        self.params = params
        self.on_load_more_requested = on_load_more_requested
        self.on_marker_activated = on_marker_activated
        self._clock = clock

        self.store = BarStore(params=params)
        self.loader = HistoryLoader(provider, self.store)
        self.viewport = ViewportController(
            on_load_more_requested=self._request_older,
            is_loading=self.loader.is_loading_history,
            clock=clock,
        )
        self.surface = RenderSurface(options.width, options.height, options.chart_type)

        self.trade_events: List[TradeEvent] = []
        self.ma_enabled: Dict[str, bool] = {"ma5": options.show_ma5, "ma10": options.show_ma10}
        self.ma_series: Dict[str, List[SeriesPoint]] = {"ma5": [], "ma10": []}

        self.status = IDLE
        self.message: Optional[str] = None
        self.mounted = False

        self._teardown: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._placeholder_started = 0.0

    # -------------------------
    # Lifecycle
    # -------------------------
    async def mount(self) -> None:
        """Acquire resources, start the placeholder, load the first window."""
        if self.mounted:
            return
        self.mounted = True
        self._teardown = self._acquire()
        await self.reload()

    def unmount(self) -> None:
        self._release()
        self.mounted = False
        self.store.clear()
        self.viewport.reset()
        self.surface.reset()
        self.ma_series = {name: [] for name in self.ma_series}
        self.status = IDLE
        self.message = None

    async def set_params(self, params: ChartParams) -> None:
        """Instrument/interval/adjustment change: drop pending work and reload wholesale."""
        if params == self.params:
            return
        log.info("Params changed %s -> %s", self.params, params)
        self.params = params
        if self.mounted:
            self._release()
            self._teardown = self._acquire()
        await self.reload()

    def _acquire(self) -> Callable[[], None]:
        """
        Register timers for this mount/params pair and return the single
        teardown that undoes all of them.
        """
        loop = asyncio.get_running_loop()
        timers: List[asyncio.TimerHandle] = []

        self._placeholder_started = self._clock()
        delay = self.surface.begin_placeholder(self.store.get_bars())
        if delay > 0:
            timers.append(loop.call_later(delay, self._on_placeholder_done))

        def teardown() -> None:
            for handle in timers:
                handle.cancel()
            timers.clear()
            # Pending fetches are left to resolve and get discarded as stale.
            self.loader.invalidate()

        return teardown

    def _release(self) -> None:
        if self._teardown is not None:
            self._teardown()
            self._teardown = None
        if self.surface.state == PLACEHOLDER:
            self.surface.complete_placeholder()

    def _on_placeholder_done(self) -> None:
        self.surface.complete_placeholder()

    # -------------------------
    # Loading
    # -------------------------
    async def reload(self) -> None:
        """Full-window load for the current params; replaces the dataset."""
        params = self.params
        self.status = LOADING
        self.message = None
        try:
            await self.loader.load_window(params)
        except StaleResultDiscard:
            return
        except EmptyResultError:
            self.status = EMPTY
            self.message = "No data"
            self.viewport.on_dataset_replaced(0)
            self._recompute_overlays()
            return
        except FetchError as e:
            log.error("Window load failed params=%s error=%s", params, e)
            self.status = ERROR
            self.message = str(e)
            return

        # Same synchronous step as the replace: no paint sees the old range.
        self.viewport.on_dataset_replaced(len(self.store))
        self._recompute_overlays()
        self.status = OK

    async def refresh(self) -> None:
        """Normal (polling) data refresh. Resets the view to the latest bars."""
        if not self.mounted:
            return
        await self.reload()

    async def load_older(self) -> Optional[LoadOutcome]:
        try:
            outcome = await self.loader.load_older()
        except StaleResultDiscard:
            return None
        except EmptyResultError:
            self.viewport.mark_exhausted()
            return None
        except FetchError as e:
            log.error("Backward load failed params=%s error=%s", self.params, e)
            self.message = str(e)
            return None

        if outcome.bars_added or outcome.fetched:
            # Keep the range the user was looking at; merge and restore happen
            # with no await in between.
            self.viewport.on_history_merged(self.viewport.snapshot(), len(self.store))
            self._recompute_overlays()
        if outcome.status == EXHAUSTED:
            self.viewport.mark_exhausted()
        return outcome

    def _request_older(self) -> None:
        self._spawn(self.load_older())
        if self.on_load_more_requested is not None:
            self.on_load_more_requested()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for spawned background loads (used by tests and the API)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------------------------
    # Inputs
    # -------------------------
    def handle_visible_range_change(self, new_range: ViewportRange) -> bool:
        if self.status != OK:
            # Nothing on screen to extend; just remember where the user is.
            self.viewport.visible = new_range
            return False
        return self.viewport.on_range_changed(new_range)

    def handle_pointer_move(self, x: float, y: float) -> Optional[TooltipPayload]:
        return self.surface.pointer_move(x, y, self._drawable_bars(), self.viewport.visible, self.ma_series)

    def handle_pointer_leave(self) -> None:
        self.surface.pointer_leave()

    def handle_click(self, x: float, y: float) -> Optional[Tuple[str, List[TradeEvent]]]:
        # Click reads the same hover_index the tooltip was built from.
        self.handle_pointer_move(x, y)
        hit = hit_test(self.surface.hover_index, self._drawable_bars(), self.trade_events)
        if hit is not None and self.on_marker_activated is not None:
            self.on_marker_activated(*hit)
        return hit

    def activate_marker(self, date_key: str) -> List[TradeEvent]:
        """Direct click on an anchor badge."""
        matching = [ev for ev in self.trade_events if ev.date == date_key]
        if matching and self.on_marker_activated is not None:
            self.on_marker_activated(date_key, matching)
        return matching

    def resize(self, width: int, height: int) -> None:
        self.surface.resize(width, height)

    def set_trade_events(self, events: Sequence[TradeEvent]) -> None:
        self.trade_events = list(events)

    def set_ma_enabled(self, name: str, enabled: bool) -> None:
        if name not in self.ma_enabled:
            raise ValueError(f"Unknown moving average '{name}'")
        self.ma_enabled[name] = enabled
        self._recompute_overlays()

    def set_chart_type(self, chart_type: str) -> None:
        self.surface.set_chart_type(chart_type)

    def apply_options(self, options: ChartOptions) -> None:
        self.set_chart_type(options.chart_type)
        self.resize(options.width, options.height)
        self.ma_enabled = {"ma5": options.show_ma5, "ma10": options.show_ma10}
        self._recompute_overlays()

    # -------------------------
    # Output
    # -------------------------
    def render(self) -> Scene:
        elapsed_ms = (self._clock() - self._placeholder_started) * 1000.0
        return self.surface.draw(
            self._drawable_bars(),
            self.viewport.visible,
            self.ma_series,
            self.trade_events,
            status=self.status,
            loading_more=self.loader.history_in_flight,
            message=self.message,
            elapsed_ms=elapsed_ms,
        )

    async def load_intraday(self, date: str, nearest_fallback: bool = True) -> IntradayView:
        """1-minute drill-down data for `date`, with that day's trades placed on it."""
        events = [ev for ev in self.trade_events if ev.date == date]
        try:
            bars = await self.loader.load_intraday(date)
        except StaleResultDiscard:
            return IntradayView(date=date, status="stale")
        except EmptyResultError:
            return IntradayView(date=date, status=EMPTY, message="No intraday data, probably not a trading day")
        except FetchError as e:
            log.error("Intraday load failed date=%s error=%s", date, e)
            return IntradayView(date=date, status=ERROR, message=str(e))

        return IntradayView(
            date=date,
            status=OK,
            bars=[SeriesPoint(time=b.time, value=b.close) for b in bars],
            markers=project_intraday(bars, events, nearest_fallback=nearest_fallback),
        )

    def _drawable_bars(self):
        # Error/empty states show no data at all, not the previous dataset.
        if self.status not in (OK, LOADING) or self.store.params != self.params:
            return []
        return self.store.get_bars()

    def _recompute_overlays(self) -> None:
        self.ma_series = compute_ma_overlays(self.store.get_bars(), self.ma_enabled)
