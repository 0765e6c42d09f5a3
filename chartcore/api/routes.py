from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from chartcore.config import get_settings
from chartcore.models.chart import ChartOptions, IntradayView, Scene, TooltipPayload, ViewportRange
from chartcore.models.market import ChartParams, TradeEvent
from chartcore.providers.base import BarProvider
from chartcore.providers.loader import get_provider
from chartcore.shell import ChartShell
from chartcore.state import registry

log = logging.getLogger("chart_api")

router = APIRouter()


class ParamsIn(BaseModel):
    instrument: str
    interval: str = "day"
    adjustment: str = "forward"

    def to_params(self) -> ChartParams:
        try:
            return ChartParams(self.instrument.upper(), self.interval, self.adjustment)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))


class TradeEventIn(BaseModel):
    date: str
    side: str
    price: float
    quantity: int
    amount: float
    full_timestamp: Optional[str] = None

    def to_event(self) -> TradeEvent:
        if self.side not in ("buy", "sell"):
            raise HTTPException(status_code=422, detail=f"side must be buy or sell, got '{self.side}'")
        return TradeEvent(
            date=self.date,
            side=self.side,
            price=self.price,
            quantity=self.quantity,
            amount=self.amount,
            full_timestamp=self.full_timestamp,
        )


class CreateChartIn(ParamsIn):
    options: Optional[ChartOptions] = None
    trade_events: List[TradeEventIn] = []


class PointIn(BaseModel):
    x: float
    y: float


class CreatedOut(BaseModel):
    id: str
    scene: Scene


class RangeOut(BaseModel):
    load_requested: bool
    scene: Scene


class ActivationOut(BaseModel):
    date: Optional[str] = None
    events: List[TradeEventIn] = []


@lru_cache(maxsize=1)
def _shared_provider() -> BarProvider:
    return get_provider()


def provider_dependency() -> BarProvider:
    """Overridden in tests with an in-memory provider."""
    return _shared_provider()


async def close_provider() -> None:
    """Close the shared provider if one was ever built."""
    if _shared_provider.cache_info().currsize:
        await _shared_provider().close()
        _shared_provider.cache_clear()


def _chart(chart_id: str) -> ChartShell:
    shell = registry.get(chart_id)
    if shell is None:
        raise HTTPException(status_code=404, detail=f"Unknown chart '{chart_id}'")
    return shell


def _events_out(events: List[TradeEvent]) -> List[TradeEventIn]:
    return [
        TradeEventIn(
            date=ev.date,
            side=ev.side,
            price=ev.price,
            quantity=ev.quantity,
            amount=ev.amount,
            full_timestamp=ev.full_timestamp,
        )
        for ev in events
    ]


@router.post("/charts", response_model=CreatedOut)
async def create_chart(body: CreateChartIn, provider: BarProvider = Depends(provider_dependency)):
    """
    Mount a chart and load its first window.
    Load failures show up in scene.status, not as HTTP errors.
    """
    params = body.to_params()
    options = body.options or ChartOptions(height=get_settings().chart_height)
    shell = ChartShell(
        provider,
        params,
        options=options,
        on_load_more_requested=lambda: log.info("Older history requested for %s", params.instrument),
    )
    shell.set_trade_events([ev.to_event() for ev in body.trade_events])
    await shell.mount()
    chart_id = registry.add(shell)
    return CreatedOut(id=chart_id, scene=shell.render())


@router.get("/charts/{chart_id}/scene", response_model=Scene)
async def get_scene(chart_id: str):
    return _chart(chart_id).render()


@router.put("/charts/{chart_id}/params", response_model=Scene)
async def put_params(chart_id: str, body: ParamsIn):
    shell = _chart(chart_id)
    await shell.set_params(body.to_params())
    return shell.render()


@router.put("/charts/{chart_id}/options", response_model=Scene)
async def put_options(chart_id: str, body: ChartOptions):
    shell = _chart(chart_id)
    try:
        shell.apply_options(body)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return shell.render()


@router.put("/charts/{chart_id}/trade-events", response_model=Scene)
async def put_trade_events(chart_id: str, body: List[TradeEventIn]):
    shell = _chart(chart_id)
    shell.set_trade_events([ev.to_event() for ev in body])
    return shell.render()


@router.post("/charts/{chart_id}/range", response_model=RangeOut)
async def post_range(chart_id: str, body: ViewportRange):
    """
    User scrolled/zoomed. When that triggers a backward load, the response
    waits for it so the returned scene already contains the older bars.
    """
    shell = _chart(chart_id)
    requested = shell.handle_visible_range_change(body)
    if requested:
        await shell.wait_idle()
    return RangeOut(load_requested=requested, scene=shell.render())


class SizeIn(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


@router.post("/charts/{chart_id}/resize", response_model=Scene)
async def post_resize(chart_id: str, body: SizeIn):
    shell = _chart(chart_id)
    shell.resize(body.width, body.height)
    return shell.render()


@router.post("/charts/{chart_id}/pointer", response_model=Optional[TooltipPayload])
async def post_pointer(chart_id: str, body: PointIn):
    return _chart(chart_id).handle_pointer_move(body.x, body.y)


@router.post("/charts/{chart_id}/click", response_model=ActivationOut)
async def post_click(chart_id: str, body: PointIn):
    hit = _chart(chart_id).handle_click(body.x, body.y)
    if hit is None:
        return ActivationOut()
    date_key, events = hit
    return ActivationOut(date=date_key, events=_events_out(events))


@router.get("/charts/{chart_id}/intraday", response_model=IntradayView)
async def get_intraday(
    chart_id: str,
    date: str = Query(..., description="Trading day, YYYY-MM-DD"),
    nearest_fallback: bool = Query(True, description="Snap trades without an exact minute bar to the nearest one"),
):
    return await _chart(chart_id).load_intraday(date, nearest_fallback=nearest_fallback)


@router.delete("/charts/{chart_id}")
async def delete_chart(chart_id: str):
    shell = registry.remove(chart_id)
    if shell is None:
        raise HTTPException(status_code=404, detail=f"Unknown chart '{chart_id}'")
    shell.unmount()
    return {"ok": True}
