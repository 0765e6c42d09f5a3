import asyncio
import logging

from fastapi import FastAPI

from chartcore.api.routes import close_provider
from chartcore.api.routes import router as api_router
from chartcore.config import get_settings
from chartcore.jobs.refresher import refresh_loop
from chartcore.state import registry

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Chart Core API", version="0.1.0")
app.include_router(api_router)

_background: set = set()


@app.on_event("startup")
async def _startup():
    # Polling cadence for mounted charts (pull-based, no streaming).
    task = asyncio.create_task(refresh_loop(registry, settings.refresh_seconds))
    _background.add(task)


@app.on_event("shutdown")
async def _shutdown():
    for task in _background:
        task.cancel()
    for chart_id, shell in registry.items():
        shell.unmount()
        registry.remove(chart_id)
    await close_provider()


@app.get("/health")
def health():
    return {
        "status": "ok",
        "app_env": settings.app_env,
        "provider_config": settings.provider,
        "charts": len(registry.charts),
    }
