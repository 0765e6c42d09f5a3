from __future__ import annotations

import asyncio
import logging
import traceback

from chartcore.state import ChartRegistry


async def refresh_once(charts: ChartRegistry) -> int:
    """Refresh every mounted chart once. Returns how many were refreshed."""
    log = logging.getLogger("chart_refresher")
    count = 0
    for chart_id, shell in charts.items():
        if not shell.mounted:
            continue
        try:
            await shell.refresh()
            count += 1
        except Exception as e:
            # Keep the loop alive for the other charts, but log the error.
            log.error("Refresh failed chart=%s error=%s", chart_id, repr(e))
            log.error(traceback.format_exc())
    return count


async def refresh_loop(charts: ChartRegistry, every_seconds: float) -> None:
    """
    Background loop:
    periodically re-pull the latest window of every mounted chart.
    Each refresh replaces the dataset and resets the view to the latest bars.
    """
    while True:
        await refresh_once(charts)
        await asyncio.sleep(every_seconds)
