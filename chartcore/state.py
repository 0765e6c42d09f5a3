from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

from chartcore.shell import ChartShell


@dataclass
class ChartRegistry:
    """
    Live chart instances for the running API process.
    Each chart owns its own store/viewport/flags; nothing is shared between them.
    """
    charts: Dict[str, ChartShell] = field(default_factory=dict)

    def add(self, shell: ChartShell) -> str:
        chart_id = uuid.uuid4().hex
        self.charts[chart_id] = shell
        return chart_id

    def get(self, chart_id: str) -> Optional[ChartShell]:
        return self.charts.get(chart_id)

    def remove(self, chart_id: str) -> Optional[ChartShell]:
        return self.charts.pop(chart_id, None)

    def items(self) -> Iterator[Tuple[str, ChartShell]]:
        return iter(list(self.charts.items()))


# Global in-memory registry for the running API process
registry = ChartRegistry()
