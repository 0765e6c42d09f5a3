from __future__ import annotations

from typing import Any, Dict, Optional


class ChartError(Exception):
    """
    Base class for chart load errors.

    details: extra context (instrument, interval, ...) appended to str(err)
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class FetchError(ChartError):
    """Network/HTTP failure during any load. Shown as an error state, never retried automatically."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs: Any):
        details = dict(kwargs)
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.status_code = status_code


class EmptyResultError(ChartError):
    """
    The fetch succeeded but returned zero bars.

    Backward loads treat this as "history exhausted"; full-window loads render
    an empty state instead of an error banner.
    """


class StaleResultDiscard(ChartError):
    """A resolved fetch whose originating params no longer match the chart's current params."""
