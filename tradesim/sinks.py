"""Collaborator interfaces the simulation notifies.

Render and feedback sinks are fire-and-forget: return values are ignored.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from tradesim.marketdata import Bar
from tradesim.performance import EquityPoint
from tradesim.position import Position
from tradesim.types import Severity

log = logging.getLogger(__name__)


__all__ = [
    "FeedbackSink",
    "IndicatorPoint",
    "LoggingFeedbackSink",
    "NullRenderSink",
    "RenderSink",
]


@dataclass(frozen=True)
class IndicatorPoint:
    time: int
    value: float


class RenderSink(Protocol):
    def on_bar(self, bar: Bar) -> None:
        ...

    def on_indicator(self, name: str, point: IndicatorPoint) -> None:
        ...

    def on_positions_changed(self, positions: Sequence[Position]) -> None:
        ...

    def on_equity_point(self, point: EquityPoint) -> None:
        ...


class FeedbackSink(Protocol):
    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        ...


class NullRenderSink:
    """Render sink that discards every notification."""

    def on_bar(self, bar: Bar) -> None:
        pass

    def on_indicator(self, name: str, point: IndicatorPoint) -> None:
        pass

    def on_positions_changed(self, positions: Sequence[Position]) -> None:
        pass

    def on_equity_point(self, point: EquityPoint) -> None:
        pass


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.OK: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingFeedbackSink:
    """Feedback sink that writes messages to a logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or log

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self._log.log(_LEVELS.get(Severity(severity), logging.INFO), message)
