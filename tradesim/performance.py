"""Account state, equity curve and performance aggregates."""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from tradesim.config import SimulationConfig
from tradesim.position import Position
from tradesim.recording import ClosedTrade
from tradesim.types import CloseReason

log = logging.getLogger(__name__)


__all__ = [
    "AccountState",
    "EquityPoint",
    "PerformanceSummary",
    "PerformanceTracker",
    "discipline_change",
]


@dataclass
class AccountState:
    capital: float
    equity: float
    peak_equity: float
    discipline: int
    max_drawdown_percent: float = 0.0
    total_closed_pnl: float = 0.0
    win_count: int = 0
    loss_count: int = 0
    total_gain: float = 0.0
    total_loss: float = 0.0


@dataclass(frozen=True)
class EquityPoint:
    time: int
    value: float


@dataclass(frozen=True)
class PerformanceSummary:
    """Headline statistics for the dashboard."""
    total_trades: int
    wins: int
    losses: int
    win_rate: float  # percent
    profit_factor: float
    total_closed_pnl: float
    max_drawdown_percent: float


def discipline_change(reason: CloseReason, pnl: float) -> int:
    """+1 for a target hit, -1 for a stop hit or a non-positive manual close, else 0."""
    if reason is CloseReason.TAKE_PROFIT:
        return 1
    if reason is CloseReason.STOP_LOSS:
        return -1
    if pnl <= 0:
        return -1
    return 0


class PerformanceTracker:
    """
    Owns the account state and the bounded equity curve.

    Equity points recorded at or before the last point's time overwrite it,
    so several updates in one tick leave a single point.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.account = self._initial_account()
        self.equity_history: deque[EquityPoint] = deque(maxlen=config.equity_history_max_points)

    def _initial_account(self) -> AccountState:
        c = self.config
        return AccountState(
            capital=float(c.initial_capital),
            equity=float(c.initial_capital),
            peak_equity=float(c.initial_capital),
            discipline=int(c.initial_discipline),
        )

    def reset(self) -> None:
        """Return to initial capital and discipline with an empty equity curve."""
        self.account = self._initial_account()
        self.equity_history.clear()

    @property
    def discipline_exhausted(self) -> bool:
        return self.account.discipline <= 0

    def record_equity_point(self, time: int, value: float) -> EquityPoint:
        point = EquityPoint(time=int(time), value=float(value))
        if self.equity_history and point.time <= self.equity_history[-1].time:
            last = self.equity_history.pop()
            point = EquityPoint(time=last.time, value=point.value)
        self.equity_history.append(point)
        return point

    def update_drawdown(self, equity: float) -> float:
        """
        Track peak equity and the worst drawdown seen.

        Returns:
            Current drawdown as a fraction of peak
        """
        a = self.account
        a.peak_equity = max(a.peak_equity, equity)
        drawdown = 0.0
        if a.peak_equity > 0:
            drawdown = max(0.0, (a.peak_equity - equity) / a.peak_equity)
        a.max_drawdown_percent = max(a.max_drawdown_percent, drawdown * 100.0)
        return drawdown

    def update_equity(self, time: int, positions: Iterable[Position]) -> EquityPoint:
        """Recompute equity from capital and live P&L, then drawdown and the curve."""
        a = self.account
        a.equity = a.capital + sum(p.live_pnl for p in positions)
        self.update_drawdown(a.equity)
        return self.record_equity_point(time, a.equity)

    def apply_close(self, reason: CloseReason, pnl: float) -> int:
        """
        Book realised P&L and adjust discipline.

        Returns:
            The discipline change actually applied after clamping
        """
        a = self.account
        a.capital += pnl
        a.total_closed_pnl += pnl
        self._count(pnl)

        before = a.discipline
        a.discipline = min(
            self.config.max_discipline,
            max(0, a.discipline + discipline_change(reason, pnl)),
        )
        return a.discipline - before

    def recompute_aggregates(self, trades: Iterable[ClosedTrade]) -> None:
        """
        Rebuild win/loss/gain/loss and total P&L from a trade log.

        The equity curve and historical drawdown are not reconstructed.
        """
        a = self.account
        a.win_count = a.loss_count = 0
        a.total_gain = a.total_loss = a.total_closed_pnl = 0.0
        n = 0
        for t in trades:
            a.total_closed_pnl += t.pnl
            self._count(t.pnl)
            n += 1
        log.debug("Performance aggregates recomputed from %d trades", n)

    def clear_aggregates(self) -> None:
        """Forget closed-trade aggregates and restart the equity curve at current capital."""
        a = self.account
        a.win_count = a.loss_count = 0
        a.total_gain = a.total_loss = a.total_closed_pnl = 0.0
        a.equity = a.capital
        a.peak_equity = a.capital
        a.max_drawdown_percent = 0.0
        self.equity_history.clear()

    def summary(self, total_trades: Optional[int] = None) -> PerformanceSummary:
        a = self.account
        n = a.win_count + a.loss_count if total_trades is None else int(total_trades)

        win_rate = (a.win_count / n * 100.0) if n else 0.0
        if a.total_loss > 0:
            profit_factor = a.total_gain / a.total_loss
        elif a.total_gain > 0:
            profit_factor = math.inf
        else:
            profit_factor = 0.0

        return PerformanceSummary(
            total_trades=n,
            wins=a.win_count,
            losses=a.loss_count,
            win_rate=win_rate,
            profit_factor=profit_factor,
            total_closed_pnl=a.total_closed_pnl,
            max_drawdown_percent=a.max_drawdown_percent,
        )

    def _count(self, pnl: float) -> None:
        a = self.account
        if pnl > 0:
            a.win_count += 1
            a.total_gain += pnl
        elif pnl < 0:
            a.loss_count += 1
            a.total_loss += abs(pnl)
