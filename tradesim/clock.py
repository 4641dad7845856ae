# tradesim/clock.py
"""
Simulation clock and trading facade.

The clock owns one SimulationContext and wires the price generator,
position ledger, performance tracker, trade history and the external
sinks together once, at construction. Each tick runs strictly in order:

    generate bar -> update window -> indicators -> mark-to-market
    -> detect SL/TP triggers -> equity/drawdown -> close triggered positions
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional, Union

from tradesim.config import SimulationConfig
from tradesim.context import SimulationContext
from tradesim.indicators import compute_atr, compute_sma
from tradesim.ledger import PositionLedger
from tradesim.marketdata import Bar, GeneratorParams, PriceGenerator, RandomSource, get_asset, get_timeframe
from tradesim.performance import AccountState, PerformanceSummary, PerformanceTracker
from tradesim.position import AtrMultiple, PipsDistance, Position, StopSpec
from tradesim.preferences import Preferences, load_preferences, save_preferences
from tradesim.recording import BlobStore, ClosedTrade, TradeHistory
from tradesim.risk import RiskEstimate
from tradesim.sinks import FeedbackSink, IndicatorPoint, LoggingFeedbackSink, NullRenderSink, RenderSink
from tradesim.types import CloseReason, RejectReason, Rejection, RiskMethod, Severity, Side

log = logging.getLogger(__name__)


__all__ = ["ClockState", "SimulationClock"]


class ClockState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class SimulationClock:
    """
    Drives a single simulation.

    Example:
        clock = SimulationClock(asset="XAUUSD", timeframe="5m")
        clock.start()
        clock.open_position(Side.BUY, 100, PipsDistance(60, 150))
        asyncio.run(clock.run(max_ticks=100))

    Ticks never overlap: ``run()`` calls the synchronous ``tick()`` from a
    single event loop, and ``tick()`` does nothing once the clock is stopped.

    ``risk_method`` is the persisted choice of how stop and target are
    entered; ``stop_spec()`` turns raw values into the matching StopSpec.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        *,
        asset: str = "EURUSD",
        timeframe: str = "1m",
        risk_method: RiskMethod = RiskMethod.PIPS,
        render: Optional[RenderSink] = None,
        feedback: Optional[FeedbackSink] = None,
        store: Optional[BlobStore] = None,
        rng: Optional[RandomSource] = None,
        generator_params: Optional[GeneratorParams] = None,
        now: Callable[[], float] = time.time,
    ):
        self.config = config or SimulationConfig()
        self.render: RenderSink = render or NullRenderSink()
        self.feedback: FeedbackSink = feedback or LoggingFeedbackSink()
        self.store = store
        self._rng = rng
        self._generator_params = generator_params
        self._now = now

        self.tracker = PerformanceTracker(self.config)
        self.history = TradeHistory(
            store,
            key=self.config.history_key,
            max_items=self.config.max_history_items,
        )

        self.state = ClockState.STOPPED
        self.session_over = False
        self.live_pnl = 0.0
        self.risk_method = RiskMethod(risk_method)
        self.ledger: PositionLedger | None = None
        self._build(asset, timeframe)

    @classmethod
    def from_store(cls, store: BlobStore, config: Optional[SimulationConfig] = None, **kwargs) -> "SimulationClock":
        """Create a clock from saved preferences and restore the closed-trade log."""
        config = config or SimulationConfig()
        prefs = load_preferences(store, config.settings_key)
        clock = cls(
            config,
            asset=prefs.asset,
            timeframe=prefs.timeframe,
            risk_method=prefs.risk_method,
            store=store,
            **kwargs,
        )
        clock.load_history()
        return clock

    def _build(self, asset: str, timeframe: str) -> None:
        self.context = SimulationContext(
            config=self.config,
            asset=get_asset(asset),
            timeframe=get_timeframe(timeframe),
        )
        self.generator = PriceGenerator(
            self.context.asset,
            self.context.timeframe,
            rng=self._rng,
            params=self._generator_params,
        )
        previous = self.ledger
        self.ledger = PositionLedger(
            self.context,
            self.tracker,
            self.history,
            on_session_over=self._end_session,
        )
        if previous is not None:
            self.ledger.reserve_ids(previous.next_id)
        self.ledger.reserve_ids(self.history.next_position_id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.state is ClockState.RUNNING

    @property
    def account(self) -> AccountState:
        return self.tracker.account

    @property
    def positions(self) -> list[Position]:
        return self.ledger.positions

    @property
    def closed_trades(self) -> list[ClosedTrade]:
        return self.history.records

    @property
    def preferences(self) -> Preferences:
        return Preferences(
            asset=self.context.asset.symbol,
            timeframe=self.context.timeframe.key,
            risk_method=self.risk_method,
        )

    def summary(self) -> PerformanceSummary:
        return self.tracker.summary(len(self.history))

    def load_history(self) -> list[ClosedTrade]:
        """Restore the closed-trade log and rebuild aggregates from it."""
        records = self.history.load()
        self.tracker.recompute_aggregates(records)
        self.ledger.reserve_ids(self.history.next_position_id)
        return records

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Union[bool, Rejection]:
        """
        Seed the market (first start only) and enter RUNNING.

        Starting an already running clock is a no-op. A stopped clock that
        still holds market data resumes from its last bar.
        """
        if self.is_running:
            return True
        if self.session_over:
            rejection = Rejection(RejectReason.SESSION_OVER, "Session over: reset the simulation to play again.")
            self.feedback.notify(rejection.message, Severity.WARN)
            return rejection

        market = self.context.market
        if market.last_bar is None:
            bars = self.generator.initial_bars(self.config.initial_bars, int(self._now()))
            for bar in bars:
                market.window.add_bar(bar)
                self.render.on_bar(bar)
            market.last_bar = bars[-1]
            self._update_indicators(market.last_bar)
            point = self.tracker.record_equity_point(market.last_bar.time, self.account.equity)
            self.render.on_equity_point(point)

        self.state = ClockState.RUNNING
        log.info("Simulation started for %s %s", self.context.asset, self.context.timeframe)
        self.feedback.notify("Simulation started.", Severity.INFO)
        return True

    def stop(self) -> None:
        """Halt ticking. Idempotent; all other state is left untouched."""
        if not self.is_running:
            return
        self.state = ClockState.STOPPED
        log.info("Simulation stopped")
        self.feedback.notify("Simulation stopped.", Severity.INFO)

    def reset(self) -> None:
        """
        Stop, then return the account to initial capital and discipline.

        Open positions, the rolling window and the equity curve are cleared.
        The closed-trade log is kept.
        """
        self.stop()
        self.tracker.reset()
        self.ledger.clear()
        self.context.market.clear()
        self.session_over = False
        self.live_pnl = 0.0
        self.render.on_positions_changed([])
        log.info("Simulation reset")
        self.feedback.notify("Simulation reset. Ready to start.", Severity.INFO)

    def change_market(self, asset: str, timeframe: str) -> None:
        """Switch asset/timeframe: reset, rebuild, save preferences and restart."""
        self.feedback.notify(f"Switching to {asset}/{timeframe}. Resetting...", Severity.INFO)
        self.reset()
        self._build(asset, timeframe)
        save_preferences(self.store, self.config.settings_key, self.preferences)
        self.start()

    def set_risk_method(self, method: RiskMethod) -> None:
        self.risk_method = RiskMethod(method)
        save_preferences(self.store, self.config.settings_key, self.preferences)

    def clear_history(self) -> None:
        """Erase the closed-trade log and the statistics derived from it."""
        self.history.clear()
        self.tracker.clear_aggregates()
        bar = self.context.market.last_bar
        if bar is not None:
            self.render.on_equity_point(self.tracker.record_equity_point(bar.time, self.account.equity))
        log.info("Trade history cleared")
        self.feedback.notify("History cleared. Statistics reset.", Severity.OK)

    def _end_session(self) -> None:
        if self.session_over:
            return
        self.session_over = True
        self.stop()
        log.warning("Discipline exhausted, session over")
        self.feedback.notify("GAME OVER! Discipline exhausted.", Severity.ERROR)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def _update_indicators(self, bar: Bar) -> None:
        market = self.context.market
        bars = market.window.get_bars()
        market.atr = compute_atr(bars, self.config.atr_period)
        market.sma = compute_sma(bars, self.config.sma_period)
        if market.atr is not None:
            self.render.on_indicator("atr", IndicatorPoint(bar.time, market.atr))
        if market.sma is not None:
            self.render.on_indicator("sma", IndicatorPoint(bar.time, market.sma))

    def tick(self) -> Optional[Bar]:
        """Advance the simulation by one bar. Returns None when not running."""
        if not self.is_running:
            return None

        market = self.context.market
        bar = self.generator.next_bar(market.last_bar)
        market.last_bar = bar
        market.window.add_bar(bar)
        self.render.on_bar(bar)

        self._update_indicators(bar)

        self.live_pnl = self.ledger.mark_all(bar.close)
        triggered = self.ledger.scan_triggers(bar.high, bar.low)

        point = self.tracker.update_equity(bar.time, self.ledger.positions)
        self.render.on_equity_point(point)

        for position_id, reason in triggered:
            if self.ledger.get(position_id) is not None:
                self._close(position_id, reason)

        self.render.on_positions_changed(self.ledger.positions)
        return bar

    async def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Tick every ``update_interval`` seconds until stopped.

        Starts the clock if needed. Returns the number of ticks executed.
        """
        if not self.is_running:
            if isinstance(self.start(), Rejection):
                return 0

        ticks = 0
        try:
            while self.is_running and (max_ticks is None or ticks < max_ticks):
                await asyncio.sleep(self.config.update_interval)
                if self.tick() is not None:
                    ticks += 1
        except asyncio.CancelledError:
            log.info("Simulation loop cancelled")
            self.stop()
            raise
        return ticks

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def stop_spec(self, stop: float, target: float) -> StopSpec:
        """Stop and target values interpreted with the current risk method."""
        if self.risk_method is RiskMethod.ATR:
            return AtrMultiple(stop, target)
        return PipsDistance(stop, target)

    def estimate_risk(self, size: float, spec: StopSpec) -> RiskEstimate:
        return self.ledger.estimate_risk(size, spec)

    def open_position(self, side: Side, size: float, spec: StopSpec) -> Union[Position, Rejection]:
        if not self.is_running:
            return self._reject(Rejection(RejectReason.MARKET_CLOSED, "Simulation not active."))

        result = self.ledger.open(side, size, spec)
        if isinstance(result, Rejection):
            return self._reject(result)

        asset = self.context.asset
        bar = self.context.market.last_bar
        self.render.on_equity_point(self.tracker.update_equity(bar.time, self.ledger.positions))
        self.render.on_positions_changed(self.ledger.positions)
        self.feedback.notify(
            f"Pos {result.id} ({result.side.value} {asset.name}) @ {asset.format_price(result.entry_price)}. "
            f"Risk: ${result.risk_amount:.2f}",
            Severity.OK,
        )
        return result

    def modify_position(
        self,
        position_id: int,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> Union[Position, Rejection]:
        result = self.ledger.modify(position_id, stop_loss, take_profit)
        if isinstance(result, Rejection):
            return self._reject(result)
        self.render.on_positions_changed(self.ledger.positions)
        self.feedback.notify(f"Pos {result.id} updated.", Severity.OK)
        return result

    def close_position(self, position_id: int, units: Optional[float] = None) -> Union[ClosedTrade, Rejection]:
        result = self._close(position_id, CloseReason.MANUAL, units)
        if isinstance(result, Rejection):
            return self._reject(result)
        self.render.on_positions_changed(self.ledger.positions)
        return result

    def _close(
        self,
        position_id: int,
        reason: CloseReason,
        units: Optional[float] = None,
    ) -> Union[ClosedTrade, Rejection]:
        result = self.ledger.close(position_id, reason, units)
        if isinstance(result, Rejection):
            return result

        asset = self.context.asset
        if self.tracker.equity_history:
            self.render.on_equity_point(self.tracker.equity_history[-1])
        tag = "" if reason is CloseReason.MANUAL else f" ({reason.value.upper()})"
        part = " partially" if result.partial else ""
        self.feedback.notify(
            f"Pos {result.id} ({result.side.value} {asset.name}){part} closed{tag} "
            f"@ {asset.format_price(result.exit_price)}. P&L: ${result.pnl:.2f}.",
            Severity.OK if result.pnl >= 0 else Severity.WARN,
        )
        return result

    def _reject(self, rejection: Rejection) -> Rejection:
        severity = (
            Severity.WARN
            if rejection.reason in (RejectReason.MARKET_CLOSED, RejectReason.INDICATOR_UNAVAILABLE)
            else Severity.ERROR
        )
        log.debug("Rejected: %s (%s)", rejection.reason.value, rejection.message)
        self.feedback.notify(rejection.message, severity)
        return rejection
