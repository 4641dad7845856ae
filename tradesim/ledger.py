"""Position lifecycle: open, modify, close and partial close."""

import logging
import math
from typing import Callable, Optional, Union

from tradesim.context import SimulationContext
from tradesim.performance import PerformanceTracker
from tradesim.position import (
    AtrMultiple,
    PipsDistance,
    Position,
    StopSpec,
    check_trigger,
    mark_to_market,
    realised_pnl,
)
from tradesim.recording import ClosedTrade, TradeHistory
from tradesim.risk import RiskEstimate, compute_risk, stop_distance_pips, validate_risk
from tradesim.types import CloseReason, RejectReason, Rejection, Side

log = logging.getLogger(__name__)


__all__ = ["PositionLedger"]


class PositionLedger:
    """
    Owns the open positions of one simulation.

    Every public operation returns its success payload or a Rejection; a
    rejected operation leaves all state untouched. Closes book P&L through
    the PerformanceTracker and append a ClosedTrade to the TradeHistory.
    """

    def __init__(
        self,
        context: SimulationContext,
        tracker: PerformanceTracker,
        history: TradeHistory,
        *,
        on_session_over: Optional[Callable[[], None]] = None,
    ):
        self.context = context
        self.tracker = tracker
        self.history = history
        self.on_session_over = on_session_over
        self._positions: dict[int, Position] = {}
        self._next_id = 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def positions(self) -> list[Position]:
        """Open positions in opening order."""
        return list(self._positions.values())

    @property
    def next_id(self) -> int:
        return self._next_id

    def get(self, position_id: int) -> Optional[Position]:
        return self._positions.get(position_id)

    def __len__(self) -> int:
        return len(self._positions)

    def reserve_ids(self, next_id: int) -> None:
        """Ensure future ids start at or after ``next_id``."""
        self._next_id = max(self._next_id, int(next_id))

    def clear(self) -> None:
        """Drop every open position without booking P&L."""
        self._positions.clear()

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    def _resolve_distances(self, spec: StopSpec) -> Union[tuple[float, float], Rejection]:
        """Convert a stop spec into (stop, target) price distances."""
        cfg = self.context.config
        asset = self.context.asset

        if isinstance(spec, PipsDistance):
            stop_pips = _as_float(spec.stop_pips)
            target_pips = _as_float(spec.target_pips)
            if math.isnan(stop_pips) or stop_pips <= 0 or stop_pips < asset.min_sl_pips:
                return Rejection(
                    RejectReason.INVALID_STOP,
                    f"Stop loss must be at least {asset.min_sl_pips} pips.",
                )
            if math.isnan(target_pips) or target_pips <= 0 or target_pips < asset.min_tp_pips:
                return Rejection(
                    RejectReason.INVALID_TARGET,
                    f"Take profit must be at least {asset.min_tp_pips} pips.",
                )
            return asset.pips_to_price(stop_pips), asset.pips_to_price(target_pips)

        if isinstance(spec, AtrMultiple):
            atr = self.context.market.atr
            if atr is None or not atr > 0:
                return Rejection(
                    RejectReason.INDICATOR_UNAVAILABLE,
                    "ATR not available for stop/target calculation.",
                )
            stop_mult = _as_float(spec.stop_multiple)
            target_mult = _as_float(spec.target_multiple)
            if math.isnan(stop_mult) or stop_mult < cfg.min_atr_sl_multiple:
                return Rejection(
                    RejectReason.INVALID_STOP,
                    f"Stop loss multiple must be at least {cfg.min_atr_sl_multiple} x ATR.",
                )
            if math.isnan(target_mult) or target_mult < cfg.min_atr_tp_multiple:
                return Rejection(
                    RejectReason.INVALID_TARGET,
                    f"Take profit multiple must be at least {cfg.min_atr_tp_multiple} x ATR.",
                )
            stop_dist = max(atr * stop_mult, asset.pips_to_price(asset.min_sl_pips))
            target_dist = max(atr * target_mult, asset.pips_to_price(asset.min_tp_pips))
            return stop_dist, target_dist

        raise TypeError(f"Unknown stop spec: {spec!r}")

    def estimate_risk(self, size: float, spec: StopSpec) -> RiskEstimate:
        """Risk an order would carry, without validating or opening it."""
        asset = self.context.asset
        return compute_risk(
            size=size,
            stop_pips=stop_distance_pips(spec, asset, self.context.market.atr),
            asset=asset,
            equity=self.tracker.account.equity,
        )

    def open(self, side: Side, size: float, spec: StopSpec) -> Union[Position, Rejection]:
        """
        Open a position at the current market close.

        BUY entries pay the spread on entry; SELL entries fill at the close
        and pay the spread on exit. Stop and target are measured from entry.

        Args:
            side: BUY or SELL
            size: Size in units
            spec: PipsDistance or AtrMultiple

        Returns:
            The new Position, or a Rejection
        """
        ctx = self.context
        asset = ctx.asset
        market = ctx.market
        side = Side(side)

        if market.last_bar is None:
            return Rejection(RejectReason.MARKET_CLOSED, "Market is closed.")

        size = _as_float(size)
        if math.isnan(size) or size < asset.min_size:
            return Rejection(
                RejectReason.INVALID_SIZE,
                f"Invalid size (min {asset.min_size:g} units of {asset.name}).",
            )

        distances = self._resolve_distances(spec)
        if isinstance(distances, Rejection):
            return distances
        stop_dist, target_dist = distances

        if target_dist <= stop_dist * (1.0 + ctx.config.target_margin):
            return Rejection(
                RejectReason.TARGET_NOT_BEYOND_STOP,
                "Take profit must be further than stop loss (R:R > 1).",
            )

        close = market.last_bar.close
        if side is Side.BUY:
            entry = close + asset.spread
            stop_loss = entry - stop_dist
            take_profit = entry + target_dist
        else:
            entry = close
            stop_loss = entry + stop_dist
            take_profit = entry - target_dist

        equity = self.tracker.account.equity
        risk = compute_risk(
            size=size,
            stop_pips=asset.price_to_pips(stop_dist),
            asset=asset,
            equity=equity,
        )
        check = validate_risk(risk, equity=equity, max_risk_percent=ctx.config.max_risk_percent)
        if not check.valid:
            return Rejection(check.reason, check.message)

        position = Position(
            id=self._next_id,
            asset=asset.symbol,
            side=side,
            size=size,
            entry_price=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            entry_time=market.last_bar.time,
            risk_amount=risk.amount,
        )
        self._next_id += 1
        self._positions[position.id] = position

        log.info(
            "Opened position %d: %s %g %s @ %s (SL %s, TP %s by %s, risk %.2f)",
            position.id,
            side.value,
            size,
            asset.symbol,
            asset.format_price(entry),
            asset.format_price(stop_loss),
            asset.format_price(take_profit),
            spec.method.value,
            risk.amount,
        )
        return position

    # ------------------------------------------------------------------
    # Modify
    # ------------------------------------------------------------------

    def modify(
        self,
        position_id: int,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> Union[Position, Rejection]:
        """
        Move the stop and/or target of an open position.

        Each supplied level must stay on its side of entry, and the pair
        (edited or not) must remain ordered. Nothing is applied unless both
        edits are valid.
        """
        pos = self._positions.get(position_id)
        if pos is None:
            return Rejection(RejectReason.UNKNOWN_POSITION, f"Position {position_id} not found.")
        if stop_loss is None and take_profit is None:
            return Rejection(RejectReason.NOTHING_TO_MODIFY, "No stop or target supplied.")

        buy = pos.side is Side.BUY
        new_stop = pos.stop_loss if stop_loss is None else _as_float(stop_loss)
        new_target = pos.take_profit if take_profit is None else _as_float(take_profit)

        if stop_loss is not None:
            wrong_side = new_stop >= pos.entry_price if buy else new_stop <= pos.entry_price
            if math.isnan(new_stop) or new_stop <= 0 or wrong_side:
                return Rejection(
                    RejectReason.INVALID_STOP,
                    f"Stop loss must be {'below' if buy else 'above'} entry.",
                )
        if take_profit is not None:
            wrong_side = new_target <= pos.entry_price if buy else new_target >= pos.entry_price
            if math.isnan(new_target) or new_target <= 0 or wrong_side:
                return Rejection(
                    RejectReason.INVALID_TARGET,
                    f"Take profit must be {'above' if buy else 'below'} entry.",
                )
        if not pos.bounds_ordered(new_stop, new_target):
            return Rejection(
                RejectReason.TARGET_NOT_BEYOND_STOP,
                "Take profit and stop loss are not ordered around entry.",
            )

        pos.stop_loss = new_stop
        pos.take_profit = new_target
        log.info("Modified position %d: SL %s, TP %s", pos.id, new_stop, new_target)
        return pos

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def _exit_price(self, pos: Position, reason: CloseReason, close: float) -> float:
        if reason is CloseReason.STOP_LOSS:
            return pos.stop_loss
        if reason is CloseReason.TAKE_PROFIT:
            return pos.take_profit
        if reason is CloseReason.MANUAL:
            if pos.side is Side.BUY:
                return close
            return close + self.context.asset.spread
        raise ValueError(f"Unknown close reason: {reason!r}")

    def close(
        self,
        position_id: int,
        reason: CloseReason = CloseReason.MANUAL,
        units: Optional[float] = None,
    ) -> Union[ClosedTrade, Rejection]:
        """
        Close all or part of a position.

        Args:
            position_id: Position to close
            reason: MANUAL exits at market (SELL pays the spread); STOP_LOSS
                and TAKE_PROFIT exit exactly at the stored level
            units: Units to close; None or >= remaining size closes fully

        Returns:
            The ClosedTrade record, or a Rejection
        """
        ctx = self.context
        asset = ctx.asset
        reason = CloseReason(reason)

        pos = self._positions.get(position_id)
        if pos is None:
            return Rejection(RejectReason.UNKNOWN_POSITION, f"Position {position_id} not found.")
        bar = ctx.market.last_bar
        if bar is None:
            return Rejection(RejectReason.MARKET_CLOSED, "Market is closed.")

        requested = None if units is None else _as_float(units)
        if requested is None or requested >= pos.size:
            closed_units = pos.size
            partial = False
        else:
            closed_units = requested
            if math.isnan(closed_units) or closed_units <= 0:
                return Rejection(RejectReason.INVALID_CLOSE_SIZE, "Units to close must be > 0.")
            partial = True

        exit_price = self._exit_price(pos, reason, bar.close)
        pnl = realised_pnl(pos.side, pos.entry_price, exit_price, closed_units, asset)

        self.tracker.apply_close(reason, pnl)

        record = ClosedTrade(
            id=pos.id,
            asset=pos.asset,
            side=pos.side,
            size=closed_units,
            entry_price=pos.entry_price,
            exit_price=exit_price,
            stop_loss=pos.stop_loss,
            take_profit=pos.take_profit,
            pnl=pnl,
            entry_time=pos.entry_time,
            exit_time=bar.time,
            close_reason=reason,
            partial=partial,
        )

        if partial:
            pos.size -= closed_units
            pos.live_pnl = mark_to_market(pos, bar.close, asset)
        else:
            del self._positions[pos.id]

        self.history.append(record)
        self.tracker.update_equity(bar.time, self._positions.values())

        log.info(
            "Closed position %d%s (%s) %g units @ %s, P&L %.2f",
            pos.id,
            " (partial)" if partial else "",
            reason.value,
            closed_units,
            asset.format_price(exit_price),
            pnl,
        )

        if self.tracker.discipline_exhausted and self.on_session_over is not None:
            self.on_session_over()

        return record

    # ------------------------------------------------------------------
    # Per-tick evaluation
    # ------------------------------------------------------------------

    def mark_all(self, close_price: float) -> float:
        """Mark every open position to ``close_price``; return total live P&L."""
        asset = self.context.asset
        total = 0.0
        for pos in self._positions.values():
            pos.live_pnl = mark_to_market(pos, close_price, asset)
            total += pos.live_pnl
        return total

    def scan_triggers(self, bar_high: float, bar_low: float) -> list[tuple[int, CloseReason]]:
        """Positions whose stop or target lies within the bar's range."""
        triggered: list[tuple[int, CloseReason]] = []
        for pos in self._positions.values():
            reason = check_trigger(pos, bar_high, bar_low)
            if reason is not None:
                triggered.append((pos.id, reason))
        return triggered


def _as_float(value) -> float:
    """Numeric order input as a float; NaN when it is not a number."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan
