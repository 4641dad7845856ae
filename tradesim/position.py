"""Position state and per-position P&L math."""

from dataclasses import dataclass
from typing import Optional, Union

from tradesim.marketdata import AssetProfile
from tradesim.types import CloseReason, RiskMethod, Side


__all__ = [
    "AtrMultiple",
    "PipsDistance",
    "Position",
    "StopSpec",
    "check_trigger",
    "mark_to_market",
    "realised_pnl",
]


@dataclass(frozen=True)
class PipsDistance:
    """Stop and target given directly in pips."""
    stop_pips: float
    target_pips: float

    method = RiskMethod.PIPS


@dataclass(frozen=True)
class AtrMultiple:
    """Stop and target given as multiples of the current ATR."""
    stop_multiple: float
    target_multiple: float

    method = RiskMethod.ATR


StopSpec = Union[PipsDistance, AtrMultiple]


@dataclass
class Position:
    """
    An open position owned by the PositionLedger.

    Attributes:
        id: Monotonic identifier, never reused within a run.
        asset: Asset symbol.
        side: BUY or SELL.
        size: Units still open (> 0).
        entry_price: Fill price, spread included for BUY entries.
        stop_loss: Stop price (below entry for BUY, above for SELL).
        take_profit: Target price (above entry for BUY, below for SELL).
        entry_time: Time of the bar the position was opened on.
        live_pnl: Mark-to-market P&L at the last tick.
        risk_amount: Monetary risk computed when the position was opened.
    """
    id: int
    asset: str
    side: Side
    size: float
    entry_price: float
    stop_loss: float
    take_profit: float
    entry_time: int
    live_pnl: float = 0.0
    risk_amount: float = 0.0

    def bounds_ordered(self, stop_loss: float, take_profit: float) -> bool:
        """Check ``stop < entry < target`` (BUY) or ``target < entry < stop`` (SELL)."""
        if self.side is Side.BUY:
            return stop_loss < self.entry_price < take_profit
        return take_profit < self.entry_price < stop_loss

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset": self.asset,
            "side": self.side.value,
            "size": self.size,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "entry_time": self.entry_time,
            "live_pnl": self.live_pnl,
            "risk_amount": self.risk_amount,
        }


def realised_pnl(
    side: Side,
    entry_price: float,
    exit_price: float,
    units: float,
    asset: AssetProfile,
) -> float:
    """
    P&L of ``units`` closed at ``exit_price``.

    Expressed in pip terms: ``price_diff / pip_value * (units * pip_value)``.
    """
    pip = float(asset.pip_value)
    if side is Side.BUY:
        diff = exit_price - entry_price
    else:
        diff = entry_price - exit_price
    return diff / pip * (float(units) * pip)


def mark_to_market(position: Position, close_price: float, asset: AssetProfile) -> float:
    """
    Live P&L of an open position at ``close_price``.

    BUY positions exit at the close; SELL positions exit at close + spread.
    """
    if position.side is Side.BUY:
        exit_price = close_price
    else:
        exit_price = close_price + asset.spread
    return realised_pnl(position.side, position.entry_price, exit_price, position.size, asset)


def check_trigger(position: Position, bar_high: float, bar_low: float) -> Optional[CloseReason]:
    """
    Detect a stop-loss or take-profit hit within a bar's range.

    The stop is checked before the target, so a bar spanning both closes
    the position at its stop.

    Returns:
        CloseReason.STOP_LOSS, CloseReason.TAKE_PROFIT or None
    """
    if position.side is Side.BUY:
        if bar_low <= position.stop_loss:
            return CloseReason.STOP_LOSS
        if bar_high >= position.take_profit:
            return CloseReason.TAKE_PROFIT
    else:
        if bar_high >= position.stop_loss:
            return CloseReason.STOP_LOSS
        if bar_low <= position.take_profit:
            return CloseReason.TAKE_PROFIT
    return None
