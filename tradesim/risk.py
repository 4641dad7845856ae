"""Risk management utilities."""

import math
from dataclasses import dataclass
from typing import Optional

from tradesim.marketdata import AssetProfile
from tradesim.position import AtrMultiple, PipsDistance, StopSpec
from tradesim.types import RejectReason


__all__ = ["RiskCheck", "RiskEstimate", "compute_risk", "stop_distance_pips", "validate_risk"]


@dataclass(frozen=True)
class RiskEstimate:
    """Monetary risk of an order and its share of equity.

    Both fields are NaN when the inputs cannot carry a risk figure.
    """
    amount: float
    percent: float

    @property
    def is_defined(self) -> bool:
        return not math.isnan(self.amount)


@dataclass(frozen=True)
class RiskCheck:
    valid: bool
    reason: Optional[RejectReason] = None
    message: str = ""


def compute_risk(
    *,
    size: float,
    stop_pips: float,
    asset: AssetProfile,
    equity: float,
) -> RiskEstimate:
    """
    Convert a stop distance and size into monetary risk.

    amount = stop_pips * pip_value * size
    percent = amount / equity * 100 (infinite when equity <= 0)

    Args:
        size: Position size in units
        stop_pips: Stop distance in pips
        asset: Asset profile supplying the pip value
        equity: Current account equity

    Returns:
        RiskEstimate, with NaN fields when size or stop_pips is not a positive number
    """
    try:
        size = float(size)
        stop_pips = float(stop_pips)
    except (TypeError, ValueError):
        return RiskEstimate(amount=math.nan, percent=math.nan)
    if math.isnan(size) or math.isnan(stop_pips) or size <= 0 or stop_pips <= 0:
        return RiskEstimate(amount=math.nan, percent=math.nan)

    amount = stop_pips * float(asset.pip_value) * size
    percent = amount / equity * 100.0 if equity > 0 else math.inf
    return RiskEstimate(amount=amount, percent=percent)


def validate_risk(
    risk: RiskEstimate,
    *,
    equity: float,
    max_risk_percent: float,
) -> RiskCheck:
    """
    Check a risk estimate against account limits.

    Checks run in priority order and the first failure is reported:
    undefined or non-positive amount, percent above the limit, amount at or
    above equity, non-positive equity.
    """
    amount, percent = risk.amount, risk.percent

    if math.isnan(amount) or amount <= 0:
        return RiskCheck(False, RejectReason.INVALID_RISK_AMOUNT, "Calculated risk is not valid.")
    if percent > max_risk_percent:
        return RiskCheck(
            False,
            RejectReason.RISK_ABOVE_LIMIT,
            f"Risk ({percent:.2f}%) exceeds max ({max_risk_percent}%).",
        )
    if amount >= equity:
        return RiskCheck(
            False,
            RejectReason.RISK_EXCEEDS_EQUITY,
            f"Risk (${amount:.2f}) exceeds available equity.",
        )
    if not equity > 0:
        return RiskCheck(False, RejectReason.NON_POSITIVE_EQUITY, "Equity is exhausted.")
    return RiskCheck(True)


def stop_distance_pips(spec: StopSpec, asset: AssetProfile, atr: Optional[float] = None) -> float:
    """
    Stop distance of an order in pips, as used for the risk preview.

    ATR stops are scaled by the current ATR without the minimum-distance
    floor applied on open. Returns NaN when an ATR stop has no ATR to use.
    """
    if isinstance(spec, PipsDistance):
        try:
            return float(spec.stop_pips)
        except (TypeError, ValueError):
            return math.nan
    if isinstance(spec, AtrMultiple):
        if atr is None or not atr > 0:
            return math.nan
        try:
            return asset.price_to_pips(atr * float(spec.stop_multiple))
        except (TypeError, ValueError):
            return math.nan
    raise TypeError(f"Unknown stop spec: {spec!r}")
