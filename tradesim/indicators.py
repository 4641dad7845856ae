"""Rolling-window technical indicators.

Both indicators are pure functions over the supplied window and return
``None`` when the window is too short.
"""

from typing import Iterable, Optional

import numpy as np

from tradesim.marketdata import Bar


__all__ = ["compute_atr", "compute_sma", "true_ranges"]


def true_ranges(bars: Iterable[Bar]) -> np.ndarray:
    """
    True range of every bar after the first.

    TR_i = max(high_i - low_i, |high_i - close_{i-1}|, |low_i - close_{i-1}|)
    """
    bars = list(bars)
    if len(bars) < 2:
        return np.empty(0, dtype=np.float64)

    highs = np.array([b.high for b in bars[1:]], dtype=np.float64)
    lows = np.array([b.low for b in bars[1:]], dtype=np.float64)
    prev_closes = np.array([b.close for b in bars[:-1]], dtype=np.float64)

    return np.maximum.reduce([
        highs - lows,
        np.abs(highs - prev_closes),
        np.abs(lows - prev_closes),
    ])


def compute_atr(bars: Iterable[Bar], period: int) -> Optional[float]:
    """
    Average True Range for the last bar in the window, using Wilder smoothing.

    The first ATR is the mean of the first ``period`` true ranges; every
    later true range is folded in as ``atr = (atr * (period - 1) + tr) / period``.

    Args:
        bars: Bars ordered oldest to newest
        period: ATR period

    Returns:
        The final smoothed ATR, or None if fewer than ``period`` true ranges
        are available (i.e. fewer than ``period + 1`` bars).
    """
    if period <= 0:
        raise ValueError("period must be > 0")

    tr = true_ranges(bars)
    if len(tr) < period:
        return None

    atr = float(tr[:period].mean())
    for x in tr[period:]:
        atr = (atr * (period - 1) + float(x)) / period
    return atr


def compute_sma(bars: Iterable[Bar], period: int) -> Optional[float]:
    """
    Simple moving average of the last ``period`` closes.

    Returns None if the window holds fewer than ``period`` bars.
    """
    if period <= 0:
        raise ValueError("period must be > 0")

    closes = np.array([b.close for b in bars], dtype=np.float64)
    if len(closes) < period:
        return None
    return float(closes[-period:].mean())
