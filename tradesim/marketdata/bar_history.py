from collections import deque
from typing import Optional

import numpy as np

from tradesim.marketdata.bar import Bar


class BarHistory:
    """
    Maintains a bounded rolling window of bars for one asset/timeframe stream.

    Provides price arrays for indicator calculations. The oldest bar is
    evicted once the window is full.

    Example:
        history = BarHistory("EURUSD", "1m", max_length=25)
        history.add_bar(bar)

        closes = history.get_closes()
        highs = history.get_highs(count=14)  # Last 14 bars only
    """

    def __init__(self, symbol: str, timeframe: str, max_length: int):
        """
        Initialize bar history.

        Args:
            symbol: Asset symbol
            timeframe: Timeframe key (e.g., "1m", "1h")
            max_length: Maximum number of bars to retain
        """
        if max_length <= 0:
            raise ValueError("max_length must be > 0")
        self.symbol = symbol
        self.timeframe = timeframe
        self.max_length = max_length
        self.bars: deque[Bar] = deque(maxlen=max_length)

    def add_bar(self, bar: Bar) -> None:
        """
        Append a bar, evicting the oldest one when full.

        Raises ValueError if the bar does not advance the stream's time.
        """
        if self.bars and bar.time <= self.bars[-1].time:
            raise ValueError(
                f"Bar time {bar.time} does not advance past {self.bars[-1].time} "
                f"for {self.symbol}/{self.timeframe}"
            )
        self.bars.append(bar)

    def clear(self) -> None:
        self.bars.clear()

    def get_bars(self, count: Optional[int] = None) -> list[Bar]:
        """
        Get bar objects, oldest first.

        Args:
            count: Number of most recent bars to return (None = all)
        """
        if count is None:
            return list(self.bars)
        return list(self.bars)[-count:]

    def get_highs(self, count: Optional[int] = None) -> np.ndarray:
        bars = self.get_bars(count)
        return np.array([b.high for b in bars], dtype=np.float64)

    def get_lows(self, count: Optional[int] = None) -> np.ndarray:
        bars = self.get_bars(count)
        return np.array([b.low for b in bars], dtype=np.float64)

    def get_closes(self, count: Optional[int] = None) -> np.ndarray:
        bars = self.get_bars(count)
        return np.array([b.close for b in bars], dtype=np.float64)

    @property
    def latest(self) -> Optional[Bar]:
        """Get the most recent bar, or None if empty."""
        return self.bars[-1] if self.bars else None

    def __len__(self) -> int:
        return len(self.bars)

    def __repr__(self) -> str:
        return (
            f"BarHistory(symbol={self.symbol}, timeframe={self.timeframe}, "
            f"bars={len(self)}/{self.max_length})"
        )
