from dataclasses import dataclass


@dataclass(frozen=True)
class Bar:
    """
    A single simulated OHLC bar.

    Attributes:
        time: Bar open time in integer seconds since epoch
        open: Opening price (the previous bar's close)
        high: Highest price during the bar
        low: Lowest price during the bar
        close: Closing price
    """

    time: int
    open: float
    high: float
    low: float
    close: float

    @property
    def range(self) -> float:
        """Bar range (high - low)."""
        return self.high - self.low

    def is_consistent(self) -> bool:
        """Check ``low <= min(open, close) <= max(open, close) <= high``."""
        return self.low <= min(self.open, self.close) and max(self.open, self.close) <= self.high

    def to_dict(self) -> dict[str, float | int]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    def __repr__(self) -> str:
        return (
            f"Bar(time={self.time}, "
            f"O={self.open:.5f}, H={self.high:.5f}, "
            f"L={self.low:.5f}, C={self.close:.5f})"
        )
