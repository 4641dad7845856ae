"""Synthetic OHLC bar generation."""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from tradesim.marketdata.asset import AssetProfile, Timeframe
from tradesim.marketdata.bar import Bar

log = logging.getLogger(__name__)


__all__ = ["GeneratorParams", "PriceGenerator", "RandomSource"]


class RandomSource(Protocol):
    """Anything exposing ``random() -> float`` in ``[0, 1)``.

    ``numpy.random.Generator`` and ``random.Random`` both qualify.
    """

    def random(self) -> float:
        ...


@dataclass(frozen=True)
class GeneratorParams:
    """
    Shape of the random walk.

    Attributes:
        drift_center: Centre of the drift draw. Values below 0.5 bias the
            walk downwards; 0.5 is unbiased.
        drift_scale: Drift amplitude as a multiple of effective volatility.
        noise_scale: Noise amplitude as a multiple of effective volatility.
        wick_scale: Maximum wick extension beyond open/close as a multiple
            of effective volatility.
    """
    drift_center: float = 0.495
    drift_scale: float = 0.2
    noise_scale: float = 2.0
    wick_scale: float = 0.8


class PriceGenerator:
    """
    Produces the next synthetic bar for one asset/timeframe stream.

    The generator is stateless apart from its random source; callers pass
    the previous bar in. Seeding the random source makes the sequence
    reproducible.
    """

    def __init__(
        self,
        asset: AssetProfile,
        timeframe: Timeframe,
        rng: Optional[RandomSource] = None,
        params: Optional[GeneratorParams] = None,
    ):
        self.asset = asset
        self.timeframe = timeframe
        self.rng: RandomSource = rng if rng is not None else np.random.default_rng()
        self.params = params or GeneratorParams()

    @property
    def effective_volatility(self) -> float:
        """Asset volatility scaled by sqrt(T) for timeframes longer than a minute."""
        vol = float(self.asset.volatility_factor)
        if self.timeframe.seconds > 60:
            vol *= math.sqrt(self.timeframe.seconds / 60)
        return vol

    def seed_price(self) -> float:
        """Starting price for a stream with no history."""
        a = self.asset
        return a.seed_price + (self._draw() * 2 - 1) * a.seed_offset

    def next_bar(self, previous: Optional[Bar] = None, time: Optional[int] = None) -> Bar:
        """
        Generate the bar following ``previous``.

        Args:
            previous: Previous bar in the stream, or None to seed a new stream
            time: Explicit bar time; defaults to previous.time + timeframe seconds

        Returns:
            A new Bar with ``low <= min(open, close)`` and ``high >= max(open, close)``
        """
        if time is None:
            if previous is None:
                raise ValueError("time is required when there is no previous bar")
            time = previous.time + self.timeframe.seconds

        p = self.params
        floor = float(self.asset.pip_value)
        vol = self.effective_volatility

        open_ = previous.close if previous is not None else self.seed_price()
        open_ = max(floor, open_)

        drift = (self._draw() - p.drift_center) * vol * p.drift_scale
        noise = (self._draw() - 0.5) * vol * p.noise_scale
        close = max(floor, open_ + drift + noise)

        high = max(open_, close) + self._draw() * vol * p.wick_scale
        low = min(open_, close) - self._draw() * vol * p.wick_scale

        low = max(floor, low)
        high = max(high, open_, close, low)

        return Bar(time=int(time), open=open_, high=high, low=low, close=close)

    def initial_bars(self, count: int, end_time: int) -> list[Bar]:
        """
        Generate ``count`` consecutive bars, the last one opening before ``end_time``.

        Bar times are aligned to the timeframe boundary.
        """
        tf = self.timeframe.seconds
        start = (int(end_time) // tf) * tf - count * tf
        bars: list[Bar] = []
        previous: Optional[Bar] = None
        for i in range(count):
            previous = self.next_bar(previous, start + i * tf)
            bars.append(previous)
        log.debug("Generated %d initial %s/%s bars", count, self.asset, self.timeframe)
        return bars

    def _draw(self) -> float:
        return float(self.rng.random())
