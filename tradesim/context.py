"""Explicit simulation state shared by the components of one simulation."""

from dataclasses import dataclass, field
from typing import Optional

from tradesim.config import SimulationConfig
from tradesim.marketdata import AssetProfile, Bar, BarHistory, Timeframe


__all__ = ["MarketState", "SimulationContext"]


@dataclass
class MarketState:
    """Latest market view: rolling window, last bar and indicator values."""
    window: BarHistory
    last_bar: Optional[Bar] = None
    atr: Optional[float] = None
    sma: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.last_bar is not None

    @property
    def last_close(self) -> Optional[float]:
        return self.last_bar.close if self.last_bar is not None else None

    def clear(self) -> None:
        self.window.clear()
        self.last_bar = None
        self.atr = None
        self.sma = None


@dataclass
class SimulationContext:
    """
    State of one simulation instance.

    Created by the SimulationClock and handed by reference to the components
    it wires together. Never shared between two simulations.
    """
    config: SimulationConfig
    asset: AssetProfile
    timeframe: Timeframe
    market: MarketState = field(init=False)

    def __post_init__(self) -> None:
        self.market = MarketState(
            window=BarHistory(self.asset.symbol, self.timeframe.key, self.config.window_size)
        )
