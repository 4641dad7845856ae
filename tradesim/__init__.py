"""
Tradesim - Retail trading simulator over synthetic price series.

Provides synthetic bar generation, ATR/SMA indicators, risk-checked order
execution, position management and account performance tracking.
"""

from .clock import ClockState, SimulationClock
from .config import SimulationConfig
from .marketdata import AssetProfile, Bar, get_asset, get_timeframe
from .position import AtrMultiple, PipsDistance, Position
from .recording import ClosedTrade
from .runner import configure_logging, run_simulation
from .types import CloseReason, RejectReason, Rejection, RiskMethod, Severity, Side

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AssetProfile",
    "AtrMultiple",
    "Bar",
    "ClockState",
    "CloseReason",
    "ClosedTrade",
    "PipsDistance",
    "Position",
    "RejectReason",
    "Rejection",
    "RiskMethod",
    "Severity",
    "Side",
    "SimulationClock",
    "SimulationConfig",
    "configure_logging",
    "get_asset",
    "get_timeframe",
    "run_simulation",
]
