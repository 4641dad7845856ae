from .asset import (
    ASSETS,
    DEFAULT_ASSET,
    DEFAULT_TIMEFRAME,
    TIMEFRAMES,
    AssetProfile,
    Timeframe,
    get_asset,
    get_timeframe,
)
from .bar import Bar
from .bar_history import BarHistory
from .generator import GeneratorParams, PriceGenerator, RandomSource

__all__ = [
    "ASSETS",
    "AssetProfile",
    "Bar",
    "BarHistory",
    "DEFAULT_ASSET",
    "DEFAULT_TIMEFRAME",
    "GeneratorParams",
    "PriceGenerator",
    "RandomSource",
    "TIMEFRAMES",
    "Timeframe",
    "get_asset",
    "get_timeframe",
]
