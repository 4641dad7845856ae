import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetProfile:
    """
    Immutable trading parameters for a simulated asset.

    Attributes:
        symbol: Registry key (e.g. 'EURUSD').
        name: Human-readable name (e.g. 'EUR/USD').
        pip_value: Smallest priced increment, used to convert price
            differences into pips and monetary risk.
        lot_unit_size: Units per standard lot.
        price_precision: Decimal places shown for prices.
        volume_precision: Decimal places shown for lot volumes.
        min_volume: Minimum tradable volume in lots.
        default_volume: Default order volume in lots.
        step_volume: Volume increment in lots.
        spread_pips: Fixed spread in pips.
        volatility_factor: Per-minute price volatility used by the generator.
        min_sl_pips: Minimum stop-loss distance in pips.
        min_tp_pips: Minimum take-profit distance in pips.
        seed_price: Centre of the starting price when a stream has no history.
        seed_offset: Half-width of the random offset applied to seed_price.
    """
    symbol: str
    name: str
    pip_value: float
    lot_unit_size: float
    price_precision: int
    volume_precision: int
    min_volume: float
    default_volume: float
    step_volume: float
    spread_pips: float
    volatility_factor: float
    min_sl_pips: float
    min_tp_pips: float
    seed_price: float
    seed_offset: float

    @property
    def spread(self) -> float:
        """Spread expressed in price."""
        return self.spread_pips * self.pip_value

    @property
    def min_size(self) -> float:
        """Minimum tradable size in units."""
        return self.min_volume * self.lot_unit_size

    def lots_to_units(self, lots: float) -> float:
        return float(lots) * self.lot_unit_size

    def units_to_lots(self, units: float) -> float:
        return float(units) / self.lot_unit_size

    def pips_to_price(self, pips: float) -> float:
        return float(pips) * self.pip_value

    def price_to_pips(self, distance: float) -> float:
        return float(distance) / self.pip_value

    def format_price(self, value: float) -> str:
        return f"{float(value):.{self.price_precision}f}"

    def format_volume(self, lots: float) -> str:
        return f"{float(lots):.{self.volume_precision}f}"

    def format_pips(self, distance: float) -> str:
        """Format a price distance as pips with one decimal."""
        return f"{self.price_to_pips(distance):.1f}"

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Timeframe:
    """Bar duration for a simulated stream."""
    key: str
    label: str
    seconds: int

    def __str__(self) -> str:
        return self.key


DEFAULT_ASSET = "EURUSD"
DEFAULT_TIMEFRAME = "1m"


ASSETS: Mapping[str, AssetProfile] = MappingProxyType({
    "EURUSD": AssetProfile(
        symbol="EURUSD", name="EUR/USD", pip_value=0.0001, lot_unit_size=100000,
        price_precision=5, volume_precision=2, min_volume=0.01, default_volume=0.10,
        step_volume=0.01, spread_pips=0.5, volatility_factor=0.00018,
        min_sl_pips=5, min_tp_pips=10, seed_price=1.08500, seed_offset=0.005,
    ),
    "XAUUSD": AssetProfile(
        symbol="XAUUSD", name="XAU/USD (Gold)", pip_value=0.01, lot_unit_size=100,
        price_precision=2, volume_precision=2, min_volume=0.01, default_volume=1.00,
        step_volume=0.01, spread_pips=25, volatility_factor=0.20,
        min_sl_pips=50, min_tp_pips=100, seed_price=2300.0, seed_offset=50.0,
    ),
    "BTCUSD": AssetProfile(
        symbol="BTCUSD", name="BTC/USD", pip_value=0.01, lot_unit_size=1,
        price_precision=2, volume_precision=3, min_volume=0.001, default_volume=0.01,
        step_volume=0.001, spread_pips=1500, volatility_factor=35.0,
        min_sl_pips=2500, min_tp_pips=5000, seed_price=65000.0, seed_offset=1000.0,
    ),
})


TIMEFRAMES: Mapping[str, Timeframe] = MappingProxyType({
    "1m": Timeframe("1m", "1 Min", 60),
    "5m": Timeframe("5m", "5 Min", 300),
    "1h": Timeframe("1h", "1 Hour", 3600),
})


def get_asset(symbol: str) -> AssetProfile:
    """Look up an asset profile, falling back to EURUSD for unknown symbols."""
    profile = ASSETS.get(str(symbol).upper())
    if profile is None:
        log.warning("Unknown asset %r, falling back to %s", symbol, DEFAULT_ASSET)
        return ASSETS[DEFAULT_ASSET]
    return profile


def get_timeframe(key: str) -> Timeframe:
    """Look up a timeframe, falling back to 1m for unknown keys."""
    tf = TIMEFRAMES.get(str(key))
    if tf is None:
        log.warning("Unknown timeframe %r, falling back to %s", key, DEFAULT_TIMEFRAME)
        return TIMEFRAMES[DEFAULT_TIMEFRAME]
    return tf
