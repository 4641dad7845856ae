import logging
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from tradesim.marketdata import ASSETS, DEFAULT_ASSET, DEFAULT_TIMEFRAME, TIMEFRAMES
from tradesim.recording import BlobStore
from tradesim.types import RiskMethod

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preferences:
    """User selections persisted between sessions."""
    asset: str = DEFAULT_ASSET
    timeframe: str = DEFAULT_TIMEFRAME
    risk_method: RiskMethod = RiskMethod.PIPS

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "Preferences":
        """Build from a stored mapping, replacing unknown values with defaults."""
        if not isinstance(raw, Mapping):
            return cls()

        asset = raw.get("asset")
        if not isinstance(asset, str) or asset not in ASSETS:
            asset = DEFAULT_ASSET

        timeframe = raw.get("timeframe")
        if not isinstance(timeframe, str) or timeframe not in TIMEFRAMES:
            timeframe = DEFAULT_TIMEFRAME

        try:
            risk_method = RiskMethod(raw.get("risk_method"))
        except (TypeError, ValueError):
            risk_method = RiskMethod.PIPS

        return cls(asset=asset, timeframe=timeframe, risk_method=risk_method)

    def to_dict(self) -> dict[str, str]:
        d = asdict(self)
        d["risk_method"] = self.risk_method.value
        return d


def load_preferences(store: BlobStore | None, key: str) -> Preferences:
    if store is None:
        return Preferences()
    try:
        raw = store.load_blob(key)
    except Exception:
        log.exception("Failed to load preferences")
        return Preferences()

    if raw is None:
        log.info("No saved preferences, using defaults")
        return Preferences()

    prefs = Preferences.from_raw(raw)
    log.info(
        "Applied preferences: asset=%s timeframe=%s risk=%s",
        prefs.asset,
        prefs.timeframe,
        prefs.risk_method.value,
    )
    return prefs


def save_preferences(store: BlobStore | None, key: str, prefs: Preferences) -> bool:
    if store is None:
        return True
    try:
        return bool(store.save_blob(key, prefs.to_dict()))
    except Exception:
        log.exception("Failed to save preferences")
        return False
