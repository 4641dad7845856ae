import math
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from tradesim.types import CloseReason, Side


@dataclass(frozen=True)
class ClosedTrade:
    """Snapshot of a (partially) closed position, taken at close time."""
    id: int
    asset: str
    side: Side
    size: float  # units closed
    entry_price: float
    exit_price: float
    stop_loss: float
    take_profit: float
    pnl: float
    entry_time: int
    exit_time: int
    close_reason: CloseReason
    partial: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["side"] = self.side.value
        d["close_reason"] = self.close_reason.value
        return d

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ClosedTrade":
        """Build from a persisted dict.

        Raises ``ValueError`` on missing or malformed fields, including
        non-finite prices, sizes and P&L.
        """
        try:
            return cls(
                id=int(raw["id"]),
                asset=str(raw["asset"]),
                side=Side(str(raw["side"]).upper()),
                size=_finite(raw["size"]),
                entry_price=_finite(raw["entry_price"]),
                exit_price=_finite(raw["exit_price"]),
                stop_loss=_finite(raw["stop_loss"]),
                take_profit=_finite(raw["take_profit"]),
                pnl=_finite(raw["pnl"]),
                entry_time=int(raw["entry_time"]),
                exit_time=int(raw["exit_time"]),
                close_reason=CloseReason(str(raw["close_reason"]).lower()),
                partial=bool(raw.get("partial", False)),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"Malformed closed trade record: {raw!r}") from exc


def _finite(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite value: {value!r}")
    return number
