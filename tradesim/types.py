"""Shared trading types and result values."""

from dataclasses import dataclass
from enum import Enum


__all__ = [
    "CloseReason",
    "RejectReason",
    "Rejection",
    "RiskMethod",
    "Severity",
    "Side",
]


class Side(str, Enum):
    """Order side of a position."""
    BUY = "BUY"
    SELL = "SELL"

    def opposite(self) -> "Side":
        """Return the opposite side."""
        return Side.SELL if self is Side.BUY else Side.BUY


class CloseReason(str, Enum):
    """Why a position (or part of one) was closed."""
    MANUAL = "manual"
    STOP_LOSS = "sl"
    TAKE_PROFIT = "tp"


class RiskMethod(str, Enum):
    """How stop and target distances are expressed on an order."""
    PIPS = "pips"
    ATR = "atr"


class Severity(str, Enum):
    INFO = "info"
    OK = "ok"
    WARN = "warn"
    ERROR = "error"


class RejectReason(str, Enum):
    """
    Reason codes surfaced by rejected operations.

    Exactly one reason is reported per rejection.
    """
    MARKET_CLOSED = "market_closed"
    INDICATOR_UNAVAILABLE = "indicator_unavailable"
    INVALID_SIZE = "invalid_size"
    INVALID_STOP = "invalid_stop"
    INVALID_TARGET = "invalid_target"
    TARGET_NOT_BEYOND_STOP = "target_not_beyond_stop"
    INVALID_RISK_AMOUNT = "invalid_risk_amount"
    RISK_ABOVE_LIMIT = "risk_above_limit"
    RISK_EXCEEDS_EQUITY = "risk_exceeds_equity"
    NON_POSITIVE_EQUITY = "non_positive_equity"
    UNKNOWN_POSITION = "unknown_position"
    INVALID_CLOSE_SIZE = "invalid_close_size"
    NOTHING_TO_MODIFY = "nothing_to_modify"
    SESSION_OVER = "session_over"


@dataclass(frozen=True)
class Rejection:
    """
    Failure result returned by trading and clock operations.

    Operations return either their success payload or a Rejection; no state
    is mutated when a Rejection is returned.
    """
    reason: RejectReason
    message: str = ""

    def __bool__(self) -> bool:
        return False
