import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from tradesim.marketdata import get_asset
from tradesim.recording.store import BlobStore
from tradesim.recording.types import ClosedTrade

log = logging.getLogger(__name__)


CSV_HEADER = [
    "id",
    "asset",
    "side",
    "volume_lots",
    "size_units",
    "entry_time",
    "exit_time",
    "entry_price",
    "exit_price",
    "stop_loss",
    "take_profit",
    "pnl",
    "close_reason",
]


class TradeHistory:
    """
    Ordered log of closed-trade records.

    Records are appended on every full or partial close and never mutated.
    When a store is attached, the most recent ``max_items`` records are
    persisted after each append. Store failures are logged and otherwise
    ignored.
    """

    def __init__(
        self,
        store: BlobStore | None = None,
        *,
        key: str = "proSimHistory",
        max_items: int = 200,
    ):
        self._store = store
        self._key = key
        self._max_items = max_items
        self.records: list[ClosedTrade] = []

    def append(self, record: ClosedTrade) -> None:
        self.records.append(record)
        self.save()

    def save(self) -> bool:
        if self._store is None:
            return True
        payload = [r.to_dict() for r in self.records[-self._max_items:]]
        try:
            ok = bool(self._store.save_blob(self._key, payload))
        except Exception:
            log.exception("Failed to persist trade history")
            return False
        if not ok:
            log.warning("Trade history could not be persisted (%d records)", len(payload))
        return ok

    def load(self) -> list[ClosedTrade]:
        """
        Replace the in-memory log with the persisted one.

        Malformed records are skipped. Any store failure leaves the log empty.
        """
        self.records = []
        if self._store is None:
            return self.records

        try:
            raw = self._store.load_blob(self._key)
        except Exception:
            log.exception("Failed to load trade history")
            return self.records

        if not isinstance(raw, list):
            if raw is not None:
                log.warning("Ignoring persisted trade history: expected a list, got %s", type(raw).__name__)
            else:
                log.info("No persisted trade history")
            return self.records

        for item in raw:
            try:
                self.records.append(ClosedTrade.from_dict(item))
            except (ValueError, AttributeError) as exc:
                log.warning("Skipping persisted trade: %s", exc)

        log.info("Loaded %d closed trades", len(self.records))
        return self.records

    def clear(self) -> None:
        self.records = []
        if self._store is None:
            return
        try:
            self._store.remove_blob(self._key)
        except Exception:
            log.exception("Failed to remove persisted trade history")

    @property
    def next_position_id(self) -> int:
        """First position id not used by any record."""
        return max((r.id for r in self.records), default=0) + 1

    def write_csv(self, path: Path) -> None:
        """Export the log with prices formatted to each asset's precision."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="") as f:
            w = csv.writer(f)
            w.writerow(CSV_HEADER)
            for t in self.records:
                asset = get_asset(t.asset)
                w.writerow(
                    [
                        t.id,
                        t.asset,
                        t.side.value,
                        asset.format_volume(asset.units_to_lots(t.size)),
                        t.size,
                        _format_time(t.entry_time),
                        _format_time(t.exit_time),
                        asset.format_price(t.entry_price),
                        asset.format_price(t.exit_price),
                        asset.format_price(t.stop_loss),
                        asset.format_price(t.take_profit),
                        f"{t.pnl:.2f}",
                        t.close_reason.value.upper(),
                    ]
                )

    def __iter__(self) -> Iterator[ClosedTrade]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


def _format_time(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
