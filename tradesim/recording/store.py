"""Key-value blob stores for closed-trade history and preferences."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol

log = logging.getLogger(__name__)


class BlobStore(Protocol):
    """
    Persistence collaborator.

    Values are JSON-serialisable. Implementations report failure through
    return values; callers degrade to default state when a load fails.
    """

    def load_blob(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or unreadable."""
        ...

    def save_blob(self, key: str, value: Any) -> bool:
        """Store a value. Returns True on success."""
        ...

    def remove_blob(self, key: str) -> bool:
        ...


class InMemoryBlobStore:
    """Blob store held in a dict; values are round-tripped through JSON."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def load_blob(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save_blob(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError):
            log.exception("Failed to serialise blob %r", key)
            return False
        return True

    def remove_blob(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileBlobStore:
    """
    Persists each blob as ``<key>.json`` inside a directory.

    Writes are atomic (write to ``.tmp``, then rename).
    """

    def __init__(self, directory: Path):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self._dir / f"{safe}.json"

    def load_blob(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            return json.loads(path.read_text())
        except Exception:
            log.exception("Failed to load blob %r from %s", key, path)
            return None

    def save_blob(self, key: str, value: Any) -> bool:
        path = self._path(key)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(value, indent=2))
            tmp_path.replace(path)
        except Exception:
            log.exception("Failed to save blob %r to %s", key, path)
            return False
        log.debug("Blob %r saved to %s", key, path)
        return True

    def remove_blob(self, key: str) -> bool:
        path = self._path(key)
        try:
            if path.exists():
                path.unlink()
                log.info("Blob %r removed", key)
                return True
        except OSError:
            log.exception("Failed to remove blob %r", key)
        return False
