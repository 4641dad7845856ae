from .history import TradeHistory
from .store import BlobStore, InMemoryBlobStore, JsonFileBlobStore
from .types import ClosedTrade

__all__ = [
    "BlobStore",
    "ClosedTrade",
    "InMemoryBlobStore",
    "JsonFileBlobStore",
    "TradeHistory",
]
