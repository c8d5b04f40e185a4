"""Store implementations."""

from .base import SeenRecord, Store, StorageUnavailable
from .sqlite_store import SQLiteStore

__all__ = ["SeenRecord", "Store", "StorageUnavailable", "SQLiteStore"]
