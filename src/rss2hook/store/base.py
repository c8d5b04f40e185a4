from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


class StorageUnavailable(RuntimeError):
    """Raised when the seen cache cannot be opened or has been closed."""


@dataclass(slots=True)
class SeenRecord:
    fingerprint: str
    value: str
    first_seen_at: datetime


class Store(ABC):
    @abstractmethod
    def init_db(self) -> None:
        """Create any required schema."""

    @abstractmethod
    def is_new(self, fingerprint: str) -> bool:
        """Return True if no record exists for fingerprint."""

    @abstractmethod
    def get(self, fingerprint: str) -> SeenRecord | None:
        """Return existing record if seen, otherwise None."""

    @abstractmethod
    def mark_seen(self, fingerprint: str, value: str) -> None:
        """Create or update the record; durable once this returns."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying storage."""
