from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from .base import SeenRecord, Store, StorageUnavailable

DEFAULT_BUCKET = "rss2hook"


class SQLiteStore(Store):
    """Seen cache kept in a single SQLite file.

    Records live in one bucket (namespace) of the ``seen_items`` table. A
    single connection is shared between threads and guarded by a lock, so
    callers need no locking of their own.
    """

    def __init__(self, db_path: str | Path, bucket: str = DEFAULT_BUCKET) -> None:
        self.db_path = Path(db_path)
        self.bucket = bucket
        self._lock = Lock()
        self._connection: sqlite3.Connection | None = None

    @classmethod
    def open(cls, db_path: str | Path, bucket: str = DEFAULT_BUCKET) -> SQLiteStore:
        store = cls(db_path, bucket=bucket)
        store.init_db()
        return store

    def init_db(self) -> None:
        with self._lock:
            if self._connection is not None:
                return
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                connection = sqlite3.connect(
                    str(self.db_path),
                    timeout=30.0,
                    check_same_thread=False,
                )
                connection.row_factory = sqlite3.Row
                connection.execute("PRAGMA synchronous = FULL")
                connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS seen_items (
                        bucket TEXT NOT NULL,
                        fingerprint TEXT NOT NULL,
                        value TEXT NOT NULL,
                        first_seen_at TEXT NOT NULL,
                        PRIMARY KEY (bucket, fingerprint)
                    )
                    """
                )
                connection.commit()
            except (sqlite3.Error, OSError) as exc:
                raise StorageUnavailable(
                    f"could not open cache file {self.db_path}: {exc}"
                ) from exc
            self._connection = connection

    def is_new(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is None

    def get(self, fingerprint: str) -> SeenRecord | None:
        with self._lock:
            connection = self._require_connection()
            try:
                row = connection.execute(
                    """
                    SELECT fingerprint, value, first_seen_at
                    FROM seen_items
                    WHERE bucket = ? AND fingerprint = ?
                    """,
                    (self.bucket, fingerprint),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StorageUnavailable(f"cache read failed: {exc}") from exc

        if row is None:
            return None

        return SeenRecord(
            fingerprint=row["fingerprint"],
            value=row["value"],
            first_seen_at=_parse_timestamp(row["first_seen_at"]),
        )

    def mark_seen(self, fingerprint: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()

        with self._lock:
            connection = self._require_connection()
            try:
                with connection:
                    connection.execute(
                        """
                        INSERT INTO seen_items (bucket, fingerprint, value, first_seen_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(bucket, fingerprint) DO UPDATE SET
                            value = excluded.value
                        """,
                        (self.bucket, fingerprint, value or "", now),
                    )
            except sqlite3.Error as exc:
                raise StorageUnavailable(f"cache write failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageUnavailable(f"cache {self.db_path} is not open")
        return self._connection


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
