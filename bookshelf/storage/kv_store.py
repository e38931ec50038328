"""Key/value slots for client-local persistence.

The local backend keeps its whole collection under one named key. The
store is injected so tests can swap the SQLite file for memory.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

KV_TABLE = "kv_store"


class QuotaExceededError(OSError):
    """Raised when a write would exceed the store's capacity."""


class KeyValueStore(Protocol):
    """Minimal string key/value interface used by the local backend."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class SQLiteKeyValueStore:
    """Key/value store kept in the ``kv_store`` table of a SQLite file.

    Each call opens its own connection, so the store can be shared freely
    within a process. ``sqlite3.Error`` propagates to the caller.

    Args:
        db_path: Path to the SQLite database file. Parent directories and
            the table are created on construction.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {KV_TABLE} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def get_item(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(f"SELECT value FROM {KV_TABLE} WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {KV_TABLE} (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute(f"DELETE FROM {KV_TABLE} WHERE key = ?", (key,))


class MemoryKeyValueStore:
    """In-memory store for tests and throwaway sessions.

    Args:
        quota: Optional capacity in characters across all values.
    """

    def __init__(self, quota: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota = quota

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota is not None:
            used = sum(len(v) for k, v in self._items.items() if k != key)
            if used + len(value) > self._quota:
                raise QuotaExceededError(f"Storage quota of {self._quota} characters exceeded")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
