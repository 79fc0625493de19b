"""Local key/value persistence for the sync client.

This module provides:
- KeyValueStore: Protocol for durable string key/value storage
- LocalStore: SQLite-based implementation

Architecture:
    The record cache and the pending queue each mirror themselves to a
    single key as a JSON document. The store is pure backing storage: it
    is overwritten on every change and read at cold start.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from offlinesync.client.sync.types import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Durable string key/value storage.

    Implementations raise PersistenceError when the backing storage fails.
    """

    def get(self, key: str) -> str | None:
        """Return the value for a key, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key. Removing a missing key is not an error."""
        ...


class LocalStore:
    """SQLite-based key/value store.

    Each operation runs in autocommit mode, so a value is durable as soon
    as the call returns.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the local store database.

        Args:
            db_path: Path to SQLite database file.

        Raises:
            PersistenceError: If the database cannot be opened.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        try:
            self._conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
            self._conn.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrency
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open local store {self._db_path}: {e}") from e

        logger.debug("Opened local store at %s", self._db_path)

    @property
    def path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> LocalStore:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def get(self, key: str) -> str | None:
        """Get a stored value.

        Args:
            key: Key to look up.

        Returns:
            The stored string, or None if the key is absent.
        """
        try:
            with self._lock:
                cursor = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?",
                    (key,),
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read {key!r}: {e}") from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Set a stored value (upsert)."""
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot write {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        """Remove a stored value."""
        try:
            with self._lock:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot remove {key!r}: {e}") from e

    def keys(self) -> list[str]:
        """List stored keys."""
        try:
            with self._lock:
                rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot list keys: {e}") from e
        return [row["key"] for row in rows]
