"""Record cache mirrored to the local store.

This module provides:
- RecordCache: In-memory view of the collection, persisted under one key

The cache holds the last known authoritative-or-optimistic view. Every
change is mirrored to the local store as a JSON array; the mirror is read
back only at cold start or when the remote fetch fails.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING

from offlinesync.client.sync.types import PersistenceError, Record

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from offlinesync.client.state import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY = "cachedData"


class RecordCache:
    """Thread-safe ordered view of the collection.

    Uniqueness of ids is left to the caller. Mirror writes that fail are
    logged and the in-memory change is kept; the next write or refresh
    rewrites the whole mirror.
    """

    def __init__(self, store: KeyValueStore, key: str = CACHE_KEY) -> None:
        self._store = store
        self._key = key
        self._lock = threading.RLock()
        self._records: list[Record] = []
        self._loaded = False

    @property
    def loaded(self) -> bool:
        """True once the view came from the store or the remote collection."""
        with self._lock:
            return self._loaded

    def load(self) -> list[Record]:
        """Get the current view (a copy)."""
        with self._lock:
            return list(self._records)

    def restore(self) -> list[Record]:
        """Reload the view from the local store.

        A missing key leaves an empty cache.

        Returns:
            The restored records.

        Raises:
            PersistenceError: If the store cannot be read or holds invalid
                data. The current view is left unchanged.
        """
        raw = self._store.get(self._key)
        if raw is None:
            logger.debug("No cached records under %s", self._key)
            records: list[Record] = []
        else:
            try:
                records = [Record.from_dict(item) for item in json.loads(raw)]
            except (ValueError, TypeError, KeyError) as e:
                raise PersistenceError(f"Invalid cached records: {e}") from e

        with self._lock:
            self._records = records
            self._loaded = True
        logger.debug("Restored %d records from local store", len(records))
        return list(records)

    def replace_all(self, records: Iterable[Record]) -> None:
        """Swap the view for exactly the given records and persist them."""
        with self._lock:
            self._records = list(records)
            self._loaded = True
            self._persist()

    def append(self, record: Record) -> None:
        """Add a record at the end of the view."""
        with self._lock:
            self._records.append(record)
            self._persist()

    def remove(self, record_id: str) -> bool:
        """Remove every record with the given id.

        Returns:
            True if a record was removed.
        """
        with self._lock:
            kept = [r for r in self._records if r.id != record_id]
            if len(kept) == len(self._records):
                return False
            self._records = kept
            self._persist()
            return True

    def replace(self, old_id: str, record: Record) -> bool:
        """Replace a record in place, keeping its position.

        Used to swap a provisional record for the one the server created.

        Returns:
            True if a record with old_id was found.
        """
        with self._lock:
            for index, existing in enumerate(self._records):
                if existing.id == old_id:
                    self._records[index] = record
                    self._persist()
                    return True
            return False

    def get(self, record_id: str) -> Record | None:
        """Look up a record by id."""
        with self._lock:
            for record in self._records:
                if record.id == record_id:
                    return record
            return None

    def _persist(self) -> None:
        """Mirror the view to the local store. Caller holds the lock."""
        payload = json.dumps([r.to_dict() for r in self._records])
        try:
            self._store.set(self._key, payload)
        except PersistenceError as e:
            logger.warning("Failed to mirror %d records to local store: %s", len(self._records), e)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        """Iterate over a snapshot of the view."""
        return iter(self.load())

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return any(r.id == record_id for r in self._records)
