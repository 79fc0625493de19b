"""Offline action queue and reconciliation.

Architecture:
    intent ──► SyncEngine ──► RemoteStore (immediate)
                   │
                   └──► PendingQueue + RecordCache (deferred, optimistic)
                              │
                        (on reconnect: drain, then refresh)

Components:
- **RecordCache**: Last known view of the collection, mirrored to the local store
- **PendingQueue**: Durable FIFO of deferred ADD/DELETE actions
- **SyncEngine**: Immediate-vs-deferred decisions, single-flight drain-then-refresh

All public symbols are re-exported here.
"""

from offlinesync.client.sync.engine import RemoteStore, SyncEngine
from offlinesync.client.sync.queue import QUEUE_KEY, PendingQueue
from offlinesync.client.sync.records import CACHE_KEY, RecordCache
from offlinesync.client.sync.types import (
    PROVISIONAL_ID_PREFIX,
    ActionApplier,
    DrainReport,
    EngineSnapshot,
    NetworkError,
    PendingAction,
    PersistenceError,
    Record,
    RecordDraft,
    SnapshotListener,
    SyncError,
    SyncStatus,
    Unsubscribe,
    ValidationError,
    is_provisional_id,
    new_provisional_id,
)

__all__ = [
    "CACHE_KEY",
    "PROVISIONAL_ID_PREFIX",
    "QUEUE_KEY",
    "ActionApplier",
    "DrainReport",
    "EngineSnapshot",
    "NetworkError",
    "PendingAction",
    "PendingQueue",
    "PersistenceError",
    "Record",
    "RecordCache",
    "RecordDraft",
    "RemoteStore",
    "SnapshotListener",
    "SyncEngine",
    "SyncError",
    "SyncStatus",
    "Unsubscribe",
    "ValidationError",
    "is_provisional_id",
    "new_provisional_id",
]
