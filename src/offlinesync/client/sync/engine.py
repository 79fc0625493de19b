"""Sync engine reconciling the record cache with the remote collection.

This module provides:
- RemoteStore: Protocol for the remote collection
- SyncEngine: Decides immediate-vs-deferred mutations, replays the pending
  queue on reconnection and refreshes the cache

Sync cycle:
    IDLE ──► DRAINING ──► REFRESHING ──► IDLE

    Entry to DRAINING is guarded by a non-blocking lock, so at most one
    cycle runs at a time. REFRESHING always follows a drain attempt, and
    the lock is released on every exit path.

Decision matrix for intents:
    | Intent  | Offline            | Online, remote OK | Online, remote fails |
    |---------|--------------------|-------------------|----------------------|
    | add     | queue + optimistic | append remote rec | queue + optimistic   |
    | delete  | queue + remove     | remove            | queue + remove       |
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol

from offlinesync.client.sync.queue import PendingQueue
from offlinesync.client.sync.records import RecordCache
from offlinesync.client.sync.types import (
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
from offlinesync.core.types import ActionType, SyncPhase

if TYPE_CHECKING:
    from offlinesync.client.connectivity import ConnectivitySource, ConnectivityStatus
    from offlinesync.client.state import KeyValueStore

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Remote collection of records.

    Implementations raise NetworkError (or a subclass) on transport
    failures and non-2xx responses.
    """

    def list_records(self) -> list[Record]:
        """Return the whole collection."""
        ...

    def create_record(self, draft: RecordDraft) -> Record:
        """Create a record and return it with its assigned id."""
        ...

    def delete_record(self, record_id: str) -> None:
        """Delete a record by id."""
        ...

    def get_record(self, record_id: str) -> Record:
        """Return a single record by id."""
        ...


class SyncEngine:
    """Owns the record cache, the pending queue and the sync status.

    Usage:
        engine = SyncEngine(store, client, monitor)
        engine.subscribe(render)
        engine.initialize()

        engine.add_record("Title", "Body")   # created or queued
        engine.delete_record("42")           # deleted or queued

        # Reconnection events from the monitor replay the queue in the
        # background; sync() can also be called directly.
        engine.close()
    """

    def __init__(
        self,
        store: KeyValueStore,
        remote: RemoteStore,
        connectivity: ConnectivitySource,
    ) -> None:
        """Initialize the sync engine.

        Args:
            store: Local key/value store backing the cache and the queue.
            remote: Remote collection.
            connectivity: Source of reachability information.

        Raises:
            PersistenceError: If persisted pending actions cannot be loaded.
        """
        self._remote = remote
        self._connectivity = connectivity
        self._cache = RecordCache(store)
        self._queue = PendingQueue(store)

        # Status
        self._state_lock = threading.RLock()
        self._offline = False
        self._syncing = False
        self._refreshing = False
        self._phase = SyncPhase.IDLE

        # Single-flight guard for drain-then-refresh
        self._sync_lock = threading.Lock()
        self._sync_thread: threading.Thread | None = None

        # Provisional id -> server id for ADDs replayed by the running sync
        self._confirmed_ids: dict[str, str] = {}

        self._listeners: list[SnapshotListener] = []
        self._unsubscribe_connectivity: Unsubscribe | None = None

    # === Observable state ===

    @property
    def records(self) -> list[Record]:
        """Current view of the collection."""
        return self._cache.load()

    @property
    def status(self) -> SyncStatus:
        """Current status flags."""
        with self._state_lock:
            return SyncStatus(
                offline=self._offline,
                syncing=self._syncing,
                refreshing=self._refreshing,
                pending=len(self._queue),
            )

    @property
    def phase(self) -> SyncPhase:
        """Phase of the current sync cycle."""
        with self._state_lock:
            return self._phase

    @property
    def queue(self) -> PendingQueue:
        """Pending queue (read access for reporting)."""
        return self._queue

    def snapshot(self) -> EngineSnapshot:
        """Copy of records and status."""
        return EngineSnapshot(records=tuple(self._cache.load()), status=self.status)

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        """Register a listener called with a snapshot after every change.

        Returns:
            Function removing the listener.
        """
        with self._state_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._state_lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        snapshot = self.snapshot()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")

    def _set_flags(
        self,
        *,
        offline: bool | None = None,
        syncing: bool | None = None,
        refreshing: bool | None = None,
    ) -> None:
        with self._state_lock:
            if offline is not None:
                self._offline = offline
            if syncing is not None:
                self._syncing = syncing
            if refreshing is not None:
                self._refreshing = refreshing
        self._notify()

    def _set_phase(self, phase: SyncPhase) -> None:
        with self._state_lock:
            self._phase = phase
        logger.debug("Sync phase: %s", phase.value)

    # === Lifecycle ===

    def initialize(self) -> None:
        """Query connectivity once, load the collection and start listening.

        Online: fetch from the remote store. Offline or on fetch failure:
        restore the last persisted cache (missing cache means empty).
        """
        status = self._connectivity.fetch_current()
        self._set_flags(offline=not status.connected)
        logger.info("Initializing (%s)", "online" if status.connected else "offline")

        self._fetch_or_restore(status.connected)

        if self._unsubscribe_connectivity is None:
            self._unsubscribe_connectivity = self._connectivity.subscribe(
                self._handle_connectivity
            )

    def close(self, timeout: float = 5.0) -> None:
        """Stop listening for connectivity and wait for a background sync."""
        if self._unsubscribe_connectivity is not None:
            self._unsubscribe_connectivity()
            self._unsubscribe_connectivity = None
        self.wait_for_sync(timeout)

    def wait_for_sync(self, timeout: float | None = None) -> bool:
        """Wait for the background sync thread, if any.

        Returns:
            True if no background sync is running anymore.
        """
        thread = self._sync_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # === Loading ===

    def refresh(self) -> None:
        """Reload the collection (pull-to-refresh).

        Never raises: failures are logged and the cache is left as is.
        """
        self._set_flags(refreshing=True)
        try:
            status = self._connectivity.fetch_current()
            self._set_flags(offline=not status.connected)
            self._fetch_or_restore(status.connected)
        except Exception:
            logger.exception("Refresh failed")
        finally:
            self._set_flags(refreshing=False)

    def _fetch_or_restore(self, connected: bool) -> None:
        if connected:
            try:
                records = self._remote.list_records()
            except NetworkError as e:
                logger.warning("Failed to fetch records, falling back to cache: %s", e)
            else:
                self._cache.replace_all(records)
                logger.info("Fetched %d records", len(records))
                self._notify()
                return

        if self._cache.loaded:
            logger.debug("Keeping in-memory records (%d)", len(self._cache))
        else:
            try:
                self._cache.restore()
            except PersistenceError as e:
                logger.warning("Failed to load cached records: %s", e)
        self._notify()

    # === Intents ===

    def add_record(self, title: str, description: str) -> Record | None:
        """Add a record, immediately if online, deferred otherwise.

        Args:
            title: Record title (required).
            description: Record description (required).

        Returns:
            The record now shown in the cache (provisional if deferred),
            or None if a field was empty.

        Raises:
            PersistenceError: If the record had to be deferred and the
                pending queue could not be written.
        """
        draft = RecordDraft(title=title, description=description)
        try:
            draft.validate()
        except ValidationError as e:
            logger.warning("Rejected record: %s", e)
            return None

        if not self.status.offline:
            try:
                record = self._remote.create_record(draft)
            except NetworkError as e:
                logger.warning("Create failed, queueing for later sync: %s", e)
            else:
                self._cache.append(record)
                self._notify()
                return record

        local_id = new_provisional_id()
        self._queue.enqueue(PendingAction.add(draft, local_id))
        record = Record.from_draft(draft, local_id)
        self._cache.append(record)
        self._notify()
        logger.info("Queued new record %s", local_id)
        return record

    def delete_record(self, record_id: str) -> bool:
        """Delete a record, immediately if online, deferred otherwise.

        A deferred delete always removes the record from the cache right
        away.

        Returns:
            True if the remote store confirmed the delete, False if queued.

        Raises:
            PersistenceError: If the delete had to be deferred and the
                pending queue could not be written.
        """
        target = self._resolve_id(record_id)

        if not self.status.offline and not is_provisional_id(target):
            try:
                self._remote.delete_record(target)
            except NetworkError as e:
                logger.warning("Delete of %s failed, queueing for later sync: %s", target, e)
            else:
                self._forget(record_id, target)
                self._notify()
                return True

        self._queue.enqueue(PendingAction.delete(record_id))
        self._forget(record_id, target)
        self._notify()
        logger.info("Queued delete of %s", record_id)
        return False

    def _resolve_id(self, record_id: str) -> str:
        with self._state_lock:
            return self._confirmed_ids.get(record_id, record_id)

    def _forget(self, record_id: str, target: str) -> None:
        # A replayed ADD leaves the record under its server id
        if not self._cache.remove(record_id) and target != record_id:
            self._cache.remove(target)

    # === Connectivity ===

    def _handle_connectivity(self, status: ConnectivityStatus) -> None:
        self.on_connectivity_change(status.connected)

    def on_connectivity_change(self, connected: bool) -> threading.Thread | None:
        """Record a connectivity event and replay the queue when connected.

        The replay runs on a daemon thread; this call does not block.

        Returns:
            The thread running the sync, or None if none was started.
        """
        self._set_flags(offline=not connected)
        if not connected or self._sync_lock.locked():
            return None

        thread = threading.Thread(
            target=self._sync_in_background,
            name="SyncEngine",
            daemon=True,
        )
        self._sync_thread = thread
        thread.start()
        return thread

    def _sync_in_background(self) -> None:
        try:
            self.sync()
        except Exception:
            logger.exception("Background sync failed")

    # === Sync cycle ===

    def sync(self) -> DrainReport | None:
        """Drain the pending queue, then refresh the cache.

        Returns:
            The drain report, or None if a sync was already running.

        Raises:
            PersistenceError: If the remaining queue cannot be written. The
                refresh still runs and the sync lock is released.
        """
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("Sync already in progress, skipping")
            return None

        try:
            self._set_flags(syncing=True)
            logger.info("Sync started (%d pending)", len(self._queue))
            self._set_phase(SyncPhase.DRAINING)
            try:
                report = self._queue.drain(self._apply)
            finally:
                self._set_phase(SyncPhase.REFRESHING)
                self.refresh()
            logger.info(
                "Sync finished: %d applied, %d failed",
                len(report.applied),
                len(report.failed),
            )
            return report
        finally:
            # Queued deletes were rewritten to server ids during the drain
            with self._state_lock:
                self._confirmed_ids.clear()
            self._set_phase(SyncPhase.IDLE)
            self._set_flags(syncing=False)
            self._sync_lock.release()

    def _apply(self, action: PendingAction) -> None:
        """Perform the remote effect of one queued action."""
        if action.action_type == ActionType.ADD:
            created = self._remote.create_record(action.add_draft)
            if action.local_id:
                with self._state_lock:
                    self._confirmed_ids[action.local_id] = created.id
                self._queue.resolve_id(action.local_id, created.id)
                self._cache.replace(action.local_id, created)
            return

        target = self._resolve_id(action.target_id)
        if is_provisional_id(target):
            if self._queue.has_pending_add(target):
                raise SyncError(f"Record {target} has not been created remotely yet")
            # The ADD was never replayed, so there is nothing to delete remotely
            logger.info("Dropping delete of never-synced record %s", target)
            return
        self._remote.delete_record(target)
