"""Durable FIFO queue of deferred mutations.

This module provides:
- PendingQueue: Thread-safe ordered queue mirrored to the local store

Action types (PendingAction, ActionType) are in types.py.

The queue is append-only from the intent side and is drained front-to-back
by the sync engine:
- Actions are applied in insertion order
- A failed action stays queued and the pass continues with the next one
- Actions enqueued while a drain is running are kept after the drained ones
- Queued deletes of a provisional id follow it to the server id once its
  ADD has been replayed (resolve_id)

Persistence:
    The full list is written to the local store as a JSON array under one
    key on every change. When the queue becomes empty after a drain the
    key is removed rather than written as an empty array.

    An enqueue whose write fails is rolled back in memory and the error is
    raised, so the caller never believes an action is queued when it is
    not durable.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING

from offlinesync.client.sync.types import (
    ActionApplier,
    DrainReport,
    PendingAction,
    PersistenceError,
)
from offlinesync.core.types import ActionType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from offlinesync.client.state import KeyValueStore

logger = logging.getLogger(__name__)

QUEUE_KEY = "pendingActions"


class PendingQueue:
    """Thread-safe FIFO queue of pending actions with durable mirror.

    Attributes:
        key: Local store key holding the serialized queue
    """

    def __init__(self, store: KeyValueStore, key: str = QUEUE_KEY) -> None:
        """Initialize the queue and load persisted actions.

        Args:
            store: Local store used as durable mirror
            key: Key to persist under

        Raises:
            PersistenceError: If persisted actions cannot be read or decoded
        """
        self._store = store
        self.key = key
        self._lock = threading.RLock()
        self._drain_lock = threading.Lock()
        self._actions: list[PendingAction] = []
        # Provisional id -> server id, for the drain in progress
        self._resolved: dict[str, str] = {}

        self._load_from_persistence()

    def _load_from_persistence(self) -> None:
        """Load actions from the local store on startup."""
        raw = self._store.get(self.key)
        if raw is None:
            return

        try:
            self._actions = [PendingAction.from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as e:
            raise PersistenceError(f"Invalid pending actions under {self.key!r}: {e}") from e

        if self._actions:
            logger.info("Loaded %d pending actions from persistence", len(self._actions))

    def _persist(self, actions: list[PendingAction]) -> None:
        """Write the given actions, or remove the key when there are none."""
        if not actions:
            self._store.remove(self.key)
            return
        self._store.set(self.key, json.dumps([a.to_dict() for a in actions]))

    def enqueue(self, action: PendingAction) -> None:
        """Append an action and persist the full queue.

        Args:
            action: The action to defer

        Raises:
            PersistenceError: If the queue cannot be written. The action is
                not queued in that case.
        """
        with self._lock:
            self._actions.append(action)
            try:
                self._persist(self._actions)
            except PersistenceError:
                self._actions.pop()
                logger.error("Failed to persist %r, action not queued", action)
                raise

            logger.debug("Queued action: %r (queue size: %d)", action, len(self._actions))

    def drain(self, apply: ActionApplier) -> DrainReport:
        """Apply every queued action once, in order.

        ``apply`` signals failure by raising. A failed action is retained
        and the pass moves on to the next action. Only one drain runs at a
        time; a second caller waits for the first to finish.

        Args:
            apply: Callable performing the remote effect of one action

        Returns:
            Report of applied and failed actions

        Raises:
            PersistenceError: If the remaining actions cannot be written
        """
        with self._drain_lock:
            with self._lock:
                snapshot = list(self._actions)

            report = DrainReport()
            if snapshot:
                logger.info("Draining %d pending actions", len(snapshot))

            for queued in snapshot:
                action = self._current(queued)
                try:
                    apply(action)
                except Exception as e:
                    logger.error("Failed to sync action %r: %s", action, e)
                    report.failed.append((action, e))
                    continue
                report.applied.append(action)
                logger.debug("Applied action: %r", action)

            with self._lock:
                # Anything past the snapshot was enqueued during the pass
                retained = [action for action, _ in report.failed]
                self._actions = retained + self._actions[len(snapshot):]
                report.remaining = len(self._actions)
                self._resolved.clear()
                self._persist(self._actions)

            if snapshot:
                logger.info(
                    "Drain finished: %d applied, %d failed, %d remaining",
                    len(report.applied),
                    len(report.failed),
                    report.remaining,
                )
            return report

    def resolve_id(self, local_id: str, server_id: str) -> int:
        """Point queued DELETEs of a provisional id at the server id.

        Called once the ADD for ``local_id`` has been replayed. Actions
        already snapshotted by a running drain are rewritten as they come
        up.

        Args:
            local_id: Provisional record id
            server_id: Id assigned by the remote store

        Returns:
            Number of queued actions rewritten
        """
        with self._lock:
            self._resolved[local_id] = server_id
            rewritten = 0
            for index, action in enumerate(self._actions):
                if action.action_type == ActionType.DELETE and action.record_id == local_id:
                    self._actions[index] = PendingAction.delete(server_id)
                    rewritten += 1
            if not rewritten:
                return 0

            try:
                self._persist(self._actions)
            except PersistenceError as e:
                logger.warning("Failed to persist resolved id %s -> %s: %s", local_id, server_id, e)
            logger.debug("Resolved %d queued deletes of %s to %s", rewritten, local_id, server_id)
            return rewritten

    def _current(self, action: PendingAction) -> PendingAction:
        """Return the action as it stands after any id resolution."""
        with self._lock:
            if action.action_type == ActionType.DELETE and action.record_id in self._resolved:
                return PendingAction.delete(self._resolved[action.record_id])
            return action

    def peek(self) -> PendingAction | None:
        """Look at the oldest action without removing it.

        Returns:
            The oldest action, or None if the queue is empty
        """
        with self._lock:
            return self._actions[0] if self._actions else None

    def has_pending_add(self, local_id: str) -> bool:
        """Check if an ADD for a provisional id is still queued.

        Args:
            local_id: Provisional record id

        Returns:
            True if a matching ADD action is queued
        """
        with self._lock:
            return any(
                a.action_type == ActionType.ADD and a.local_id == local_id
                for a in self._actions
            )

    def clear(self) -> int:
        """Remove all actions from the queue.

        Returns:
            Number of actions removed
        """
        with self._lock:
            count = len(self._actions)
            self._persist([])
            self._actions.clear()
            logger.info("Cleared %d actions from queue", count)
            return count

    def __len__(self) -> int:
        """Get number of pending actions."""
        with self._lock:
            return len(self._actions)

    def __iter__(self) -> Iterator[PendingAction]:
        """Iterate over actions in order (does not remove them)."""
        with self._lock:
            return iter(list(self._actions))

    def __bool__(self) -> bool:
        """Check if queue has actions."""
        with self._lock:
            return bool(self._actions)

    def stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Dictionary with action counts by type
        """
        with self._lock:
            stats: dict[str, int] = {"total": len(self._actions), "add": 0, "delete": 0}
            for action in self._actions:
                stats[action.action_type.value.lower()] += 1
            return stats
