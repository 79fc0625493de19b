"""Tests for the pending action queue."""

from __future__ import annotations

import json

import pytest

from offlinesync.client.sync.queue import QUEUE_KEY, PendingQueue
from offlinesync.client.sync.types import (
    PendingAction,
    PersistenceError,
    RecordDraft,
)
from offlinesync.core.types import ActionType


def add_action(title: str, local_id: str | None = None) -> PendingAction:
    return PendingAction.add(RecordDraft(title=title, description="body"), local_id)


class TestPendingAction:
    """Tests for the stored action format."""

    def test_reads_type_payload_format(self) -> None:
        """Actions written as {"type", "payload"} should load."""
        add = PendingAction.from_dict(
            {"type": "ADD", "payload": {"title": "T", "description": "D"}}
        )
        delete = PendingAction.from_dict({"type": "DELETE", "payload": 5})

        assert add.action_type == ActionType.ADD
        assert add.draft == RecordDraft(title="T", description="D")
        assert add.local_id is None
        assert delete.action_type == ActionType.DELETE
        assert delete.record_id == "5"

    def test_add_keeps_local_id(self) -> None:
        """The provisional id should survive serialization."""
        data = add_action("T", "local-abc").to_dict()

        assert data == {
            "type": "ADD",
            "payload": {"title": "T", "description": "body"},
            "local_id": "local-abc",
        }
        assert PendingAction.from_dict(data).local_id == "local-abc"

    def test_unknown_type_rejected(self) -> None:
        """Unknown action types should raise."""
        with pytest.raises(ValueError):
            PendingAction.from_dict({"type": "UPDATE", "payload": "1"})

    def test_payload_must_match_type(self) -> None:
        """An ADD without a draft or a DELETE without an id is rejected."""
        with pytest.raises(ValueError):
            PendingAction(ActionType.ADD)
        with pytest.raises(ValueError):
            PendingAction(ActionType.DELETE)

    def test_missing_add_payload_rejected(self) -> None:
        """A stored ADD without a payload should not load."""
        with pytest.raises(KeyError):
            PendingAction.from_dict({"type": "ADD"})


class TestEnqueue:
    """Tests for PendingQueue.enqueue."""

    def test_enqueue_persists_full_list(self, store) -> None:  # type: ignore[no-untyped-def]
        """Every enqueue should write the whole queue."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a"))
        queue.enqueue(PendingAction.delete("7"))

        stored = json.loads(store.data[QUEUE_KEY])
        assert [item["type"] for item in stored] == ["ADD", "DELETE"]
        assert stored[1]["payload"] == "7"
        assert len(queue) == 2

    def test_enqueue_failure_raises_and_rolls_back(self, store) -> None:  # type: ignore[no-untyped-def]
        """A failed write should be reported and the action not kept."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a"))
        store.fail_writes = True

        with pytest.raises(PersistenceError):
            queue.enqueue(add_action("b"))

        assert [a.draft.title for a in queue] == ["a"]  # type: ignore[union-attr]

    def test_loads_persisted_actions(self, store) -> None:  # type: ignore[no-untyped-def]
        """A new queue should pick up actions from a previous run."""
        PendingQueue(store).enqueue(PendingAction.delete("3"))

        reopened = PendingQueue(store)

        assert list(reopened) == [PendingAction.delete("3")]

    def test_invalid_persisted_data_raises(self, store) -> None:  # type: ignore[no-untyped-def]
        """Corrupted persisted actions should not be silently dropped."""
        store.data[QUEUE_KEY] = "{not json"

        with pytest.raises(PersistenceError):
            PendingQueue(store)


class TestDrain:
    """Tests for PendingQueue.drain."""

    def test_applies_in_fifo_order(self, store) -> None:  # type: ignore[no-untyped-def]
        """Actions should be applied in insertion order."""
        queue = PendingQueue(store)
        actions = [add_action("a"), PendingAction.delete("1"), add_action("b")]
        for action in actions:
            queue.enqueue(action)
        applied: list[PendingAction] = []

        report = queue.drain(applied.append)

        assert applied == actions
        assert report.applied == actions
        assert report.success
        assert len(queue) == 0

    def test_failure_does_not_stop_later_actions(self, store) -> None:  # type: ignore[no-untyped-def]
        """A failing action is retained and the rest are still attempted."""
        queue = PendingQueue(store)
        for record_id in ["1", "2", "3", "4"]:
            queue.enqueue(PendingAction.delete(record_id))
        attempted: list[str] = []

        def apply(action: PendingAction) -> None:
            attempted.append(action.record_id)  # type: ignore[arg-type]
            if action.record_id in ("2", "3"):
                raise RuntimeError("server error")

        report = queue.drain(apply)

        assert attempted == ["1", "2", "3", "4"]
        assert [a.record_id for a, _ in report.failed] == ["2", "3"]
        assert [a.record_id for a in queue] == ["2", "3"]
        assert report.remaining == 2
        stored = json.loads(store.data[QUEUE_KEY])
        assert [item["payload"] for item in stored] == ["2", "3"]

    def test_empty_queue_removes_key(self, store) -> None:  # type: ignore[no-untyped-def]
        """After a fully successful drain the key should be absent."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("1"))

        queue.drain(lambda action: None)

        assert QUEUE_KEY not in store.data

    def test_single_pass(self, store) -> None:  # type: ignore[no-untyped-def]
        """A failing action is attempted once per drain."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("1"))
        attempts: list[PendingAction] = []

        def apply(action: PendingAction) -> None:
            attempts.append(action)
            raise RuntimeError("offline")

        queue.drain(apply)
        queue.drain(apply)

        assert len(attempts) == 2
        assert len(queue) == 1

    def test_enqueue_during_drain_kept_after_retained(self, store) -> None:  # type: ignore[no-untyped-def]
        """Actions queued mid-drain should follow the retained failures."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("1"))
        queue.enqueue(PendingAction.delete("2"))

        def apply(action: PendingAction) -> None:
            if action.record_id == "1":
                queue.enqueue(PendingAction.delete("late"))
                raise RuntimeError("server error")

        report = queue.drain(apply)

        assert [a.record_id for a in queue] == ["1", "late"]
        assert report.remaining == 2
        assert report.attempted == 2

    def test_drain_persist_failure_raises(self, store) -> None:  # type: ignore[no-untyped-def]
        """Failing to write the remaining queue should be reported."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("1"))
        store.fail_writes = True

        with pytest.raises(PersistenceError):
            queue.drain(lambda action: None)


class TestQueueHelpers:
    """Tests for inspection helpers."""

    def test_peek_and_bool(self, store) -> None:  # type: ignore[no-untyped-def]
        """peek should return the oldest action without removing it."""
        queue = PendingQueue(store)
        assert queue.peek() is None
        assert not queue

        queue.enqueue(PendingAction.delete("1"))
        queue.enqueue(PendingAction.delete("2"))

        assert queue.peek() == PendingAction.delete("1")
        assert queue
        assert len(queue) == 2

    def test_has_pending_add(self, store) -> None:  # type: ignore[no-untyped-def]
        """Should find queued ADDs by provisional id."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a", "local-1"))

        assert queue.has_pending_add("local-1")
        assert not queue.has_pending_add("local-2")

    def test_clear(self, store) -> None:  # type: ignore[no-untyped-def]
        """clear should empty the queue and the persisted key."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("1"))

        assert queue.clear() == 1
        assert len(queue) == 0
        assert QUEUE_KEY not in store.data

    def test_stats(self, store) -> None:  # type: ignore[no-untyped-def]
        """stats should count actions by type."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a"))
        queue.enqueue(add_action("b"))
        queue.enqueue(PendingAction.delete("1"))

        assert queue.stats() == {"total": 3, "add": 2, "delete": 1}


class TestResolveId:
    """Tests for PendingQueue.resolve_id."""

    def test_rewrites_queued_deletes(self, store) -> None:  # type: ignore[no-untyped-def]
        """Deletes of a replayed provisional id should target the server id."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a", "local-1"))
        queue.enqueue(PendingAction.delete("local-1"))
        queue.enqueue(PendingAction.delete("7"))

        assert queue.resolve_id("local-1", "9") == 1

        assert [a.record_id for a in queue][1:] == ["9", "7"]
        stored = json.loads(store.data[QUEUE_KEY])
        assert [item["payload"] for item in stored][1:] == ["9", "7"]

    def test_no_match_leaves_store_untouched(self, store) -> None:  # type: ignore[no-untyped-def]
        """Nothing to rewrite means no write."""
        queue = PendingQueue(store)
        queue.enqueue(PendingAction.delete("7"))
        store.fail_writes = True

        assert queue.resolve_id("local-1", "9") == 0

    def test_resolved_during_drain(self, store) -> None:  # type: ignore[no-untyped-def]
        """A delete already snapshotted by the drain sees the server id."""
        queue = PendingQueue(store)
        queue.enqueue(add_action("a", "local-1"))
        queue.enqueue(PendingAction.delete("local-1"))
        applied: list[PendingAction] = []

        def apply(action: PendingAction) -> None:
            applied.append(action)
            if action.action_type == ActionType.ADD:
                queue.resolve_id("local-1", "9")
            else:
                raise RuntimeError("server error")

        report = queue.drain(apply)

        assert applied[1] == PendingAction.delete("9")
        assert list(queue) == [PendingAction.delete("9")]
        assert report.failed[0][0] == PendingAction.delete("9")
        stored = json.loads(store.data[QUEUE_KEY])
        assert stored == [{"type": "DELETE", "payload": "9"}]
