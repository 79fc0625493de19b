"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, NetworkError, PersistenceError, ValidationError: Exception classes
- Record, RecordDraft: Collection items with and without a remote id
- PendingAction: Deferred mutation stored in the pending queue
- DrainReport: Outcome of a single pass over the pending queue
- SyncStatus, EngineSnapshot: Observable engine state
- Provisional id helpers
- Type aliases for callbacks
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from offlinesync.core.types import ActionType

PROVISIONAL_ID_PREFIX = "local-"


class SyncError(Exception):
    """Base exception for sync errors."""


class NetworkError(SyncError):
    """A remote call failed or returned a non-2xx response."""


class PersistenceError(SyncError):
    """Reading or writing the local store failed."""


class ValidationError(SyncError):
    """A record was rejected before any side effect."""


def new_provisional_id() -> str:
    """Mint an id for a record that has not reached the server yet."""
    return f"{PROVISIONAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_provisional_id(record_id: str) -> bool:
    """Check whether an id was minted locally."""
    return record_id.startswith(PROVISIONAL_ID_PREFIX)


@dataclass(frozen=True)
class RecordDraft:
    """A record before the server has assigned it an id."""

    title: str
    description: str

    def validate(self) -> None:
        """Reject drafts with an empty title or description.

        Raises:
            ValidationError: If either field is empty.
        """
        if not self.title or not self.description:
            raise ValidationError("Title and description are required")

    def to_dict(self) -> dict[str, str]:
        """Convert to the JSON body sent on create."""
        return {"title": self.title, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecordDraft:
        """Create from a stored payload dictionary."""
        return cls(title=str(data["title"]), description=str(data["description"]))


@dataclass(frozen=True)
class Record:
    """An item of the collection.

    Attributes:
        id: Server-assigned id, or a provisional "local-" id.
        title: Record title.
        description: Record body.
    """

    id: str
    title: str
    description: str

    @property
    def is_provisional(self) -> bool:
        """True until the server has confirmed this record."""
        return is_provisional_id(self.id)

    @classmethod
    def from_draft(cls, draft: RecordDraft, record_id: str) -> Record:
        """Attach an id to a draft."""
        return cls(id=record_id, title=draft.title, description=draft.description)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Create from an API response or cached dictionary.

        Extra fields sent by the server are ignored and numeric ids are
        kept as strings.
        """
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to a JSON-serializable dictionary."""
        return {"id": self.id, "title": self.title, "description": self.description}


@dataclass(frozen=True)
class PendingAction:
    """A deferred mutation.

    ADD actions carry a draft and, when an optimistic record was shown,
    the provisional id standing in for it. DELETE actions carry the id of
    the record to remove.

    Raises:
        ValueError: If the payload does not match the action type.
    """

    action_type: ActionType
    draft: RecordDraft | None = None
    record_id: str | None = None
    local_id: str | None = None

    def __post_init__(self) -> None:
        if self.action_type == ActionType.ADD and self.draft is None:
            raise ValueError("ADD action requires a draft")
        if self.action_type == ActionType.DELETE and self.record_id is None:
            raise ValueError("DELETE action requires a record id")

    @classmethod
    def add(cls, draft: RecordDraft, local_id: str | None = None) -> PendingAction:
        """Create an ADD action."""
        return cls(ActionType.ADD, draft=draft, local_id=local_id)

    @classmethod
    def delete(cls, record_id: str) -> PendingAction:
        """Create a DELETE action."""
        return cls(ActionType.DELETE, record_id=record_id)

    @property
    def add_draft(self) -> RecordDraft:
        """Draft of an ADD action."""
        if self.draft is None:
            raise ValueError(f"{self.action_type.value} action has no draft")
        return self.draft

    @property
    def target_id(self) -> str:
        """Record id of a DELETE action."""
        if self.record_id is None:
            raise ValueError(f"{self.action_type.value} action has no record id")
        return self.record_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored format.

        ``{"type": "ADD", "payload": {...}}`` or ``{"type": "DELETE", "payload": id}``.
        """
        if self.action_type == ActionType.ADD:
            data: dict[str, Any] = {"type": self.action_type.value, "payload": self.add_draft.to_dict()}
            if self.local_id:
                data["local_id"] = self.local_id
            return data
        return {"type": self.action_type.value, "payload": self.target_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingAction:
        """Create from the stored format.

        Raises:
            ValueError: If the action type is unknown.
            KeyError: If a required field is missing.
        """
        action_type = ActionType(data["type"])
        if action_type == ActionType.ADD:
            return cls.add(RecordDraft.from_dict(data["payload"]), data.get("local_id"))
        return cls.delete(str(data["payload"]))

    def __repr__(self) -> str:
        if self.action_type == ActionType.ADD:
            return f"PendingAction(ADD, title={self.add_draft.title!r}, local_id={self.local_id})"
        return f"PendingAction(DELETE, id={self.record_id})"


@dataclass
class DrainReport:
    """Outcome of one pass over the pending queue.

    Attributes:
        applied: Actions that succeeded and were removed.
        failed: Actions that raised, with the error, and stay queued.
        remaining: Queue length after the pass (includes actions
            enqueued while the pass was running).
    """

    applied: list[PendingAction] = field(default_factory=list)
    failed: list[tuple[PendingAction, Exception]] = field(default_factory=list)
    remaining: int = 0

    @property
    def attempted(self) -> int:
        """Number of actions attempted."""
        return len(self.applied) + len(self.failed)

    @property
    def success(self) -> bool:
        """True if every attempted action succeeded."""
        return not self.failed


@dataclass(frozen=True)
class SyncStatus:
    """Observable engine status.

    Attributes:
        offline: Last known connectivity (True when unreachable).
        syncing: A drain-then-refresh cycle is running.
        refreshing: A fetch from the remote store is running.
        pending: Number of queued actions.
    """

    offline: bool = False
    syncing: bool = False
    refreshing: bool = False
    pending: int = 0

    def describe(self) -> str:
        """Human-readable status line."""
        text = "Offline" if self.offline else "Online"
        if self.syncing:
            text += " (Syncing...)"
        elif self.refreshing:
            text += " (Refreshing...)"
        return text


@dataclass(frozen=True)
class EngineSnapshot:
    """Copy of the engine state handed to subscribers."""

    records: tuple[Record, ...]
    status: SyncStatus


# Type aliases for callbacks
ActionApplier = Callable[[PendingAction], None]
SnapshotListener = Callable[[EngineSnapshot], None]
Unsubscribe = Callable[[], None]
