"""Shared fixtures: in-memory collaborators for the sync engine."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator

import pytest

from offlinesync.client.api import APIError, NotFoundError
from offlinesync.client.connectivity import ConnectivityStatus
from offlinesync.client.sync.types import PersistenceError, Record, RecordDraft


class MemoryStore:
    """Dict-backed key/value store with switchable write failures."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.fail_writes = False

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.data[key] = value

    def remove(self, key: str) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.data.pop(key, None)


class FakeRemote:
    """In-memory remote collection recording every call."""

    def __init__(self) -> None:
        self.records: list[Record] = []
        self.next_id = 1
        self.calls: list[tuple[str, object]] = []
        self.fail_list = False
        self.fail_create = False
        self.fail_delete: set[str] = set()
        self.on_delete: Callable[[str], None] | None = None

    def calls_to(self, name: str) -> list[object]:
        return [arg for call, arg in self.calls if call == name]

    def list_records(self) -> list[Record]:
        self.calls.append(("list", None))
        if self.fail_list:
            raise APIError("GET failed: connection refused")
        return list(self.records)

    def create_record(self, draft: RecordDraft) -> Record:
        self.calls.append(("create", draft))
        if self.fail_create:
            raise APIError("POST returned 503", 503)
        record = Record.from_draft(draft, str(self.next_id))
        self.next_id += 1
        self.records.append(record)
        return record

    def delete_record(self, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        if self.on_delete:
            self.on_delete(record_id)
        if record_id in self.fail_delete:
            raise APIError("DELETE returned 500", 500)
        if not any(r.id == record_id for r in self.records):
            raise NotFoundError("Resource not found", 404)
        self.records = [r for r in self.records if r.id != record_id]

    def get_record(self, record_id: str) -> Record:
        self.calls.append(("get", record_id))
        for record in self.records:
            if record.id == record_id:
                return record
        raise NotFoundError("Resource not found", 404)


class FakeConnectivity:
    """Connectivity source driven by the test."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.handlers: list[Callable[[ConnectivityStatus], None]] = []

    def fetch_current(self) -> ConnectivityStatus:
        return ConnectivityStatus(connected=self.connected)

    def subscribe(
        self, handler: Callable[[ConnectivityStatus], None]
    ) -> Callable[[], None]:
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    def emit(self, connected: bool) -> None:
        self.connected = connected
        for handler in list(self.handlers):
            handler(ConnectivityStatus(connected=connected))


@pytest.fixture
def store() -> MemoryStore:
    """In-memory local store."""
    return MemoryStore()


@pytest.fixture
def remote() -> FakeRemote:
    """In-memory remote collection."""
    return FakeRemote()


@pytest.fixture
def connectivity() -> FakeConnectivity:
    """Connectivity source, online by default."""
    return FakeConnectivity(connected=True)


@pytest.fixture
def gate() -> Iterator[threading.Event]:
    """Event used to hold a fake remote call open; released on teardown."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog sees package records."""
    yield
    package_logger = logging.getLogger("offlinesync")
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
