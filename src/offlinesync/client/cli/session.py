"""Engine wiring shared by CLI commands."""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Iterator
from dataclasses import dataclass

import click

from offlinesync.client.api import HTTPClient
from offlinesync.client.cli.config import (
    get_check_interval,
    get_remote_config,
    get_state_db_path,
    load_config,
)
from offlinesync.client.connectivity import ConnectivityMonitor
from offlinesync.client.state import LocalStore
from offlinesync.client.sync import Record, SyncEngine, SyncError


@dataclass
class Session:
    """Objects a command works with."""

    engine: SyncEngine
    monitor: ConnectivityMonitor
    client: HTTPClient
    store: LocalStore


@contextlib.contextmanager
def open_session() -> Iterator[Session]:
    """Build the engine from the saved configuration.

    Exits with status 1 if not configured or on a sync error.
    """
    config = load_config()
    remote_config = get_remote_config(config)
    if remote_config is None:
        click.echo("Error: Not configured. Run 'offlinesync configure URL' first.", err=True)
        sys.exit(1)

    try:
        store = LocalStore(get_state_db_path())
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    client = HTTPClient(remote_config)
    monitor = ConnectivityMonitor(client, check_interval=get_check_interval(config))
    engine: SyncEngine | None = None
    try:
        engine = SyncEngine(store, client, monitor)
        yield Session(engine=engine, monitor=monitor, client=client, store=store)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        if engine is not None:
            engine.close()
        monitor.stop()
        client.close()
        store.close()


def format_record(record: Record) -> str:
    """Format a record as one output line."""
    marker = " [local]" if record.is_provisional else ""
    return f"{record.id}{marker}  {record.title} - {record.description}"
