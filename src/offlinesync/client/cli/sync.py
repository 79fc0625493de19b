"""Sync commands for the offlinesync CLI.

Commands:
- sync: Replay pending actions now
- status: Show connectivity and pending actions
- watch: Replay pending actions automatically on reconnection
"""

from __future__ import annotations

import sys
import threading

import click

from offlinesync.client.cli.session import format_record, open_session
from offlinesync.client.sync import EngineSnapshot


@click.command()
def sync() -> None:
    """Replay pending actions against the remote collection.

    Failed actions stay queued for the next sync.
    """
    with open_session() as session:
        engine = session.engine
        engine.initialize()

        if engine.status.offline:
            click.echo(
                f"Error: Remote collection unreachable, {len(engine.queue)} actions still pending.",
                err=True,
            )
            sys.exit(1)

        report = engine.sync()
        if report is None:
            click.echo("A sync is already in progress.")
            return

        click.echo(f"Applied: {len(report.applied)}")
        click.echo(f"Failed: {len(report.failed)}")
        for action, error in report.failed:
            click.echo(f"  ✗ {action!r}: {error}")
        click.echo(f"Pending: {report.remaining}")
        if report.failed:
            sys.exit(1)


@click.command()
def status() -> None:
    """Show connectivity and pending actions."""
    with open_session() as session:
        engine = session.engine
        engine.initialize()

        stats = engine.queue.stats()
        click.echo(f"Status: {engine.status.describe()}")
        click.echo(
            f"Pending actions: {stats['total']} "
            f"(add: {stats['add']}, delete: {stats['delete']})"
        )
        click.echo(f"Records: {len(engine.records)}")


@click.command()
def watch() -> None:
    """Watch connectivity and sync automatically.

    Pending actions are replayed whenever the remote collection becomes
    reachable. Press Ctrl+C to stop.
    """
    with open_session() as session:
        engine = session.engine
        last_line: list[str] = []
        print_lock = threading.Lock()

        def render(snapshot: EngineSnapshot) -> None:
            line = (
                f"Status: {snapshot.status.describe()} - "
                f"{len(snapshot.records)} records, {snapshot.status.pending} pending"
            )
            with print_lock:
                if last_line and last_line[0] == line:
                    return
                last_line[:] = [line]
                click.echo(line)

        engine.subscribe(render)
        engine.initialize()
        for record in engine.records:
            click.echo(f"  {format_record(record)}")

        session.monitor.start()
        if not engine.status.offline and engine.queue:
            engine.sync()

        click.echo("Watching for connectivity changes (Ctrl+C to stop)...")
        try:
            _wait_for_interrupt()
        except KeyboardInterrupt:
            click.echo("\nStopped.")


def _wait_for_interrupt() -> None:
    """Block the main thread until Ctrl+C."""
    stop_event = threading.Event()
    while not stop_event.wait(1.0):
        pass
