"""Record commands for the offlinesync CLI.

Commands:
- list: Show the records
- add: Add a record (created now or queued)
- delete: Delete a record (deleted now or queued)
- refresh: Reload the records from the remote collection
"""

from __future__ import annotations

import sys

import click

from offlinesync.client.cli.session import format_record, open_session


@click.command("list")
def list_records() -> None:
    """Show the records.

    Fetches the collection when online, shows the local cache otherwise.
    """
    with open_session() as session:
        session.engine.initialize()
        click.echo(f"Status: {session.engine.status.describe()}")

        records = session.engine.records
        if not records:
            click.echo("No records.")
            return
        for record in records:
            click.echo(format_record(record))


@click.command()
@click.argument("title")
@click.argument("description")
def add(title: str, description: str) -> None:
    """Add a record.

    When offline, or when the remote store rejects the request, the record
    is queued and shown with a local id until the next sync.
    """
    with open_session() as session:
        session.engine.initialize()
        record = session.engine.add_record(title, description)

        if record is None:
            click.echo("Error: Title and description are required.", err=True)
            sys.exit(1)

        if record.is_provisional:
            click.echo(f"Queued record {record.id} (will sync when connected)")
        else:
            click.echo(f"Created record {record.id}")


@click.command()
@click.argument("record_id")
def delete(record_id: str) -> None:
    """Delete a record by id."""
    with open_session() as session:
        session.engine.initialize()
        if session.engine.delete_record(record_id):
            click.echo(f"Deleted record {record_id}")
        else:
            click.echo(f"Queued delete of {record_id} (will sync when connected)")


@click.command()
def refresh() -> None:
    """Reload the records from the remote collection.

    Falls back to the local cache when the collection is unreachable.
    """
    with open_session() as session:
        session.engine.refresh()
        status = session.engine.status
        source = "local cache" if status.offline else "remote collection"
        click.echo(f"Loaded {len(session.engine.records)} records from {source}")
