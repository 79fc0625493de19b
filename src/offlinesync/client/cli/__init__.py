"""Command-line interface for offlinesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Set the remote collection URL
- list: Show the records
- add: Add a record
- delete: Delete a record
- refresh: Reload the records
- sync: Replay pending actions now
- status: Show connectivity and pending actions
- watch: Sync automatically on reconnection
"""

from __future__ import annotations

import click

from offlinesync.client.cli import config as cli_config
from offlinesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
    setup_logging,
)
from offlinesync.client.cli.configure import configure
from offlinesync.client.cli.records import add, delete, list_records, refresh
from offlinesync.client.cli.sync import status, sync, watch


@click.group()
@click.version_option(package_name="offlinesync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """offlinesync - Offline-first client for a remote record collection."""
    setup_logging(cli_config.get_log_path(), verbose=verbose)


# Configuration
cli.add_command(configure)

# Record commands
cli.add_command(list_records)
cli.add_command(add)
cli.add_command(delete)
cli.add_command(refresh)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
