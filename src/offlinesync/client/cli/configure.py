"""Configuration command for the offlinesync CLI.

Commands:
- configure: Set the remote collection URL
"""

from __future__ import annotations

import click

from offlinesync.client.cli.config import load_config, save_config
from offlinesync.client.connectivity import DEFAULT_CHECK_INTERVAL


@click.command()
@click.argument("collection_url")
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    show_default=True,
    help="Request timeout in seconds.",
)
@click.option(
    "--check-interval",
    type=float,
    default=DEFAULT_CHECK_INTERVAL,
    show_default=True,
    help="Seconds between connectivity checks in watch mode.",
)
@click.option(
    "--health-url",
    default=None,
    help="URL probed for reachability (default: the collection URL).",
)
def configure(
    collection_url: str,
    timeout: float,
    check_interval: float,
    health_url: str | None,
) -> None:
    """Set the remote collection URL (e.g., https://api.example.com/posts)."""
    if not collection_url.startswith(("http://", "https://")):
        raise click.BadParameter("must start with http:// or https://", param_hint="COLLECTION_URL")

    config = load_config()
    config["collection_url"] = collection_url.rstrip("/")
    config["timeout"] = timeout
    config["check_interval"] = check_interval
    if health_url:
        config["health_url"] = health_url.rstrip("/")
    else:
        config.pop("health_url", None)
    save_config(config)

    click.echo(f"Collection: {config['collection_url']}")
