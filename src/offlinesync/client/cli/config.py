"""Configuration utilities for the offlinesync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from offlinesync.client.connectivity import DEFAULT_CHECK_INTERVAL
from offlinesync.core.config import RemoteConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_config_dir() -> Path:
    """Get the configuration directory for offlinesync.

    Returns:
        Path to ~/.offlinesync or equivalent.
    """
    return Path.home() / ".offlinesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db_path() -> Path:
    """Get the path to the local store database."""
    return get_config_dir() / "state.db"


def get_log_path() -> Path:
    """Get the path to the log file."""
    return get_config_dir() / "offlinesync.log"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_remote_config(config: dict[str, Any]) -> RemoteConfig | None:
    """Build the remote configuration from the saved config.

    Returns:
        RemoteConfig, or None if no collection URL is configured.
    """
    if not config.get("collection_url"):
        return None
    return RemoteConfig(
        collection_url=config["collection_url"],
        timeout=float(config.get("timeout", 30.0)),
        health_url=config.get("health_url"),
    )


def get_check_interval(config: dict[str, Any]) -> float:
    """Get seconds between connectivity probes."""
    return float(config.get("check_interval", DEFAULT_CHECK_INTERVAL))


def setup_logging(log_path: Path | None, verbose: bool = False) -> None:
    """Configure logging to stderr and, optionally, to a file.

    Args:
        log_path: Path to the log file (None disables file logging).
        verbose: Show debug messages on stderr instead of warnings only.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    package_logger = logging.getLogger("offlinesync")
    # Remove handlers left by a previous invocation
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False

    # Stderr handler
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.addHandler(stderr_handler)

    # File handler
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.INFO)
        package_logger.addHandler(file_handler)
