"""Network reachability monitoring.

This module provides:
- ConnectivityStatus: Snapshot of reachability
- ConnectivitySource: Protocol consumed by the sync engine
- ConnectivityMonitor: Background thread polling the remote health check

Architecture:
    ConnectivityMonitor ─poll─► HTTPClient.health_check()
            │
            └─(on transition)─► subscribers (SyncEngine.on_connectivity_change)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from offlinesync.client.api import HTTPClient

logger = logging.getLogger(__name__)

# Default seconds between health checks
DEFAULT_CHECK_INTERVAL = 5.0


@dataclass(frozen=True)
class ConnectivityStatus:
    """Snapshot of network reachability."""

    connected: bool


class ConnectivitySource(Protocol):
    """Source of reachability information."""

    def fetch_current(self) -> ConnectivityStatus:
        """Query reachability now."""
        ...

    def subscribe(
        self, handler: Callable[[ConnectivityStatus], None]
    ) -> Callable[[], None]:
        """Register a handler called on every change.

        Returns:
            Function removing the handler.
        """
        ...


class ConnectivityMonitor:
    """Polls the remote health check and reports transitions.

    Usage:
        monitor = ConnectivityMonitor(client, check_interval=5.0)
        unsubscribe = monitor.subscribe(lambda s: print(s.connected))
        monitor.start()

        # ... handlers are called from the monitor thread ...

        monitor.stop()
    """

    def __init__(
        self,
        client: HTTPClient,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
    ) -> None:
        """Initialize the monitor.

        Args:
            client: HTTP client whose health check is probed.
            check_interval: Seconds between probes.
        """
        self._client = client
        self._check_interval = check_interval

        self._lock = threading.Lock()
        self._handlers: list[Callable[[ConnectivityStatus], None]] = []
        self._last: ConnectivityStatus | None = None

        # Thread
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def last_status(self) -> ConnectivityStatus | None:
        """Last observed status, or None before the first probe."""
        with self._lock:
            return self._last

    def fetch_current(self) -> ConnectivityStatus:
        """Probe reachability now and notify handlers if it changed."""
        status = ConnectivityStatus(connected=self._client.health_check())
        self._record(status)
        return status

    def subscribe(
        self, handler: Callable[[ConnectivityStatus], None]
    ) -> Callable[[], None]:
        """Register a transition handler.

        Args:
            handler: Called with the new status on every change.

        Returns:
            Function removing the handler.
        """
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def start(self) -> None:
        """Start polling in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("ConnectivityMonitor already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="ConnectivityMonitor",
            daemon=True,
        )
        self._thread.start()
        logger.info("ConnectivityMonitor started (interval=%.1fs)", self._check_interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop polling.

        Args:
            timeout: Maximum time to wait for the thread to stop.
        """
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("ConnectivityMonitor stopped")

    def _run(self) -> None:
        """Poll every check_interval seconds until stopped."""
        while not self._stop_event.wait(self._check_interval):
            self.fetch_current()

    def _record(self, status: ConnectivityStatus) -> None:
        """Store a probe result and notify handlers on transitions."""
        with self._lock:
            previous = self._last
            self._last = status
            handlers = list(self._handlers)

        if previous is None or previous.connected == status.connected:
            return

        logger.info("Connectivity changed: %s", "online" if status.connected else "offline")
        for handler in handlers:
            try:
                handler(status)
            except Exception:
                logger.exception("Connectivity handler failed")
