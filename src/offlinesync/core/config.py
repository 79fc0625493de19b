"""Shared configuration classes for offlinesync.

This module defines the configuration used to reach the remote collection.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RemoteConfig:
    """Configuration for connecting to a remote record collection.

    Used by the HTTP client (HTTPClient) and, through its health check,
    by the ConnectivityMonitor.

    Attributes:
        collection_url: URL of the collection (e.g., "https://api.example.com/posts").
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
        health_url: Optional URL probed for reachability (defaults to the collection).
    """

    collection_url: str
    timeout: float = 30.0
    verify_ssl: bool = True
    health_url: str | None = None

    def __post_init__(self) -> None:
        """Normalize URLs."""
        self.collection_url = self.collection_url.rstrip("/")
        if self.health_url:
            self.health_url = self.health_url.rstrip("/")

    @property
    def effective_health_url(self) -> str:
        """Get the URL used for reachability checks.

        Returns:
            The health URL if configured, the collection URL otherwise.
        """
        return self.health_url or self.collection_url

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if the collection is served over HTTPS.
        """
        return self.collection_url.startswith("https://")
