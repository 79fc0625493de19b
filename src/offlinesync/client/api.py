"""HTTP client for the remote record collection.

This module provides:
- HTTPClient: HTTP client for a REST collection endpoint
- Record operations (list, create, delete, get by id)
- Health check used for connectivity probing
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from offlinesync.client.sync.types import NetworkError, Record, RecordDraft
from offlinesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)


class APIError(NetworkError):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(APIError):
    """Resource not found."""


class HTTPClient:
    """HTTP client for a remote record collection.

    The collection follows the usual REST layout: ``GET C`` lists,
    ``POST C`` creates, ``GET C/{id}`` and ``DELETE C/{id}`` address a
    single record.
    """

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Remote configuration (URL, timeout, SSL).
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def config(self) -> RemoteConfig:
        """Get the remote configuration."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _record_url(self, record_id: str) -> str:
        return f"{self._config.collection_url}/{record_id}"

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and map failures to APIError."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise APIError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if not response.is_success:
            raise APIError(
                f"{response.request.method} {response.request.url} "
                f"returned {response.status_code}",
                response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON response: {e}", response.status_code) from e

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the remote collection is reachable.

        Returns:
            True if the health URL answers with a 2xx status.
        """
        try:
            response = self._client.get(self._config.effective_health_url)
        except httpx.RequestError:
            return False
        return response.is_success

    # === Record operations ===

    def list_records(self) -> list[Record]:
        """List the whole collection.

        Returns:
            Records in server order.
        """
        data = self._json(self._request("GET", self._config.collection_url))
        if not isinstance(data, list):
            raise APIError("Expected a JSON array of records")
        try:
            return [Record.from_dict(item) for item in data]
        except (KeyError, TypeError) as e:
            raise APIError(f"Malformed record in response: {e}") from e

    def get_record(self, record_id: str) -> Record:
        """Get a record by id.

        Raises:
            NotFoundError: If the record does not exist.
        """
        data = self._json(self._request("GET", self._record_url(record_id)))
        try:
            return Record.from_dict(data)
        except (KeyError, TypeError) as e:
            raise APIError(f"Malformed record in response: {e}") from e

    def create_record(self, draft: RecordDraft) -> Record:
        """Create a record.

        Args:
            draft: Title and description.

        Returns:
            The created record with its server-assigned id.
        """
        data = self._json(
            self._request("POST", self._config.collection_url, json=draft.to_dict())
        )
        try:
            record = Record.from_dict(data)
        except (KeyError, TypeError) as e:
            raise APIError(f"Malformed record in response: {e}") from e
        logger.debug("Created record %s", record.id)
        return record

    def delete_record(self, record_id: str) -> None:
        """Delete a record by id.

        Raises:
            NotFoundError: If the record does not exist.
        """
        self._request("DELETE", self._record_url(record_id))
        logger.debug("Deleted record %s", record_id)
