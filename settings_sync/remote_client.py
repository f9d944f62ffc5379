"""Blocking HTTP client for the remote settings document (GET/PUT /sync)."""
import logging
from typing import Any, Callable, Dict, Optional, Union

import requests

logger = logging.getLogger(__name__)


class RemoteSyncError(Exception):
    """The settings document could not be read or written."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RemoteSettingsClient:
    """Client for the settings endpoint of the application API."""

    def __init__(self, base_url: str, token: Union[str, Callable[[], str]],
                 timeout: int = 30):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. "https://api.example.com/prod"
            token: Bearer token, or a callable returning a fresh one
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.url = f"{base_url.rstrip('/')}/sync"
        self.token = token
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        token = self.token() if callable(self.token) else self.token
        return {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
        }

    def get_settings(self) -> Optional[Dict[str, Any]]:
        """
        Read the caller's settings document.

        Returns:
            The document, or None when nothing was stored yet

        Raises:
            RemoteSyncError: On network failure, non-2xx status or a bad body
        """
        try:
            response = requests.get(self.url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteSyncError(f"GET /sync failed: {e}") from e

        if response.status_code == 404:
            return None
        if not 200 <= response.status_code < 300:
            raise RemoteSyncError(f"GET /sync returned {response.status_code}", response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteSyncError("GET /sync returned a non-JSON body") from e

        settings = body.get('settings') if isinstance(body, dict) else None
        if settings is not None and not isinstance(settings, dict):
            raise RemoteSyncError("GET /sync returned settings that are not an object")
        return settings

    def put_settings(self, document: Dict[str, Any]) -> Optional[str]:
        """
        Overwrite the caller's settings document.

        Returns:
            Server timestamp of the write, if reported

        Raises:
            RemoteSyncError: On network failure or non-2xx status
        """
        try:
            response = requests.put(
                self.url,
                json={'settings': document},
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RemoteSyncError(f"PUT /sync failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise RemoteSyncError(f"PUT /sync returned {response.status_code}", response.status_code)

        logger.info("Settings document pushed")
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get('updated_at') if isinstance(body, dict) else None
