"""
Remote configuration HTTP client
Talks to the persistence endpoint: GET returns the snapshot, POST stores it
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from ..config.settings import Settings, settings as default_settings
from ..core.exceptions import RemoteConfigError

logger = logging.getLogger(__name__)


class RemoteStatus(str, Enum):
    """Outcome of a remote write"""
    OK = "ok"
    NOT_PERSISTED = "not_persisted"
    FAILED = "failed"
    DISABLED = "disabled"


class RemoteConfigClient:
    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or default_settings
        self.url = url or settings.remote_config_url
        self.timeout_seconds = timeout_seconds or settings.remote_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    async def fetch(self) -> Dict[str, Any]:
        """Current snapshot as a wire dict; RemoteConfigError on any failure"""
        try:
            async with self._client() as client:
                response = await client.get(self.url, headers={"Cache-Control": "no-cache"})
        except httpx.HTTPError as e:
            raise RemoteConfigError(f"Remote configuration unreachable: {e}")

        if response.status_code != 200:
            raise RemoteConfigError(
                f"Remote configuration returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteConfigError(f"Remote configuration body is not JSON: {e}")
        if not isinstance(data, dict):
            raise RemoteConfigError("Remote configuration body is not an object")
        return data

    async def push(self, payload: Dict[str, Any]) -> RemoteStatus:
        """
        Store a full snapshot remotely

        Returns:
            RemoteStatus.OK when the endpoint acknowledged durability,
            RemoteStatus.NOT_PERSISTED when its storage is read-only

        Raises:
            RemoteConfigError: network failure, timeout or rejected write
        """
        try:
            async with self._client() as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise RemoteConfigError(f"Remote configuration unreachable: {e}")

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if body.get("persisted") is False:
            logger.warning("Remote endpoint did not persist the configuration: %s", body.get("message"))
            return RemoteStatus.NOT_PERSISTED
        if response.status_code == 200 and body.get("success"):
            return RemoteStatus.OK

        raise RemoteConfigError(
            body.get("message") or f"Remote configuration write returned HTTP {response.status_code}",
            details={"status_code": response.status_code, "error_code": body.get("error_code")},
        )
