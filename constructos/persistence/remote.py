"""
Construct OS Remote Sync Provider

Replicates the current snapshot to a remote HTTP endpoint:
- GET returns {"payload": "<envelope json>"} or {} when empty
- POST replaces the whole payload
- Same envelope format as the local store
- Bounded timeout, no automatic retry
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from constructos.core.config import SecurityConfig
from constructos.domain.models import Snapshot
from constructos.persistence.crypto import open_snapshot, seal_snapshot
from constructos.persistence.errors import MalformedEnvelopeError, SyncError

logger = structlog.get_logger(__name__)


class RemoteSyncProvider:
    """
    HTTP client for the remote snapshot endpoint.

    A provider is cheap to build; the reconciler creates a fresh one
    from the current security settings on every cycle.
    """

    DEFAULT_TIMEOUT = 15.0

    def __init__(
        self,
        endpoint: str,
        passphrase: str,
        timeout: float = DEFAULT_TIMEOUT,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.passphrase = passphrase
        self.timeout = timeout
        self.token = token
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: SecurityConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RemoteSyncProvider":
        return cls(
            endpoint=config.cloud_endpoint,
            passphrase=config.passphrase,
            timeout=config.sync_timeout,
            token=config.cloud_token,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
        )

    async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, self.endpoint, **kwargs)
        except httpx.TimeoutException as e:
            raise SyncError(f"{method} {self.endpoint} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SyncError(f"{method} {self.endpoint} failed: {e}") from e

        if not response.is_success:
            raise SyncError(
                f"{method} {self.endpoint} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def load_snapshot(self) -> Optional[Snapshot]:
        """
        Fetch and decrypt the remote snapshot.

        Returns:
            The snapshot, or None if the endpoint holds no data yet

        Raises:
            SyncError: transport failure, timeout or non-2xx response
            AuthenticationError, MalformedEnvelopeError, DecodeError:
                the payload cannot be opened with this passphrase
        """
        response = await self._request("GET")

        try:
            body = response.json()
        except ValueError as e:
            raise SyncError("Remote endpoint returned a non-JSON body", status_code=response.status_code) from e

        payload = body.get("payload") if isinstance(body, dict) else None
        if not payload:
            logger.info("Remote endpoint has no snapshot", endpoint=self.endpoint)
            return None
        if not isinstance(payload, str):
            raise MalformedEnvelopeError("Remote payload must be an envelope JSON string")

        snapshot = await open_snapshot(payload, self.passphrase)
        logger.info("Snapshot fetched from remote", endpoint=self.endpoint, counts=snapshot.counts())
        return snapshot

    async def save_snapshot(self, snapshot: Snapshot) -> None:
        """
        Encrypt and upload the snapshot, replacing the remote copy.

        Raises:
            SyncError: transport failure, timeout or non-2xx response
        """
        payload = await seal_snapshot(snapshot, self.passphrase)
        await self._request("POST", json={"payload": payload})
        logger.info("Snapshot pushed to remote", endpoint=self.endpoint, size=len(payload))
