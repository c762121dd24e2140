"""
Construct OS Reference Sync Endpoint

Minimal FastAPI server speaking the remote snapshot contract:
- GET /sync returns {"payload": "<envelope json>"} or {} when empty
- POST /sync with {"payload": "<envelope json>"} replaces the stored payload
- Optional bearer token

The server only stores the opaque envelope string; it never sees the
passphrase or the plaintext snapshot.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


# ==================== Request/Response Models ====================

class SyncPayload(BaseModel):
    """Body of a snapshot upload."""
    payload: str = Field(..., min_length=1, description="Encrypted envelope JSON")


# ==================== Payload Storage ====================

class PayloadStorage:
    """
    Holds the single latest payload, in memory or in a JSON file.

    The file layout is ``{"payload": "..."}`` written atomically.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._payload: Optional[str] = None
        self._lock = asyncio.Lock()

        if self.path and self.path.exists():
            self._payload = self._read_file()

    def _read_file(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Sync storage unreadable, starting empty", path=str(self.path), error=str(e))
            return None

        payload = data.get("payload") if isinstance(data, dict) else None
        return payload if isinstance(payload, str) else None

    def _write_file(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps({"payload": payload}), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get(self) -> Optional[str]:
        return self._payload

    async def put(self, payload: str) -> None:
        async with self._lock:
            if self.path:
                await asyncio.get_running_loop().run_in_executor(None, self._write_file, payload)
            self._payload = payload


# ==================== App Factory ====================

def create_sync_app(
    storage_path: Optional[Path] = None,
    token: Optional[str] = None,
) -> FastAPI:
    """
    Create the reference sync endpoint.

    Args:
        storage_path: JSON file for the payload; None keeps it in memory
        token: Require ``Authorization: Bearer <token>`` when set

    Returns:
        Configured FastAPI application
    """
    storage = PayloadStorage(storage_path)

    app = FastAPI(
        title="Construct OS Sync Endpoint",
        description="Stores the latest encrypted Construct OS snapshot.",
        version="1.0.0",
    )
    app.state.storage = storage

    async def require_token(authorization: Optional[str] = Header(default=None)) -> None:
        if not token:
            return
        if authorization != f"Bearer {token}":
            logger.warning("Rejected sync request with invalid token")
            raise HTTPException(status_code=401, detail="Invalid or missing token")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"healthy": True, "has_payload": await storage.get() is not None}

    @app.get("/sync", dependencies=[Depends(require_token)])
    async def get_snapshot():
        """Return the stored payload, or an empty object."""
        payload = await storage.get()
        if payload is None:
            return {}
        return {"payload": payload}

    @app.post("/sync", dependencies=[Depends(require_token)])
    async def put_snapshot(body: SyncPayload):
        """Replace the stored payload."""
        await storage.put(body.payload)
        logger.info("Snapshot payload stored", size=len(body.payload))
        return {"ok": True}

    return app
