"""
Construct OS Local Snapshot Store

Durable local storage for snapshots with:
- Named, timestamped backup history (optionally encrypted)
- Metadata listing without touching payloads
- Retention pruning by count
- A single "current state" auto-save slot, kept apart from the
  history so pruning never touches it
- Backward-compatible reads of legacy plaintext slots
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from constructos.domain.models import Snapshot
from constructos.domain.seed import now_ms
from constructos.persistence.backends.base import BaseBackend
from constructos.persistence.config import StoreConfig
from constructos.persistence.crypto import open_snapshot, seal_snapshot
from constructos.persistence.errors import (
    DecodeError,
    MalformedEnvelopeError,
    PassphraseRequiredError,
    SnapshotError,
)
from constructos.persistence.serializers import decode_snapshot, encode_snapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BackupSummary:
    """Backup metadata; the payload itself is never loaded for listings."""
    id: str
    created_at: int  # epoch ms
    label: Optional[str]
    encrypted: bool
    size: int  # payload bytes

    @property
    def created(self) -> datetime:
        return datetime.fromtimestamp(self.created_at / 1000, tz=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "createdAt": self.created_at}
        if self.label is not None:
            data["label"] = self.label
        data["encrypted"] = self.encrypted
        data["size"] = self.size
        return data


class LocalSnapshotStore:
    """
    Local store for backup records and the current-state slot.

    Backup records are immutable once written: they are created by
    ``save_snapshot`` and removed by ``delete_backup`` or ``prune``.
    The current slot is overwritten on every save (last write wins).
    """

    def __init__(self, backend: BaseBackend, config: Optional[StoreConfig] = None):
        self.backend = backend
        self.config = config or StoreConfig()
        self.last_error: Optional[SnapshotError] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Open the backend and create tables."""
        if self._initialized:
            return

        await self.backend.initialize()
        await self.backend.execute_ddl(f"""
            CREATE TABLE IF NOT EXISTS {self.config.backups_table} (
                id TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL,
                label TEXT,
                encrypted INTEGER NOT NULL DEFAULT 0,
                size INTEGER NOT NULL DEFAULT 0,
                payload TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_{self.config.backups_table}_created_at
                ON {self.config.backups_table} (created_at);
            CREATE TABLE IF NOT EXISTS {self.config.slots_table} (
                name TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );
        """)
        self._initialized = True

    async def close(self) -> None:
        await self.backend.shutdown()
        self._initialized = False

    async def __aenter__(self) -> "LocalSnapshotStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ==================== Backup history ====================

    async def save_snapshot(
        self,
        snapshot: Snapshot,
        label: Optional[str] = None,
        passphrase: Optional[str] = None,
    ) -> str:
        """
        Store a snapshot as a new backup record.

        Args:
            snapshot: Snapshot to store
            label: Optional human label
            passphrase: Encrypt with this passphrase; stored as plain
                JSON when omitted or empty

        Returns:
            The new, time-ordered backup id
        """
        encrypted = bool(passphrase)
        if encrypted:
            payload = await seal_snapshot(snapshot, passphrase)
        else:
            payload = encode_snapshot(snapshot).decode("utf-8")
        size = len(payload.encode("utf-8"))

        table = self.config.backups_table
        async with self.backend.transaction():
            row = await self.backend.fetch_one(f"SELECT MAX(created_at) AS newest FROM {table}")
            created_at = now_ms()
            if row and row["newest"] is not None and created_at <= row["newest"]:
                created_at = row["newest"] + 1
            backup_id = str(created_at)

            await self.backend.execute(
                f"""
                INSERT INTO {table} (id, created_at, label, encrypted, size, payload)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (backup_id, created_at, label, 1 if encrypted else 0, size, payload),
            )

        logger.info(
            "Backup saved",
            backup_id=backup_id,
            label=label,
            encrypted=encrypted,
            size=size,
        )
        return backup_id

    async def list_backups(self) -> list[BackupSummary]:
        """List backup metadata, newest first."""
        rows = await self.backend.fetch_all(
            f"""
            SELECT id, created_at, label, encrypted, size
            FROM {self.config.backups_table}
            ORDER BY created_at DESC, id DESC
            """
        )
        return [self._row_to_summary(row) for row in rows]

    async def get_backup(self, backup_id: str) -> Optional[BackupSummary]:
        """Get backup metadata by id."""
        row = await self.backend.fetch_one(
            f"""
            SELECT id, created_at, label, encrypted, size
            FROM {self.config.backups_table} WHERE id = ?
            """,
            (backup_id,),
        )
        return self._row_to_summary(row) if row else None

    async def load_snapshot(
        self,
        backup_id: str,
        passphrase: Optional[str] = None,
    ) -> Optional[Snapshot]:
        """
        Load a backup's snapshot.

        Returns:
            The snapshot, or None if no record has this id

        Raises:
            PassphraseRequiredError: record is encrypted and no passphrase given
            AuthenticationError: wrong passphrase or corrupted record
            MalformedEnvelopeError, DecodeError: unreadable payload
        """
        row = await self.backend.fetch_one(
            f"SELECT encrypted, payload FROM {self.config.backups_table} WHERE id = ?",
            (backup_id,),
        )
        if not row:
            return None

        if row["encrypted"]:
            if not passphrase:
                raise PassphraseRequiredError(f"Backup {backup_id} is encrypted; a passphrase is required")
            return await open_snapshot(row["payload"], passphrase)

        return decode_snapshot(row["payload"])

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete a backup. Deleting a missing id is not an error."""
        async with self.backend.transaction():
            deleted = await self.backend.execute(
                f"DELETE FROM {self.config.backups_table} WHERE id = ?",
                (backup_id,),
            )

        if deleted:
            logger.info("Backup deleted", backup_id=backup_id)
        return deleted > 0

    async def prune(self, retention: int) -> list[str]:
        """
        Keep only the ``retention`` newest backups.

        Returns:
            Ids of the deleted backups
        """
        if retention < 0:
            raise ValueError("Retention must be zero or positive")

        table = self.config.backups_table
        async with self.backend.transaction():
            rows = await self.backend.fetch_all(
                f"""
                SELECT id FROM {table}
                ORDER BY created_at DESC, id DESC
                LIMIT -1 OFFSET ?
                """,
                (retention,),
            )
            deleted = [row["id"] for row in rows]
            for backup_id in deleted:
                await self.backend.execute(f"DELETE FROM {table} WHERE id = ?", (backup_id,))

        if deleted:
            logger.info("Pruned old backups", retention=retention, deleted=len(deleted))
        return deleted

    def _row_to_summary(self, row: dict[str, Any]) -> BackupSummary:
        return BackupSummary(
            id=row["id"],
            created_at=row["created_at"],
            label=row["label"],
            encrypted=bool(row["encrypted"]),
            size=row["size"],
        )

    # ==================== Current-state slot ====================

    async def save_current(self, snapshot: Snapshot, passphrase: str) -> None:
        """Overwrite the current-state slot with an encrypted snapshot."""
        payload = await seal_snapshot(snapshot, passphrase)

        async with self.backend.transaction():
            await self.backend.execute(
                f"""
                INSERT OR REPLACE INTO {self.config.slots_table} (name, payload, updated_at)
                VALUES (?, ?, ?)
                """,
                (self.config.current_slot, payload, now_ms()),
            )

        logger.debug("Current snapshot saved", counts=snapshot.counts())

    async def load_current(self, passphrase: str) -> Optional[Snapshot]:
        """
        Read the current-state slot.

        Encrypted slots are decrypted with ``passphrase``. Slots written
        before encryption existed hold plain JSON and are parsed as-is.
        Failures are logged and kept in ``last_error``; the caller gets
        None so it can fall back to other data.
        """
        self.last_error = None
        row = await self.backend.fetch_one(
            f"SELECT payload FROM {self.config.slots_table} WHERE name = ?",
            (self.config.current_slot,),
        )
        if not row:
            return None

        payload = row["payload"]
        try:
            return await open_snapshot(payload, passphrase)
        except MalformedEnvelopeError as envelope_error:
            # Not an envelope: legacy plaintext slot
            try:
                snapshot = decode_snapshot(payload)
            except DecodeError as e:
                logger.error(
                    "Failed to load current snapshot",
                    error=str(e),
                    envelope_error=str(envelope_error),
                )
                self.last_error = e
                return None
            logger.info("Loaded legacy plaintext snapshot")
            return snapshot
        except SnapshotError as e:
            logger.error("Failed to decrypt current snapshot", error=str(e))
            self.last_error = e
            return None

    async def clear_current(self) -> None:
        async with self.backend.transaction():
            await self.backend.execute(
                f"DELETE FROM {self.config.slots_table} WHERE name = ?",
                (self.config.current_slot,),
            )
