"""
Construct OS Backup Manager

Backup history on top of the local snapshot store with:
- On-demand backups of the live snapshot, encrypted with the current passphrase
- Restore into the running reconciler
- Automatic retention policy after every backup
- Interval-based scheduled backups
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from constructos.core.config import ConfigStore
from constructos.domain.models import Snapshot
from constructos.persistence.errors import BackupNotFoundError
from constructos.persistence.reconciler import SnapshotReconciler
from constructos.persistence.store import BackupSummary, LocalSnapshotStore

logger = structlog.get_logger(__name__)


class BackupManager:
    """
    Manages backup and restore operations for the workshop snapshot.

    Interval and retention come from the configuration store and are
    read again on every backup, so settings changes apply immediately.
    """

    # Poll interval while scheduling is disabled
    IDLE_POLL_SECONDS = 60.0

    def __init__(
        self,
        store: LocalSnapshotStore,
        reconciler: SnapshotReconciler,
        config_store: ConfigStore,
    ):
        self.store = store
        self.reconciler = reconciler
        self.config_store = config_store
        self._scheduler_task: Optional[asyncio.Task] = None

    async def create_backup(self, label: Optional[str] = None) -> str:
        """
        Back up the live snapshot and apply the retention policy.

        Returns:
            The new backup id
        """
        passphrase = self.config_store.load_security().passphrase
        backup_id = await self.store.save_snapshot(
            self.reconciler.snapshot,
            label=label,
            passphrase=passphrase,
        )
        await self._apply_retention_policy()
        return backup_id

    async def restore_backup(self, backup_id: str) -> Snapshot:
        """
        Restore a backup into the running workspace.

        Raises:
            BackupNotFoundError: no backup has this id
            SnapshotError: the backup cannot be opened
        """
        passphrase = self.config_store.load_security().passphrase
        snapshot = await self.store.load_snapshot(backup_id, passphrase=passphrase)
        if snapshot is None:
            raise BackupNotFoundError(backup_id)

        await self.reconciler.restore(snapshot)
        logger.info("Backup restored", backup_id=backup_id, counts=snapshot.counts())
        return snapshot

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete a backup."""
        return await self.store.delete_backup(backup_id)

    async def list_backups(self) -> list[BackupSummary]:
        return await self.store.list_backups()

    async def _apply_retention_policy(self) -> list[str]:
        """Delete backups beyond the configured retention."""
        retention = self.config_store.load_backup_settings().retention
        return await self.store.prune(retention)

    # ==================== Scheduling ====================

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler_task is not None and not self._scheduler_task.done()

    def start(self) -> None:
        """Start the scheduled backup loop."""
        if self.is_scheduled:
            return
        self._scheduler_task = asyncio.create_task(self.schedule_backup())
        logger.info("Backup scheduler started")

    async def stop(self) -> None:
        """Stop the scheduled backup loop."""
        if self._scheduler_task is None:
            return

        self._scheduler_task.cancel()
        try:
            await self._scheduler_task
        except asyncio.CancelledError:
            pass
        self._scheduler_task = None
        logger.info("Backup scheduler stopped")

    async def schedule_backup(self) -> None:
        """
        Create backups every ``interval_minutes``.

        The interval is read again each cycle; 0 pauses scheduling.
        Failed backups are logged and the loop keeps running.
        """
        while True:
            interval = self.config_store.load_backup_settings().interval_minutes
            if interval <= 0:
                await asyncio.sleep(self.IDLE_POLL_SECONDS)
                continue

            await asyncio.sleep(interval * 60)
            try:
                await self.create_backup(label="Scheduled backup")
            except Exception as e:
                logger.error("Scheduled backup failed", error=str(e), error_type=type(e).__name__)

    async def get_backup_statistics(self) -> dict[str, Any]:
        """Get backup statistics."""
        backups = await self.list_backups()

        if not backups:
            return {
                "total_backups": 0,
                "encrypted_backups": 0,
                "total_size_bytes": 0,
                "oldest_backup": None,
                "newest_backup": None,
                "average_backup_size": 0,
            }

        return {
            "total_backups": len(backups),
            "encrypted_backups": len([b for b in backups if b.encrypted]),
            "total_size_bytes": sum(b.size for b in backups),
            "oldest_backup": min(b.created for b in backups).isoformat(),
            "newest_backup": max(b.created for b in backups).isoformat(),
            "average_backup_size": sum(b.size for b in backups) // len(backups),
        }
