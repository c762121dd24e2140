"""
Construct OS Workspace

The composition root that:
- Builds the SQLite backend, snapshot store and configuration store
- Wires the reconciler and backup manager together
- Owns startup and graceful shutdown of all of them
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from constructos.core.config import ConfigStore, ConstructSettings, get_settings
from constructos.persistence.backends import SQLiteBackend
from constructos.persistence.backup import BackupManager
from constructos.persistence.config import SQLiteConfig
from constructos.persistence.reconciler import RemoteFactory, SnapshotReconciler
from constructos.persistence.store import LocalSnapshotStore

logger = structlog.get_logger(__name__)


class Workspace:
    """
    One Construct OS workspace.

    Holds no global state: several workspaces with different settings
    can run in the same process.
    """

    def __init__(
        self,
        settings: Optional[ConstructSettings] = None,
        remote_factory: Optional[RemoteFactory] = None,
    ):
        self.settings = settings or get_settings()

        sqlite_config = SQLiteConfig.from_path(self.settings.resolved_database_path)
        self.backend = SQLiteBackend(sqlite_config)
        self.store = LocalSnapshotStore(self.backend)
        self.config_store = ConfigStore(self.settings.resolved_config_path)
        self.reconciler = SnapshotReconciler(
            self.store,
            self.config_store,
            remote_factory=remote_factory,
        )
        self.backups = BackupManager(self.store, self.reconciler, self.config_store)

        self._started = False

    async def __aenter__(self) -> "Workspace":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self, schedule_backups: bool = False) -> None:
        """Open the store and restore the startup snapshot."""
        if self._started:
            return

        if not self.backend.config.in_memory:
            self.settings.ensure_directories()

        await self.store.initialize()
        await self.reconciler.initialize()

        if schedule_backups:
            self.backups.start()

        self._started = True
        logger.info(
            "Workspace started",
            database=str(self.settings.resolved_database_path),
            source=self.reconciler.source.value if self.reconciler.source else None,
        )

    async def stop(self) -> None:
        """Drain background work and close the store."""
        if not self._started:
            return

        await self.backups.stop()
        await self.reconciler.shutdown()
        await self.store.close()

        self._started = False
        logger.info("Workspace stopped")

    async def get_status(self) -> dict[str, Any]:
        """Summary of the workspace state."""
        security = self.config_store.load_security()
        backup_settings = self.config_store.load_backup_settings()
        return {
            "state": self.reconciler.state.value,
            "source": self.reconciler.source.value if self.reconciler.source else None,
            "sync_status": self.reconciler.sync_status,
            "cloud_enabled": security.cloud_enabled,
            "cloud_endpoint": security.cloud_endpoint,
            "counts": self.reconciler.snapshot.counts(),
            "backups": await self.backups.get_backup_statistics(),
            "backup_interval_minutes": backup_settings.interval_minutes,
            "backup_retention": backup_settings.retention,
        }
