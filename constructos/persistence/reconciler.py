"""
Construct OS Snapshot Reconciler

Orchestrates where the workshop state comes from and where it goes:
- Startup restore: remote (if enabled) -> local current slot -> seed data
- Local-first persistence on every mutation
- Best-effort background push to the remote endpoint
- Manual sync and a human-readable sync status channel

Security settings are read from the config store at the start of every
cycle so a passphrase change applies to the next save.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Optional, Union

import structlog

from constructos.core.config import ConfigStore, SecurityConfig
from constructos.domain.models import Snapshot
from constructos.domain.seed import seed_snapshot
from constructos.persistence.errors import SyncError
from constructos.persistence.remote import RemoteSyncProvider
from constructos.persistence.serializers import SnapshotSerializer
from constructos.persistence.store import LocalSnapshotStore

logger = structlog.get_logger(__name__)

RemoteFactory = Callable[[SecurityConfig], RemoteSyncProvider]
StatusListener = Callable[[str], None]


class ReconcilerState(str, Enum):
    """Lifecycle of the reconciler."""
    UNINITIALIZED = "uninitialized"
    RESTORING = "restoring"
    READY = "ready"


class RestoreSource(str, Enum):
    """Where the startup snapshot came from."""
    CLOUD = "cloud"
    LOCAL = "local"
    SEED = "seed"


class SyncStatus:
    """Sync status messages shown to the user."""
    LOCAL_ONLY = "Local only"
    SYNCING = "Syncing..."
    SYNCED = "Synced to cloud"
    SYNC_FAILED = "Cloud sync failed"
    RESTORED_FROM_CLOUD = "Restored from cloud"
    CLOUD_RESTORE_FAILED = "Cloud restore failed; using local data"
    CLOUD_EMPTY = "No cloud data yet; using local data"


class SnapshotReconciler:
    """
    Owner of the in-memory snapshot and its persistence.

    The in-memory snapshot is the source of truth. The local current
    slot is the commit point of a mutation; remote pushes happen in
    the background and never block or roll back a local save.
    """

    def __init__(
        self,
        store: LocalSnapshotStore,
        config_store: ConfigStore,
        remote_factory: Optional[RemoteFactory] = None,
        seed_factory: Callable[[], Snapshot] = seed_snapshot,
    ):
        self.store = store
        self.config_store = config_store
        self._remote_factory = remote_factory or RemoteSyncProvider.from_config
        self._seed_factory = seed_factory
        self._serializer = SnapshotSerializer()

        self._state = ReconcilerState.UNINITIALIZED
        self._snapshot: Optional[Snapshot] = None
        self._sync_status = SyncStatus.LOCAL_ONLY
        self._listeners: list[StatusListener] = []
        self.source: Optional[RestoreSource] = None

        # Revisions let a queued write skip work a newer write already did
        self._revision = 0
        self._saved_revision = 0
        self._pushed_revision = 0

        self._init_lock = asyncio.Lock()
        self._local_lock = asyncio.Lock()
        self._remote_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._closed = False

    # ==================== Properties ====================

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == ReconcilerState.READY and not self._closed

    @property
    def snapshot(self) -> Snapshot:
        """Current in-memory snapshot."""
        if self._snapshot is None:
            raise RuntimeError("Reconciler has not been initialized")
        return self._snapshot

    @property
    def sync_status(self) -> str:
        return self._sync_status

    @property
    def has_pending_pushes(self) -> bool:
        return bool(self._pending)

    # ==================== Status channel ====================

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a sync status listener.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: str) -> None:
        self._sync_status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.warning("Sync status listener failed", error=str(e))

    # ==================== Startup ====================

    async def initialize(self) -> Snapshot:
        """
        Restore the startup snapshot. Runs once; never fails.

        Order: remote endpoint (when cloud sync is enabled), the local
        current slot, then the built-in seed dataset.
        """
        async with self._init_lock:
            if self._state == ReconcilerState.READY:
                return self.snapshot

            self._state = ReconcilerState.RESTORING
            config = self.config_store.load_security()

            snapshot: Optional[Snapshot] = None
            if config.sync_available:
                snapshot = await self._restore_from_remote(config)
                if snapshot is not None:
                    self.source = RestoreSource.CLOUD
            else:
                self._set_status(SyncStatus.LOCAL_ONLY)

            if snapshot is None:
                snapshot = await self._restore_from_local(config)
                if snapshot is not None:
                    self.source = RestoreSource.LOCAL

            if snapshot is None:
                snapshot = self._seed_factory()
                self.source = RestoreSource.SEED
                logger.info("No stored snapshot found, using seed data")

            self._snapshot = snapshot
            self._state = ReconcilerState.READY

            logger.info(
                "Snapshot reconciler ready",
                source=self.source.value,
                counts=snapshot.counts(),
                sync_status=self._sync_status,
            )
            return snapshot

    async def _restore_from_remote(self, config: SecurityConfig) -> Optional[Snapshot]:
        try:
            snapshot = await self._remote_factory(config).load_snapshot()
        except Exception as e:
            logger.warning(
                "Cloud restore failed, falling back to local data",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._set_status(SyncStatus.CLOUD_RESTORE_FAILED)
            return None

        if snapshot is None:
            self._set_status(SyncStatus.CLOUD_EMPTY)
            return None

        self._set_status(SyncStatus.RESTORED_FROM_CLOUD)
        return snapshot

    async def _restore_from_local(self, config: SecurityConfig) -> Optional[Snapshot]:
        try:
            return await self.store.load_current(config.passphrase)
        except Exception as e:
            logger.error("Local restore failed", error=str(e), error_type=type(e).__name__)
            return None

    # ==================== Persistence ====================

    def _ensure_ready(self) -> None:
        if not self.is_ready:
            raise RuntimeError(f"Reconciler is not ready (state: {self._state.value})")

    async def commit(self, snapshot: Snapshot) -> bool:
        """
        Adopt a new snapshot and persist it.

        The local slot write is awaited; the remote push (when cloud sync
        is enabled) is scheduled in the background.

        Returns:
            Whether the local write succeeded
        """
        self._ensure_ready()
        self._snapshot = snapshot
        self._revision += 1

        saved = await self._persist_local()

        if self.config_store.load_security().sync_available:
            self._schedule_push()

        return saved

    async def _persist_local(self) -> bool:
        async with self._local_lock:
            if self._saved_revision >= self._revision:
                return True

            revision, snapshot = self._revision, self.snapshot
            config = self.config_store.load_security()
            try:
                await self.store.save_current(snapshot, config.passphrase)
            except Exception as e:
                logger.error(
                    "Local snapshot save failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    revision=revision,
                )
                return False

            self._saved_revision = revision
            return True

    def _schedule_push(self) -> None:
        task = asyncio.create_task(self._background_push())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _background_push(self) -> None:
        try:
            await self._push()
        except SyncError:
            # Reported through the status channel; the next mutation retries
            return

    async def _push(self, force: bool = False) -> None:
        async with self._remote_lock:
            # Settings are read with the snapshot they will seal
            config = self.config_store.load_security()
            if not config.sync_available:
                raise SyncError("Cloud sync is disabled or no endpoint is configured")

            revision, snapshot = self._revision, self.snapshot
            if not force and revision <= self._pushed_revision:
                return

            self._set_status(SyncStatus.SYNCING)
            try:
                await self._remote_factory(config).save_snapshot(snapshot)
            except Exception as e:
                logger.warning(
                    "Cloud sync failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    endpoint=config.cloud_endpoint,
                )
                self._set_status(SyncStatus.SYNC_FAILED)
                if isinstance(e, SyncError):
                    raise
                raise SyncError(f"Cloud sync failed: {e}") from e

            self._pushed_revision = max(self._pushed_revision, revision)
            self._set_status(SyncStatus.SYNCED)

    async def sync_now(self) -> str:
        """
        Push the current snapshot to the remote endpoint right away.

        Returns:
            The resulting sync status

        Raises:
            SyncError: cloud sync is disabled or the push failed
        """
        self._ensure_ready()
        await self._push(force=True)
        return self._sync_status

    async def wait_for_pending(self) -> None:
        """Wait for background pushes scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting mutations and drain background pushes."""
        self._closed = True
        await self.wait_for_pending()

    # ==================== Mutations ====================

    async def update(self, **collections: Any) -> bool:
        """Replace whole collections, e.g. ``update(inventory=[...])``."""
        return await self.commit(self.snapshot.replace(**collections))

    async def restore(self, snapshot: Snapshot) -> bool:
        """Adopt a snapshot restored from a backup."""
        logger.info("Restoring snapshot", counts=snapshot.counts())
        return await self.commit(snapshot)

    async def import_data(self, data: Union[bytes, str]) -> list[str]:
        """
        Import a portable JSON document.

        Only collections present in the document are replaced.

        Returns:
            Names of the replaced collections

        Raises:
            DecodeError: the document is not valid
        """
        self._ensure_ready()
        patch = self._serializer.decode_patch(data)
        replaced = list(patch.present())
        if not replaced:
            logger.info("Import contained no collections")
            return []

        await self.commit(self.snapshot.merge(patch))
        logger.info("Imported collections", collections=replaced)
        return replaced

    def export_data(self) -> bytes:
        """Plaintext portable JSON of the whole snapshot."""
        return self._serializer.encode(self.snapshot)
