"""
Tests for the Construct OS backup manager.
"""

import asyncio

import pytest

from constructos.domain.models import Snapshot
from constructos.persistence.backup import BackupManager
from constructos.persistence.errors import AuthenticationError, BackupNotFoundError

PASSPHRASE = "construct-os-local"


@pytest.fixture
async def manager(store, config_store, make_reconciler):
    reconciler = make_reconciler()
    await reconciler.initialize()
    backup_manager = BackupManager(store, reconciler, config_store)
    yield backup_manager
    await backup_manager.stop()
    await reconciler.shutdown()


class TestBackupManager:
    """Tests for on-demand backups."""

    @pytest.mark.asyncio
    async def test_create_backup(self, manager, store):
        """Test a backup captures the live snapshot, encrypted."""
        backup_id = await manager.create_backup(label="Before rewiring")

        summary = await store.get_backup(backup_id)
        assert summary.label == "Before rewiring"
        assert summary.encrypted is True
        assert await store.load_snapshot(backup_id, PASSPHRASE) == manager.reconciler.snapshot

    @pytest.mark.asyncio
    async def test_retention_applied(self, manager, config_store):
        """Test creating backups prunes beyond the configured retention."""
        config_store.update_backup_settings(retention=2)

        ids = [await manager.create_backup() for _ in range(4)]

        assert [b.id for b in await manager.list_backups()] == [ids[3], ids[2]]

    @pytest.mark.asyncio
    async def test_restore_backup(self, manager, snapshot):
        """Test restoring replaces the live snapshot and persists it."""
        await manager.reconciler.commit(snapshot)
        backup_id = await manager.create_backup()
        await manager.reconciler.commit(Snapshot())

        restored = await manager.restore_backup(backup_id)

        assert restored == snapshot
        assert manager.reconciler.snapshot == snapshot
        assert await manager.store.load_current(PASSPHRASE) == snapshot

    @pytest.mark.asyncio
    async def test_restore_unknown(self, manager):
        """Test restoring an unknown id raises BackupNotFoundError."""
        with pytest.raises(BackupNotFoundError) as exc_info:
            await manager.restore_backup("missing")

        assert exc_info.value.backup_id == "missing"
        assert "missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_restore_after_passphrase_change(self, manager, config_store):
        """Test backups sealed with an old passphrase fail authentication."""
        backup_id = await manager.create_backup()
        config_store.update_security(passphrase="rotated")

        with pytest.raises(AuthenticationError):
            await manager.restore_backup(backup_id)

    @pytest.mark.asyncio
    async def test_delete_backup(self, manager):
        """Test deleting a backup."""
        backup_id = await manager.create_backup()

        assert await manager.delete_backup(backup_id) is True
        assert await manager.list_backups() == []

    @pytest.mark.asyncio
    async def test_statistics_empty(self, manager):
        """Test statistics with no backups."""
        stats = await manager.get_backup_statistics()

        assert stats["total_backups"] == 0
        assert stats["newest_backup"] is None
        assert stats["average_backup_size"] == 0

    @pytest.mark.asyncio
    async def test_statistics(self, manager):
        """Test statistics summarize the history."""
        empty_keys = set(await manager.get_backup_statistics())
        await manager.create_backup()
        await manager.create_backup()

        stats = await manager.get_backup_statistics()

        assert set(stats) == empty_keys
        assert stats["average_backup_size"] == stats["total_size_bytes"] // 2
        assert stats["total_backups"] == 2
        assert stats["encrypted_backups"] == 2
        assert stats["total_size_bytes"] > 0
        assert stats["oldest_backup"] <= stats["newest_backup"]


class TestBackupSchedule:
    """Tests for scheduled backups."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager):
        """Test the scheduler task starts and stops cleanly."""
        manager.start()
        assert manager.is_scheduled

        await manager.stop()
        assert not manager.is_scheduled

    @pytest.mark.asyncio
    async def test_scheduled_backup_runs(self, manager, config_store, monkeypatch):
        """Test the loop creates backups at the configured interval."""
        config_store.update_backup_settings(interval_minutes=1)
        sleeps = []
        real_sleep = asyncio.sleep

        async def fast_sleep(seconds):
            sleeps.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr("constructos.persistence.backup.asyncio.sleep", fast_sleep)

        manager.start()
        for _ in range(50):
            if await manager.list_backups():
                break
            await real_sleep(0.01)
        await manager.stop()

        backups = await manager.list_backups()
        assert backups
        assert backups[0].label == "Scheduled backup"
        assert sleeps[0] == 60

    @pytest.mark.asyncio
    async def test_scheduled_failure_keeps_running(self, manager, config_store, monkeypatch):
        """Test a failing backup is logged and the loop continues."""
        config_store.update_backup_settings(interval_minutes=1)
        calls = []
        real_sleep = asyncio.sleep

        async def failing_create(label=None):
            calls.append(label)
            raise RuntimeError("disk full")

        async def fast_sleep(seconds):
            await real_sleep(0)

        monkeypatch.setattr(manager, "create_backup", failing_create)
        monkeypatch.setattr("constructos.persistence.backup.asyncio.sleep", fast_sleep)

        manager.start()
        for _ in range(50):
            if len(calls) >= 2:
                break
            await real_sleep(0.01)

        assert len(calls) >= 2
        assert manager.is_scheduled
