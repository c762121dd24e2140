"""
Shared fixtures for Construct OS tests.
"""

from pathlib import Path

import httpx
import pytest

from constructos.api.sync_server import create_sync_app
from constructos.core.config import ConfigStore, SecurityConfig
from constructos.domain.models import Snapshot
from constructos.persistence import crypto
from constructos.persistence.backends import SQLiteBackend
from constructos.persistence.config import MEMORY_PATH, SQLiteConfig
from constructos.persistence.reconciler import SnapshotReconciler
from constructos.persistence.remote import RemoteSyncProvider
from constructos.persistence.store import LocalSnapshotStore


@pytest.fixture(autouse=True)
def fast_kdf(request, monkeypatch):
    """Lower PBKDF2 iterations unless a test is marked ``real_kdf``."""
    if request.node.get_closest_marker("real_kdf") is None:
        monkeypatch.setattr(crypto, "KDF_ITERATIONS", 1_000)


@pytest.fixture
def make_snapshot():
    """Build small snapshots; one inventory item unless overridden."""

    def build(**collections) -> Snapshot:
        data = {
            "inventory": [
                {
                    "id": "i1",
                    "name": "Bolt",
                    "quantity": 5,
                    "unit": "pcs",
                    "location": "A1",
                    "minLevel": 1,
                    "lastUpdated": 1,
                },
            ],
        }
        data.update(collections)
        return Snapshot.model_validate(data)

    return build


@pytest.fixture
def snapshot(make_snapshot) -> Snapshot:
    return make_snapshot()


@pytest.fixture
async def store():
    """Initialized in-memory snapshot store."""
    sqlite_config = SQLiteConfig(path=MEMORY_PATH)
    local_store = LocalSnapshotStore(SQLiteBackend(sqlite_config))
    await local_store.initialize()
    yield local_store
    await local_store.close()


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(tmp_path / "settings.json")


@pytest.fixture
def sync_app():
    """In-memory reference sync endpoint."""
    return create_sync_app()


@pytest.fixture
def asgi_remote():
    """Remote factory routing provider requests into an ASGI app."""

    def build(app):
        def factory(config: SecurityConfig) -> RemoteSyncProvider:
            return RemoteSyncProvider.from_config(config, transport=httpx.ASGITransport(app=app))

        return factory

    return build


@pytest.fixture
def make_reconciler(store, config_store):
    """Build reconcilers over the shared store and config."""

    def build(remote_factory=None, seed_factory=None) -> SnapshotReconciler:
        kwargs = {"remote_factory": remote_factory}
        if seed_factory is not None:
            kwargs["seed_factory"] = seed_factory
        return SnapshotReconciler(store, config_store, **kwargs)

    return build
