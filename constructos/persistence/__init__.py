"""
Construct OS Persistence Layer

Local-first snapshot persistence providing:
- Passphrase-based AES-256-GCM envelopes (PBKDF2-SHA256 keys)
- Embedded SQLite store for backup history and the current-state slot
- Optional encrypted replication to a remote HTTP endpoint
- Startup restore and mutation persistence through the reconciler
- Backup scheduling and retention
"""

from constructos.persistence.errors import (
    AuthenticationError,
    BackupNotFoundError,
    DecodeError,
    MalformedEnvelopeError,
    PassphraseRequiredError,
    SnapshotError,
    SyncError,
)
from constructos.persistence.crypto import (
    EncryptedEnvelope,
    decrypt,
    decrypt_async,
    derive_key,
    encrypt,
    encrypt_async,
    open_snapshot,
    seal_snapshot,
)
from constructos.persistence.serializers import (
    SnapshotSerializer,
    decode_snapshot,
    encode_snapshot,
)
from constructos.persistence.config import SQLiteConfig, StoreConfig
from constructos.persistence.backends import BaseBackend, SQLiteBackend
from constructos.persistence.store import BackupSummary, LocalSnapshotStore
from constructos.persistence.remote import RemoteSyncProvider
from constructos.persistence.reconciler import (
    ReconcilerState,
    RestoreSource,
    SnapshotReconciler,
    SyncStatus,
)
from constructos.persistence.backup import BackupManager

__all__ = [
    # Errors
    "SnapshotError",
    "MalformedEnvelopeError",
    "AuthenticationError",
    "DecodeError",
    "PassphraseRequiredError",
    "BackupNotFoundError",
    "SyncError",
    # Crypto
    "EncryptedEnvelope",
    "derive_key",
    "encrypt",
    "decrypt",
    "encrypt_async",
    "decrypt_async",
    "seal_snapshot",
    "open_snapshot",
    # Serialization
    "SnapshotSerializer",
    "encode_snapshot",
    "decode_snapshot",
    # Storage
    "SQLiteConfig",
    "StoreConfig",
    "BaseBackend",
    "SQLiteBackend",
    "BackupSummary",
    "LocalSnapshotStore",
    # Sync
    "RemoteSyncProvider",
    "ReconcilerState",
    "RestoreSource",
    "SnapshotReconciler",
    "SyncStatus",
    # Backup
    "BackupManager",
]
