"""
Construct OS Persistence Errors

Error taxonomy for the snapshot persistence layer. Startup restoration
treats every SnapshotError as "try the next source"; explicit user
operations let them propagate.
"""

from __future__ import annotations

from typing import Optional


class SnapshotError(Exception):
    """Base class for snapshot persistence failures."""


class MalformedEnvelopeError(SnapshotError):
    """Encrypted envelope is structurally invalid (missing or bad iv/salt/cipher)."""


class AuthenticationError(SnapshotError):
    """Authentication tag did not verify: wrong passphrase or tampered data."""


class DecodeError(SnapshotError):
    """Plaintext is not a valid snapshot document."""


class PassphraseRequiredError(SnapshotError):
    """An encrypted backup was loaded without a passphrase."""


class BackupNotFoundError(SnapshotError, KeyError):
    """No backup record exists for the requested id."""

    def __init__(self, backup_id: str):
        super().__init__(backup_id)
        self.backup_id = backup_id

    def __str__(self) -> str:
        return f"Backup {self.backup_id} not found"


class SyncError(SnapshotError):
    """Transport, timeout or non-2xx failure talking to the remote endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
