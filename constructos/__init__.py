"""
Construct OS - Local-first workshop data

Snapshot persistence and sync for the Construct OS workshop app with:
- Encrypted local auto-save and backup history (SQLite)
- Passphrase-based AES-256-GCM envelopes
- Optional encrypted replication to a remote HTTP endpoint
- Startup restore from cloud, local data or seed data
"""

__version__ = "1.0.0"
__author__ = "Construct OS Team"

from constructos.domain.models import Snapshot
from constructos.core.config import ConstructSettings
from constructos.core.workspace import Workspace

__all__ = ["Snapshot", "ConstructSettings", "Workspace", "__version__"]
