"""
Construct OS API

Reference HTTP endpoint for remote snapshot sync.
"""

from constructos.api.sync_server import PayloadStorage, SyncPayload, create_sync_app

__all__ = ["PayloadStorage", "SyncPayload", "create_sync_app"]
