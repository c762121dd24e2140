"""
Construct OS Domain

Workshop records and the Snapshot value that carries them.
"""

from constructos.domain.models import (
    COLLECTIONS,
    BOMItem,
    ChatMessage,
    InventoryItem,
    Machine,
    MaintenanceEntry,
    Project,
    ProjectTask,
    ReferenceDoc,
    Snapshot,
    SnapshotPatch,
    Vendor,
)
from constructos.domain.seed import seed_snapshot

__all__ = [
    "COLLECTIONS",
    "BOMItem",
    "ChatMessage",
    "InventoryItem",
    "Machine",
    "MaintenanceEntry",
    "Project",
    "ProjectTask",
    "ReferenceDoc",
    "Snapshot",
    "SnapshotPatch",
    "Vendor",
    "seed_snapshot",
]
