"""
Construct OS Persistence Serializers

Canonical encoding of snapshots for storage, transport and export.
"""

from constructos.persistence.serializers.snapshot_serializer import (
    SnapshotSerializer,
    decode_snapshot,
    encode_snapshot,
)

__all__ = [
    "SnapshotSerializer",
    "decode_snapshot",
    "encode_snapshot",
]
