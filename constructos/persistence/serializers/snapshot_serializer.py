"""
Construct OS Snapshot Serializer

Canonical byte representation of a Snapshot:
- Compact UTF-8 JSON, deterministic key order
- Optional fields omitted when absent
- Lenient decoding: missing collections read as empty,
  unknown record fields are preserved
"""

from __future__ import annotations

import json
from typing import Any, Union

from pydantic import ValidationError

from constructos.domain.models import Snapshot, SnapshotPatch
from constructos.persistence.errors import DecodeError


class SnapshotSerializer:
    """
    Converts snapshots to and from their canonical JSON bytes.

    The same document shape is used for the encrypted payload, for
    legacy plaintext slots, and for the portable export/import file.
    """

    SEPARATORS = (",", ":")

    def encode(self, snapshot: Snapshot) -> bytes:
        """Encode a snapshot to canonical UTF-8 JSON."""
        return json.dumps(
            snapshot.to_dict(),
            ensure_ascii=False,
            separators=self.SEPARATORS,
        ).encode("utf-8")

    def decode(self, data: Union[bytes, str]) -> Snapshot:
        """
        Decode canonical bytes into a Snapshot.

        Raises:
            DecodeError: invalid UTF-8/JSON, a non-object document, or a
                collection/record that does not validate
        """
        document = self._load(data)
        try:
            return Snapshot.model_validate(document)
        except ValidationError as e:
            raise DecodeError(f"Invalid snapshot document ({e.error_count()} errors)") from e

    def decode_patch(self, data: Union[bytes, str]) -> SnapshotPatch:
        """Decode an import document, keeping track of which collections were present."""
        document = self._load(data)
        try:
            return SnapshotPatch.model_validate(document)
        except ValidationError as e:
            raise DecodeError(f"Invalid import document ({e.error_count()} errors)") from e

    def _load(self, data: Union[bytes, str]) -> dict[str, Any]:
        if isinstance(data, (bytes, bytearray)):
            try:
                data = bytes(data).decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError("Snapshot is not valid UTF-8") from e

        try:
            document = json.loads(data)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Snapshot is not valid JSON: {e.msg}") from e

        if not isinstance(document, dict):
            raise DecodeError("Snapshot document must be a JSON object")
        return document


_default_serializer = SnapshotSerializer()


def encode_snapshot(snapshot: Snapshot) -> bytes:
    """Encode a snapshot using the default serializer."""
    return _default_serializer.encode(snapshot)


def decode_snapshot(data: Union[bytes, str]) -> Snapshot:
    """Decode a snapshot using the default serializer."""
    return _default_serializer.decode(data)
