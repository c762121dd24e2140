"""
Tests for the Construct OS snapshot serializer.
"""

import json

import pytest

from constructos.domain.models import Snapshot
from constructos.domain.seed import seed_snapshot
from constructos.persistence.errors import DecodeError
from constructos.persistence.serializers import SnapshotSerializer, decode_snapshot, encode_snapshot


class TestSnapshotSerializer:
    """Tests for canonical snapshot encoding."""

    def test_round_trip_seed(self):
        """Test the seed dataset decodes to an equal snapshot."""
        snapshot = seed_snapshot(now=1_700_000_000_000)

        assert decode_snapshot(encode_snapshot(snapshot)) == snapshot

    def test_encoding_is_deterministic(self):
        """Test equal snapshots encode to identical bytes."""
        first = seed_snapshot(now=1_700_000_000_000)
        second = seed_snapshot(now=1_700_000_000_000)

        assert encode_snapshot(first) == encode_snapshot(second)

    def test_all_collections_present(self):
        """Test encoding always carries all five collections."""
        document = json.loads(encode_snapshot(Snapshot()))

        assert document == {"projects": [], "inventory": [], "machines": [], "vendors": [], "docs": []}

    def test_camel_case_keys(self, snapshot):
        """Test record fields encode with camelCase keys."""
        item = json.loads(encode_snapshot(snapshot))["inventory"][0]

        assert item["minLevel"] == 1
        assert item["lastUpdated"] == 1
        assert "min_level" not in item

    def test_absent_optional_fields_omitted(self, snapshot):
        """Test optional fields that were never set are not written as null."""
        item = json.loads(encode_snapshot(snapshot))["inventory"][0]

        assert "category" not in item
        assert "cost" not in item

    def test_non_ascii_preserved(self, make_snapshot):
        """Test text outside ASCII is stored as UTF-8, not escaped."""
        snapshot = make_snapshot(vendors=[{"id": "v1", "name": "Schraubenwerk Müller"}])

        encoded = encode_snapshot(snapshot)

        assert "Müller".encode("utf-8") in encoded
        assert decode_snapshot(encoded).vendors[0].name == "Schraubenwerk Müller"

    def test_missing_collections_decode_empty(self):
        """Test absent collections read as empty."""
        snapshot = decode_snapshot(b'{"inventory": [{"id": "x"}]}')

        assert snapshot.projects == ()
        assert snapshot.docs == ()
        assert snapshot.inventory[0].id == "x"

    def test_null_collection_decodes_empty(self):
        """Test a null collection reads as empty."""
        assert decode_snapshot('{"machines": null}').machines == ()

    def test_unknown_record_fields_preserved(self):
        """Test fields this version does not know survive a round trip."""
        data = b'{"inventory": [{"id": "x", "supplierSku": "ABC-1"}]}'

        document = json.loads(encode_snapshot(decode_snapshot(data)))

        assert document["inventory"][0]["supplierSku"] == "ABC-1"

    def test_integer_and_float_numbers_preserved(self, make_snapshot):
        """Test numbers keep their int or float form."""
        snapshot = make_snapshot(inventory=[{"id": "a", "quantity": 3, "cost": 2.5}, {"id": "b", "quantity": 1.0}])

        items = json.loads(encode_snapshot(snapshot))["inventory"]

        assert items[0]["quantity"] == 3 and isinstance(items[0]["quantity"], int)
        assert items[0]["cost"] == 2.5
        assert isinstance(items[1]["quantity"], float)

    def test_invalid_json(self):
        """Test invalid JSON raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_snapshot(b"{oops")

    def test_invalid_utf8(self):
        """Test invalid UTF-8 raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_snapshot(b"\xff\xfe\xfa")

    def test_non_object_document(self):
        """Test a JSON array raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_snapshot(b"[]")

    def test_invalid_record(self):
        """Test a record without an id raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_snapshot(b'{"projects": [{"title": "No id"}]}')


class TestDecodePatch:
    """Tests for import documents."""

    def test_only_present_collections(self):
        """Test absent collections are not part of the patch."""
        patch = SnapshotSerializer().decode_patch(b'{"vendors": [{"id": "v1"}], "docs": []}')

        assert set(patch.present()) == {"vendors", "docs"}
        assert patch.projects is None

    def test_empty_document(self):
        """Test an object without collections is an empty patch."""
        assert SnapshotSerializer().decode_patch("{}").is_empty

    def test_invalid_patch(self):
        """Test an invalid collection raises DecodeError."""
        with pytest.raises(DecodeError):
            SnapshotSerializer().decode_patch('{"inventory": "not a list"}')
