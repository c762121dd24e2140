"""
Construct OS Domain Records

Typed records for the workshop state that travels inside a snapshot:
- Projects with bill of materials, tasks and chat history
- Stockroom inventory
- Machine park with maintenance log
- Vendors
- Reference documents

Records use camelCase keys on the wire, keep unknown fields for forward
compatibility, and omit absent optional fields when encoded.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

# Epoch milliseconds; int and float are both preserved as given.
Timestamp = Union[int, float]
Number = Union[int, float]

COLLECTIONS: tuple[str, ...] = ("projects", "inventory", "machines", "vendors", "docs")


class Record(BaseModel):
    """Base for every persisted record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, absent fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BOMItem(Record):
    item_name: Optional[str] = None
    quantity: Optional[Number] = None
    specifications: Optional[str] = None
    category: Optional[str] = None
    unit_cost: Optional[Number] = None
    notes: Optional[str] = None


class ProjectTask(Record):
    id: str
    text: Optional[str] = None
    status: Optional[str] = None  # pending | in_progress | done


class ChatMessage(Record):
    id: str
    role: Optional[str] = None  # user | model
    text: Optional[str] = None
    timestamp: Optional[Timestamp] = None
    images: Optional[tuple[str, ...]] = None


class MaintenanceEntry(Record):
    date: Optional[Timestamp] = None
    note: Optional[str] = None


class Project(Record):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None  # concept ... finished
    created_at: Optional[Timestamp] = None
    image_url: Optional[str] = None
    notes: Optional[str] = None
    bom: Optional[tuple[BOMItem, ...]] = None
    tasks: Optional[tuple[ProjectTask, ...]] = None
    chat_history: Optional[tuple[ChatMessage, ...]] = None


class InventoryItem(Record):
    id: str
    name: Optional[str] = None
    category: Optional[str] = None
    quantity: Optional[Number] = None
    unit: Optional[str] = None
    location: Optional[str] = None
    min_level: Optional[Number] = None
    last_updated: Optional[Timestamp] = None
    cost: Optional[Number] = None


class Machine(Record):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None  # operational | degraded | down | maintenance | retired
    last_service: Optional[Timestamp] = None
    next_service: Optional[Timestamp] = None
    image: Optional[str] = None
    notes: Optional[str] = None
    maintenance_log: Optional[tuple[MaintenanceEntry, ...]] = None


class Vendor(Record):
    id: str
    name: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[Number] = None  # 1-5
    lead_time: Optional[str] = None
    last_order: Optional[Timestamp] = None
    notes: Optional[str] = None


class ReferenceDoc(Record):
    id: str
    title: Optional[str] = None
    type: Optional[str] = None  # datasheet | manual | standard | receipt
    url: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None
    date_added: Optional[Timestamp] = None


class Snapshot(BaseModel):
    """
    The whole workshop state as one immutable value.

    Every collection defaults to empty; a snapshot never needs external
    state to be decoded. Updates produce a new Snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    projects: tuple[Project, ...] = ()
    inventory: tuple[InventoryItem, ...] = ()
    machines: tuple[Machine, ...] = ()
    vendors: tuple[Vendor, ...] = ()
    docs: tuple[ReferenceDoc, ...] = ()

    @field_validator(*COLLECTIONS, mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return () if value is None else value

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-ready dictionary with all five collections."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def replace(self, **collections: Any) -> "Snapshot":
        """Return a copy with the given collections replaced."""
        unknown = set(collections) - set(COLLECTIONS)
        if unknown:
            raise TypeError(f"Unknown snapshot collections: {sorted(unknown)}")

        values = {name: getattr(self, name) for name in COLLECTIONS}
        values.update(collections)
        return Snapshot(**values)

    def merge(self, patch: "SnapshotPatch") -> "Snapshot":
        """Apply a partial update: only collections present in the patch change."""
        return self.replace(**patch.present())

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in COLLECTIONS}


class SnapshotPatch(BaseModel):
    """
    Partial update produced by an import.

    A collection left as None was absent from the input and must not
    touch the current state; an empty tuple clears the collection.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    projects: Optional[tuple[Project, ...]] = None
    inventory: Optional[tuple[InventoryItem, ...]] = None
    machines: Optional[tuple[Machine, ...]] = None
    vendors: Optional[tuple[Vendor, ...]] = None
    docs: Optional[tuple[ReferenceDoc, ...]] = None

    def present(self) -> dict[str, tuple]:
        return {
            name: value
            for name in COLLECTIONS
            if (value := getattr(self, name)) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.present()
