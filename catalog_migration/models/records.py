from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

"""Domain records for the catalog migration.

These are the shapes that flow between the tree builder, the reference
resolver and the batch pipeline, plus their MongoDB document renderings.
Collections are keyed by their natural key (`_id` = category code, vendor id
or SKU), never by a generated surrogate.
"""

__all__ = [
    "CodeLabelRecord",
    "TreeNode",
    "ReferenceRecord",
    "ReferenceSnapshot",
    "ProductRecord",
]


@dataclass(frozen=True)
class CodeLabelRecord:
    """A category code and its label as read from the categories file.

    Every 2-digit pair of ``code`` is one hierarchy level.
    """
    code: str
    label: str

    def to_document(self) -> dict[str, Any]:
        return {"_id": self.code, "name": self.label}


@dataclass
class TreeNode:
    """Node of the materialized category hierarchy.

    Mutable while the tree builder attaches children; handed off whole as part
    of the forest afterwards.
    """
    id: str
    name: str
    children: list[TreeNode] = field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "children": [child.to_document() for child in self.children],
        }


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Denormalized ``{_id, name}`` copy of a vendor or category embedded in a product."""
    id: str
    name: str

    def to_document(self) -> dict[str, Any]:
        return {"_id": self.id, "name": self.name}


@dataclass(frozen=True)
class ReferenceRecord:
    """A persisted vendor or category.

    Vendors carry both timestamps; categories carry neither.
    """
    id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ReferenceRecord:
        return cls(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            created_at=doc.get("createdAt"),
            updated_at=doc.get("updatedAt"),
        )

    def snapshot(self) -> ReferenceSnapshot:
        return ReferenceSnapshot(id=self.id, name=self.name)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"_id": self.id, "name": self.name}
        if self.created_at is not None:
            doc["createdAt"] = self.created_at
        if self.updated_at is not None:
            doc["updatedAt"] = self.updated_at
        return doc


@dataclass(frozen=True)
class ProductRecord:
    """A product row after coercion and reference resolution.

    ``vendor`` may be None (vendor data is incomplete for some SKUs);
    ``category`` is always resolved, otherwise the row is never built.
    """
    sku: str
    name: str
    description: str
    active: bool
    discontinued: bool
    created_at: datetime
    updated_at: datetime
    category: ReferenceSnapshot
    vendor: ReferenceSnapshot | None = None
    manufacturer_part_number: str | None = None
    color: str | None = None

    OPTIONAL_FIELDS = ("manufacturerPartNumber", "color")

    def to_document(self) -> dict[str, Any]:
        """Render the product document; absent optional strings are left out."""
        doc: dict[str, Any] = {"_id": self.sku}
        if self.manufacturer_part_number is not None:
            doc["manufacturerPartNumber"] = self.manufacturer_part_number
        doc["name"] = self.name
        doc["description"] = self.description
        if self.color is not None:
            doc["color"] = self.color
        doc["active"] = self.active
        doc["discontinued"] = self.discontinued
        doc["createdAt"] = self.created_at
        doc["updatedAt"] = self.updated_at
        doc["vendor"] = self.vendor.to_document() if self.vendor is not None else None
        doc["category"] = self.category.to_document()
        return doc
