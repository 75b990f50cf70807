from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ..models.config_models import ReferencePolicy
from ..models.records import ReferenceRecord

"""Reference resolution for product rows.

Vendors and categories are migrated first; their persisted records are loaded
once per product run into two read-only ReferenceIndex objects. Each index
answers a lookup by the literal id and, failing that, by the id with leading
zeros stripped, so "034" and "34" name the same record whichever side carries
the padding.

Policy:
- category missing -> the row is dropped (always)
- vendor missing -> LENIENT: the row is kept with vendor=None
                    STRICT: the row is dropped as well
"""

__all__ = [
    "MissingReferenceError",
    "ReferenceIndex",
    "ReferenceResolver",
    "Resolution",
    "strip_leading_zeros",
]

VENDORS_COLLECTION = "vendors"
CATEGORIES_COLLECTION = "categories"


class MissingReferenceError(Exception):
    """A mandatory reference of a product row could not be resolved."""

    def __init__(self, key: str, missing_vendor: bool, missing_category: bool) -> None:
        parts = []
        if missing_vendor:
            parts.append("Missing vendor")
        if missing_category:
            parts.append("Missing category")
        super().__init__(f"SKU {key}: {', '.join(parts)}")
        self.key = key
        self.missing_vendor = missing_vendor
        self.missing_category = missing_category


def strip_leading_zeros(value: str) -> str:
    """Alias form of an id: leading zeros removed, all-zero ids collapse to "0"."""
    if not value:
        return value
    return value.lstrip("0") or "0"


class ReferenceIndex:
    """Read-only lookup of ReferenceRecords by literal id or zero-stripped alias.

    Literal ids win over aliases: if both "34" and "034" exist, a lookup of
    "34" returns "34" and a lookup of "034" returns "034".
    """

    def __init__(self, records: Iterable[ReferenceRecord], kind: str = "reference") -> None:
        entries: dict[str, ReferenceRecord] = {}
        aliases: list[tuple[str, ReferenceRecord]] = []
        count = 0
        for record in records:
            entries[record.id] = record
            aliases.append((strip_leading_zeros(record.id), record))
            count += 1
        for alias, record in aliases:
            entries.setdefault(alias, record)
        self.kind = kind
        self._entries: Mapping[str, ReferenceRecord] = MappingProxyType(entries)
        self._count = count

    @classmethod
    def from_documents(cls, documents: Iterable[dict[str, Any]], kind: str = "reference") -> ReferenceIndex:
        return cls((ReferenceRecord.from_document(d) for d in documents), kind=kind)

    def lookup(self, key: str) -> ReferenceRecord | None:
        if not key:
            return None
        hit = self._entries.get(key)
        if hit is None:
            hit = self._entries.get(strip_leading_zeros(key))
        return hit

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not None

    def __len__(self) -> int:
        """Number of distinct records indexed (aliases not counted)."""
        return self._count


@dataclass(frozen=True)
class Resolution:
    vendor: ReferenceRecord | None
    category: ReferenceRecord | None

    @property
    def missing_vendor(self) -> bool:
        return self.vendor is None

    @property
    def missing_category(self) -> bool:
        return self.category is None


class ReferenceResolver:
    """Resolves the VENDOR / CATEGORY_CODE fields of product rows."""

    def __init__(
        self,
        vendors: ReferenceIndex,
        categories: ReferenceIndex,
        policy: ReferencePolicy = ReferencePolicy.LENIENT,
    ) -> None:
        self.vendors = vendors
        self.categories = categories
        self.policy = policy

    @classmethod
    def from_database(cls, database: Any, policy: ReferencePolicy = ReferencePolicy.LENIENT) -> ReferenceResolver:
        """Build both indices from the persisted vendors and categories collections."""
        projection = {"name": 1}
        vendors = ReferenceIndex.from_documents(
            database[VENDORS_COLLECTION].find({}, projection), kind="vendor"
        )
        categories = ReferenceIndex.from_documents(
            database[CATEGORIES_COLLECTION].find({}, projection), kind="category"
        )
        return cls(vendors, categories, policy)

    def resolve(self, vendor_key: str, category_key: str) -> Resolution:
        return Resolution(
            vendor=self.vendors.lookup(vendor_key),
            category=self.categories.lookup(category_key),
        )

    def require(self, resolution: Resolution, sku: str) -> ReferenceRecord:
        """Return the resolved category, or raise MissingReferenceError when
        the policy says the row must be dropped."""
        category = resolution.category
        if category is None or (self.policy is ReferencePolicy.STRICT and resolution.missing_vendor):
            raise MissingReferenceError(sku, resolution.missing_vendor, resolution.missing_category)
        return category
