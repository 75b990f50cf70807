from __future__ import annotations

import pytest

from catalog_migration.models.config_models import ReferencePolicy
from catalog_migration.models.records import ReferenceRecord
from catalog_migration.services.reference_resolver import (
    MissingReferenceError,
    ReferenceIndex,
    ReferenceResolver,
    strip_leading_zeros,
)
from conftest import FakeDatabase


def _index(*ids: str) -> ReferenceIndex:
    return ReferenceIndex(ReferenceRecord(id=i, name=f"name-{i}") for i in ids)


def test_strip_leading_zeros():
    assert strip_leading_zeros("034") == "34"
    assert strip_leading_zeros("34") == "34"
    assert strip_leading_zeros("000") == "0"
    assert strip_leading_zeros("") == ""


def test_alias_symmetry():
    padded = _index("034")
    assert padded.lookup("34").id == "034"
    assert padded.lookup("034").id == "034"
    plain = _index("34")
    assert plain.lookup("034").id == "34"
    assert plain.lookup("34").id == "34"


def test_literal_wins_over_alias():
    both = _index("34", "034")
    assert both.lookup("34").id == "34"
    assert both.lookup("034").id == "034"
    assert len(both) == 2


def test_lookup_miss_and_blank():
    idx = _index("100")
    assert idx.lookup("101") is None
    assert idx.lookup("") is None
    assert "100" in idx
    assert "0100" in idx
    assert "x" not in idx


def test_from_documents():
    idx = ReferenceIndex.from_documents([{"_id": "01", "name": "Electronics"}], kind="category")
    assert idx.lookup("1").name == "Electronics"
    assert idx.kind == "category"


def _resolver(policy: ReferencePolicy) -> ReferenceResolver:
    return ReferenceResolver(_index("034"), _index("01"), policy)


def test_lenient_vendor_miss_is_kept():
    resolver = _resolver(ReferencePolicy.LENIENT)
    resolution = resolver.resolve("999", "01")
    assert resolution.missing_vendor
    assert not resolution.missing_category
    assert resolver.require(resolution, "P1") == resolution.category


def test_strict_vendor_miss_is_dropped():
    resolver = _resolver(ReferencePolicy.STRICT)
    with pytest.raises(MissingReferenceError) as info:
        resolver.require(resolver.resolve("999", "01"), "P1")
    assert info.value.missing_vendor
    assert not info.value.missing_category
    assert str(info.value) == "SKU P1: Missing vendor"


@pytest.mark.parametrize("policy", list(ReferencePolicy))
def test_category_miss_always_dropped(policy):
    resolver = _resolver(policy)
    with pytest.raises(MissingReferenceError) as info:
        resolver.require(resolver.resolve("34", "99"), "P2")
    assert info.value.missing_category
    assert str(info.value) == "SKU P2: Missing category"


def test_both_missing_message():
    resolver = _resolver(ReferencePolicy.LENIENT)
    with pytest.raises(MissingReferenceError) as info:
        resolver.require(resolver.resolve("", "77"), "P5")
    assert str(info.value) == "SKU P5: Missing vendor, Missing category"


def test_from_database_reads_both_collections():
    db = FakeDatabase()
    db["vendors"].docs["034"] = {"_id": "034", "name": "Acme", "createdAt": None}
    db["categories"].docs["01"] = {"_id": "01", "name": "Electronics"}
    resolver = ReferenceResolver.from_database(db, ReferencePolicy.STRICT)
    assert resolver.policy is ReferencePolicy.STRICT
    assert resolver.vendors.lookup("34").name == "Acme"
    assert resolver.categories.lookup("01").snapshot().to_document() == {"_id": "01", "name": "Electronics"}
