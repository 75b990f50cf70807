from __future__ import annotations

import pytest
from pymongo import UpdateOne
from pymongo.errors import AutoReconnect

from catalog_migration.db.bulk_upsert import (
    BulkUpsertError,
    UpsertDocument,
    build_upsert,
    bulk_upsert,
    update_operation,
    upsert_one,
)
from conftest import FakeCollection


def test_update_operation_set_and_unset():
    doc = UpsertDocument(key="P1", fields={"name": "Laptop"}, unset=("color",))
    filter_, update = update_operation(doc)
    assert filter_ == {"_id": "P1"}
    assert update == {"$set": {"name": "Laptop"}, "$unset": {"color": ""}}


def test_update_operation_without_unset():
    _, update = update_operation(UpsertDocument(key="01", fields={"name": "A"}))
    assert "$unset" not in update


def test_build_upsert_is_upsert_update_one():
    op = build_upsert(UpsertDocument(key="01", fields={"name": "A"}))
    assert isinstance(op, UpdateOne)
    assert op._upsert is True


def test_bulk_upsert_empty_submits_nothing():
    coll = FakeCollection("vendors")
    calls = []
    result = bulk_upsert(coll, [], metrics_callback=calls.append)
    assert result.submitted == 0
    assert coll.bulk_calls == []
    assert calls == []


def test_bulk_upsert_unordered_and_idempotent():
    coll = FakeCollection("vendors")
    docs = [UpsertDocument(key=k, fields={"name": k.upper()}) for k in ("a", "b")]
    metrics = []
    first = bulk_upsert(coll, docs, metrics_callback=metrics.append)
    assert (first.submitted, first.upserted, first.matched, first.written) == (2, 2, 0, 2)
    assert coll.ordered_flags == [False]
    assert metrics[0].batch_size == 2

    second = bulk_upsert(coll, docs)
    assert (second.upserted, second.matched, second.modified, second.written) == (0, 2, 0, 2)
    assert coll.docs == {"a": {"_id": "a", "name": "A"}, "b": {"_id": "b", "name": "B"}}


def test_bulk_upsert_write_errors_are_partial():
    coll = FakeCollection("products")
    coll.reject_keys = {"b"}
    docs = [UpsertDocument(key=k, fields={"name": k}) for k in ("a", "b", "c")]
    result = bulk_upsert(coll, docs)
    assert result.written == 2
    assert len(result.write_errors) == 1
    failure = result.write_errors[0]
    assert failure.index == 1
    assert failure.code == 11000
    assert "duplicate key" in failure.message
    assert set(coll.docs) == {"a", "c"}


def test_bulk_upsert_other_store_error_is_fatal():
    coll = FakeCollection("products")
    coll.fail_with = AutoReconnect("connection reset")
    metrics = []
    with pytest.raises(BulkUpsertError, match="connection reset"):
        bulk_upsert(coll, [UpsertDocument(key="a", fields={})], metrics_callback=metrics.append)
    assert len(metrics) == 1


def test_upsert_one_insert_then_match():
    coll = FakeCollection("categoryTree")
    doc = UpsertDocument(key="categoryTree", fields={"children": []})
    assert upsert_one(coll, doc).upserted == 1
    again = upsert_one(coll, doc)
    assert (again.upserted, again.matched) == (0, 1)


def test_upsert_one_store_error():
    coll = FakeCollection("categoryTree")
    coll.fail_with = AutoReconnect("down")
    with pytest.raises(BulkUpsertError):
        upsert_one(coll, UpsertDocument(key="categoryTree", fields={}))
