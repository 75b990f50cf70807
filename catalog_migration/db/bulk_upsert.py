from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError

"""Unordered bulk upsert by natural key.

Every document is written as ``UpdateOne({_id: key}, {$set: fields}, upsert=True)``
so re-running a migration on the same input converges on the same documents.
A batch is one ``bulk_write(ordered=False)``: a document rejected by the store
does not keep the rest of the batch from landing. Rejections come back as
``WriteFailure`` entries; any other store error is fatal (BulkUpsertError).
"""


class BulkUpsertError(Exception):
    pass


@dataclass(frozen=True)
class UpsertDocument:
    """A document ready to be upserted.

    ``fields`` excludes ``_id``; ``unset`` names optional fields that are
    absent on this record and must be removed from a previously written copy.
    """
    key: str
    fields: dict[str, Any]
    unset: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single bulk write."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class WriteFailure:
    index: int  # position of the operation in the submitted batch
    code: int | None
    message: str


@dataclass(frozen=True)
class UpsertResult:
    submitted: int
    upserted: int = 0
    matched: int = 0
    modified: int = 0
    write_errors: list[WriteFailure] = field(default_factory=list)

    @property
    def written(self) -> int:
        """Documents acknowledged by the store (inserted or already present)."""
        return self.upserted + self.matched


def update_operation(doc: UpsertDocument) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the (filter, update) pair for ``doc``."""
    update: dict[str, Any] = {"$set": dict(doc.fields)}
    if doc.unset:
        update["$unset"] = {name: "" for name in doc.unset}
    return {"_id": doc.key}, update


def build_upsert(doc: UpsertDocument) -> UpdateOne:
    filter_, update = update_operation(doc)
    return UpdateOne(filter_, update, upsert=True)


def bulk_upsert(
    collection: Any,
    documents: Sequence[UpsertDocument],
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Submit ``documents`` as one unordered bulk write.

    Parameters
    ----------
    collection: pymongo Collection (or a compatible fake)
    documents: documents of one batch, in batch order
    metrics_callback: optional callback receiving BatchMetrics for the write.
        Not invoked when ``documents`` is empty (nothing is submitted).

    Raises
    ------
    BulkUpsertError: the store failed for a reason other than per-document
        write errors (lost connection, auth, ...)
    """
    if not documents:
        return UpsertResult(submitted=0)

    operations = [build_upsert(doc) for doc in documents]

    start_time = time.time()
    try:
        result = collection.bulk_write(operations, ordered=False)
    except BulkWriteError as e:
        details = e.details or {}
        failures = [
            WriteFailure(
                index=int(err.get("index", -1)),
                code=err.get("code"),
                message=str(err.get("errmsg", "")),
            )
            for err in details.get("writeErrors", [])
        ]
        return UpsertResult(
            submitted=len(operations),
            upserted=int(details.get("nUpserted", 0)),
            matched=int(details.get("nMatched", 0)),
            modified=int(details.get("nModified", 0)),
            write_errors=failures,
        )
    except PyMongoError as e:
        raise BulkUpsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(operations),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return UpsertResult(
        submitted=len(operations),
        upserted=result.upserted_count,
        matched=result.matched_count,
        modified=result.modified_count,
    )


def upsert_one(collection: Any, doc: UpsertDocument) -> UpsertResult:
    """Upsert a single aggregate document (the category tree singleton)."""
    filter_, update = update_operation(doc)
    try:
        result = collection.update_one(filter_, update, upsert=True)
    except PyMongoError as e:
        raise BulkUpsertError(str(e)) from e
    return UpsertResult(
        submitted=1,
        upserted=1 if result.upserted_id is not None else 0,
        matched=result.matched_count,
        modified=result.modified_count,
    )
