from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pymongo.errors import PyMongoError

from ..db.bulk_upsert import UpsertDocument
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import MigrationConfig, ReferencePolicy
from ..models.processing_result import MigrationResult
from ..models.records import ProductRecord
from ..models.row_data import RowData
from ..models.skip_stats import SkipStatistics
from .batch_pipeline import Transform, run_pipeline
from .dates import DateParseError, parse_compact_date
from .errors import InvalidRowError, MigrationError
from .missing_vendor_report import write_missing_vendor_report
from .progress import ProgressTracker
from .reference_resolver import (
    CATEGORIES_COLLECTION,
    VENDORS_COLLECTION,
    MissingReferenceError,
    ReferenceResolver,
)
from .sources import load_source

"""Product migration.

Runs after the category and vendor migrations: each product row is joined to
the persisted vendors and categories through a ReferenceResolver and written
with ``{_id, name}`` snapshots of both. See reference_resolver for the
drop/keep rules.
"""

logger = logging.getLogger(__name__)

MIGRATION = "products"
COLLECTION = "products"

REQUIRED_COLUMNS = ("SKU", "PRODUCT_NAME", "VENDOR", "CATEGORY_CODE")


def _key_of(row: RowData) -> str:
    return row.get("SKU")


def _yes(value: str) -> bool:
    return value.lower() == "yes"


def build_product_record(row: RowData, resolver: ReferenceResolver) -> ProductRecord:
    """Coerce and resolve one product row.

    Raises
    ------
    InvalidRowError: blank SKU
    MissingReferenceError: a reference the policy treats as mandatory is missing
    DateParseError: CREATED_DATE or LAST_MODIFIED_DATE is malformed
    """
    sku = row.get("SKU")
    if not sku:
        raise InvalidRowError("missing SKU")

    resolution = resolver.resolve(row.get("VENDOR"), row.get("CATEGORY_CODE"))
    category = resolver.require(resolution, sku)

    return ProductRecord(
        sku=sku,
        manufacturer_part_number=row.get("MANUFACTURER_PART_NO") or None,
        name=row.get("PRODUCT_NAME"),
        description=row.get("DESCRIPTION"),
        color=row.get("COLOR") or None,
        active=_yes(row.get("ACTIVE_STATUS")),
        discontinued=_yes(row.get("DISCONTINUED")),
        created_at=parse_compact_date(row.get("CREATED_DATE")),
        updated_at=parse_compact_date(row.get("LAST_MODIFIED_DATE")),
        vendor=resolution.vendor.snapshot() if resolution.vendor is not None else None,
        category=category.snapshot(),
    )


def to_upsert_document(record: ProductRecord) -> UpsertDocument:
    fields = record.to_document()
    del fields["_id"]
    unset = tuple(name for name in ProductRecord.OPTIONAL_FIELDS if name not in fields)
    return UpsertDocument(key=record.sku, fields=fields, unset=unset)


def make_product_transform(resolver: ReferenceResolver, missing_vendor_rows: list[RowData]) -> Transform:
    """Build the per-row transform; rows with an unresolved vendor are collected for the report."""

    def transform(row: RowData, stats: SkipStatistics) -> UpsertDocument:
        if resolver.vendors.lookup(row.get("VENDOR")) is None and row.get("SKU"):
            missing_vendor_rows.append(row)
        record = build_product_record(row, resolver)
        if record.vendor is None:
            # Written without vendor: degraded, not dropped
            stats.missing_vendor += 1
        return to_upsert_document(record)

    return transform


def classify_product_failure(row: RowData, exc: Exception, stats: SkipStatistics) -> str:
    if isinstance(exc, MissingReferenceError):
        stats.record_drop(str(exc))
        if exc.missing_vendor and exc.missing_category:
            stats.missing_both += 1
            return "MISSING_REFERENCES"
        if exc.missing_category:
            stats.missing_category += 1
            return "MISSING_CATEGORY"
        stats.missing_vendor += 1
        return "MISSING_VENDOR"
    stats.other_errors += 1
    stats.record_drop(f"SKU {_key_of(row)}: {exc}")
    if isinstance(exc, DateParseError):
        return "INVALID_DATE"
    return "INVALID_ROW"


def check_prerequisites(database: Any) -> None:
    """Vendors and categories must have been migrated before products."""
    for name in (CATEGORIES_COLLECTION, VENDORS_COLLECTION):
        if database[name].estimated_document_count() == 0:
            raise MigrationError(
                f"{name} collection is empty; run the {name} migration before products"
            )


def migrate_products(
    config: MigrationConfig,
    database: Any,
    error_log: ErrorLogBuffer | None = None,
) -> MigrationResult:
    """Migrate the products file.

    Raises
    ------
    MigrationError: empty vendors/categories collections, a store error while
        reading them, or an empty file
    """
    start_time = datetime.now(UTC)
    source = load_source(config, MIGRATION, REQUIRED_COLUMNS)
    try:
        check_prerequisites(database)
        resolver = ReferenceResolver.from_database(database, config.reference_policy)
    except PyMongoError as e:
        raise MigrationError(f"reading vendors/categories failed: {e}") from e

    logger.info(
        "reference index: vendors=%d categories=%d policy=%s",
        len(resolver.vendors),
        len(resolver.categories),
        resolver.policy.value,
    )

    missing_vendor_rows: list[RowData] = []
    with ProgressTracker(len(source.rows), description="Products") as progress:
        pipeline = run_pipeline(
            source.rows,
            collection=database[COLLECTION],
            batch_size=config.batch_size,
            transform=make_product_transform(resolver, missing_vendor_rows),
            classify_failure=classify_product_failure,
            key_of=_key_of,
            source_name=source.source_name,
            error_log=error_log,
            progress=progress,
        )

    write_missing_vendor_report(missing_vendor_rows, source.columns, Path(config.reports_directory))

    degraded = pipeline.skip_stats.missing_vendor if config.reference_policy is ReferencePolicy.LENIENT else 0
    return pipeline.to_result(MIGRATION, start_time, degraded_rows=degraded)
