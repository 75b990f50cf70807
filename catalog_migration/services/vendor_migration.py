from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from ..db.bulk_upsert import UpsertDocument
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import MigrationConfig
from ..models.processing_result import MigrationResult
from ..models.records import ReferenceRecord
from ..models.row_data import RowData
from ..models.skip_stats import SkipStatistics
from .batch_pipeline import run_pipeline
from .dates import DateParseError, parse_slash_date
from .errors import InvalidRowError, MigrationError
from .progress import ProgressTracker
from .sources import load_source

"""Vendor migration: vendors file -> ``vendors`` collection, keyed by VENDOR_ID."""

logger = logging.getLogger(__name__)

MIGRATION = "vendors"
COLLECTION = "vendors"

REQUIRED_COLUMNS = ("VENDOR_ID", "VENDOR_NAME", "CREATE_DATE", "LAST_MODIFIED_DATE")


def _key_of(row: RowData) -> str:
    return row.get("VENDOR_ID")


def transform_vendor(row: RowData, stats: SkipStatistics) -> UpsertDocument:
    vendor_id = row.get("VENDOR_ID")
    if not vendor_id:
        raise InvalidRowError("missing VENDOR_ID")
    record = ReferenceRecord(
        id=vendor_id,
        name=row.get("VENDOR_NAME"),
        created_at=parse_slash_date(row.get("CREATE_DATE")),
        updated_at=parse_slash_date(row.get("LAST_MODIFIED_DATE")),
    )
    fields = record.to_document()
    del fields["_id"]
    return UpsertDocument(key=record.id, fields=fields)


def classify_vendor_failure(row: RowData, exc: Exception, stats: SkipStatistics) -> str:
    stats.record_drop(f"Vendor {_key_of(row)}: {exc}")
    if isinstance(exc, DateParseError):
        stats.invalid_dates += 1
        return "INVALID_DATE"
    stats.other_errors += 1
    return "INVALID_ROW"


def migrate_vendors(
    config: MigrationConfig,
    database: Any,
    error_log: ErrorLogBuffer | None = None,
) -> MigrationResult:
    """Migrate the vendors file.

    Raises
    ------
    MigrationError: no row of the file could be turned into a vendor
    """
    start_time = datetime.now(UTC)
    source = load_source(config, MIGRATION, REQUIRED_COLUMNS)

    with ProgressTracker(len(source.rows), description="Vendors") as progress:
        pipeline = run_pipeline(
            source.rows,
            collection=database[COLLECTION],
            batch_size=config.batch_size,
            transform=transform_vendor,
            classify_failure=classify_vendor_failure,
            key_of=_key_of,
            source_name=source.source_name,
            error_log=error_log,
            progress=progress,
        )

    # Every row failed its transform, so nothing has been submitted
    if pipeline.submitted == 0:
        raise MigrationError("No valid vendors to migrate")

    return pipeline.to_result(MIGRATION, start_time)
