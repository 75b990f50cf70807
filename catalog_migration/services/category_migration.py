from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from ..db.bulk_upsert import UpsertDocument, upsert_one
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import MigrationConfig, OrphanPolicy
from ..models.error_record import ErrorRecord
from ..models.processing_result import MigrationResult
from ..models.records import CodeLabelRecord
from ..models.row_data import RowData
from ..models.skip_stats import SkipStatistics
from .batch_pipeline import run_pipeline
from .category_tree import build_category_tree, find_orphan_codes, is_valid_category_code, parent_code
from .errors import MigrationError
from .progress import ProgressTracker
from .sources import load_source

"""Category migration.

Writes one ``categories`` document per valid code and the whole hierarchy as
the ``categoryTree`` singleton. Codes must be digits in 2-digit levels;
anything else is skipped and counted.
"""

logger = logging.getLogger(__name__)

MIGRATION = "categories"
COLLECTION = "categories"
TREE_COLLECTION = "categoryTree"
TREE_DOCUMENT_ID = "categoryTree"

CODE_COLUMN = "CATEGORY_CODE"
NAME_COLUMN = "CATEGORY_NAME"
REQUIRED_COLUMNS = (CODE_COLUMN, NAME_COLUMN)


class InvalidCategoryCode(ValueError):
    pass


def _key_of(row: RowData) -> str:
    return row.get(CODE_COLUMN)


def transform_category(row: RowData, stats: SkipStatistics) -> UpsertDocument:
    code = row.get(CODE_COLUMN)
    if not is_valid_category_code(code):
        raise InvalidCategoryCode(f"Category {code}: invalid format")
    fields = CodeLabelRecord(code=code, label=row.get(NAME_COLUMN)).to_document()
    del fields["_id"]
    return UpsertDocument(key=code, fields=fields)


def classify_category_failure(row: RowData, exc: Exception, stats: SkipStatistics) -> str:
    stats.other_errors += 1
    if isinstance(exc, InvalidCategoryCode):
        stats.record_drop(str(exc))
        return "INVALID_CODE"
    stats.record_drop(f"Category {_key_of(row)}: {exc}")
    return "INVALID_ROW"


def valid_records(rows: list[RowData]) -> list[CodeLabelRecord]:
    return [
        CodeLabelRecord(code=row.get(CODE_COLUMN), label=row.get(NAME_COLUMN))
        for row in rows
        if is_valid_category_code(row.get(CODE_COLUMN))
    ]


def migrate_categories(
    config: MigrationConfig,
    database: Any,
    error_log: ErrorLogBuffer | None = None,
) -> MigrationResult:
    """Migrate the categories file into ``categories`` and ``categoryTree``.

    Raises
    ------
    MigrationError: no valid category code at all, or an orphan code under
        the FAIL orphan policy (both before anything is written)
    """
    start_time = datetime.now(UTC)
    source = load_source(config, MIGRATION, REQUIRED_COLUMNS)

    records = valid_records(source.rows)
    if not records:
        raise MigrationError("No valid categories found")

    orphans = find_orphan_codes(records)
    if orphans:
        if config.orphan_policy is OrphanPolicy.FAIL:
            raise MigrationError(
                f"{len(orphans)} categor{'y has' if len(orphans) == 1 else 'ies have'} "
                f"no parent code in the input: {', '.join(orphans[:5])}"
            )
        for code in orphans:
            logger.warning("category %s has no parent in the input and is left out of the tree", code)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        source=source.source_name,
                        collection=TREE_COLLECTION,
                        row=-1,
                        key=code,
                        error_type="ORPHAN_CATEGORY",
                        message=f"parent code {parent_code(code)} not found",
                    )
                )

    with ProgressTracker(len(source.rows), description="Categories") as progress:
        pipeline = run_pipeline(
            source.rows,
            collection=database[COLLECTION],
            batch_size=config.batch_size,
            transform=transform_category,
            classify_failure=classify_category_failure,
            key_of=_key_of,
            source_name=source.source_name,
            error_log=error_log,
            progress=progress,
        )

    forest = build_category_tree(records)
    upsert_one(
        database[TREE_COLLECTION],
        UpsertDocument(
            key=TREE_DOCUMENT_ID,
            fields={"children": [node.to_document() for node in forest]},
        ),
    )
    logger.info("category tree written: %d top-level categories", len(forest))

    return pipeline.to_result(MIGRATION, start_time)
