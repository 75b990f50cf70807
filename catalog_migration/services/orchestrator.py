from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary
from ..models.config_models import MigrationConfig
from ..models.processing_result import MigrationResult
from .category_migration import migrate_categories
from .product_migration import migrate_products
from .summary import render_skip_report, render_summary_line
from .vendor_migration import migrate_vendors

"""Migration orchestration.

Runs the selected migrations strictly in dependency order (categories, then
vendors, then products), reports each one as soon as it finishes and stops at
the first fatal error. Row-level problems never stop the sequence.
"""

logger = logging.getLogger(__name__)

MIGRATION_ORDER = ("categories", "vendors", "products")

Migration = Callable[[MigrationConfig, Any, ErrorLogBuffer | None], MigrationResult]

MIGRATIONS: dict[str, Migration] = {
    "categories": migrate_categories,
    "vendors": migrate_vendors,
    "products": migrate_products,
}


def resolve_migrations(command: str) -> list[str]:
    """Map a CLI command (one migration name or "all") to the ordered migrations to run."""
    if command == "all":
        return list(MIGRATION_ORDER)
    if command not in MIGRATIONS:
        raise ValueError(f"unknown migration: {command}")
    return [command]


def report_result(result: MigrationResult) -> None:
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    for line in render_skip_report(result):
        logger.info(line)


def _flush_error_log(error_log: ErrorLogBuffer | None) -> None:
    if error_log is not None and len(error_log):
        error_log.flush()


def run_migrations(
    config: MigrationConfig,
    database: Any,
    migrations: Iterable[str],
    error_log: ErrorLogBuffer | None = None,
) -> list[MigrationResult]:
    """Run ``migrations`` in dependency order and return their results.

    The error log is flushed after each migration. Fatal errors
    (MigrationError, CsvSourceError, BulkUpsertError, ...) are propagated
    after whatever the failing migration recorded has been flushed too.
    """
    selected = set(migrations)
    results: list[MigrationResult] = []
    try:
        for name in MIGRATION_ORDER:
            if name not in selected:
                continue
            logger.info("Starting %s migration", name)
            result = MIGRATIONS[name](config, database, error_log)
            report_result(result)
            results.append(result)
            _flush_error_log(error_log)
    finally:
        _flush_error_log(error_log)
        if error_log is not None and error_log.path is not None:
            counts = ", ".join(f"{t}={n}" for t, n in error_log.tally().items())
            logger.info("error log written: %s (%s)", error_log.path, counts)
    return results
