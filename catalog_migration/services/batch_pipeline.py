from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar

from ..db.bulk_upsert import BatchMetrics, UpsertDocument, bulk_upsert
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.processing_result import BatchStatsAccumulator, MigrationResult
from ..models.row_data import RowData
from ..models.skip_stats import SkipStatistics
from .progress import ProgressTracker

"""Batch upsert pipeline.

Rows are cut into consecutive batches of ``batch_size`` (input order kept).
Within a batch each row is transformed on its own; a row whose transform
raises is left out of the write set and counted in the batch's
SkipStatistics, it never aborts the batch. The surviving rows are submitted
as one unordered bulk upsert. The next batch runs whatever the previous
batch's outcome was.

``process_batch`` is a pure step: it returns a BatchOutcome carrying its own
statistics and failures. ``run_pipeline`` folds the outcomes together and
feeds the error log and progress bar.
"""

logger = logging.getLogger(__name__)

T = TypeVar("T")

# transform(row, batch_stats) -> document; raise to drop the row
Transform = Callable[[RowData, SkipStatistics], UpsertDocument]
# classify_failure(row, exc, batch_stats) -> error_type; must count the row in batch_stats
ClassifyFailure = Callable[[RowData, Exception, SkipStatistics], str]
KeyOf = Callable[[RowData], str]

WRITE_ERROR = "WRITE_ERROR"


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` with at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"batch size must be a positive integer, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass(frozen=True)
class RowFailure:
    row_number: int
    key: str
    error_type: str
    message: str


@dataclass(frozen=True)
class BatchOutcome:
    index: int  # 0-based batch number
    row_count: int  # source rows in the batch
    submitted: int  # documents sent to the store
    written: int  # documents acknowledged
    failed_writes: int  # documents rejected by the store
    skip_stats: SkipStatistics
    failures: tuple[RowFailure, ...] = ()


@dataclass
class PipelineResult:
    source_rows: int = 0
    submitted: int = 0
    written: int = 0
    failed_writes: int = 0
    skip_stats: SkipStatistics = field(default_factory=SkipStatistics)
    batch_sizes: list[int] = field(default_factory=list)  # submitted documents per batch
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    def to_result(
        self,
        migration: str,
        start_time: datetime,
        *,
        degraded_rows: int = 0,
    ) -> MigrationResult:
        end_time = datetime.now(UTC)
        elapsed = (end_time - start_time).total_seconds()
        return MigrationResult(
            migration=migration,
            source_rows=self.source_rows,
            written_rows=self.written,
            skipped_rows=self.skip_stats.total,
            degraded_rows=degraded_rows,
            failed_writes=self.failed_writes,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=elapsed,
            throughput_rows_per_sec=self.written / elapsed if elapsed > 0 else 0.0,
            total_batches=self.total_batches,
            avg_batch_seconds=self.avg_batch_seconds,
            p95_batch_seconds=self.p95_batch_seconds,
            skip_stats=self.skip_stats,
        )

    def absorb(self, outcome: BatchOutcome) -> None:
        self.source_rows += outcome.row_count
        self.submitted += outcome.submitted
        self.written += outcome.written
        self.failed_writes += outcome.failed_writes
        self.skip_stats = self.skip_stats.merge(outcome.skip_stats)
        self.batch_sizes.append(outcome.submitted)


def process_batch(
    index: int,
    rows: Sequence[RowData],
    *,
    collection: Any,
    transform: Transform,
    classify_failure: ClassifyFailure,
    key_of: KeyOf,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> BatchOutcome:
    """Transform and upsert one batch.

    Raises
    ------
    BulkUpsertError: only for store failures other than per-document rejections
    """
    stats = SkipStatistics()
    failures: list[RowFailure] = []
    documents: list[UpsertDocument] = []
    sources: list[RowData] = []

    for row in rows:
        try:
            doc = transform(row, stats)
        except Exception as e:
            error_type = classify_failure(row, e, stats)
            failures.append(RowFailure(row.row_number, key_of(row), error_type, str(e)))
            logger.debug("row=%d key=%s skipped: %s", row.row_number, key_of(row), e)
            continue
        documents.append(doc)
        sources.append(row)

    result = bulk_upsert(collection, documents, metrics_callback=metrics_callback)

    for wf in result.write_errors:
        if 0 <= wf.index < len(sources):
            row_number, key = sources[wf.index].row_number, documents[wf.index].key
        else:
            row_number, key = -1, ""
        failures.append(RowFailure(row_number, key, WRITE_ERROR, wf.message))
        logger.error("write rejected key=%s code=%s: %s", key, wf.code, wf.message)

    outcome = BatchOutcome(
        index=index,
        row_count=len(rows),
        submitted=result.submitted,
        written=result.written,
        failed_writes=len(result.write_errors),
        skip_stats=stats,
        failures=tuple(failures),
    )
    logger.debug(
        "batch=%d rows=%d submitted=%d written=%d skipped=%d failed_writes=%d",
        index,
        outcome.row_count,
        outcome.submitted,
        outcome.written,
        stats.total,
        outcome.failed_writes,
    )
    return outcome


def run_pipeline(
    rows: Sequence[RowData],
    *,
    collection: Any,
    batch_size: int,
    transform: Transform,
    classify_failure: ClassifyFailure,
    key_of: KeyOf,
    source_name: str = "",
    error_log: ErrorLogBuffer | None = None,
    progress: ProgressTracker | None = None,
) -> PipelineResult:
    """Run every batch of ``rows`` strictly in sequence and aggregate the outcomes."""
    accumulator = BatchStatsAccumulator()

    def on_metrics(metrics: BatchMetrics) -> None:
        accumulator.add_batch_time(metrics.elapsed_seconds)

    pipeline = PipelineResult()
    for index, batch in enumerate(chunked(rows, batch_size)):
        outcome = process_batch(
            index,
            batch,
            collection=collection,
            transform=transform,
            classify_failure=classify_failure,
            key_of=key_of,
            metrics_callback=on_metrics,
        )
        pipeline.absorb(outcome)

        if error_log is not None:
            for failure in outcome.failures:
                error_log.append(
                    ErrorRecord.create(
                        source=source_name,
                        collection=getattr(collection, "name", ""),
                        row=failure.row_number,
                        key=failure.key,
                        error_type=failure.error_type,
                        message=failure.message,
                    )
                )
        if progress is not None:
            progress.advance(
                outcome.row_count,
                written=pipeline.written,
                skipped=pipeline.skip_stats.total,
            )

    # Timings only cover batches that reached the store; the count covers all
    _, pipeline.avg_batch_seconds, pipeline.p95_batch_seconds = accumulator.get_stats()
    pipeline.total_batches = len(pipeline.batch_sizes)
    return pipeline
