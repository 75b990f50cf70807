from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

from .skip_stats import SkipStatistics

"""Processing result models for the catalog migration.

MigrationResult aggregates one migration run (categories, vendors or
products) for the SUMMARY line, the skip report and the CLI exit code.
BatchStatsAccumulator collects per-batch write timings.
"""


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of one migration run."""
    migration: str  # categories / vendors / products
    source_rows: int  # data rows read from the source file
    written_rows: int  # documents acknowledged by the store (upserted, matched or modified)
    skipped_rows: int  # rows dropped before writing
    degraded_rows: int  # rows written without an optional reference
    failed_writes: int  # documents rejected by the store inside a bulk write
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # written_rows / elapsed
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    skip_stats: SkipStatistics = field(default_factory=SkipStatistics)

    @property
    def has_write_failures(self) -> bool:
        return self.failed_writes > 0


class BatchStatsAccumulator:
    """Helper class to accumulate batch timing statistics for MigrationResult.

    Collects individual batch timing data and calculates summary statistics.
    """

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        """Add a batch timing measurement."""
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
