from __future__ import annotations

from ..models.processing_result import MigrationResult

"""Summary line and skip report rendering.

SUMMARY line format (one per migration run):

    SUMMARY migration=<name> rows=<n> written=<n> skipped=<n> degraded=<n>
    failed_writes=<n> batches=<n> elapsed_sec=<num> throughput_rps=<num>

The skip report is the human-readable breakdown printed after it.
"""

SEPARATOR = "-" * 64

# (SkipStatistics attribute, label) shown per migration
_SKIP_FIELDS: dict[str, list[tuple[str, str]]] = {
    "categories": [
        ("other_errors", "Invalid category codes"),
    ],
    "vendors": [
        ("invalid_dates", "Invalid date fields"),
        ("other_errors", "Other errors"),
    ],
    "products": [
        ("missing_vendor", "Missing vendor only"),
        ("missing_category", "Missing category only"),
        ("missing_both", "Missing both"),
        ("other_errors", "Other errors"),
    ],
}


def _format_number(value: float) -> str:
    """Integers without a fraction, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: MigrationResult) -> str:
    """Render the SUMMARY line of one migration run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2023, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = MigrationResult(
        ...     migration="vendors", source_rows=1000, written_rows=1000, skipped_rows=0,
        ...     degraded_rows=0, failed_writes=0, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=500.0, total_batches=10,
        ... )
        >>> render_summary_line(result)  # doctest: +ELLIPSIS
        'SUMMARY migration=vendors rows=1000 written=1000 skipped=0 degraded=0 failed_writes=0 batches=10 ...'
    """
    return (
        f"SUMMARY migration={result.migration} "
        f"rows={result.source_rows} "
        f"written={result.written_rows} "
        f"skipped={result.skipped_rows} "
        f"degraded={result.degraded_rows} "
        f"failed_writes={result.failed_writes} "
        f"batches={result.total_batches} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )


def render_skip_report(result: MigrationResult) -> list[str]:
    """Render the human-readable report lines (without level labels)."""
    stats = result.skip_stats
    lines = [
        SEPARATOR,
        f"Migrated {result.written_rows}/{result.source_rows} {result.migration}",
    ]
    if result.degraded_rows:
        lines.append(f"Written without vendor: {result.degraded_rows}")
    if result.failed_writes:
        lines.append(f"Rejected by the store: {result.failed_writes}")
    lines.append(SEPARATOR)

    if stats.is_empty:
        return lines

    lines.append("Skip Statistics:")
    lines.append(f"- Total skipped: {stats.total}")
    for attr, label in _SKIP_FIELDS.get(result.migration, []):
        lines.append(f"- {label}: {getattr(stats, attr)}")
    if stats.examples:
        lines.append(f"Example skipped {result.migration}:")
        lines.extend(f"  {example}" for example in stats.examples)
    lines.append(SEPARATOR)
    return lines
