from __future__ import annotations

from dataclasses import dataclass, field

"""Skip statistics accumulated over one migration run.

Each batch step builds its own SkipStatistics and returns it; the run folds the
per-batch values together with ``merge``. Nothing here is ever persisted, the
final value only feeds the human-readable skip report.
"""

__all__ = [
    "MAX_EXAMPLES",
    "SkipStatistics",
]

MAX_EXAMPLES = 5


@dataclass
class SkipStatistics:
    """Counters for rows excluded from (or degraded in) a migration run.

    Attributes:
        total: rows dropped (never written)
        missing_vendor: rows whose vendor could not be resolved and nothing else
            was missing. Under the lenient policy these rows are still written,
            so they are not part of ``total``.
        missing_category: rows dropped because only the category was unresolved
        missing_both: rows dropped because vendor and category were unresolved
        invalid_dates: rows dropped because a date field failed to parse
        other_errors: rows dropped for any other row-level reason
        examples: first few dropped-row descriptions, bounded by MAX_EXAMPLES
    """
    total: int = 0
    missing_vendor: int = 0
    missing_category: int = 0
    missing_both: int = 0
    invalid_dates: int = 0
    other_errors: int = 0
    examples: list[str] = field(default_factory=list)

    def add_example(self, example: str) -> None:
        if len(self.examples) < MAX_EXAMPLES:
            self.examples.append(example)

    def record_drop(self, example: str) -> None:
        """Count a dropped row and keep its description if there is room."""
        self.total += 1
        self.add_example(example)

    def merge(self, other: SkipStatistics) -> SkipStatistics:
        """Return a new SkipStatistics holding the sum of ``self`` and ``other``.

        Examples keep discovery order: ours first, then theirs, capped.
        """
        examples = (self.examples + other.examples)[:MAX_EXAMPLES]
        return SkipStatistics(
            total=self.total + other.total,
            missing_vendor=self.missing_vendor + other.missing_vendor,
            missing_category=self.missing_category + other.missing_category,
            missing_both=self.missing_both + other.missing_both,
            invalid_dates=self.invalid_dates + other.invalid_dates,
            other_errors=self.other_errors + other.other_errors,
            examples=examples,
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.total == 0
            and self.missing_vendor == 0
            and self.missing_category == 0
            and self.missing_both == 0
            and self.invalid_dates == 0
            and self.other_errors == 0
        )
