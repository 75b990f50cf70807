from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

This module defines the ErrorRecord dataclass used for structured JSON Lines
error logging during a migration run. It supports row=-1 as a sentinel value
for run-level errors where no specific source row applies (a rejected bulk
write whose document index cannot be mapped back, a missing prerequisite).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: source file name being migrated
        collection: target collection name
        row: data row number (1-based). Use -1 when the row is unknown
        key: natural key of the offending record ("" when blank or unknown)
        error_type: error classification in UPPER_SNAKE_CASE format
        message: human readable description or the store's error message
    """
    timestamp: str  # ISO8601 UTC
    source: str
    collection: str
    row: int
    key: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        source: str,
        collection: str,
        row: int,
        key: str,
        error_type: str,
        message: str,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            collection=collection,
            row=row,
            key=key,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
