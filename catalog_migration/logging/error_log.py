from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run JSON Lines error log.

Every dropped row, rejected document and orphan category of a run ends up as
one ErrorRecord line in ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC). Records are
held until the orchestrator flushes them after each migration; the file is
only created once there is something to write, and later flushes append to it.
The buffer also keeps a running tally per (collection, error_type) so the run
can report what the file contains without reading it back.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._path: Path | None = None
        self._tally: Counter[tuple[str, str]] = Counter()

    @property
    def path(self) -> Path | None:
        """Log file of this run, or None while nothing has been written."""
        return self._path

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)
        self._tally[(record.collection, record.error_type)] += 1

    def __len__(self) -> int:
        return len(self._pending)

    def tally(self, collection: str | None = None) -> dict[str, int]:
        """Records per error type since the run started, written or pending.

        With ``collection`` only that collection's records are counted.
        """
        counts: Counter[str] = Counter()
        for (coll, error_type), n in self._tally.items():
            if collection is None or coll == collection:
                counts[error_type] += n
        return dict(sorted(counts.items()))

    def _open_path(self) -> Path:
        if self._path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._path = self._logs_dir / f"errors-{stamp}.log"
        return self._path

    def flush(self) -> Path | None:
        """Append pending records; returns the log path (None if nothing was ever written)."""
        if self._pending:
            lines = "".join(r.to_json_line() + "\n" for r in self._pending)
            with self._open_path().open("a", encoding="utf-8") as f:
                f.write(lines)
            self._pending.clear()
        return self._path
