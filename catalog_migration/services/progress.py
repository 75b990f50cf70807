from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

A single tqdm bar per migration run, advanced once per batch by the number of
source rows the batch consumed. In non-TTY environments (CI, redirected
output) the bar is disabled entirely to avoid control-sequence spam in logs.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress of one migration run."""

    def __init__(self, total_rows: int, *, description: str = "Migrating") -> None:
        self.total_rows = total_rows
        self.description = description
        self.processed_rows = 0
        self.batches = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, rows: int, **postfix: Any) -> None:
        """Record one finished batch of ``rows`` source rows."""
        self.processed_rows += rows
        self.batches += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(rows)
            if postfix:
                self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
