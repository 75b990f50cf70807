from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from ..models.row_data import RowData

"""Missing-vendor diagnostic report.

After a product run, every product row whose vendor could not be resolved is
written to ``<reports dir>/missing-vendors-YYYYMMDD-HHMMSS.csv`` with all of
its source columns, for operator follow-up. A blank VENDOR is replaced by a
placeholder so the gap is visible in spreadsheets.
"""

logger = logging.getLogger(__name__)

VENDOR_COLUMN = "VENDOR"
BLANK_VENDOR_PLACEHOLDER = "<NO VENDOR>"
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def write_missing_vendor_report(
    rows: Sequence[RowData],
    columns: Sequence[str],
    directory: Path,
    *,
    now: datetime | None = None,
) -> Path | None:
    """Write the report; returns its path, or None when ``rows`` is empty."""
    if not rows:
        return None

    records = []
    for row in rows:
        values = {col: row.get(col) for col in columns}
        if values.get(VENDOR_COLUMN, "") == "":
            values[VENDOR_COLUMN] = BLANK_VENDOR_PLACEHOLDER
        records.append(values)

    directory.mkdir(parents=True, exist_ok=True)
    stamp = (now or datetime.now(UTC)).strftime(TIMESTAMP_FMT)
    path = directory / f"missing-vendors-{stamp}.csv"
    pd.DataFrame(records, columns=list(columns)).to_csv(path, index=False)
    logger.info("missing vendor report: %s (%d rows)", path, len(rows))
    return path
