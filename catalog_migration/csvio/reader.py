from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from ..models.row_data import RowData

"""Delimited source file reader.

First line is the header, every following line is a data row. Values are kept
as strings (no NA or numeric inference, so "034" stays "034") and stripped of
surrounding whitespace. Fully blank rows are dropped before they reach the
migration core.
"""

logger = logging.getLogger(__name__)


class CsvSourceError(Exception):
    """Base class for fatal source file problems."""


class EmptySourceError(CsvSourceError):
    """Raised when the file has no header line at all."""


class MissingColumnsError(CsvSourceError):
    """Raised when required columns are missing from the header."""


@dataclass
class SourceData:
    source_name: str
    columns: list[str]
    rows: list[RowData]


def _read_frame(path: Path, encoding: str, delimiter: str, nrows: int | None = None) -> pd.DataFrame:
    if not path.exists():
        raise CsvSourceError(f"CSV file not found: {path.resolve()}")
    try:
        return pd.read_csv(
            path,
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            encoding=encoding,
            skip_blank_lines=True,
            nrows=nrows,
        )
    except pd.errors.EmptyDataError as e:
        raise EmptySourceError(f"CSV file is empty: {path.name}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise CsvSourceError(f"failed to parse {path.name}: {e}") from e


def read_records(
    path: Path,
    required_columns: Iterable[str] = (),
    *,
    encoding: str = "utf-8-sig",
    delimiter: str = ",",
) -> SourceData:
    """Read a delimited file into RowData, validating the header first.

    Parameters
    ----------
    path: source file
    required_columns: columns that must be present in the header
    encoding: file encoding ("utf-8-sig" tolerates a leading BOM)
    delimiter: single-character field delimiter

    Raises
    ------
    CsvSourceError / EmptySourceError / MissingColumnsError
    """
    df = _read_frame(path, encoding, delimiter)
    columns = [str(c).strip() for c in df.columns]
    df.columns = columns

    missing = [c for c in required_columns if c not in columns]
    if missing:
        raise MissingColumnsError(
            f"Missing required column{'s' if len(missing) > 1 else ''} "
            f"{', '.join(repr(c) for c in missing)} in {path.name}"
        )

    rows: list[RowData] = []
    row_number = 0
    for raw in df.itertuples(index=False, name=None):
        values = {col: (val.strip() if isinstance(val, str) else "") for col, val in zip(columns, raw, strict=False)}
        if all(v == "" for v in values.values()):
            continue
        row_number += 1
        rows.append(RowData(row_number=row_number, values=values))

    if not rows:
        logger.warning("%s contains no data rows", path.name)
    logger.debug("read %s columns=%s rows=%d", path.name, columns, len(rows))
    return SourceData(source_name=path.name, columns=columns, rows=rows)


def preview_records(
    path: Path,
    limit: int = 3,
    *,
    encoding: str = "utf-8-sig",
    delimiter: str = ",",
) -> SourceData:
    """Read only the header and the first ``limit`` rows (used by --inspect-data)."""
    df = _read_frame(path, encoding, delimiter, nrows=limit)
    columns = [str(c).strip() for c in df.columns]
    rows = [
        RowData(row_number=i + 1, values=dict(zip(columns, raw, strict=False)))
        for i, raw in enumerate(df.itertuples(index=False, name=None))
    ]
    return SourceData(source_name=path.name, columns=columns, rows=rows)
