from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from ..csvio.reader import SourceData, read_records
from ..models.config_models import MigrationConfig
from .errors import MigrationError


def load_source(config: MigrationConfig, migration: str, required_columns: Sequence[str]) -> SourceData:
    """Read ``migration``'s source file; a file without data rows is fatal."""
    value = config.source_for(migration)
    if not value:
        raise MigrationError(f"no source file configured for {migration}")
    source = read_records(
        Path(value),
        required_columns,
        encoding=config.csv.encoding,
        delimiter=config.csv.delimiter,
    )
    if not source.rows:
        raise MigrationError(f"{source.source_name} contains no data rows")
    return source
