from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Config dataclasses for the CSV -> MongoDB catalog migration.

These are the typed shapes produced by ``catalog_migration.config.loader``
after YAML, .env and process environment have been merged and validated.
"""


class ReferencePolicy(Enum):
    """How a product row with unresolved references is treated.

    - LENIENT: category mandatory, vendor optional (written with vendor=None)
    - STRICT: both mandatory, the row is dropped if either is missing
    """
    LENIENT = "lenient"
    STRICT = "strict"


class OrphanPolicy(Enum):
    """What happens to a category whose parent code is absent from the input.

    - DROP: the orphan (and its subtree) is left out of the hierarchy, a
      warning is logged for each one
    - FAIL: the category run aborts before any write
    """
    DROP = "drop"
    FAIL = "fail"


@dataclass(frozen=True)
class DatabaseConfig:
    """MongoDB connection settings."""
    uri: str
    name: str | None  # None -> default database of the URI
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    server_selection_timeout_ms: int = 5000
    socket_timeout_ms: int = 30000


@dataclass(frozen=True)
class SourceFiles:
    """Paths of the three delimited source files (None when not configured)."""
    categories: str | None
    vendors: str | None
    products: str | None


@dataclass(frozen=True)
class CsvOptions:
    encoding: str = "utf-8-sig"
    delimiter: str = ","


@dataclass(frozen=True)
class MigrationConfig:
    """Root configuration object for a migration run."""
    sources: SourceFiles
    database: DatabaseConfig
    batch_size: int = 100
    reference_policy: ReferencePolicy = ReferencePolicy.LENIENT
    orphan_policy: OrphanPolicy = OrphanPolicy.DROP
    reports_directory: str = "./reports"
    csv: CsvOptions = CsvOptions()

    def source_for(self, migration: str) -> str | None:
        """Return the configured path of ``migration``'s source file."""
        return getattr(self.sources, migration)
