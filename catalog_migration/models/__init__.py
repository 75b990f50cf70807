"""Domain models for the CSV -> MongoDB catalog migration.

This package contains the domain model classes used throughout the application:
configuration, source rows, migrated records, run statistics and error records.
"""

from .config_models import (
    CsvOptions,
    DatabaseConfig,
    MigrationConfig,
    OrphanPolicy,
    ReferencePolicy,
    SourceFiles,
)
from .error_record import ErrorRecord
from .processing_result import BatchStatsAccumulator, MigrationResult
from .records import CodeLabelRecord, ProductRecord, ReferenceRecord, ReferenceSnapshot, TreeNode
from .row_data import RowData
from .skip_stats import SkipStatistics

__all__ = [
    # Configuration models
    "CsvOptions",
    "DatabaseConfig",
    "MigrationConfig",
    "OrphanPolicy",
    "ReferencePolicy",
    "SourceFiles",
    # Records
    "CodeLabelRecord",
    "ProductRecord",
    "ReferenceRecord",
    "ReferenceSnapshot",
    "TreeNode",
    # Processing models
    "BatchStatsAccumulator",
    "ErrorRecord",
    "MigrationResult",
    "RowData",
    "SkipStatistics",
]
