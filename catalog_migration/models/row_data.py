from __future__ import annotations

from dataclasses import dataclass

"""RowData model for the CSV -> MongoDB catalog migration.

RowData represents a single data row of a delimited source file after header
validation and whitespace normalization.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """One data row of a source file.

    ``row_number`` is 1-based and counts data rows only (the header row is not
    counted), so it points operators at the N-th record of the file.
    """
    row_number: int
    values: dict[str, str]  # Column name -> stripped string value ("" when blank)

    def get(self, column: str) -> str:
        """Return the stripped value of ``column`` or "" when the column is absent."""
        return self.values.get(column, "")

    def is_blank(self, column: str) -> bool:
        return self.get(column) == ""
