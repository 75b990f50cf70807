from __future__ import annotations

import re
from datetime import datetime, timedelta

"""Date normalization for the two compact source encodings.

- Vendor files use slash-delimited ``M/D/YYYY``
- Product files use ``YYYYMMDD``

Both produce a naive datetime at midnight built only from the year/month/day
components (no time zone conversion). Component ranges are checked, but day
is not cross-checked against the length of the month: a day that overflows
the month rolls over into the next one, so ``20230231`` becomes 2023-03-03.
"""

__all__ = [
    "DateParseError",
    "InvalidDate",
    "InvalidDateFormat",
    "InvalidMonth",
    "InvalidDay",
    "parse_slash_date",
    "parse_compact_date",
]

MIN_VENDOR_YEAR = 2000

_COMPACT_RE = re.compile(r"[0-9]{8}")
_DIGITS_RE = re.compile(r"[0-9]+")


class DateParseError(ValueError):
    """Base class for all date normalization failures."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"{reason}: {value!r}")
        self.value = value
        self.reason = reason


class InvalidDate(DateParseError):
    """Slash-delimited date with a malformed or out-of-range component."""


class InvalidDateFormat(DateParseError):
    """Compact date that is not exactly 8 digits."""


class InvalidMonth(DateParseError):
    pass


class InvalidDay(DateParseError):
    pass


def _local_date(year: int, month: int, day: int) -> datetime:
    # Day is only range-checked (1-31), so build from the first of the month
    # and let timedelta carry an overflowing day into the following month.
    return datetime(year, month, 1) + timedelta(days=day - 1)


def parse_slash_date(value: str) -> datetime:
    """Parse a vendor date ``M/D/YYYY``.

    Raises:
        InvalidDate: wrong shape, non-numeric part, month outside 1-12,
            day outside 1-31 or year before 2000
    """
    parts = value.strip().split("/")
    if len(parts) != 3:
        raise InvalidDate(value, "Invalid date")
    parts = [p.strip() for p in parts]
    # ASCII digits only; int() alone accepts "+1" and "1_2"
    if not all(_DIGITS_RE.fullmatch(p) for p in parts):
        raise InvalidDate(value, "Invalid date")
    month, day, year = (int(p) for p in parts)
    if month < 1 or month > 12 or day < 1 or day > 31 or year < MIN_VENDOR_YEAR:
        raise InvalidDate(value, "Invalid date")
    return _local_date(year, month, day)


def parse_compact_date(value: str) -> datetime:
    """Parse a product date ``YYYYMMDD``.

    Raises:
        InvalidDateFormat: not exactly 8 digits
        InvalidMonth: month outside 1-12
        InvalidDay: day outside 1-31
    """
    if not _COMPACT_RE.fullmatch(value):
        raise InvalidDateFormat(value, "Wrong format")
    year, month, day = int(value[0:4]), int(value[4:6]), int(value[6:8])
    if month < 1 or month > 12:
        raise InvalidMonth(value, "Invalid month")
    if day < 1 or day > 31:
        raise InvalidDay(value, "Invalid day")
    if year < 1:
        raise InvalidDateFormat(value, "Year out of range")
    return _local_date(year, month, day)
