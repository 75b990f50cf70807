from __future__ import annotations

"""Exceptions shared by the migration drivers."""


class MigrationError(Exception):
    """Fatal condition that aborts a migration run (exit code 1)."""


class InvalidRowError(ValueError):
    """Row-level problem that drops a single row (blank natural key, ...)."""
