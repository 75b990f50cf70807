from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv
from pymongo.errors import PyMongoError

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, validate_sources
from ..csvio.reader import CsvSourceError, preview_records
from ..db.bulk_upsert import BulkUpsertError
from ..db.connection import MongoConnectionError, mongo_session
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import set_debug, setup_logging
from ..models.config_models import MigrationConfig
from ..services.errors import MigrationError
from ..services.orchestrator import MIGRATION_ORDER, resolve_migrations, run_migrations

"""CLI entrypoint.

    python -m catalog_migration.cli [categories|vendors|products|all]

Flow:
- Load .env (values override the process environment)
- Load and validate config, check the selected source files exist
- Connect to MongoDB (bounded retries) and run the migrations in order
- Print one SUMMARY line and a skip report per migration

Exit codes: 0 success (row-level skips allowed), 1 fatal, 2 at least one
document rejected by the store.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

INSPECT_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load ``path`` with python-dotenv; a missing file is silently ignored."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="catalog-migrate",
        description="CSV -> MongoDB catalog migration (categories, vendors, products)",
    )
    p.add_argument(
        "command",
        nargs="?",
        default="all",
        choices=[*MIGRATION_ORDER, "all"],
        help="Migration to run (default: all, in dependency order)",
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config file")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help=".env file to load")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print each source's header and first rows, then exit",
    )
    return p.parse_args(argv)


def _inspect_data(config: MigrationConfig, migrations: list[str]) -> int:
    for migration in migrations:
        path = Path(config.source_for(migration) or "")
        try:
            preview = preview_records(
                path,
                INSPECT_ROWS,
                encoding=config.csv.encoding,
                delimiter=config.csv.delimiter,
            )
        except CsvSourceError as e:
            print(f"{migration}: read_error: {e}")
            continue
        print(f"FILE: {preview.source_name} ({migration})")
        print(f"  columns={preview.columns}")
        for row in preview.rows:
            print(f"  row {row.row_number}: {dict(row.values)}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an empty list must not fall through to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(args.env_file, override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    migrations = resolve_migrations(args.command)
    try:
        config = load_config(args.config)
        validate_sources(config, migrations)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(config, migrations)

    logger.info(f"Running migrations: {', '.join(migrations)} (batch_size={config.batch_size})")

    error_log = ErrorLogBuffer()
    try:
        with mongo_session(config.database) as database:
            results = run_migrations(config, database, migrations, error_log)
    except MongoConnectionError as e:
        logger.error(f"connection: {e}")
        return EXIT_FATAL
    except (CsvSourceError, MigrationError, BulkUpsertError, PyMongoError) as e:
        logger.error(f"migration: {e}")
        return EXIT_FATAL

    if any(r.has_write_failures for r in results):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
