from __future__ import annotations

import copy
import json
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    CsvOptions,
    DatabaseConfig,
    MigrationConfig,
    OrphanPolicy,
    ReferencePolicy,
    SourceFiles,
)

"""Config loader.

Responsibilities:
- Load YAML config/migration.yml (optional; the environment alone may suffice)
- Overlay environment variables (already populated from .env by the CLI)
- Validate the merged settings against config/schema.json
- Apply defaults and build the typed MigrationConfig
- Check that the source files needed by the selected migrations exist
"""

SCHEMA_PATH = Path(__file__).with_name("schema.json")

DEFAULT_CONFIG_PATH = Path("config/migration.yml")

# env var -> (section, key); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "MONGO_URI": ("database", "uri"),
    "MONGO_DB": ("database", "name"),
    "CATEGORIES_CSV": ("sources", "categories"),
    "VENDORS_CSV": ("sources", "vendors"),
    "PRODUCTS_CSV": ("sources", "products"),
    "BATCH_SIZE": (None, "batch_size"),
    "REFERENCE_POLICY": (None, "reference_policy"),
    "ORPHAN_POLICY": (None, "orphan_policy"),
    "REPORTS_DIR": ("reports", "directory"),
}

SOURCE_ENV_NAMES = {
    "categories": "CATEGORIES_CSV",
    "vendors": "VENDORS_CSV",
    "products": "PRODUCTS_CSV",
}


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate merged settings against the bundled JSON schema.

    Raises:
        ConfigError: if the schema file is missing or invalid, or the settings
            violate it (unknown keys, wrong types, out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"invalid yaml: top level of {path} must be a mapping")
    return data


def _apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    merged = copy.deepcopy(data)
    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        value: Any = raw.strip()
        if env_name == "BATCH_SIZE":
            try:
                value = int(value)
            except ValueError:
                raise ConfigError("BATCH_SIZE must be a positive integer") from None
        elif env_name in ("REFERENCE_POLICY", "ORPHAN_POLICY"):
            value = value.lower()
        if section is None:
            merged[key] = value
        else:
            target = merged.setdefault(section, {})
            if not isinstance(target, dict):
                raise ConfigError(f"config section '{section}' must be a mapping")
            target[key] = value
    return merged


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> MigrationConfig:
    """Load, merge and validate the migration settings.

    Environment variables take precedence over the YAML file. A missing file
    is not an error as long as the environment provides the required settings.
    """
    if environ is None:
        environ = os.environ
    if path is None:
        path = DEFAULT_CONFIG_PATH

    data = _read_yaml(path) if path.exists() else {}
    data = _apply_env_overrides(data, environ)

    # Friendlier message than the schema's for the one setting everyone needs
    db_raw = data.get("database")
    if not isinstance(db_raw, dict) or not db_raw.get("uri"):
        raise ConfigError("Missing required environment variable: MONGO_URI (or database.uri)")
    data.setdefault("sources", {})

    _validate_config_schema(data)

    sources_raw = data["sources"]
    reports_raw = data.get("reports", {})
    csv_raw = data.get("csv", {})

    database = DatabaseConfig(
        uri=db_raw["uri"],
        name=db_raw.get("name") or None,
        max_retries=db_raw.get("max_retries", 3),
        retry_delay_seconds=float(db_raw.get("retry_delay_seconds", 2.0)),
        server_selection_timeout_ms=db_raw.get("server_selection_timeout_ms", 5000),
        socket_timeout_ms=db_raw.get("socket_timeout_ms", 30000),
    )
    return MigrationConfig(
        sources=SourceFiles(
            categories=sources_raw.get("categories"),
            vendors=sources_raw.get("vendors"),
            products=sources_raw.get("products"),
        ),
        database=database,
        batch_size=data.get("batch_size", 100),
        reference_policy=ReferencePolicy(data.get("reference_policy", "lenient")),
        orphan_policy=OrphanPolicy(data.get("orphan_policy", "drop")),
        reports_directory=reports_raw.get("directory", "./reports"),
        csv=CsvOptions(
            encoding=csv_raw.get("encoding", "utf-8-sig"),
            delimiter=csv_raw.get("delimiter", ","),
        ),
    )


def validate_sources(config: MigrationConfig, migrations: Iterable[str]) -> None:
    """Check that every selected migration has a configured, existing source file."""
    for migration in migrations:
        value = config.source_for(migration)
        if not value:
            raise ConfigError(f"Missing required environment variable: {SOURCE_ENV_NAMES[migration]}")
        resolved = Path(value).resolve()
        if not resolved.exists():
            raise ConfigError(f"CSV file not found: {resolved}")
