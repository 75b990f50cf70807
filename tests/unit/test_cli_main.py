from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

from pymongo.errors import AutoReconnect, ConfigurationError

from catalog_migration.cli.__main__ import EXIT_FATAL, EXIT_SUCCESS, main as cli_main
from catalog_migration.db.connection import ConnectionRetryError, mongo_session
from conftest import FakeMongoClient


def test_cli_single_migration(write_config, sample_sources, patch_mongo_session, capsys):
    code = cli_main(["categories"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "SUMMARY migration=categories" in out
    assert "SUMMARY migration=vendors" not in out
    assert set(patch_mongo_session.collections) == {"categories", "categoryTree"}


def test_cli_only_checks_selected_sources(write_config, sample_sources, patch_mongo_session):
    sample_sources["products"].unlink()
    assert cli_main(["vendors"]) == EXIT_SUCCESS


def test_cli_missing_source_file(write_config, sample_sources, patch_mongo_session, capsys):
    sample_sources["products"].unlink()
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR config: CSV file not found:" in out
    assert patch_mongo_session.collections == {}


def test_cli_env_file_overrides(temp_workdir: Path, sample_sources, patch_mongo_session, capsys):
    env = temp_workdir / "custom.env"
    env.write_text(
        "MONGO_URI=mongodb://localhost:27017/x\n"
        f"CATEGORIES_CSV={sample_sources['categories']}\n"
        "BATCH_SIZE=10\n",
        encoding="utf-8",
    )
    code = cli_main(["categories", "--env-file", str(env), "--config", "config/none.yml"])
    assert code == EXIT_SUCCESS
    assert patch_mongo_session["categories"].bulk_calls == [5]
    assert "batch_size=10" in capsys.readouterr().out


def test_cli_connection_failure(write_config, sample_sources, monkeypatch, capsys):
    @contextmanager
    def unreachable(settings, **kwargs):
        raise ConnectionRetryError("Failed to connect to MongoDB after 1 attempt: refused")
        yield  # pragma: no cover

    monkeypatch.setattr("catalog_migration.cli.__main__.mongo_session", unreachable)
    code = cli_main([])
    assert code == EXIT_FATAL
    assert "ERROR connection: Failed to connect to MongoDB after 1 attempt" in capsys.readouterr().out


def test_cli_debug_mode(write_config, sample_sources, patch_mongo_session, capsys):
    assert cli_main(["vendors", "--debug"]) == EXIT_SUCCESS
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG batch=0" in out


def test_cli_inspect_data(write_config, sample_sources, monkeypatch, capsys):
    def no_connect(*args, **kwargs):
        raise AssertionError("inspect mode must not connect")

    monkeypatch.setattr("catalog_migration.cli.__main__.mongo_session", no_connect)
    code = cli_main(["all", "--inspect-data"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "FILE: categories.csv (categories)" in out
    assert "FILE: products.csv (products)" in out
    assert "row 3:" in out
    assert "row 4:" not in out
    assert "'VENDOR_ID': '034'" in out


def test_cli_store_error_while_reading_references(write_config, sample_sources, patch_mongo_session, capsys):
    assert cli_main(["categories"]) == EXIT_SUCCESS
    assert cli_main(["vendors"]) == EXIT_SUCCESS
    patch_mongo_session["vendors"].read_error = AutoReconnect("connection reset")
    capsys.readouterr()

    code = cli_main(["products"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR migration: reading vendors/categories failed: connection reset" in out
    assert "products" not in patch_mongo_session.collections


def test_cli_no_database_name(write_config, sample_sources, monkeypatch, capsys):
    class NoDefaultDatabase(FakeMongoClient):
        def get_default_database(self):
            raise ConfigurationError("No default database defined")

    def session(settings, **kwargs):
        return mongo_session(settings, client_factory=NoDefaultDatabase, sleep=lambda s: None)

    monkeypatch.setattr("catalog_migration.cli.__main__.mongo_session", session)
    code = cli_main(["categories"])
    assert code == EXIT_FATAL
    assert "ERROR connection: no database name: set MONGO_DB (database.name) or include it in MONGO_URI" in capsys.readouterr().out
