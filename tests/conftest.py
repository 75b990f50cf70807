# Shared pytest fixtures
from __future__ import annotations

import os
import tempfile
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from pymongo.errors import BulkWriteError, ServerSelectionTimeoutError

from catalog_migration.config.loader import ENV_OVERRIDES
from catalog_migration.logging.init import reset_logging
from catalog_migration.models.config_models import (
    DatabaseConfig,
    MigrationConfig,
    SourceFiles,
)

CATEGORIES_CSV = """CATEGORY_CODE,CATEGORY_NAME
01,Electronics
0101,Computers
010101,Laptops
02,Home
0201,Kitchen
ABC,Broken
"""

VENDORS_CSV = """VENDOR_ID,VENDOR_NAME,CREATE_DATE,LAST_MODIFIED_DATE
034,Acme,1/15/2020,3/1/2021
100,Globex,2/2/2019,2/3/2019
200,Initech,13/1/2020,1/1/2021
"""

PRODUCTS_CSV = """SKU,MANUFACTURER_PART_NO,PRODUCT_NAME,DESCRIPTION,VENDOR,CATEGORY_CODE,ACTIVE_STATUS,DISCONTINUED,CREATED_DATE,LAST_MODIFIED_DATE,COLOR
P1,MPN-1,Laptop,Fast laptop,34,010101,Yes,No,20230115,20230201,Black
P2,,Pan,Steel pan,999,0201,yes,no,20230101,20230102,
P3,,Ghost,,100,99,Yes,No,20230101,20230101,
P4,,Bad date,,100,01,Yes,No,2023-01-01,20230101,
P5,,Nothing,,,77,No,Yes,20230101,20230101,Red
"""

CONFIG_YAML = """sources:
  categories: ./data/categories.csv
  vendors: ./data/vendors.csv
  products: ./data/products.csv
database:
  uri: mongodb://localhost:27017/catalog_test
  max_retries: 1
  retry_delay_seconds: 0
batch_size: 2
reports:
  directory: ./reports
"""


@pytest.fixture(autouse=True)
def clean_migration_env():
    """Keep MONGO_URI & co. (and values loaded from .env by the CLI) out of other tests."""
    saved = {name: os.environ.pop(name) for name in ENV_OVERRIDES if name in os.environ}
    yield
    for name in ENV_OVERRIDES:
        os.environ.pop(name, None)
    os.environ.update(saved)


@pytest.fixture(autouse=True)
def fresh_logging():
    # The stdout handler binds sys.stdout at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def write_csv(temp_workdir: Path) -> Callable[[str, str], Path]:
    def _write(name: str, text: str) -> Path:
        path = temp_workdir / "data" / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def sample_sources(write_csv) -> dict[str, Path]:
    return {
        "categories": write_csv("categories.csv", CATEGORIES_CSV),
        "vendors": write_csv("vendors.csv", VENDORS_CSV),
        "products": write_csv("products.csv", PRODUCTS_CSV),
    }


@pytest.fixture()
def write_config(temp_workdir: Path) -> Path:
    cfg = temp_workdir / "config" / "migration.yml"
    cfg.write_text(CONFIG_YAML, encoding="utf-8")
    return cfg


@pytest.fixture()
def migration_config(temp_workdir: Path, sample_sources: dict[str, Path]) -> MigrationConfig:
    return MigrationConfig(
        sources=SourceFiles(
            categories=str(sample_sources["categories"]),
            vendors=str(sample_sources["vendors"]),
            products=str(sample_sources["products"]),
        ),
        database=DatabaseConfig(uri="mongodb://localhost:27017/catalog_test", name="catalog_test"),
        batch_size=2,
        reports_directory=str(temp_workdir / "reports"),
    )


# ---------------------------------------------------------------------------
# In-memory MongoDB stand-ins
# ---------------------------------------------------------------------------

class FakeCollection:
    """Just enough of pymongo.Collection for the migration: upserts keyed by _id."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: dict[str, dict[str, Any]] = {}
        self.bulk_calls: list[int] = []  # operations per bulk_write
        self.ordered_flags: list[bool] = []
        self.reject_keys: set[str] = set()
        self.fail_with: Exception | None = None  # writes
        self.read_error: Exception | None = None  # reads

    def _apply(self, filter_: dict[str, Any], update: dict[str, Any]) -> tuple[bool, bool]:
        """Apply an upsert; returns (inserted, modified)."""
        key = filter_["_id"]
        existing = self.docs.get(key)
        doc = dict(existing) if existing is not None else {"_id": key}
        doc.update(update.get("$set", {}))
        for name in update.get("$unset", {}):
            doc.pop(name, None)
        self.docs[key] = doc
        if existing is None:
            return True, False
        return False, doc != existing

    def bulk_write(self, operations: list[Any], ordered: bool = True) -> Any:
        if self.fail_with is not None:
            raise self.fail_with
        self.bulk_calls.append(len(operations))
        self.ordered_flags.append(ordered)
        upserted = matched = modified = 0
        errors = []
        for index, op in enumerate(operations):
            key = op._filter["_id"]
            if key in self.reject_keys:
                errors.append({"index": index, "code": 11000, "errmsg": f"E11000 duplicate key error _id: {key}"})
                continue
            inserted, changed = self._apply(op._filter, op._doc)
            if inserted:
                upserted += 1
            else:
                matched += 1
                modified += int(changed)
        if errors:
            raise BulkWriteError({
                "writeErrors": errors,
                "writeConcernErrors": [],
                "nInserted": 0,
                "nUpserted": upserted,
                "nMatched": matched,
                "nModified": modified,
                "nRemoved": 0,
                "upserted": [],
            })
        return SimpleNamespace(upserted_count=upserted, matched_count=matched, modified_count=modified)

    def update_one(self, filter_: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> Any:
        if self.fail_with is not None:
            raise self.fail_with
        inserted, changed = self._apply(filter_, update)
        return SimpleNamespace(
            upserted_id=filter_["_id"] if inserted else None,
            matched_count=0 if inserted else 1,
            modified_count=int(changed),
        )

    def find(self, filter_: dict[str, Any] | None = None, projection: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        if self.read_error is not None:
            raise self.read_error
        docs = [dict(d) for d in self.docs.values()]
        if projection:
            keep = {"_id", *(k for k, v in projection.items() if v)}
            docs = [{k: v for k, v in d.items() if k in keep} for d in docs]
        return docs

    def count_documents(self, filter_: dict[str, Any] | None = None) -> int:
        return len(self.docs)

    def estimated_document_count(self) -> int:
        if self.read_error is not None:
            raise self.read_error
        return len(self.docs)


class FakeDatabase:
    def __init__(self, name: str = "catalog_test") -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeAdmin:
    def __init__(self, client: FakeMongoClient) -> None:
        self.client = client

    def command(self, name: str) -> dict[str, Any]:
        if self.client.ping_error is not None:
            raise self.client.ping_error
        return {"ok": 1.0}


class FakeMongoClient:
    """MongoClient stand-in; ``failures`` pings fail before one succeeds."""

    def __init__(self, uri: str, database: FakeDatabase | None = None, ping_error: Exception | None = None, **kwargs: Any) -> None:
        self.uri = uri
        self.kwargs = kwargs
        self.database = database or FakeDatabase()
        self.ping_error = ping_error
        self.closed = False
        self.admin = FakeAdmin(self)
        self.nodes = frozenset({("localhost", 27017)})

    def __getitem__(self, name: str) -> FakeDatabase:
        self.database.name = name
        return self.database

    def get_default_database(self) -> FakeDatabase:
        return self.database

    def close(self) -> None:
        self.closed = True


def make_client_factory(failures: int = 0, database: FakeDatabase | None = None):
    """Factory whose first ``failures`` clients fail their ping."""
    created: list[FakeMongoClient] = []

    def factory(uri: str, **kwargs: Any) -> FakeMongoClient:
        error = ServerSelectionTimeoutError("localhost:27017: connection refused") if len(created) < failures else None
        client = FakeMongoClient(uri, database=database, ping_error=error, **kwargs)
        created.append(client)
        return client

    factory.created = created  # type: ignore[attr-defined]
    return factory


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def patch_mongo_session(monkeypatch, fake_db: FakeDatabase) -> FakeDatabase:
    """Route the CLI's mongo_session to ``fake_db``."""

    @contextmanager
    def fake_session(settings, **kwargs):
        yield fake_db

    monkeypatch.setattr("catalog_migration.cli.__main__.mongo_session", fake_session)
    return fake_db
