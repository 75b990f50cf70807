from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, PyMongoError

from ..models.config_models import DatabaseConfig

"""MongoDB connection handling.

Connection establishment is the only place where the migration waits and
retries: a bounded number of attempts with a fixed delay, each verified with
a ``ping``. Once connected, errors are not retried here.
"""

logger = logging.getLogger(__name__)


class MongoConnectionError(Exception):
    """Fatal connection problem (bad URI, no database name)."""


class ConnectionRetryError(MongoConnectionError):
    """Raised when every connection attempt failed."""


@dataclass
class MongoConnection:
    client: Any  # pymongo.MongoClient
    database: Database


def _select_database(client: Any, name: str | None) -> Database:
    if name:
        return client[name]
    try:
        return client.get_default_database()
    except ConfigurationError as e:
        raise MongoConnectionError(
            "no database name: set MONGO_DB (database.name) or include it in MONGO_URI"
        ) from e


def _describe_nodes(client: Any) -> str:
    try:
        nodes = sorted(client.nodes)
    except Exception:  # pragma: no cover - topology introspection only
        nodes = []
    return ", ".join(f"{host}:{port}" for host, port in nodes) or "(unknown host)"


def connect_with_retry(
    settings: DatabaseConfig,
    *,
    client_factory: Callable[..., Any] = MongoClient,
    sleep: Callable[[float], None] = time.sleep,
) -> MongoConnection:
    """Connect and ping, retrying up to ``settings.max_retries`` times.

    Parameters
    ----------
    settings: database section of the migration config
    client_factory: MongoClient compatible factory (tests pass a fake)
    sleep: delay function between attempts

    Raises
    ------
    MongoConnectionError: invalid URI or no resolvable database name
    ConnectionRetryError: all attempts failed
    """
    attempts = settings.max_retries
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        client = None
        try:
            client = client_factory(
                settings.uri,
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
                socketTimeoutMS=settings.socket_timeout_ms,
            )
            client.admin.command("ping")
        except ConfigurationError as e:
            if client is not None:
                client.close()
            raise MongoConnectionError(f"invalid MongoDB configuration: {e}") from e
        except PyMongoError as e:
            last_error = e
            if client is not None:
                client.close()
            if attempt == attempts:
                break
            logger.info("Retrying connection (attempt %d/%d)...", attempt, attempts)
            sleep(settings.retry_delay_seconds)
            continue

        try:
            database = _select_database(client, settings.name)
        except MongoConnectionError:
            client.close()
            raise
        logger.info("MongoDB connected to %s (database=%s)", _describe_nodes(client), database.name)
        return MongoConnection(client=client, database=database)

    raise ConnectionRetryError(
        f"Failed to connect to MongoDB after {attempts} attempt{'s' if attempts != 1 else ''}: {last_error}"
    ) from last_error


def disconnect(connection: MongoConnection) -> None:
    """Close the client; a failure to close is logged, never raised."""
    try:
        connection.client.close()
        logger.info("MongoDB connection closed.")
    except PyMongoError as e:
        logger.error("Error closing MongoDB connection: %s", e)


@contextmanager
def mongo_session(
    settings: DatabaseConfig,
    *,
    client_factory: Callable[..., Any] = MongoClient,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Database]:
    """Context manager yielding the target database, closing the client on exit."""
    connection = connect_with_retry(settings, client_factory=client_factory, sleep=sleep)
    try:
        yield connection.database
    finally:
        disconnect(connection)
