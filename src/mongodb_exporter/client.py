"""
MongoDB client used by the collectors.

Wraps a pymongo ``MongoClient`` behind the few fetch operations the collectors
need and translates driver exceptions into the exporter's error taxonomy.
All operations honour the client-side deadline set with ``deadline()``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import pymongo
import structlog
from pymongo import MongoClient
from pymongo.errors import (
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    WTimeoutError,
)

from mongodb_exporter.core.errors import (
    CommandError,
    ConnectivityError,
    ExporterError,
    FeatureDisabledError,
    PermissionDeniedError,
    ScrapeTimeoutError,
)

logger = structlog.get_logger()

APP_NAME = "mongodb_exporter"

# Server error codes
USER_NOT_FOUND = 11
UNAUTHORIZED = 13
AUTHENTICATION_FAILED = 18
MAX_TIME_MS_EXPIRED = 50
NO_REPLICATION_ENABLED = 76
NOT_YET_INITIALIZED = 94

FEATURE_DISABLED_CODES = frozenset({NO_REPLICATION_ENABLED, NOT_YET_INITIALIZED})
AUTH_FAILURE_CODES = frozenset({USER_NOT_FOUND, AUTHENTICATION_FAILED})

# Reply fields describing the command envelope rather than the server
ENVELOPE_FIELDS = frozenset(
    {
        "ok",
        "$clusterTime",
        "operationTime",
        "$gleStats",
        "lastCommittedOpTime",
        "$configServerState",
        "$topologyTime",
    }
)

SYSTEM_DATABASES = frozenset({"admin", "config", "local"})


def classify_error(exc: BaseException) -> ExporterError:
    """Map a driver exception onto the exporter's error taxonomy."""
    message = str(exc)
    code = getattr(exc, "code", None)
    details: dict[str, Any] = {"driver_error": type(exc).__name__}
    if code is not None:
        details["code"] = code

    if isinstance(exc, (ExecutionTimeout, NetworkTimeout, WTimeoutError)):
        return ScrapeTimeoutError(message, details)
    if code == MAX_TIME_MS_EXPIRED:
        return ScrapeTimeoutError(message, details)
    if isinstance(exc, OperationFailure):
        if code in FEATURE_DISABLED_CODES:
            return FeatureDisabledError(message, details)
        if code in AUTH_FAILURE_CODES:
            return ConnectivityError(message, details)
        if code == UNAUTHORIZED:
            return PermissionDeniedError(message, details)
        return CommandError(message, details)
    if isinstance(exc, ConnectionFailure):
        return ConnectivityError(message, details)
    if isinstance(exc, PyMongoError) and exc.timeout:
        return ScrapeTimeoutError(message, details)
    return CommandError(message, details)


def connect_error(exc: PyMongoError) -> ConnectivityError:
    """Any failure to open a connection, authentication included, is a connectivity error."""
    error = classify_error(exc)
    if isinstance(error, ConnectivityError):
        return error
    return ConnectivityError(error.message, error.details)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise driver exceptions as exporter errors."""
    try:
        yield
    except PyMongoError as exc:
        raise classify_error(exc) from exc


def strip_envelope(document: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in document.items() if key not in ENVELOPE_FIELDS}


def is_system_db(name: str) -> bool:
    return name in SYSTEM_DATABASES


def is_system_collection(name: str) -> bool:
    return name.startswith("system.")


def full_collection_name(database: str, collection: str) -> str:
    return f"{database}.{collection}"


class DatabaseClient:
    """Fetch operations over a pymongo client."""

    def __init__(self, client: MongoClient) -> None:
        self._client = client

    @classmethod
    def connect(
        cls,
        uri: str,
        *,
        direct_connection: bool = True,
        server_selection_timeout: float = 5.0,
    ) -> DatabaseClient:
        """Connect and ping the server.

        Raises:
            ConnectivityError: if the server cannot be reached
        """
        try:
            client: MongoClient = MongoClient(
                uri,
                directConnection=direct_connection,
                appname=APP_NAME,
                serverSelectionTimeoutMS=int(server_selection_timeout * 1000),
            )
        except PyMongoError as exc:
            raise connect_error(exc) from exc
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            client.close()
            raise connect_error(exc) from exc
        logger.debug("mongodb_connected", direct_connection=direct_connection)
        return cls(client)

    def close(self) -> None:
        self._client.close()

    @contextmanager
    def deadline(self, seconds: float | None) -> Iterator[None]:
        """Bound every operation issued inside the block by ``seconds``."""
        if seconds is None:
            yield
            return
        with pymongo.timeout(seconds):
            yield

    def run_admin_command(self, command: Mapping[str, Any]) -> dict[str, Any]:
        return self.run_command("admin", command)

    def run_command(self, database: str, command: Mapping[str, Any]) -> dict[str, Any]:
        with translate_errors():
            result = self._client[database].command(dict(command))
        return strip_envelope(result)

    def aggregate(
        self, database: str, collection: str, pipeline: list[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        with translate_errors():
            return list(self._client[database][collection].aggregate(pipeline))

    def list_databases(self) -> list[str]:
        with translate_errors():
            return list(self._client.list_database_names())

    def list_collections(self, database: str) -> list[str]:
        with translate_errors():
            return list(self._client[database].list_collection_names())
