"""
Collection-scoped collectors.

Targets come from an explicit list of ``db.collection`` namespaces (a bare
``db`` entry means every collection of that database) or, in discovering mode,
from listing every non-system database and collection. Listing failures are
suppressed per scope: ``""`` for the database listing, ``<db>`` for a
collection listing.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

import structlog

from mongodb_exporter.client import (
    DatabaseClient,
    full_collection_name,
    is_system_collection,
    is_system_db,
)
from mongodb_exporter.collectors.base import Collector, CollectorContext, Scope

logger = structlog.get_logger()


def parse_namespace(entry: str) -> tuple[str, str | None]:
    """Split ``db.collection`` on the first dot; collection names may contain dots."""
    database, _, collection = entry.strip().partition(".")
    return database, collection or None


class NamespaceCollector(Collector):
    """Base class for collectors that run once per collection."""

    def __init__(
        self,
        client: DatabaseClient,
        context: CollectorContext,
        collections: Sequence[str] = (),
        discover: bool = False,
    ) -> None:
        super().__init__(client, context)
        self.collections = [entry for entry in collections if entry.strip()]
        self.discover = discover

    def scopes(self) -> Iterator[Scope]:
        for database, collection in self.namespaces():
            yield Scope(
                key=full_collection_name(database, collection),
                labels={"database": database, "collection": collection},
                database=database,
                collection=collection,
            )

    def namespaces(self) -> Iterator[tuple[str, str]]:
        if self.collections:
            seen: set[tuple[str, str]] = set()
            for entry in self.collections:
                database, collection = parse_namespace(entry)
                names = [collection] if collection else self._collections_of(database)
                for name in names:
                    if (database, name) not in seen:
                        seen.add((database, name))
                        yield database, name
            return

        if not self.discover:
            return

        databases = self.guarded("", self.client.list_databases) or []
        for database in databases:
            if is_system_db(database):
                continue
            for collection in self._collections_of(database):
                yield database, collection

    def _collections_of(self, database: str) -> Iterable[str]:
        names = self.guarded(database, lambda: self.client.list_collections(database)) or []
        return [name for name in names if not is_system_collection(name)]
