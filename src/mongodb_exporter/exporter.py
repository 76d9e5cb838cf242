"""
Process-lifetime exporter.

Holds what outlives a single scrape: settings, the frozen declaration table,
the suppression ledger and, with the global connection pool, the MongoDB
client. Every scrape builds a fresh ``ScrapeRegistry`` on top of it.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from prometheus_client import generate_latest

from mongodb_exporter.client import DatabaseClient
from mongodb_exporter.collectors.base import CollectorContext
from mongodb_exporter.collectors.registry import CollectorOptions, ScrapeRegistry
from mongodb_exporter.config.loader import load_declarations
from mongodb_exporter.config.settings import Settings
from mongodb_exporter.flatten.models import MetricSample
from mongodb_exporter.flatten.paths import DeclarationTable
from mongodb_exporter.logging import bind_context
from mongodb_exporter.suppression import SuppressionLedger

logger = structlog.get_logger()


def collector_options(settings: Settings) -> CollectorOptions:
    return CollectorOptions(
        server_status=settings.collect_server_status,
        diagnostic_data=settings.collect_diagnostic_data,
        replset_status=settings.collect_replset_status,
        replset_config=settings.collect_replset_config,
        collstats_colls=tuple(settings.collstats_collections),
        indexstats_colls=tuple(settings.indexstats_collections),
        discovering_mode=settings.discovering_mode,
    )


class Exporter:
    """Serves scrapes against one MongoDB server."""

    def __init__(
        self,
        settings: Settings,
        declarations: DeclarationTable | None = None,
        client: DatabaseClient | None = None,
        *,
        strict: bool = False,
    ) -> None:
        self.settings = settings
        self.declarations = declarations or load_declarations(settings.declarations_file)
        self.ledger = SuppressionLedger()
        self.context = CollectorContext(
            declarations=self.declarations,
            ledger=self.ledger,
            compatible_mode=settings.compatible_mode,
            max_depth=settings.max_depth,
            max_array_items=settings.max_array_items,
            strict=strict,
        )
        self.options = collector_options(settings)
        self._client = client
        self._lock = threading.Lock()

    def connect(self) -> DatabaseClient:
        """Open a new connection to the configured server.

        Raises:
            ConnectivityError: if the server cannot be reached
        """
        return DatabaseClient.connect(
            self.settings.mongodb_uri,
            direct_connection=self.settings.direct_connect,
            server_selection_timeout=self.settings.connect_timeout,
        )

    @contextmanager
    def session(self) -> Iterator[DatabaseClient]:
        """The client for one scrape: the shared one, or a per-request one closed afterwards."""
        if self.settings.global_conn_pool:
            with self._lock:
                if self._client is None:
                    self._client = self.connect()
                client = self._client
            yield client
            return

        client = self.connect()
        try:
            yield client
        finally:
            client.close()

    @contextmanager
    def _scrape(self, timeout: float | None) -> Iterator[ScrapeRegistry]:
        deadline = timeout if timeout is not None else self.settings.scrape_timeout
        log = bind_context(scrape_id=uuid.uuid4().hex[:8])
        log.debug("scrape_started", timeout=deadline)
        with self.session() as client, client.deadline(deadline):
            yield ScrapeRegistry(client, self.context, self.options)
        log.debug("scrape_finished")

    def scrape(self, timeout: float | None = None) -> bytes:
        """Run one scrape and render the text exposition format."""
        with self._scrape(timeout) as registry:
            return generate_latest(registry.to_prometheus())

    def samples(self, timeout: float | None = None) -> list[MetricSample]:
        """Run one scrape and return the raw samples."""
        with self._scrape(timeout) as registry:
            return registry.collect_all()

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
