"""
getDiagnosticData collector.

The diagnostic document bundles the output of several commands (serverStatus,
replSetGetStatus, oplog stats, systemMetrics, ...) keyed by command name, so it
is flattened without a prefix. Subtrees that a dedicated collector already
reports are removed first.
"""

from __future__ import annotations

from collections.abc import Iterable

from mongodb_exporter.collectors.base import Collector, CollectorContext, Scope, document_field
from mongodb_exporter.client import DatabaseClient
from mongodb_exporter.core.errors import SchemaError
from mongodb_exporter.flatten.models import RawDocument


class DiagnosticDataCollector(Collector):
    name = "getDiagnosticData"

    def __init__(
        self,
        client: DatabaseClient,
        context: CollectorContext,
        owned_subtrees: Iterable[str] = (),
    ) -> None:
        super().__init__(client, context)
        self.owned_subtrees = frozenset(owned_subtrees)

    def fetch(self, scope: Scope) -> RawDocument:
        result = self.client.run_admin_command({"getDiagnosticData": 1})
        data = document_field(result, "data")
        if data is None:
            raise SchemaError("getDiagnosticData returned no data document")
        return {key: value for key, value in data.items() if key not in self.owned_subtrees}
