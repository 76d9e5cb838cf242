"""
serverStatus collector.

Everything under ``serverStatus`` is flattened generically except the
connection counts, which are reported by hand-declared metrics.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mongodb_exporter.collectors.base import Collector, Scope, document_field
from mongodb_exporter.flatten.dispatch import as_number
from mongodb_exporter.flatten.models import MetricDescriptor, MetricKind, MetricSample, RawDocument

CONNECTIONS = MetricDescriptor(
    name="connections",
    help="The number of incoming connections from clients to the database server",
    label_keys=("state",),
    kind=MetricKind.GAUGE,
)
CONNECTIONS_CREATED = MetricDescriptor(
    name="connections_metrics_created_total",
    help="Count all incoming connections created to the server",
    kind=MetricKind.COUNTER,
)

CONNECTION_STATES = ("current", "available")


def connection_samples(connections: Mapping[str, Any] | None) -> list[MetricSample]:
    """Hand-declared samples for the ``connections`` sub-document."""
    if connections is None:
        return []

    samples = []
    for state in CONNECTION_STATES:
        value = as_number(connections.get(state))
        if value is not None:
            samples.append(
                MetricSample(
                    name=CONNECTIONS.name,
                    labels={"state": state},
                    value=value,
                    kind=CONNECTIONS.kind,
                    help=CONNECTIONS.help,
                )
            )

    created = as_number(connections.get("totalCreated"))
    if created is not None:
        samples.append(
            MetricSample(
                name=CONNECTIONS_CREATED.name,
                labels={},
                value=created,
                kind=CONNECTIONS_CREATED.kind,
                help=CONNECTIONS_CREATED.help,
            )
        )
    return samples


class ServerStatusCollector(Collector):
    name = "serverStatus"
    prefix = ("serverStatus",)
    hand_declared_paths = (("connections",),)

    def describe(self) -> list[MetricDescriptor]:
        return [CONNECTIONS, CONNECTIONS_CREATED]

    def fetch(self, scope: Scope) -> RawDocument:
        return self.client.run_admin_command({"serverStatus": 1, "recordStats": 0})

    def emit(self, document: RawDocument, scope: Scope) -> list[MetricSample]:
        samples = super().emit(document, scope)
        samples.extend(connection_samples(document_field(document, "connections")))
        return samples
