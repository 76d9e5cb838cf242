"""
collStats collector.

Per-collection storage statistics. The stable size and count fields are
reported by hand-declared ``db_coll_*`` metrics; the rest of the document
(latency and storage sub-documents, sharded breakdowns) is flattened
generically under the ``collStats`` root.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mongodb_exporter.collectors.base import Scope, document_field
from mongodb_exporter.collectors.namespaces import NamespaceCollector
from mongodb_exporter.flatten.dispatch import as_number
from mongodb_exporter.flatten.models import MetricDescriptor, MetricKind, MetricSample, RawDocument

COLLECTION_LABELS = ("db", "coll")


def _gauge(name: str, help: str, *extra_labels: str) -> MetricDescriptor:
    return MetricDescriptor(
        name=name,
        help=help,
        label_keys=COLLECTION_LABELS + extra_labels,
        kind=MetricKind.GAUGE,
    )


# descriptor, source field
SIMPLE_METRICS: tuple[tuple[MetricDescriptor, str], ...] = (
    (_gauge("db_coll_size", "The total size in memory of all records in a collection"), "size"),
    (_gauge("db_coll_count", "The number of objects or documents in this collection"), "count"),
    (_gauge("db_coll_avgobjsize", "The average size of an object in the collection"), "avgObjSize"),
    (
        _gauge("db_coll_storage_size", "The total amount of storage allocated to this collection"),
        "storageSize",
    ),
)
INDEXES = _gauge("db_coll_indexes", "The number of indexes on the collection")
INDEXES_SIZE = _gauge("db_coll_indexes_size", "The total size of all indexes")
INDEX_SIZE = _gauge("db_coll_index_size", "The size of a single index", "index")


def collection_samples(
    stats: Mapping[str, Any], database: str, collection: str
) -> list[MetricSample]:
    """Hand-declared samples for one collStats document."""
    labels = {"db": database, "coll": collection}
    samples = []

    def add(descriptor: MetricDescriptor, value: float | None, **extra: str) -> None:
        if value is not None:
            samples.append(
                MetricSample(
                    name=descriptor.name,
                    labels={**labels, **extra},
                    value=value,
                    kind=descriptor.kind,
                    help=descriptor.help,
                )
            )

    for descriptor, field in SIMPLE_METRICS:
        add(descriptor, as_number(stats.get(field)))

    index_sizes = document_field(stats, "indexSizes") or {}
    sizes = {str(name): as_number(size) for name, size in index_sizes.items()}

    indexes = as_number(stats.get("nindexes"))
    if indexes is None and index_sizes:
        indexes = float(len(index_sizes))
    add(INDEXES, indexes)

    total = as_number(stats.get("totalIndexSize"))
    if total is None and sizes:
        total = sum(size for size in sizes.values() if size is not None)
    add(INDEXES_SIZE, total)

    for name, size in sizes.items():
        add(INDEX_SIZE, size, index=name)
    return samples


class CollStatsCollector(NamespaceCollector):
    name = "collStats"
    prefix = ("collStats",)
    hand_declared_paths = (
        ("size",),
        ("count",),
        ("avgObjSize",),
        ("storageSize",),
        ("nindexes",),
        ("totalIndexSize",),
        ("indexSizes",),
    )

    def describe(self) -> list[MetricDescriptor]:
        simple = [descriptor for descriptor, _ in SIMPLE_METRICS]
        return simple + [INDEXES, INDEXES_SIZE, INDEX_SIZE]

    def fetch(self, scope: Scope) -> RawDocument:
        return self.client.run_command(scope.database, {"collStats": scope.collection, "scale": 1})

    def emit(self, document: RawDocument, scope: Scope) -> list[MetricSample]:
        samples = super().emit(document, scope)
        samples.extend(collection_samples(document, scope.database, scope.collection))
        return samples
