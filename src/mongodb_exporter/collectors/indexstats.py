"""$indexStats collector: per-index usage counters."""

from __future__ import annotations

from mongodb_exporter.collectors.base import Scope
from mongodb_exporter.collectors.namespaces import NamespaceCollector
from mongodb_exporter.flatten.models import MetricSample, RawDocument

INDEX_STATS_PIPELINE = [{"$indexStats": {}}]


class IndexStatsCollector(NamespaceCollector):
    name = "indexStats"
    prefix = ("indexStats",)

    def fetch(self, scope: Scope) -> RawDocument:
        records = self.client.aggregate(scope.database, scope.collection, INDEX_STATS_PIPELINE)
        return {"indexes": records}

    def emit(self, document: RawDocument, scope: Scope) -> list[MetricSample]:
        samples: list[MetricSample] = []
        for record in document["indexes"]:
            labels = {**scope.labels, "key_name": str(record.get("name", ""))}
            samples.extend(
                self.flattener.flatten(
                    record, prefix=self.prefix, labels=labels, strict=self.context.strict
                )
            )
        return samples
