"""
Scrape registry.

Builds the enabled collectors for one scrape. Collectors are created per
scrape and discarded afterwards; only the context they share (declarations and
suppression ledger) lives for the whole process.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from prometheus_client import CollectorRegistry

from mongodb_exporter.client import DatabaseClient
from mongodb_exporter.collectors.base import Collector, CollectorContext, safe_collect
from mongodb_exporter.collectors.collstats import CollStatsCollector
from mongodb_exporter.collectors.diagnostic_data import DiagnosticDataCollector
from mongodb_exporter.collectors.indexstats import IndexStatsCollector
from mongodb_exporter.collectors.replset import ReplSetConfigCollector, ReplSetStatusCollector
from mongodb_exporter.collectors.server_status import ServerStatusCollector
from mongodb_exporter.exposition import build_registry
from mongodb_exporter.flatten.models import MetricSample


@dataclass(frozen=True)
class CollectorOptions:
    """Which collectors run on a scrape."""

    server_status: bool = True
    diagnostic_data: bool = True
    replset_status: bool = True
    replset_config: bool = False
    collstats_colls: Sequence[str] = field(default_factory=tuple)
    indexstats_colls: Sequence[str] = field(default_factory=tuple)
    discovering_mode: bool = False


class ScrapeRegistry:
    """Owns the collectors of a single scrape."""

    def __init__(
        self, client: DatabaseClient, context: CollectorContext, options: CollectorOptions
    ) -> None:
        self.client = client
        self.context = context
        self.options = options
        self._collectors: list[Collector] | None = None

    @property
    def collectors(self) -> list[Collector]:
        if self._collectors is None:
            self._collectors = self._build()
        return self._collectors

    def _build(self) -> list[Collector]:
        options = self.options
        collectors: list[Collector] = []

        if options.diagnostic_data:
            owned = []
            if options.server_status:
                owned.append(ServerStatusCollector.name)
            if options.replset_status:
                owned.append(ReplSetStatusCollector.name)
            collectors.append(DiagnosticDataCollector(self.client, self.context, owned))
        if options.server_status:
            collectors.append(ServerStatusCollector(self.client, self.context))
        if options.replset_status:
            collectors.append(ReplSetStatusCollector(self.client, self.context))
        if options.replset_config:
            collectors.append(ReplSetConfigCollector(self.client, self.context))

        discover = options.discovering_mode
        if options.collstats_colls or discover:
            collectors.append(
                CollStatsCollector(
                    self.client, self.context, options.collstats_colls, discover=discover
                )
            )
        if options.indexstats_colls or discover:
            collectors.append(
                IndexStatsCollector(
                    self.client, self.context, options.indexstats_colls, discover=discover
                )
            )
        return collectors

    def collect_all(self) -> list[MetricSample]:
        """Union of every collector's samples; a failing collector adds none."""
        samples: list[MetricSample] = []
        for collector in self.collectors:
            samples.extend(safe_collect(collector))
        return samples

    def to_prometheus(self) -> CollectorRegistry:
        return build_registry(self.collectors)
