"""Per-command collectors. The per-scrape registry lives in ``collectors.registry``."""

from mongodb_exporter.collectors.base import (
    CollectOutcome,
    Collector,
    CollectorContext,
    CollectorState,
    Scope,
    safe_collect,
)
from mongodb_exporter.collectors.collstats import CollStatsCollector
from mongodb_exporter.collectors.diagnostic_data import DiagnosticDataCollector
from mongodb_exporter.collectors.indexstats import IndexStatsCollector
from mongodb_exporter.collectors.replset import ReplSetConfigCollector, ReplSetStatusCollector
from mongodb_exporter.collectors.server_status import ServerStatusCollector

__all__ = [
    "CollectOutcome",
    "Collector",
    "CollectorContext",
    "CollectorState",
    "Scope",
    "safe_collect",
    "CollStatsCollector",
    "DiagnosticDataCollector",
    "IndexStatsCollector",
    "ReplSetConfigCollector",
    "ReplSetStatusCollector",
    "ServerStatusCollector",
]
