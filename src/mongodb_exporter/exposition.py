"""
Bridge from collectors to prometheus_client.

Samples carry canonical dotted names (``serverStatus.mem.resident``) or legacy
flat names (``memory``). Here they get their exposed Prometheus name: well-known
prefixes are shortened, special characters become underscores and the
``mongodb_`` namespace is added. The text format itself is rendered by
prometheus_client.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

import structlog
from prometheus_client import CollectorRegistry
from prometheus_client.core import Metric

from mongodb_exporter.collectors.base import Collector, safe_collect
from mongodb_exporter.flatten.models import SEPARATOR, MetricDescriptor, MetricKind, MetricSample

logger = structlog.get_logger()

NAMESPACE = "mongodb"
COUNTER_SUFFIX = "_total"

# Longest prefixes first; matched on whole name segments only
SHRINK_PREFIXES: tuple[tuple[str, str], ...] = tuple(
    sorted(
        (
            ("serverStatus.wiredTiger.transaction", "ss_wt_txn"),
            ("serverStatus.wiredTiger", "ss_wt"),
            ("serverStatus", "ss"),
            ("replSetGetStatus", "rs"),
            ("systemMetrics", "sys"),
            ("local.oplog.rs.stats.wiredTiger", "oplog_stats_wt"),
            ("local.oplog.rs.stats", "oplog_stats"),
            ("collStats.storageStats", "collstats_storage"),
            ("collStats.latencyStats", "collstats_latency"),
            ("collStats", "collstats"),
            ("indexStats", "indexstats"),
        ),
        key=lambda item: len(item[0]),
        reverse=True,
    )
)

_SPECIAL_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_REPEATED_UNDERSCORES = re.compile(r"__+")


def shrink(name: str) -> str:
    for prefix, short in SHRINK_PREFIXES:
        if name == prefix:
            return short
        if name.startswith(prefix + SEPARATOR):
            return short + name[len(prefix) :]
    return name


def prometheusize(name: str) -> str:
    """Exposed Prometheus name for a sample name.

    >>> prometheusize("serverStatus.wiredTiger.cache.bytes read into cache")
    'mongodb_ss_wt_cache_bytes_read_into_cache'
    """
    name = _SPECIAL_CHARS.sub("_", shrink(name))
    name = _REPEATED_UNDERSCORES.sub("_", name).strip("_")
    return f"{NAMESPACE}_{name}"


def family_name(name: str, kind: MetricKind) -> str:
    """Family name; counter families drop the ``_total`` their samples carry."""
    exposed = prometheusize(name)
    if kind is MetricKind.COUNTER and exposed.endswith(COUNTER_SUFFIX):
        return exposed[: -len(COUNTER_SUFFIX)]
    return exposed


def _sample_name(family: Metric) -> str:
    return family.name + COUNTER_SUFFIX if family.type == "counter" else family.name


def build_families(samples: Iterable[MetricSample]) -> list[Metric]:
    """Group samples into metric families keyed by exposed name."""
    families: dict[str, Metric] = {}
    seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()

    for sample in samples:
        name = family_name(sample.name, sample.kind)
        family = families.get(name)
        if family is None:
            family = Metric(name, sample.help or sample.name, sample.kind.value)
            families[name] = family
        elif family.type != sample.kind.value:
            logger.error(
                "metric_kind_conflict",
                name=name,
                kind=sample.kind.value,
                family_kind=family.type,
            )
            continue

        key = (name, tuple(sample.labels.items()))
        if key in seen:
            # distinct canonical names can collapse onto one exposed name
            logger.error("duplicate_series_dropped", name=name, labels=sample.labels)
            continue
        seen.add(key)
        family.add_sample(_sample_name(family), dict(sample.labels), sample.value)

    return list(families.values())


def describe_families(descriptors: Iterable[MetricDescriptor]) -> list[Metric]:
    return [
        Metric(
            family_name(descriptor.name, descriptor.kind), descriptor.help, descriptor.kind.value
        )
        for descriptor in descriptors
    ]


class PrometheusAdapter:
    """prometheus_client custom collector wrapping one exporter collector."""

    def __init__(self, collector: Collector) -> None:
        self.collector = collector

    def describe(self) -> Iterator[Metric]:
        yield from describe_families(self.collector.describe())

    def collect(self) -> Iterator[Metric]:
        yield from build_families(safe_collect(self.collector))


def build_registry(collectors: Iterable[Collector]) -> CollectorRegistry:
    """A fresh registry holding one adapter per collector."""
    registry = CollectorRegistry(auto_describe=False)
    for collector in collectors:
        registry.register(PrometheusAdapter(collector))
    return registry
