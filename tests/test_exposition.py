"""Tests for exposition.py.

Tests Prometheus naming and the bridge to prometheus_client.
"""

from unittest.mock import patch

import pytest
from prometheus_client import generate_latest

from mongodb_exporter.collectors.base import Collector
from mongodb_exporter.collectors.server_status import ServerStatusCollector
from mongodb_exporter.exposition import (
    PrometheusAdapter,
    build_families,
    build_registry,
    family_name,
    prometheusize,
)
from mongodb_exporter.flatten.models import MetricKind, MetricSample


class FixedCollector(Collector):
    """Collector returning a fixed document."""

    name = "serverStatus"
    prefix = ("serverStatus",)

    def __init__(self, client, context, document):
        super().__init__(client, context)
        self.document = document

    def fetch(self, scope):
        return self.document


class TestPrometheusize:
    """Tests for prometheusize()."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("serverStatus.mem.resident", "mongodb_ss_mem_resident"),
            ("serverStatus", "mongodb_ss"),
            ("serverStatus.wiredTiger.cache.bytes read into cache", (
                "mongodb_ss_wt_cache_bytes_read_into_cache"
            )),
            ("serverStatus.wiredTiger.transaction.rollbacks", "mongodb_ss_wt_txn_rollbacks"),
            ("replSetGetStatus.members.health", "mongodb_rs_members_health"),
            ("systemMetrics.cpu.user_ms", "mongodb_sys_cpu_user_ms"),
            ("local.oplog.rs.stats.wiredTiger.cache.x", "mongodb_oplog_stats_wt_cache_x"),
            ("local.oplog.rs.stats.count", "mongodb_oplog_stats_count"),
            ("collStats.storageStats.size", "mongodb_collstats_storage_size"),
            ("collStats.latencyStats.reads.ops", "mongodb_collstats_latency_reads_ops"),
            ("indexStats.accesses.ops", "mongodb_indexstats_accesses_ops"),
            ("memory", "mongodb_memory"),
            ("db_coll_size", "mongodb_db_coll_size"),
        ],
    )
    def test_names(self, name, expected):
        """Test well-known prefixes are shortened."""
        assert prometheusize(name) == expected

    def test_prefix_on_segment_boundary(self):
        """Test prefixes only match whole segments."""
        assert prometheusize("serverStatusExtra.a") == "mongodb_serverStatusExtra_a"

    def test_special_characters(self):
        """Test special characters collapse into single underscores."""
        assert prometheusize("a.$cmd..(b)-c.") == "mongodb_a_cmd_b_c"


class TestFamilyName:
    """Tests for family_name()."""

    def test_counter_suffix_removed(self):
        """Test counter families drop the _total suffix."""
        assert family_name("asserts_total", MetricKind.COUNTER) == "mongodb_asserts"

    def test_counter_without_suffix(self):
        """Test counters without the suffix keep their name."""
        assert family_name("serverStatus.opcounters", MetricKind.COUNTER) == (
            "mongodb_ss_opcounters"
        )

    def test_gauge_unchanged(self):
        """Test gauges keep a _total suffix."""
        assert family_name("foo_total", MetricKind.GAUGE) == "mongodb_foo_total"


class TestBuildFamilies:
    """Tests for build_families()."""

    def test_groups_by_name(self):
        """Test samples with the same exposed name share a family."""
        families = build_families(
            [
                MetricSample("memory", {"type": "resident"}, 512.0, help="serverStatus.mem"),
                MetricSample("memory", {"type": "virtual"}, 1024.0, help="serverStatus.mem"),
            ]
        )

        assert len(families) == 1
        family = families[0]
        assert family.name == "mongodb_memory"
        assert family.type == "gauge"
        assert family.documentation == "serverStatus.mem"
        assert [sample.labels for sample in family.samples] == [
            {"type": "resident"},
            {"type": "virtual"},
        ]

    def test_counter_samples_suffixed(self):
        """Test counter samples carry _total."""
        families = build_families(
            [
                MetricSample(
                    "serverStatus.asserts", {"assert_type": "regular"}, 1.0, MetricKind.COUNTER
                )
            ]
        )
        assert families[0].name == "mongodb_ss_asserts"
        assert families[0].samples[0].name == "mongodb_ss_asserts_total"

    def test_collapsed_duplicate_dropped(self):
        """Test two names exposed identically do not produce duplicate series."""
        with patch("mongodb_exporter.exposition.logger") as logger:
            families = build_families(
                [MetricSample("a.b", {}, 1.0), MetricSample("a_b", {}, 2.0)]
            )

        assert [sample.value for sample in families[0].samples] == [1.0]
        logger.error.assert_called_once()

    def test_kind_conflict_dropped(self):
        """Test a sample of a different kind cannot join an existing family."""
        with patch("mongodb_exporter.exposition.logger") as logger:
            families = build_families(
                [
                    MetricSample("a.b", {}, 1.0, MetricKind.GAUGE),
                    MetricSample("a_b", {"x": "1"}, 2.0, MetricKind.COUNTER),
                ]
            )

        assert len(families) == 1
        assert len(families[0].samples) == 1
        assert logger.error.call_args[0][0] == "metric_kind_conflict"


class TestPrometheusAdapter:
    """Tests for PrometheusAdapter and rendering."""

    DOCUMENT = {"uptime": 100, "opcounters": {"insert": 10}}

    def test_describe_without_fetch(self, mock_client, context):
        """Test describe only reports hand-declared families and does not fetch."""
        families = list(PrometheusAdapter(ServerStatusCollector(mock_client, context)).describe())

        assert [(family.name, family.type) for family in families] == [
            ("mongodb_connections", "gauge"),
            ("mongodb_connections_metrics_created", "counter"),
        ]
        mock_client.run_admin_command.assert_not_called()

    def test_text_format(self, mock_client, context):
        """Test the text exposition format."""
        registry = build_registry([FixedCollector(mock_client, context, self.DOCUMENT)])
        text = generate_latest(registry).decode()

        assert "mongodb_ss_uptime 100.0" in text
        assert 'mongodb_ss_opcounters_total{legacy_op_type="insert"} 10.0' in text
        assert "# TYPE mongodb_ss_opcounters_total counter" in text
        assert "# HELP mongodb_ss_uptime serverStatus.uptime" in text

    def test_crashing_collector_contained(self, mock_client, context):
        """Test a crashing collector does not break the registry."""
        broken = FixedCollector(mock_client, context, 42)
        working = FixedCollector(mock_client, context, self.DOCUMENT)

        with patch("mongodb_exporter.collectors.base.logger"):
            text = generate_latest(build_registry([broken, working])).decode()

        assert "mongodb_ss_uptime 100.0" in text
