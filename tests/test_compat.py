"""Tests for flatten/compat.py.

Tests rename rules, matching precedence and label translation.
"""

import pytest

from mongodb_exporter.flatten.compat import CompatibilityMapper, RenameRule
from mongodb_exporter.flatten.models import MetricKind


class TestRenameRule:
    """Tests for RenameRule."""

    def test_requires_legacy_name(self):
        """Test an empty legacy name is rejected."""
        with pytest.raises(ValueError):
            RenameRule.create("", ("a",))

    def test_requires_match_path(self):
        """Test an empty match path is rejected."""
        with pytest.raises(ValueError):
            RenameRule.create("x", ())

    def test_prefix_requires_suffix_label(self):
        """Test prefix rules must label the remainder."""
        with pytest.raises(ValueError, match="suffix_label"):
            RenameRule.create("memory", ("ss", "mem"), prefix=True)

    def test_kind_from_name(self):
        """Test legacy names ending in _total are counters."""
        assert RenameRule.create("asserts_total", ("a",)).metric_kind is MetricKind.COUNTER
        assert RenameRule.create("memory", ("a",)).metric_kind is MetricKind.GAUGE

    def test_forced_kind(self):
        """Test a forced kind overrides the name."""
        rule = RenameRule.create("uptime", ("a",), kind=MetricKind.COUNTER)
        assert rule.metric_kind is MetricKind.COUNTER

    def test_exact_suffix_value(self):
        """Test exact rules only match their own path."""
        rule = RenameRule.create("x", ("a", "b"))
        assert rule.suffix_value(("a", "b")) == ""
        assert rule.suffix_value(("a", "b", "c")) is None
        assert rule.suffix_value(("a",)) is None

    def test_prefix_suffix_value(self):
        """Test prefix rules match strictly longer paths."""
        rule = RenameRule.create("x", ("a",), prefix=True, suffix_label="type")
        assert rule.suffix_value(("a",)) is None
        assert rule.suffix_value(("a", "b", "c")) == "b.c"

    def test_mapped_only(self):
        """Test mapped_only rules ignore unmapped remainders."""
        rule = RenameRule.create(
            "network_bytes_total",
            ("net",),
            prefix=True,
            suffix_label="state",
            suffix_mapping={"bytesIn": "in_bytes"},
            mapped_only=True,
        )
        assert rule.suffix_value(("net", "bytesIn")) == "in_bytes"
        assert rule.suffix_value(("net", "numRequests")) is None


class TestCompatibilityMapper:
    """Tests for CompatibilityMapper."""

    def test_disabled_returns_canonical(self):
        """Test the canonical dotted name is used when disabled."""
        mapper = CompatibilityMapper([RenameRule.create("legacy", ("a", "b"))])
        translation = mapper.translate(("a", "b"), {"k": "v"})
        assert translation.name == "a.b"
        assert translation.labels == {"k": "v"}
        assert not translation.legacy

    def test_enabled_returns_legacy(self):
        """Test matched paths are renamed when enabled."""
        mapper = CompatibilityMapper([RenameRule.create("legacy", ("a", "b"))], enabled=True)
        translation = mapper.translate(("a", "b"))
        assert translation.name == "legacy"
        assert translation.legacy

    def test_unmatched_keeps_canonical(self):
        """Test unmatched paths keep their canonical name when enabled."""
        mapper = CompatibilityMapper([RenameRule.create("legacy", ("a", "b"))], enabled=True)
        assert mapper.translate(("a", "c")).name == "a.c"

    def test_label_overrides(self):
        """Test label keys are renamed."""
        rule = RenameRule.create(
            "op_counters_total", ("ss", "opcounters"), label_overrides={"legacy_op_type": "type"}
        )
        mapper = CompatibilityMapper([rule], enabled=True)
        translation = mapper.translate(("ss", "opcounters"), {"legacy_op_type": "insert"})
        assert translation.labels == {"type": "insert"}

    def test_suffix_label(self):
        """Test prefix rules put the remainder in the suffix label."""
        rule = RenameRule.create("memory", ("ss", "mem"), prefix=True, suffix_label="type")
        mapper = CompatibilityMapper([rule], enabled=True)
        translation = mapper.translate(("ss", "mem", "resident"))
        assert translation.name == "memory"
        assert translation.labels == {"type": "resident"}

    def test_longest_prefix_wins(self):
        """Test the longest matching path takes precedence."""
        short = RenameRule.create("short", ("a",), prefix=True, suffix_label="t")
        long = RenameRule.create("long", ("a", "b"), prefix=True, suffix_label="t")
        mapper = CompatibilityMapper([short, long], enabled=True)

        assert mapper.translate(("a", "b", "c")).name == "long"
        assert mapper.translate(("a", "x")).name == "short"

    def test_exact_beats_shorter_prefix(self):
        """Test an exact rule on the full path beats a prefix rule above it."""
        prefix = RenameRule.create("prefix", ("a",), prefix=True, suffix_label="t")
        exact = RenameRule.create("exact", ("a", "b"))
        mapper = CompatibilityMapper([prefix, exact], enabled=True)
        assert mapper.translate(("a", "b")).name == "exact"

    def test_ties_broken_by_declaration_order(self):
        """Test the first declared rule wins for the same match path."""
        first = RenameRule.create("first", ("a", "b"))
        second = RenameRule.create("second", ("a", "b"))

        assert CompatibilityMapper([first, second], enabled=True).translate(("a", "b")).name == (
            "first"
        )
        assert CompatibilityMapper([second, first], enabled=True).translate(("a", "b")).name == (
            "second"
        )

    def test_mapped_only_falls_through(self):
        """Test a non-applying rule lets a later rule on the same path match."""
        ops = RenameRule.create(
            "ops_total",
            ("lat",),
            prefix=True,
            suffix_label="type",
            suffix_mapping={"reads.ops": "read"},
            mapped_only=True,
        )
        latency = RenameRule.create(
            "latency_total",
            ("lat",),
            prefix=True,
            suffix_label="type",
            suffix_mapping={"reads.latency": "read"},
            mapped_only=True,
        )
        mapper = CompatibilityMapper([ops, latency], enabled=True)

        assert mapper.translate(("lat", "reads", "ops")).name == "ops_total"
        assert mapper.translate(("lat", "reads", "latency")).name == "latency_total"
        assert mapper.translate(("lat", "reads", "histogram")).name == "lat.reads.histogram"
