"""Tests for flatten/paths.py.

Tests the declaration table lookups and the path/label builder.
"""

import pytest

from mongodb_exporter.flatten.compat import RenameRule
from mongodb_exporter.flatten.dispatch import TimestampUnit
from mongodb_exporter.flatten.models import MetricKind, TraversalContext
from mongodb_exporter.flatten.paths import ArrayPolicy, DeclarationTable, FieldPolicy, PathBuilder


@pytest.fixture
def table():
    """A small declaration table."""
    return DeclarationTable(
        fields=(
            FieldPolicy(path=("ss", "locks"), label="resource"),
            FieldPolicy(path=("ss", "noise"), drop=True),
            FieldPolicy(path=("ss", "asserts"), kind=MetricKind.COUNTER),
            FieldPolicy(path=("ss", "clock"), timestamp_unit=TimestampUnit.MILLISECONDS),
        ),
        arrays=(ArrayPolicy(path=("rs", "members"), label="member", key_field="name"),),
    )


class TestFieldPolicy:
    """Tests for FieldPolicy and ArrayPolicy validation."""

    def test_empty_path_rejected(self):
        """Test a policy needs a path."""
        with pytest.raises(ValueError):
            FieldPolicy(path=())

    def test_member_labels(self):
        """Test array members are labeled by key field and extra fields."""
        policy = ArrayPolicy(
            path=("rs", "members"),
            label="member_idx",
            key_field="name",
            extra_labels=(("member_state", "stateStr"),),
        )
        labels = policy.member_labels(0, {"name": "db1:27017", "stateStr": "PRIMARY"})
        assert labels == {"member_idx": "db1:27017", "member_state": "PRIMARY"}

    def test_member_labels_fall_back_to_index(self):
        """Test members without the key field are labeled by position."""
        policy = ArrayPolicy(path=("a",), label="idx", key_field="name")
        assert policy.member_labels(3, {}) == {"idx": "3"}


class TestDeclarationTable:
    """Tests for DeclarationTable lookups."""

    def test_field_policy_lookup(self, table):
        """Test exact path lookup."""
        assert table.field_policy(("ss", "locks")).label == "resource"
        assert table.field_policy(("ss", "other")) is None

    def test_is_dropped(self, table):
        """Test drop lookup."""
        assert table.is_dropped(("ss", "noise"))
        assert not table.is_dropped(("ss", "locks"))

    def test_kind_inherited(self, table):
        """Test a declared kind applies to every field below its path."""
        assert table.kind_for(("ss", "asserts", "regular")) is MetricKind.COUNTER
        assert table.kind_for(("ss", "other")) is None

    def test_timestamp_unit_inherited(self, table):
        """Test timestamp units default to seconds."""
        assert table.timestamp_unit_for(("ss", "clock")) is TimestampUnit.MILLISECONDS
        assert table.timestamp_unit_for(("ss", "other")) is TimestampUnit.SECONDS

    def test_later_declaration_wins(self):
        """Test a path declared twice keeps the last policy."""
        table = DeclarationTable(
            fields=(
                FieldPolicy(path=("a",), label="first"),
                FieldPolicy(path=("a",), label="second"),
            )
        )
        assert table.field_policy(("a",)).label == "second"

    def test_merged_override(self, table):
        """Test merged tables prefer the override's policies and rules."""
        builtin_rule = RenameRule.create("builtin", ("ss", "x"))
        override_rule = RenameRule.create("override", ("ss", "x"))
        base = DeclarationTable(fields=table.fields, renames=(builtin_rule,))
        override = DeclarationTable(
            fields=(FieldPolicy(path=("ss", "noise"), drop=False),),
            renames=(override_rule,),
        )

        merged = base.merged(override)

        assert not merged.is_dropped(("ss", "noise"))
        assert merged.field_policy(("ss", "locks")).label == "resource"
        assert merged.renames == (override_rule, builtin_rule)


class TestPathBuilder:
    """Tests for PathBuilder."""

    def test_default_extends_name(self, table):
        """Test keys extend the path by default."""
        builder = PathBuilder(table)
        child = builder.child(TraversalContext.root(("ss",)), "mem")
        assert child.path == ("ss", "mem")
        assert child.labels == ()
        assert child.depth == 1

    def test_label_field_records_label(self, table):
        """Test keys of a label field become label values."""
        builder = PathBuilder(table)
        locks = builder.child(TraversalContext.root(("ss",)), "locks")
        child = builder.child(locks, "Global")
        assert child.path == ("ss", "locks")
        assert child.label_dict() == {"resource": "Global"}

    def test_label_field_applies_once(self, table):
        """Test maps nested under a label value extend the name again."""
        builder = PathBuilder(table)
        locks = builder.child(TraversalContext.root(("ss",)), "locks")
        resource = builder.child(locks, "Global")
        child = builder.child(resource, "acquireCount")
        assert child.path == ("ss", "locks", "acquireCount")
        assert child.label_dict() == {"resource": "Global"}

    def test_dropped_path_skipped(self, table):
        """Test dropped fields yield no context."""
        builder = PathBuilder(table)
        assert builder.child(TraversalContext.root(("ss",)), "noise") is None

    def test_excluded_path_skipped(self, table):
        """Test explicitly excluded paths yield no context."""
        builder = PathBuilder(table, excluded_paths=[("ss", "connections")])
        assert builder.child(TraversalContext.root(("ss",)), "connections") is None

    def test_siblings_isolated(self, table):
        """Test extending one branch leaves its parent untouched."""
        builder = PathBuilder(table)
        root = TraversalContext.root(("ss",), {"db": "test"})
        first = builder.child(root, "a")
        second = builder.child(root, "b")
        assert root.path == ("ss",)
        assert first.path == ("ss", "a")
        assert second.path == ("ss", "b")

    @pytest.mark.parametrize(
        "path,kind",
        [
            (("ss", "metrics", "getLastError", "wtime", "num"), MetricKind.GAUGE),
            (("ss", "repl", "apply", "batches", "totalMillis"), MetricKind.GAUGE),
            (("ss", "cursor", "timedOutCount"), MetricKind.GAUGE),
            (("ss", "wiredTiger", "session", "open session count"), MetricKind.GAUGE),
            (("collStats", "Count"), MetricKind.GAUGE),
            (("ss", "asserts", "regular"), MetricKind.COUNTER),
        ],
    )
    def test_kind(self, table, path, kind):
        """Test kinds come from declarations and default to gauge."""
        assert PathBuilder(table).kind(path) is kind
