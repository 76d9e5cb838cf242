"""
Path and label building driven by a static declaration table.

By default every map key extends the metric name. Only maps declared as label
fields turn their keys into label values, so enum-like breakdowns (per lock
resource, per command, per shard) become one metric with a label instead of
one metric per key. Arrays of records are only descended into when declared,
with a key field naming each member.

Every field is a gauge unless a policy on it or on one of its parents declares
a kind; counter subtrees are listed in the built-in declarations.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from mongodb_exporter.flatten.compat import RenameRule
from mongodb_exporter.flatten.dispatch import TimestampUnit
from mongodb_exporter.flatten.models import MetricKind, TraversalContext

Path = tuple[str, ...]


@dataclass(frozen=True)
class FieldPolicy:
    """Policy for the field at ``path``.

    ``label`` applies to a map: its keys become values of that label.
    ``kind`` and ``timestamp_unit`` are inherited by every field below ``path``.
    """

    path: Path
    label: str | None = None
    drop: bool = False
    kind: MetricKind | None = None
    timestamp_unit: TimestampUnit | None = None

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("Field policy requires a non-empty path")


@dataclass(frozen=True)
class ArrayPolicy:
    """Descends into an array of records, labeling each member.

    ``key_field`` names the member field whose value becomes the ``label``
    value; ``extra_labels`` maps further label names to member fields.
    Members without the key field are labeled with their position.
    """

    path: Path
    label: str
    key_field: str
    extra_labels: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("Array policy requires a non-empty path")

    def member_labels(self, index: int, member: Mapping[str, Any]) -> dict[str, str]:
        key = member.get(self.key_field)
        labels = {self.label: str(index) if key is None else str(key)}
        for label, source in self.extra_labels:
            value = member.get(source)
            if value is not None:
                labels[label] = str(value)
        return labels


@dataclass(frozen=True)
class DeclarationTable:
    """Immutable per-field policies, array policies and rename rules."""

    fields: tuple[FieldPolicy, ...] = ()
    arrays: tuple[ArrayPolicy, ...] = ()
    renames: tuple[RenameRule, ...] = ()
    version: int = 1
    _fields_by_path: dict[Path, FieldPolicy] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _arrays_by_path: dict[Path, ArrayPolicy] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        # later declarations of the same path replace earlier ones
        self._fields_by_path.update({policy.path: policy for policy in self.fields})
        self._arrays_by_path.update({policy.path: policy for policy in self.arrays})

    def field_policy(self, path: Path) -> FieldPolicy | None:
        return self._fields_by_path.get(path)

    def array_policy(self, path: Path) -> ArrayPolicy | None:
        return self._arrays_by_path.get(path)

    def is_dropped(self, path: Path) -> bool:
        policy = self._fields_by_path.get(path)
        return policy is not None and policy.drop

    def kind_for(self, path: Path) -> MetricKind | None:
        for depth in range(len(path), 0, -1):
            policy = self._fields_by_path.get(path[:depth])
            if policy is not None and policy.kind is not None:
                return policy.kind
        return None

    def timestamp_unit_for(self, path: Path) -> TimestampUnit:
        for depth in range(len(path), 0, -1):
            policy = self._fields_by_path.get(path[:depth])
            if policy is not None and policy.timestamp_unit is not None:
                return policy.timestamp_unit
        return TimestampUnit.SECONDS

    def merged(self, override: DeclarationTable) -> DeclarationTable:
        """Overlay ``override``: its policies replace ours path by path and its
        rename rules are declared first, so they win precedence ties."""
        fields = {policy.path: policy for policy in self.fields}
        fields.update({policy.path: policy for policy in override.fields})
        arrays = {policy.path: policy for policy in self.arrays}
        arrays.update({policy.path: policy for policy in override.arrays})
        return DeclarationTable(
            fields=tuple(fields.values()),
            arrays=tuple(arrays.values()),
            renames=override.renames + self.renames,
            version=max(self.version, override.version),
        )


class PathBuilder:
    """Turns one traversal step into a new context, or None when the field is skipped."""

    def __init__(
        self,
        declarations: DeclarationTable,
        excluded_paths: Iterable[Iterable[str]] = (),
    ) -> None:
        self.declarations = declarations
        self.excluded_paths = frozenset(tuple(path) for path in excluded_paths)

    def child(self, ctx: TraversalContext, key: str) -> TraversalContext | None:
        if not ctx.via_label:
            policy = self.declarations.field_policy(ctx.path)
            if policy is not None and policy.label:
                return ctx.with_label(policy.label, key)

        child = ctx.descend(key)
        if self.is_skipped(child.path):
            return None
        return child

    def member(
        self, ctx: TraversalContext, policy: ArrayPolicy, index: int, member: Mapping[str, Any]
    ) -> TraversalContext:
        return ctx.with_labels(policy.member_labels(index, member))

    def is_skipped(self, path: Path) -> bool:
        return path in self.excluded_paths or self.declarations.is_dropped(path)

    def kind(self, path: Path) -> MetricKind:
        """Declared kind of ``path``; undeclared fields are gauges."""
        return self.declarations.kind_for(path) or MetricKind.GAUGE
