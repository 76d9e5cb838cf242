"""
Compatibility mapping from canonical dotted paths to legacy metric names.

Dashboards built against the first-generation exporter expect flat names such
as ``op_counters_total{type="insert"}`` where the flattening engine produces
``serverStatus.opcounters{legacy_op_type="insert"}``. When compatible mode is
enabled, every path matched by a rule is emitted under the rule's legacy name
only; the canonical name is never emitted alongside it.

Matching precedence: the rule with the longest ``match_path`` wins, and rules
with equally long paths are tried in declaration order (first applicable wins).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from mongodb_exporter.flatten.models import SEPARATOR, MetricKind


@dataclass(frozen=True)
class RenameRule:
    """Maps one canonical path (or every path below a prefix) to a legacy name.

    Attributes:
        legacy_name: Name emitted instead of the canonical dotted name
        match_path: Canonical name segments to match
        prefix: Match paths strictly below ``match_path`` instead of exactly
        label_overrides: Renames of label keys, current name -> legacy name
        suffix_label: For prefix rules, label receiving the unmatched remainder
        suffix_mapping: Rewrites of the remainder before it becomes a label value
        mapped_only: Only apply when the remainder is a key of ``suffix_mapping``
        kind: Forced metric kind, inferred from the legacy name when unset
    """

    legacy_name: str
    match_path: tuple[str, ...]
    prefix: bool = False
    label_overrides: tuple[tuple[str, str], ...] = ()
    suffix_label: str | None = None
    suffix_mapping: tuple[tuple[str, str], ...] = ()
    mapped_only: bool = False
    kind: MetricKind | None = None

    def __post_init__(self) -> None:
        if not self.legacy_name:
            raise ValueError("Rename rule requires a legacy name")
        if not self.match_path:
            raise ValueError(f"Rename rule '{self.legacy_name}' has an empty match path")
        if self.prefix and not self.suffix_label:
            # several paths would collapse into one unlabeled series
            raise ValueError(f"Prefix rule '{self.legacy_name}' requires a suffix_label")

    @classmethod
    def create(
        cls,
        legacy_name: str,
        match_path: Iterable[str],
        *,
        prefix: bool = False,
        label_overrides: Mapping[str, str] | None = None,
        suffix_label: str | None = None,
        suffix_mapping: Mapping[str, str] | None = None,
        mapped_only: bool = False,
        kind: MetricKind | None = None,
    ) -> RenameRule:
        return cls(
            legacy_name=legacy_name,
            match_path=tuple(match_path),
            prefix=prefix,
            label_overrides=tuple((label_overrides or {}).items()),
            suffix_label=suffix_label,
            suffix_mapping=tuple((suffix_mapping or {}).items()),
            mapped_only=mapped_only,
            kind=kind,
        )

    @property
    def metric_kind(self) -> MetricKind:
        if self.kind is not None:
            return self.kind
        if self.legacy_name.endswith("_total"):
            return MetricKind.COUNTER
        return MetricKind.GAUGE

    def suffix_value(self, path: tuple[str, ...]) -> str | None:
        """Label value for ``path`` under this rule, or None if the rule does not apply."""
        depth = len(self.match_path)
        if path[:depth] != self.match_path:
            return None
        if not self.prefix:
            return "" if len(path) == depth else None
        if len(path) == depth:
            return None

        suffix = SEPARATOR.join(path[depth:])
        mapping = dict(self.suffix_mapping)
        if suffix in mapping:
            return mapping[suffix]
        if self.mapped_only:
            return None
        return suffix


@dataclass(frozen=True)
class Translation:
    name: str
    labels: dict[str, str]
    rule: RenameRule | None = None

    @property
    def legacy(self) -> bool:
        return self.rule is not None


class CompatibilityMapper:
    """Resolves canonical paths against a static set of rename rules."""

    def __init__(self, rules: Iterable[RenameRule] = (), *, enabled: bool = False) -> None:
        self.enabled = enabled
        self._rules = tuple(rules)
        self._index: dict[tuple[str, ...], list[RenameRule]] = {}
        for rule in self._rules:
            self._index.setdefault(rule.match_path, []).append(rule)

    @property
    def rules(self) -> tuple[RenameRule, ...]:
        return self._rules

    def match(self, path: tuple[str, ...]) -> tuple[RenameRule, str] | None:
        """Find the rule for ``path`` and the suffix label value it yields."""
        for depth in range(len(path), 0, -1):
            for rule in self._index.get(path[:depth], ()):
                suffix = rule.suffix_value(path)
                if suffix is not None:
                    return rule, suffix
        return None

    def translate(
        self,
        path: tuple[str, ...],
        labels: Mapping[str, str] | None = None,
    ) -> Translation:
        """Return the exposed name and labels for a canonical path."""
        labels = dict(labels or {})
        canonical = Translation(name=SEPARATOR.join(path), labels=labels)
        if not self.enabled:
            return canonical

        found = self.match(path)
        if found is None:
            return canonical

        rule, suffix = found
        overrides = dict(rule.label_overrides)
        renamed = {overrides.get(key, key): value for key, value in labels.items()}
        if rule.prefix and rule.suffix_label:
            renamed[rule.suffix_label] = suffix
        return Translation(name=rule.legacy_name, labels=renamed, rule=rule)
