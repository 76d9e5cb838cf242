"""
Data models shared by the flattening engine and the collectors.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

RawDocument = Mapping[str, Any]

SEPARATOR = "."


class MetricKind(StrEnum):
    """Exposition type of a sample."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricSample:
    """A single named, labeled numeric value produced by one scrape.

    Labels are stored sorted by key so iteration order is deterministic.
    """

    name: str
    labels: dict[str, str]
    value: float
    kind: MetricKind = MetricKind.GAUGE
    help: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Metric sample name must not be empty")
        object.__setattr__(self, "labels", dict(sorted(self.labels.items())))

    @property
    def key(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        """Identity of the series within one scrape."""
        return self.name, tuple(self.labels.items())


@dataclass(frozen=True)
class MetricDescriptor:
    """Static description of a metric, available without a live fetch."""

    name: str
    help: str
    label_keys: tuple[str, ...] = ()
    kind: MetricKind = MetricKind.GAUGE


@dataclass(frozen=True)
class TraversalContext:
    """Per-branch accumulator threaded through the recursive descent.

    Every extension returns a new context, so siblings never observe each
    other's path segments or labels.
    """

    path: tuple[str, ...] = ()
    labels: tuple[tuple[str, str], ...] = ()
    depth: int = 0
    # set when the last step consumed a key as a label value
    via_label: bool = False

    @classmethod
    def root(
        cls,
        prefix: tuple[str, ...] = (),
        labels: Mapping[str, str] | None = None,
    ) -> TraversalContext:
        return cls(path=tuple(prefix), labels=tuple(sorted((labels or {}).items())))

    @property
    def name(self) -> str:
        return SEPARATOR.join(self.path)

    def descend(self, segment: str) -> TraversalContext:
        """Extend the metric name by one segment."""
        return TraversalContext(self.path + (segment,), self.labels, self.depth + 1)

    def with_label(self, key: str, value: str) -> TraversalContext:
        """Go one level deeper, recording the key as a label instead of a name segment."""
        return TraversalContext(
            self.path, _set_label(self.labels, key, value), self.depth + 1, via_label=True
        )

    def with_labels(self, extra: Mapping[str, str]) -> TraversalContext:
        """Enter an array member, identified by labels rather than by index."""
        labels = self.labels
        for key, value in extra.items():
            labels = _set_label(labels, key, value)
        return TraversalContext(self.path, labels, self.depth + 1, via_label=True)

    def label_dict(self) -> dict[str, str]:
        return dict(self.labels)


def _set_label(
    labels: tuple[tuple[str, str], ...], key: str, value: str
) -> tuple[tuple[str, str], ...]:
    merged = {k: v for k, v in labels if k != key}
    merged[key] = value
    return tuple(sorted(merged.items()))


@dataclass
class FlattenStats:
    """Counters describing what one flatten call dropped, for debug logging."""

    emitted: int = 0
    dropped: int = 0
    duplicates: int = 0
    too_deep: int = 0
