"""
Flattening engine.

Walks a decoded document depth-first, in the document's key order, and turns
every numeric or timestamp leaf into a ``MetricSample``. The dispatcher decides
what each value is, the path builder decides how keys become names or labels,
and the compatibility mapper optionally renames the result.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from mongodb_exporter.core.errors import InternalInvariantError, SchemaError
from mongodb_exporter.flatten.compat import CompatibilityMapper
from mongodb_exporter.flatten.dispatch import (
    Drop,
    DropReason,
    Numeric,
    RecurseArray,
    RecurseMap,
    TimestampValue,
    dispatch,
    is_scalar,
)
from mongodb_exporter.flatten.models import (
    SEPARATOR,
    FlattenStats,
    MetricSample,
    TraversalContext,
)
from mongodb_exporter.flatten.paths import DeclarationTable, PathBuilder
from mongodb_exporter.suppression import SuppressionLedger

logger = structlog.get_logger()

DEFAULT_MAX_DEPTH = 32
DEFAULT_MAX_ARRAY_ITEMS = 16


class Flattener:
    """Flattens documents according to a declaration table.

    A flattener holds no per-document state and can be shared by concurrent
    scrapes; the ledger it writes one-time warnings to is thread-safe.
    """

    def __init__(
        self,
        declarations: DeclarationTable | None = None,
        *,
        compatible_mode: bool = False,
        excluded_paths: Iterable[Iterable[str]] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_array_items: int = DEFAULT_MAX_ARRAY_ITEMS,
        ledger: SuppressionLedger | None = None,
    ) -> None:
        self.declarations = declarations or DeclarationTable()
        self.builder = PathBuilder(self.declarations, excluded_paths)
        self.mapper = CompatibilityMapper(self.declarations.renames, enabled=compatible_mode)
        self.max_depth = max_depth
        self.max_array_items = max_array_items
        self.ledger = ledger or SuppressionLedger()

    def flatten(
        self,
        document: Mapping[str, Any],
        *,
        prefix: Sequence[str] = (),
        labels: Mapping[str, str] | None = None,
        strict: bool = False,
    ) -> list[MetricSample]:
        """Flatten ``document`` below the canonical ``prefix``.

        Args:
            document: Decoded command result
            prefix: Name segments prepended to every path (usually the command)
            labels: Labels attached to every sample
            strict: Raise InternalInvariantError instead of logging and dropping

        Returns:
            Samples in traversal order, without duplicate (name, labels) pairs
        """
        run = _Run(strict=strict)
        self._walk_map(document, TraversalContext.root(tuple(prefix), labels), run)
        if run.stats.dropped or run.stats.duplicates or run.stats.too_deep:
            logger.debug(
                "flatten_summary",
                prefix=SEPARATOR.join(prefix),
                emitted=run.stats.emitted,
                dropped=run.stats.dropped,
                duplicates=run.stats.duplicates,
                too_deep=run.stats.too_deep,
            )
        return run.samples

    def _walk_map(self, mapping: Mapping[str, Any], ctx: TraversalContext, run: _Run) -> None:
        for key, value in mapping.items():
            child = self.builder.child(ctx, str(key))
            if child is None:
                continue
            self._visit(value, child, run)

    def _visit(self, value: Any, ctx: TraversalContext, run: _Run) -> None:
        unit = self.declarations.timestamp_unit_for(ctx.path)
        try:
            result = dispatch(value, unit)
        except SchemaError as exc:
            run.stats.dropped += 1
            if self.ledger.should_log(f"schema:{ctx.name}"):
                logger.warning("unsupported_field_type", path=ctx.name, error=exc.message)
            return

        if isinstance(result, (Numeric, TimestampValue)):
            self._emit(ctx, result.value, run)
        elif isinstance(result, RecurseMap):
            if self._within_depth(ctx, run):
                self._walk_map(result.value, ctx, run)
        elif isinstance(result, RecurseArray):
            if self._within_depth(ctx, run):
                self._walk_array(result.value, ctx, run)
        elif isinstance(result, Drop):
            run.stats.dropped += 1
            if result.reason is DropReason.NON_FINITE and self.ledger.should_log(
                f"non-finite:{ctx.name}"
            ):
                logger.warning("non_finite_value_dropped", path=ctx.name, value=str(value))

    def _walk_array(self, items: Sequence[Any], ctx: TraversalContext, run: _Run) -> None:
        policy = self.declarations.array_policy(ctx.path)
        if policy is not None:
            for index, item in enumerate(items):
                if isinstance(item, Mapping):
                    self._walk_map(item, self.builder.member(ctx, policy, index, item), run)
            return

        # undeclared arrays: only short runs of scalars are flattened by index
        if len(items) > self.max_array_items or not all(is_scalar(item) for item in items):
            run.stats.dropped += 1
            return
        for index, item in enumerate(items):
            child = self.builder.child(ctx, str(index))
            if child is not None:
                self._visit(item, child, run)

    def _within_depth(self, ctx: TraversalContext, run: _Run) -> bool:
        if ctx.depth < self.max_depth:
            return True
        run.stats.too_deep += 1
        error = InternalInvariantError(
            "document nested beyond the depth ceiling",
            details={"path": ctx.name, "max_depth": self.max_depth},
        )
        if run.strict:
            raise error
        logger.error("depth_ceiling_exceeded", path=ctx.name, max_depth=self.max_depth)
        return False

    def _emit(self, ctx: TraversalContext, value: float, run: _Run) -> None:
        translation = self.mapper.translate(ctx.path, ctx.label_dict())
        if translation.rule is not None:
            kind = translation.rule.metric_kind
        else:
            kind = self.builder.kind(ctx.path)

        sample = MetricSample(
            name=translation.name,
            labels=translation.labels,
            value=value,
            kind=kind,
            help=ctx.name,
        )
        if sample.key in run.seen:
            run.stats.duplicates += 1
            error = InternalInvariantError(
                "duplicate series emitted",
                details={"name": sample.name, "labels": sample.labels, "path": ctx.name},
            )
            if run.strict:
                raise error
            logger.error(
                "duplicate_series_dropped", name=sample.name, labels=sample.labels, path=ctx.name
            )
            return

        run.seen.add(sample.key)
        run.samples.append(sample)
        run.stats.emitted += 1


class _Run:
    """Mutable state of one flatten call."""

    def __init__(self, *, strict: bool) -> None:
        self.strict = strict
        self.samples: list[MetricSample] = []
        self.seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()
        self.stats = FlattenStats()


def flatten(
    document: Mapping[str, Any],
    declarations: DeclarationTable | None = None,
    compatible_mode: bool = False,
    **kwargs: Any,
) -> list[MetricSample]:
    """Flatten a document with a throwaway ``Flattener``."""
    return Flattener(declarations, compatible_mode=compatible_mode).flatten(document, **kwargs)
