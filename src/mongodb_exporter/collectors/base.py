"""
Collector base class.

A collector owns one source command. Each scrape runs one cycle:

    IDLE -> FETCHING -> (success) EMITTING -> IDLE
                     -> (failure) logged once per scope / skipped -> IDLE

Collectors keep no sample values between scrapes. A failing scope contributes
no samples and is retried on the next scrape; a scrape deadline aborts the
whole cycle so the collector contributes nothing rather than a partial set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, TypeVar

import structlog

from mongodb_exporter.client import DatabaseClient
from mongodb_exporter.core.errors import ExporterError, FeatureDisabledError, ScrapeTimeoutError
from mongodb_exporter.flatten.engine import DEFAULT_MAX_ARRAY_ITEMS, DEFAULT_MAX_DEPTH, Flattener
from mongodb_exporter.flatten.models import MetricDescriptor, MetricSample, RawDocument
from mongodb_exporter.flatten.paths import DeclarationTable
from mongodb_exporter.suppression import SuppressionLedger

logger = structlog.get_logger()

T = TypeVar("T")


class CollectorState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    EMITTING = "emitting"


class CollectOutcome(StrEnum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CollectorContext:
    """Process-lifetime settings and state shared by every collector."""

    declarations: DeclarationTable
    ledger: SuppressionLedger
    compatible_mode: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    max_array_items: int = DEFAULT_MAX_ARRAY_ITEMS
    strict: bool = False


@dataclass(frozen=True)
class Scope:
    """One fetch target within a collector cycle."""

    key: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    database: str | None = None
    collection: str | None = None


class Collector(ABC):
    """Base class for per-command collectors.

    Subclasses set ``name`` and ``prefix`` and implement ``fetch``. Paths in
    ``hand_declared_paths`` (relative to ``prefix``) are reported by dedicated
    metrics and excluded from generic flattening.
    """

    name: ClassVar[str]
    prefix: ClassVar[tuple[str, ...]] = ()
    hand_declared_paths: ClassVar[tuple[tuple[str, ...], ...]] = ()

    def __init__(self, client: DatabaseClient, context: CollectorContext) -> None:
        self.client = client
        self.context = context
        self.state = CollectorState.IDLE
        self.outcome: CollectOutcome | None = None
        self.flattener = Flattener(
            context.declarations,
            compatible_mode=context.compatible_mode,
            excluded_paths=self.excluded_paths(),
            max_depth=context.max_depth,
            max_array_items=context.max_array_items,
            ledger=context.ledger,
        )

    @classmethod
    def excluded_paths(cls) -> tuple[tuple[str, ...], ...]:
        return tuple(cls.prefix + path for path in cls.hand_declared_paths)

    def describe(self) -> list[MetricDescriptor]:
        """Statically declared metrics; generic flattening has none to offer."""
        return []

    def scopes(self) -> Iterable[Scope]:
        yield Scope()

    @abstractmethod
    def fetch(self, scope: Scope) -> RawDocument:
        """Issue the source command for ``scope``."""

    def emit(self, document: RawDocument, scope: Scope) -> list[MetricSample]:
        return self.flattener.flatten(
            document,
            prefix=self.prefix,
            labels=scope.labels,
            strict=self.context.strict,
        )

    def collect(self) -> list[MetricSample]:
        """Run one fetch/emit cycle and return its samples."""
        samples: list[MetricSample] = []
        self.outcome = CollectOutcome.SUCCESS
        try:
            for scope in self.scopes():
                self.state = CollectorState.FETCHING
                document = self.guarded(scope.key, lambda: self.fetch(scope))
                if document is None:
                    continue
                self.state = CollectorState.EMITTING
                samples.extend(self.emit(document, scope))
        except ScrapeTimeoutError as exc:
            self.outcome = CollectOutcome.TIMED_OUT
            logger.warning("scrape_deadline_exceeded", collector=self.name, error=exc.message)
            return []
        finally:
            self.state = CollectorState.IDLE

        logger.debug(
            "collector_finished",
            collector=self.name,
            outcome=self.outcome.value,
            samples=len(samples),
        )
        return samples

    def guarded(self, scope_key: str, operation: Callable[[], T]) -> T | None:
        """Run a fetch for one suppression scope.

        Returns None when the fetch failed or the feature is disabled. A failure
        is logged the first time only; a success re-arms the warning.
        """
        key = f"{self.name}:{scope_key}"
        try:
            result = operation()
        except FeatureDisabledError as exc:
            self._mark(CollectOutcome.SKIPPED)
            logger.debug(
                "feature_disabled", collector=self.name, scope=scope_key, error=exc.message
            )
            return None
        except ScrapeTimeoutError:
            raise
        except ExporterError as exc:
            self._mark(CollectOutcome.FAILED)
            if self.context.ledger.should_log(key):
                logger.warning(
                    "fetch_failed",
                    collector=self.name,
                    scope=scope_key,
                    error_type=type(exc).__name__,
                    error=exc.message,
                    note="This log message will be suppressed from now.",
                )
            return None

        self.context.ledger.clear(key)
        return result

    def _mark(self, outcome: CollectOutcome) -> None:
        # a failure outranks a skip
        if self.outcome is not CollectOutcome.FAILED:
            self.outcome = outcome


def safe_collect(collector: Collector) -> list[MetricSample]:
    """Collect without letting one collector's bug break the scrape.

    In strict mode every exception propagates.
    """
    try:
        return collector.collect()
    except Exception:
        if collector.context.strict:
            raise
        logger.exception("collector_crashed", collector=collector.name)
        return []


def document_field(document: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = document.get(key)
    return value if isinstance(value, Mapping) else None
