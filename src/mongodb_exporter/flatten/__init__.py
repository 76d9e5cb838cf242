"""
Document-to-metrics flattening.

Turns the nested documents returned by MongoDB administrative commands into
flat, labeled samples, optionally renamed to the legacy metric names.
"""

from mongodb_exporter.flatten.compat import CompatibilityMapper, RenameRule, Translation
from mongodb_exporter.flatten.declarations import default_declarations
from mongodb_exporter.flatten.dispatch import TimestampUnit, ValueKind, classify, dispatch
from mongodb_exporter.flatten.engine import Flattener, flatten
from mongodb_exporter.flatten.models import (
    MetricDescriptor,
    MetricKind,
    MetricSample,
    RawDocument,
    TraversalContext,
)
from mongodb_exporter.flatten.paths import ArrayPolicy, DeclarationTable, FieldPolicy, PathBuilder

__all__ = [
    # Engine
    "Flattener",
    "flatten",
    # Models
    "MetricDescriptor",
    "MetricKind",
    "MetricSample",
    "RawDocument",
    "TraversalContext",
    # Dispatch
    "TimestampUnit",
    "ValueKind",
    "classify",
    "dispatch",
    # Declarations
    "ArrayPolicy",
    "DeclarationTable",
    "FieldPolicy",
    "PathBuilder",
    "default_declarations",
    # Compatibility
    "CompatibilityMapper",
    "RenameRule",
    "Translation",
]
