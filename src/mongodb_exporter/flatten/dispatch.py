"""
Type dispatcher for decoded BSON values.

Every value handed over by the driver is first classified into a closed set of
kinds (``ValueKind``), then turned into one dispatch decision: a numeric
sample, a timestamp sample, a recursion into a map or an array, or a drop.
Drops are expected outcomes (free text, object ids, binary payloads) and are
never reported. A value outside the closed set raises ``SchemaError``.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any

from bson import Binary, Code, DBRef, Decimal128, MaxKey, MinKey, ObjectId, Regex, Timestamp

from mongodb_exporter.core.errors import SchemaError


class ValueKind(StrEnum):
    """Closed classification of a decoded document value."""

    NUMBER = "number"
    BOOL = "bool"
    TIMESTAMP = "timestamp"
    STRING = "string"
    ARRAY = "array"
    MAP = "map"
    BINARY = "binary"


class TimestampUnit(StrEnum):
    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"
    NANOSECONDS = "nanoseconds"


class DropReason(StrEnum):
    TEXT = "text"
    OPAQUE = "opaque"
    NON_FINITE = "non_finite"


_UNIT_SCALE = {
    TimestampUnit.SECONDS: 1,
    TimestampUnit.MILLISECONDS: 1_000,
    TimestampUnit.NANOSECONDS: 1_000_000_000,
}

# None is an absent value, handled like any other opaque payload.
_OPAQUE_TYPES = (bytes, bytearray, Binary, ObjectId, Regex, Code, DBRef, MinKey, MaxKey, uuid.UUID)


@dataclass(frozen=True)
class Numeric:
    value: float


@dataclass(frozen=True)
class TimestampValue:
    value: float


@dataclass(frozen=True)
class RecurseMap:
    value: Mapping[str, Any]


@dataclass(frozen=True)
class RecurseArray:
    value: Sequence[Any]


@dataclass(frozen=True)
class Drop:
    reason: DropReason


Dispatch = Numeric | TimestampValue | RecurseMap | RecurseArray | Drop


def classify(value: Any) -> ValueKind:
    """Classify a decoded value.

    Raises:
        SchemaError: if the value's type is not part of the closed set.
    """
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float, Decimal, Decimal128)):
        return ValueKind.NUMBER
    if isinstance(value, (datetime, Timestamp)):
        return ValueKind.TIMESTAMP
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.MAP
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    if value is None or isinstance(value, _OPAQUE_TYPES):
        return ValueKind.BINARY
    raise SchemaError(
        f"cannot handle value of type {type(value).__name__}",
        details={"type": type(value).__name__},
    )


def dispatch(value: Any, timestamp_unit: TimestampUnit = TimestampUnit.SECONDS) -> Dispatch:
    """Decide what the flattening engine does with a value."""
    kind = classify(value)

    if kind is ValueKind.BOOL:
        return Numeric(1.0 if value else 0.0)
    if kind is ValueKind.NUMBER:
        number = _as_float(value)
        if not math.isfinite(number):
            return Drop(DropReason.NON_FINITE)
        return Numeric(number)
    if kind is ValueKind.TIMESTAMP:
        return TimestampValue(epoch(value, timestamp_unit))
    if kind is ValueKind.MAP:
        return RecurseMap(value)
    if kind is ValueKind.ARRAY:
        return RecurseArray(value)
    if kind is ValueKind.STRING:
        return Drop(DropReason.TEXT)
    return Drop(DropReason.OPAQUE)


def as_number(value: Any) -> float | None:
    """Numeric value of a scalar field, or None when it is not a finite number."""
    try:
        result = dispatch(value)
    except SchemaError:
        return None
    if isinstance(result, (Numeric, TimestampValue)):
        return result.value
    return None


def is_scalar(value: Any) -> bool:
    """True for values that can become a sample on their own."""
    try:
        kind = classify(value)
    except SchemaError:
        return False
    return kind in (ValueKind.NUMBER, ValueKind.BOOL, ValueKind.TIMESTAMP)


def epoch(value: datetime | Timestamp, unit: TimestampUnit = TimestampUnit.SECONDS) -> float:
    """Convert a date or an oplog timestamp to an epoch number in ``unit``.

    Naive datetimes are UTC, which is how the driver decodes BSON dates.
    Oplog timestamps only carry whole seconds; the increment is ignored.
    """
    scale = _UNIT_SCALE[unit]
    if isinstance(value, Timestamp):
        return float(value.time * scale)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    seconds = value.timestamp()
    if unit is TimestampUnit.SECONDS:
        return seconds
    # integer arithmetic keeps sub-second precision for large scales
    whole = int(seconds)
    return float(whole * scale + round((seconds - whole) * scale))


def _as_float(value: Any) -> float:
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    if isinstance(value, Decimal) and value.is_snan():
        return math.nan
    return float(value)
