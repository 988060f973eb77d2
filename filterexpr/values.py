"""
Value model and coercion rules.

Every operand handled by the compiler is described by a ValueKind. Constants
from the expression text are carried as Value objects; field values read at
evaluation time stay as plain Python payloads normalized to the declared kind
(Decimal or int for numbers, naive UTC datetime for timestamps).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .exceptions import CoercionError, ParseError
from .tokens import Token, TokenType


class ValueKind(str, Enum):
    """Kinds of values. COLLECTION is only ever declared by a field resolver."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    COLLECTION = "collection"


ORDERED_KINDS = frozenset([ValueKind.NUMBER, ValueKind.TEXT, ValueKind.TIMESTAMP])

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
)

_TRUE_WORDS = frozenset(["true", "1", "yes"])
_FALSE_WORDS = frozenset(["false", "0", "no"])


@dataclass(frozen=True, slots=True)
class Value:
    """A typed constant. Never changes kind; coercion returns a new Value."""

    kind: ValueKind
    raw: Any = None

    @classmethod
    def null(cls) -> Value:
        return NULL

    @classmethod
    def boolean(cls, value: bool) -> Value:
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def number(cls, value: Any) -> Value:
        return cls(ValueKind.NUMBER, to_number(value))

    @classmethod
    def text(cls, value: str) -> Value:
        return cls(ValueKind.TEXT, str(value))

    @classmethod
    def timestamp(cls, value: Any) -> Value:
        return cls(ValueKind.TIMESTAMP, to_timestamp(value))

    @classmethod
    def collection(cls, items: Any) -> Value:
        return cls(ValueKind.COLLECTION, tuple(items))

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Wrap a Python object, inferring its kind."""
        if isinstance(obj, Value):
            return obj
        kind = kind_of(obj)
        if kind is None:
            raise CoercionError(f"Unsupported value type: {type(obj).__name__}")
        if kind is ValueKind.NULL:
            return NULL
        if kind is ValueKind.NUMBER:
            return cls(kind, to_number(obj))
        if kind is ValueKind.TIMESTAMP:
            return cls(kind, to_timestamp(obj))
        if kind is ValueKind.COLLECTION:
            return cls(kind, tuple(obj))
        return cls(kind, obj)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def __str__(self) -> str:
        return format_value_text(self.raw)


NULL = Value(ValueKind.NULL, None)


def kind_of(obj: Any) -> ValueKind | None:
    """Return the kind a Python object maps to, or None if it has no mapping."""
    if obj is None:
        return ValueKind.NULL
    # bool before int: bool is a subclass of int
    if isinstance(obj, bool):
        return ValueKind.BOOLEAN
    if isinstance(obj, (int, float, Decimal)):
        return ValueKind.NUMBER
    if isinstance(obj, str):
        return ValueKind.TEXT
    if isinstance(obj, (datetime, date)):
        return ValueKind.TIMESTAMP
    if isinstance(obj, (list, tuple, set, frozenset)):
        return ValueKind.COLLECTION
    return None


# =============================================================================
# Scalar conversions (raise CoercionError)
# =============================================================================


def to_number(obj: Any) -> Decimal:
    if isinstance(obj, bool):
        return Decimal(1 if obj else 0)
    if isinstance(obj, Decimal):
        result = obj
    elif isinstance(obj, int):
        return Decimal(obj)
    elif isinstance(obj, float):
        result = Decimal(repr(obj))
    elif isinstance(obj, str):
        try:
            result = Decimal(obj.strip())
        except InvalidOperation:
            raise CoercionError(f"Cannot convert text {obj!r} to number") from None
    else:
        raise CoercionError(f"Cannot convert {type(obj).__name__} to number")
    if not result.is_finite():
        raise CoercionError(f"Number must be finite, got {obj!r}")
    return result


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(text: str) -> datetime:
    """Parse ISO-8601 or one of the invariant formats."""
    candidate = text.strip()
    try:
        return _naive_utc(datetime.fromisoformat(candidate))
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    raise CoercionError(f"Cannot convert text {text!r} to timestamp")


def to_timestamp(obj: Any) -> datetime:
    if isinstance(obj, datetime):
        return _naive_utc(obj)
    if isinstance(obj, date):
        return datetime.combine(obj, time())
    if isinstance(obj, str):
        return parse_timestamp(obj)
    raise CoercionError(f"Cannot convert {type(obj).__name__} to timestamp")


def to_boolean(obj: Any) -> bool:
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, Decimal)) and obj in (0, 1):
        return bool(obj)
    if isinstance(obj, str):
        lowered = obj.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
    raise CoercionError(f"Cannot convert {obj!r} to boolean")


def format_value_text(obj: Any) -> str:
    """Stringify a payload the way LIKE and text search see it."""
    if obj is None:
        return ""
    if isinstance(obj, bool):
        return "true" if obj else "false"
    if isinstance(obj, Decimal):
        return format(obj, "f")
    if isinstance(obj, datetime):
        return obj.isoformat(sep=" ")
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (list, tuple, set, frozenset)):
        return "; ".join(format_value_text(v) for v in obj if v is not None)
    if isinstance(obj, Mapping):
        return json.dumps(obj, ensure_ascii=False, sort_keys=True, default=str)
    return str(obj)


# =============================================================================
# Runtime normalization (never raises)
# =============================================================================


def normalize(obj: Any, kind: ValueKind) -> Any:
    """
    Normalize a raw field payload to the declared kind.

    Returns None (Null) when the payload is missing or cannot be converted,
    so that evaluation of a compiled predicate never fails.
    """
    if obj is None:
        return None
    try:
        if kind is ValueKind.NUMBER:
            if type(obj) is int:
                return obj
            if isinstance(obj, Decimal) and obj.is_finite():
                return obj
            return to_number(obj)
        if kind is ValueKind.TEXT:
            return obj if isinstance(obj, str) else format_value_text(obj)
        if kind is ValueKind.TIMESTAMP:
            return to_timestamp(obj)
        if kind is ValueKind.BOOLEAN:
            return to_boolean(obj)
        if kind is ValueKind.COLLECTION:
            return obj if isinstance(obj, (list, tuple, set, frozenset)) else None
    except CoercionError:
        return None
    return None


# =============================================================================
# Coercion between kinds
# =============================================================================


def coerce(value: Value, target: ValueKind) -> Value:
    """
    Convert a Value to the target kind.

    Null stays Null. Raises CoercionError if the conversion is not defined or
    the payload does not parse.
    """
    if value.kind is target or value.is_null:
        return value
    if target is ValueKind.NUMBER and value.kind in (ValueKind.BOOLEAN, ValueKind.TEXT):
        return Value(ValueKind.NUMBER, to_number(value.raw))
    if target is ValueKind.TEXT and value.kind is not ValueKind.COLLECTION:
        return Value(ValueKind.TEXT, format_value_text(value.raw))
    if target is ValueKind.TIMESTAMP and value.kind is ValueKind.TEXT:
        return Value(ValueKind.TIMESTAMP, parse_timestamp(value.raw))
    if target is ValueKind.BOOLEAN and value.kind in (ValueKind.NUMBER, ValueKind.TEXT):
        return Value(ValueKind.BOOLEAN, to_boolean(value.raw))
    raise CoercionError(
        f"Cannot convert {value.kind.value} {format_value_text(value.raw)!r} to {target.value}"
    )


def literal_value(token: Token) -> Value:
    """Type a literal token: quoted text, bare number or NULL."""
    if token.type is TokenType.STRING:
        return Value(ValueKind.TEXT, token.text[1:-1])
    if token.type is TokenType.NUMBER:
        return Value(ValueKind.NUMBER, Decimal(token.text))
    if token.type is TokenType.NULL:
        return NULL
    raise ParseError(f"Unknown token '{token.text}'", position=token.pos)
