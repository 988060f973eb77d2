"""
Field resolvers.

A resolver is the only thing the compiler knows about records: which fields
exist, what kind of value each one holds, and how to read it from a record.
"""

from __future__ import annotations

import logging
import types
import typing
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from .exceptions import CoercionError
from .values import NULL, Value, ValueKind, kind_of, normalize, parse_timestamp, to_number

logger = logging.getLogger(__name__)

Getter = Callable[[Any], Any]


class FieldResolver(ABC):
    """Describes the fields of a record type and reads their values."""

    @abstractmethod
    def field_names(self) -> list[str]:
        """All declared field names."""
        ...

    @abstractmethod
    def field_kind(self, name: str) -> ValueKind | None:
        """Declared kind of a field, or None if the field does not exist."""
        ...

    @abstractmethod
    def get_value(self, record: Any, name: str) -> Value:
        """Current value of a field; Null if the record does not carry it."""
        ...

    def canonical_name(self, name: str) -> str | None:
        """Resolve a field name as written in an expression to its declared name."""
        return name if self.field_kind(name) is not None else None

    def getter(self, name: str) -> Getter:
        """
        Return a function reading the raw payload of a field from a record.

        The compiler binds getters once per field reference, so subclasses
        override this with a direct lookup.
        """

        def _get(record: Any) -> Any:
            return self.get_value(record, name).raw

        return _get


class SchemaResolver(FieldResolver):
    """Resolver backed by an explicit {field name: kind} schema."""

    def __init__(self, schema: Mapping[str, ValueKind | str]):
        self._schema: dict[str, ValueKind] = {
            name: ValueKind(kind) for name, kind in schema.items()
        }
        self._folded: dict[str, str] = {}
        for name in self._schema:
            self._folded.setdefault(name.lower(), name)

    @property
    def schema(self) -> dict[str, ValueKind]:
        return dict(self._schema)

    def field_names(self) -> list[str]:
        return list(self._schema)

    def canonical_name(self, name: str) -> str | None:
        if name in self._schema:
            return name
        return self._folded.get(name.lower())

    def field_kind(self, name: str) -> ValueKind | None:
        canonical = self.canonical_name(name)
        return self._schema[canonical] if canonical is not None else None

    def get_value(self, record: Any, name: str) -> Value:
        kind = self.field_kind(name)
        if kind is None:
            return NULL
        raw = self.getter(name)(record)
        if raw is None:
            return NULL
        if kind is ValueKind.COLLECTION:
            return Value.collection(raw)
        return Value(kind, raw)

    @abstractmethod
    def _read(self, record: Any, name: str) -> Any:
        """Read the unnormalized payload; raise LookupError if absent."""
        ...

    def getter(self, name: str) -> Getter:
        canonical = self.canonical_name(name)
        if canonical is None:
            return lambda _record: None
        kind = self._schema[canonical]
        read = self._read

        def _get(record: Any) -> Any:
            try:
                raw = read(record, canonical)
            except LookupError:
                return None
            return normalize(raw, kind)

        return _get

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}: {v.value}" for k, v in self._schema.items())
        return f"{type(self).__name__}({{{fields}}})"


class DictResolver(SchemaResolver):
    """
    Resolver for mapping records (dicts, JSON objects, CSV rows).

    Example:
        resolver = DictResolver({"Id": "number", "Name": "text"})
        resolver.get_value({"Id": 5}, "Id")  # Value(NUMBER, 5)
    """

    def _read(self, record: Any, name: str) -> Any:
        if not isinstance(record, Mapping):
            raise LookupError(name)
        return record[name]

    @classmethod
    def infer(
        cls,
        records: Iterable[Mapping[str, Any]],
        *,
        parse_text: bool = False,
    ) -> DictResolver:
        """
        Build a resolver from sample records.

        Each key's kind is the kind shared by all of its non-null values;
        keys with mixed or unsupported values are declared as text. With
        parse_text=True, text columns whose values all parse as numbers (or
        timestamps) are declared as such, which suits CSV input.
        """
        samples: dict[str, list[Any]] = {}
        for record in records:
            if not isinstance(record, Mapping):
                continue
            for key, value in record.items():
                bucket = samples.setdefault(str(key), [])
                if value is not None and not (parse_text and value == ""):
                    bucket.append(value)

        schema = {
            name: _infer_kind(values, parse_text=parse_text) for name, values in samples.items()
        }
        logger.debug(f"Inferred schema for {len(schema)} fields: {schema}")
        return cls(schema)


def _all_parse(values: list[Any], parse: Callable[[Any], Any]) -> bool:
    try:
        for value in values:
            parse(value)
    except CoercionError:
        return False
    return True


def _infer_kind(values: list[Any], *, parse_text: bool) -> ValueKind:
    kinds = {kind_of(v) for v in values}
    if len(kinds) != 1:
        return ValueKind.TEXT
    (kind,) = kinds
    if kind is None:
        return ValueKind.TEXT
    if kind is ValueKind.TEXT and parse_text:
        if _all_parse(values, to_number):
            return ValueKind.NUMBER
        if _all_parse(values, parse_timestamp):
            return ValueKind.TIMESTAMP
    return kind


class AttributeResolver(SchemaResolver):
    """Resolver for plain objects, dataclasses and pydantic models."""

    def _read(self, record: Any, name: str) -> Any:
        try:
            return getattr(record, name)
        except AttributeError:
            raise LookupError(name) from None

    @classmethod
    def from_type(cls, record_type: type) -> AttributeResolver:
        """
        Build a resolver from a class's type annotations.

        Optional[X] maps to the kind of X; fields whose annotation has no
        matching kind (nested models, dicts, ...) are left out. Pydantic
        models are read from their declared model_fields.
        """
        model_fields = getattr(record_type, "model_fields", None)
        if isinstance(model_fields, Mapping):
            hints = {name: info.annotation for name, info in model_fields.items()}
        else:
            hints = typing.get_type_hints(record_type)
        schema: dict[str, ValueKind] = {}
        for name, annotation in hints.items():
            if name.startswith("_"):
                continue
            kind = kind_for_annotation(annotation)
            if kind is not None:
                schema[name] = kind
        return cls(schema)


_SCALAR_KINDS: tuple[tuple[type, ValueKind], ...] = (
    (bool, ValueKind.BOOLEAN),
    (int, ValueKind.NUMBER),
    (float, ValueKind.NUMBER),
    (Decimal, ValueKind.NUMBER),
    (str, ValueKind.TEXT),
    (datetime, ValueKind.TIMESTAMP),
    (date, ValueKind.TIMESTAMP),
)

_COLLECTION_ORIGINS = (list, tuple, set, frozenset)


def kind_for_annotation(annotation: Any) -> ValueKind | None:
    """Map a type annotation to a ValueKind (None if there is no mapping)."""
    origin = typing.get_origin(annotation)

    if origin is typing.Annotated:
        return kind_for_annotation(typing.get_args(annotation)[0])
    if origin is typing.ClassVar:
        return None
    if origin is Union or origin is types.UnionType:
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) != 1:
            return None
        return kind_for_annotation(members[0])

    target = origin if origin is not None else annotation
    if not isinstance(target, type):
        return None
    if issubclass(target, _COLLECTION_ORIGINS) and not issubclass(target, str):
        return ValueKind.COLLECTION
    for python_type, kind in _SCALAR_KINDS:
        if issubclass(target, python_type):
            return kind
    return None
