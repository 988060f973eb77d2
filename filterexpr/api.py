"""
Public entry points.

Example:
    from filterexpr import DictResolver, compile

    resolver = DictResolver({"Id": "number", "Name": "text"})
    predicate = compile("[Id] >= 100 && [Name] like '%hello%'", resolver)
    predicate({"Id": 150, "Name": "say hello"})  # True
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .ast import Expr, field_names
from .compiler import Predicate, compile_expr
from .exceptions import FilterError
from .parser import parse_expression
from .resolvers import FieldResolver


def compile(expression: str | Expr, resolver: FieldResolver) -> Predicate:  # noqa: A001
    """
    Parse and compile a filter into a reusable predicate.

    Args:
        expression: Filter text, or an already built Expr tree
        resolver: Describes the fields of the records to be tested

    Raises:
        ParseError: If the filter text is malformed
        CompileError: If the filter does not type-check against the resolver
    """
    text = expression if isinstance(expression, str) else None
    try:
        expr = parse_expression(expression) if isinstance(expression, str) else expression
        return compile_expr(expr, resolver, expression=text)
    except FilterError as exc:
        if exc.expression is None:
            exc.expression = text
        raise


def evaluate(expression: str | Expr, resolver: FieldResolver, record: Any) -> bool:
    """Compile a filter and test a single record (for one-off use)."""
    return compile(expression, resolver)(record)


def filter_records(
    records: Iterable[Any], expression: str | None, resolver: FieldResolver
) -> list[Any]:
    """Return the records matching `expression`; a blank expression matches all."""
    if expression is None or not expression.strip():
        return list(records)
    return compile(expression, resolver).filter(records)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of check(): failures are reported as values, not raised."""

    expression: str
    expr: Expr | None = None
    error: FilterError | None = None
    fields: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def check(expression: str, resolver: FieldResolver | None = None) -> CheckResult:
    """
    Validate a filter without raising.

    The expression is always parsed; it is also compiled when a resolver is
    given.
    """
    try:
        expr = parse_expression(expression)
        if resolver is not None:
            compile_expr(expr, resolver, expression=expression)
    except FilterError as exc:
        if exc.expression is None:
            exc.expression = expression
        return CheckResult(expression=expression, error=exc)
    return CheckResult(expression=expression, expr=expr, fields=field_names(expr))


class PredicateCache:
    """
    Thread-safe LRU cache of compiled predicates.

    Keys are (expression, resolver) pairs; the resolver is compared by
    identity unless it defines its own equality.
    """

    def __init__(self, max_size: int = 256):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._entries: OrderedDict[tuple[str, FieldResolver], Predicate] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, expression: str, resolver: FieldResolver) -> Predicate:
        """Return the cached predicate, compiling it on a miss."""
        key = (expression, resolver)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                return cached

        predicate = compile(expression, resolver)

        with self._lock:
            self._entries[key] = predicate
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
        return predicate

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
