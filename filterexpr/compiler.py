"""
Lowering of Expr trees into predicates.

compile_expr() walks the tree once, bottom-up, and builds a closure per node.
Field lookups are bound once per field reference, constants are folded,
LIKE patterns and IN sets are built at compile time. Every type problem is
reported as a CompileError before a Predicate is returned; the predicate
itself never raises.
"""

from __future__ import annotations

import logging
import operator
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any

from .ast import (
    ARITHMETIC_OPS,
    COMPARISON_OPS,
    Between,
    Binary,
    BinaryOp,
    Const,
    Expr,
    FieldRef,
    In,
    Unary,
    UnaryOp,
)
from .exceptions import CoercionError, CompileError
from .resolvers import FieldResolver
from .values import (
    ORDERED_KINDS,
    Value,
    ValueKind,
    coerce,
    format_value_text,
    kind_of,
    normalize,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

Fn = Callable[[Any], Any]

_COMPARATORS: dict[BinaryOp, Callable[[Any, Any], bool]] = {
    BinaryOp.EQ: operator.eq,
    BinaryOp.NE: operator.ne,
    BinaryOp.LT: operator.lt,
    BinaryOp.GT: operator.gt,
    BinaryOp.LE: operator.le,
    BinaryOp.GE: operator.ge,
}

_BETWEEN_KINDS = frozenset([ValueKind.NUMBER, ValueKind.TIMESTAMP])
_EMPTY_KINDS = frozenset([ValueKind.TEXT, ValueKind.COLLECTION])


@dataclass(frozen=True, slots=True)
class _Node:
    """A compiled sub-expression: its kind and a record -> payload function."""

    kind: ValueKind
    fn: Fn
    const: Value | None = None

    @property
    def is_const(self) -> bool:
        return self.const is not None

    @property
    def is_null_const(self) -> bool:
        return self.const is not None and self.const.is_null


def _constant(value: Value) -> _Node:
    raw = value.raw
    return _Node(value.kind, lambda _record: raw, value)


def _fold(node: _Node, *operands: _Node) -> _Node:
    """Evaluate a node once if all of its operands are constants."""
    if operands and all(o.is_const for o in operands):
        raw = node.fn(None)
        kind = ValueKind.NULL if raw is None and node.kind is not ValueKind.BOOLEAN else node.kind
        return _constant(Value(kind, raw))
    return node


def like_pattern(pattern: str) -> re.Pattern[str]:
    """
    Translate a LIKE pattern into a compiled regex.

    Regex metacharacters are escaped first; then '%' matches any run of
    characters and '_' any single character. Matching is case-insensitive and
    anchored at both ends (use fullmatch).
    """
    escaped = re.escape(pattern)
    translated = escaped.replace("%", ".*").replace("_", ".")
    return re.compile(translated, re.IGNORECASE | re.DOTALL)


def _label(expr: Expr) -> str:
    if isinstance(expr, FieldRef):
        return f"[{expr.name}]"
    if isinstance(expr, Const):
        return "NULL" if expr.value.is_null else repr(format_value_text(expr.value.raw))
    return "expression"


def _right(expr: Binary) -> Expr:
    if expr.right is None:
        raise CompileError(f"Operator '{expr.op.value}' requires a right operand")
    return expr.right


def _normalize_element(item: Any) -> Any:
    """Normalize a collection element by its own kind, the way field payloads are."""
    kind = kind_of(item)
    if kind is None or kind in (ValueKind.NULL, ValueKind.COLLECTION):
        return item
    return normalize(item, kind)


def _element_constants(value: Value) -> list[Any]:
    """Payloads a constant matches inside a collection; dated text also matches timestamps."""
    if value.kind is not ValueKind.TEXT:
        return [value.raw]
    try:
        return [value.raw, parse_timestamp(value.raw)]
    except CoercionError:
        return [value.raw]


def _contains(members: frozenset[Any], item: Any) -> bool:
    try:
        return item in members
    except TypeError:  # unhashable element
        return False


class _Compiler:
    """Single-use compiler bound to one resolver."""

    def __init__(self, resolver: FieldResolver):
        self.resolver = resolver
        self.node_count = 0

    def compile(self, expr: Expr) -> _Node:
        self.node_count += 1
        if isinstance(expr, Const):
            return _constant(expr.value)
        if isinstance(expr, FieldRef):
            return self._compile_field(expr)
        if isinstance(expr, Unary):
            return self._compile_unary(expr)
        if isinstance(expr, Binary):
            return self._compile_binary(expr)
        if isinstance(expr, In):
            return self._compile_in(expr)
        if isinstance(expr, Between):
            return self._compile_between(expr)
        raise CompileError(f"Unsupported expression node: {type(expr).__name__}")

    # -------------------------------------------------------------------------
    # Leaves and unary operators
    # -------------------------------------------------------------------------

    def _compile_field(self, expr: FieldRef) -> _Node:
        canonical = self.resolver.canonical_name(expr.name)
        if canonical is None:
            raise CompileError(f"Unknown field '{expr.name}'")
        kind = self.resolver.field_kind(canonical)
        if kind is None or kind is ValueKind.NULL:
            raise CompileError(f"Field '{expr.name}' has no usable kind")
        return _Node(kind, self.resolver.getter(canonical))

    def _compile_unary(self, expr: Unary) -> _Node:
        operand = self.compile(expr.operand)
        inner = operand.fn

        if expr.op is UnaryOp.NOT:
            if operand.kind is not ValueKind.BOOLEAN:
                raise CompileError(
                    f"Operator '!' requires a boolean operand, got {operand.kind.value} "
                    f"({_label(expr.operand)})"
                )
            return _fold(_Node(ValueKind.BOOLEAN, lambda r: inner(r) is not True), operand)

        if operand.kind is not ValueKind.NUMBER:
            raise CompileError(
                f"Operator '{expr.op.value}' requires a number operand, got {operand.kind.value} "
                f"({_label(expr.operand)})"
            )
        if expr.op is UnaryOp.PLUS:
            return operand

        def negate(record: Any) -> Any:
            value = inner(record)
            if value is None:
                return None
            try:
                return -value
            except DecimalException:
                return None

        return _fold(_Node(ValueKind.NUMBER, negate), operand)

    # -------------------------------------------------------------------------
    # Binary operators
    # -------------------------------------------------------------------------

    def _compile_binary(self, expr: Binary) -> _Node:
        op = expr.op
        left = self.compile(expr.left)

        if op.is_postfix:
            return self._compile_is(op, left, expr.left)

        right = self.compile(_right(expr))

        if op in (BinaryOp.AND, BinaryOp.OR):
            return self._compile_logical(op, left, right)
        if op is BinaryOp.LIKE:
            return self._compile_like(left, right, expr)
        if op in COMPARISON_OPS:
            return self._compile_comparison(op, left, right, expr)
        if op in ARITHMETIC_OPS:
            return self._compile_arithmetic(op, left, right, expr)
        raise CompileError(f"Unsupported operator '{op.value}'")

    def _compile_logical(self, op: BinaryOp, left: _Node, right: _Node) -> _Node:
        if left.kind is not ValueKind.BOOLEAN or right.kind is not ValueKind.BOOLEAN:
            raise CompileError(
                f"Operator '{op.value}' requires boolean operands, "
                f"got {left.kind.value} and {right.kind.value}"
            )
        lf, rf = left.fn, right.fn
        if op is BinaryOp.AND:
            node = _Node(ValueKind.BOOLEAN, lambda r: lf(r) is True and rf(r) is True)
        else:
            node = _Node(ValueKind.BOOLEAN, lambda r: lf(r) is True or rf(r) is True)
        return _fold(node, left, right)

    def _compile_is(self, op: BinaryOp, left: _Node, left_expr: Expr) -> _Node:
        lf = left.fn
        if op is BinaryOp.IS_NULL:
            node = _Node(ValueKind.BOOLEAN, lambda r: lf(r) is None)
        elif op is BinaryOp.IS_NOT_NULL:
            node = _Node(ValueKind.BOOLEAN, lambda r: lf(r) is not None)
        else:
            if left.kind not in _EMPTY_KINDS and not left.is_null_const:
                raise CompileError(
                    f"Operator '{op.value}' applies only to text or collection values, "
                    f"got {left.kind.value} ({_label(left_expr)})"
                )

            def is_empty(record: Any) -> bool:
                value = lf(record)
                return value is not None and len(value) == 0

            if op is BinaryOp.IS_EMPTY:
                node = _Node(ValueKind.BOOLEAN, is_empty)
            else:
                node = _Node(ValueKind.BOOLEAN, lambda r: not is_empty(r))
        return _fold(node, left)

    def _compile_like(self, left: _Node, right: _Node, expr: Binary) -> _Node:
        if right.const is None or right.const.kind is not ValueKind.TEXT:
            raise CompileError(
                f"Operator 'like' requires a text constant pattern, got {_label(_right(expr))}"
            )
        regex = like_pattern(right.const.raw)
        lf = left.fn
        match = regex.fullmatch

        if left.kind is ValueKind.TEXT:

            def like(record: Any) -> bool:
                value = lf(record)
                return value is not None and match(value) is not None

        else:

            def like(record: Any) -> bool:
                value = lf(record)
                return value is not None and match(format_value_text(value)) is not None

        return _fold(_Node(ValueKind.BOOLEAN, like), left)

    def _align(self, op_name: str, target: _Node, other: _Node, other_expr: Expr) -> _Node:
        """Coerce a constant operand to the kind of the other operand."""
        if other.kind is target.kind:
            return other
        if other.const is not None:
            if other.const.kind is ValueKind.BOOLEAN:
                raise CompileError(
                    f"Cannot use a boolean constant with '{op_name}' "
                    f"against a {target.kind.value} value"
                )
            try:
                return _constant(coerce(other.const, target.kind))
            except CoercionError as exc:
                raise CompileError(
                    f"Cannot use {_label(other_expr)} with '{op_name}' "
                    f"against a {target.kind.value} value: {exc}"
                ) from exc
        raise CompileError(
            f"Operator '{op_name}' cannot combine {target.kind.value} and {other.kind.value}"
        )

    def _compile_comparison(self, op: BinaryOp, left: _Node, right: _Node, expr: Binary) -> _Node:
        right_expr = _right(expr)
        if left.is_null_const or right.is_null_const:
            raise CompileError(
                f"Cannot compare with NULL using '{op.value}'; use IS NULL or IS NOT NULL"
            )
        if right.is_const or not left.is_const:
            right = self._align(op.value, left, right, right_expr)
        else:
            left = self._align(op.value, right, left, expr.left)

        kind = left.kind
        if kind is ValueKind.COLLECTION:
            raise CompileError(f"Operator '{op.value}' is not supported for collection values")
        if kind not in ORDERED_KINDS and op not in (BinaryOp.EQ, BinaryOp.NE):
            raise CompileError(f"Operator '{op.value}' is not supported for {kind.value} values")

        lf = left.fn
        compare = _COMPARATORS[op]

        if op is BinaryOp.NE:
            # Null never equals a non-null value, so != is the negation of ==
            eq = self._comparison_fn(operator.eq, lf, right)
            node = _Node(ValueKind.BOOLEAN, lambda r: not eq(r))
        else:
            node = _Node(ValueKind.BOOLEAN, self._comparison_fn(compare, lf, right))
        return _fold(node, left, right)

    @staticmethod
    def _comparison_fn(compare: Callable[[Any, Any], bool], lf: Fn, right: _Node) -> Fn:
        if right.const is not None:
            constant = right.const.raw

            def compare_const(record: Any) -> bool:
                value = lf(record)
                return value is not None and compare(value, constant)

            return compare_const

        rf = right.fn

        def compare_values(record: Any) -> bool:
            a = lf(record)
            if a is None:
                return False
            b = rf(record)
            return b is not None and compare(a, b)

        return compare_values

    def _compile_arithmetic(self, op: BinaryOp, left: _Node, right: _Node, expr: Binary) -> _Node:
        right_expr = _right(expr)
        if left.is_null_const or right.is_null_const:
            raise CompileError(f"Operator '{op.value}' cannot be applied to NULL")
        if left.kind is not ValueKind.NUMBER and right.kind is not ValueKind.NUMBER:
            raise CompileError(
                f"Operator '{op.value}' is not supported for "
                f"{left.kind.value} and {right.kind.value} values"
            )
        if left.kind is ValueKind.NUMBER:
            right = self._align(op.value, left, right, right_expr)
        else:
            left = self._align(op.value, right, left, expr.left)

        if op is BinaryOp.DIV and right.const is not None and right.const.raw == 0:
            raise CompileError("Division by zero")

        lf, rf = left.fn, right.fn

        if op is BinaryOp.DIV:

            def calculate(record: Any) -> Any:
                a = lf(record)
                b = rf(record)
                if a is None or b is None or b == 0:
                    return None
                try:
                    return Decimal(a) / b
                except DecimalException:
                    return None

        else:
            apply = {
                BinaryOp.ADD: operator.add,
                BinaryOp.SUB: operator.sub,
                BinaryOp.MUL: operator.mul,
            }[op]

            def calculate(record: Any) -> Any:
                a = lf(record)
                b = rf(record)
                if a is None or b is None:
                    return None
                try:
                    return apply(a, b)
                except DecimalException:
                    return None

        return _fold(_Node(ValueKind.NUMBER, calculate), left, right)

    # -------------------------------------------------------------------------
    # Membership and ranges
    # -------------------------------------------------------------------------

    def _compile_in(self, expr: In) -> _Node:
        name = "not in" if expr.negate else "in"
        left = self.compile(expr.left)
        if left.is_null_const:
            raise CompileError(f"Cannot test NULL with '{name}'; use IS NULL or IS NOT NULL")

        members: set[Any] = set()
        for value_expr in expr.values:
            node = self.compile(value_expr)
            if node.const is None:
                raise CompileError(
                    f"Values of '{name}' must be constants, got {_label(value_expr)}"
                )
            if node.const.is_null:
                raise CompileError(f"NULL is not allowed in '{name}'; use IS NULL or IS NOT NULL")
            if left.kind is ValueKind.COLLECTION:
                members.update(_element_constants(node.const))
            else:
                members.add(self._align(name, left, node, value_expr).fn(None))
        frozen = frozenset(members)
        lf = left.fn

        if left.kind is ValueKind.COLLECTION:

            def member(record: Any) -> bool:
                items = lf(record)
                return items is not None and any(
                    _contains(frozen, _normalize_element(item)) for item in items
                )

        else:

            def member(record: Any) -> bool:
                value = lf(record)
                return value is not None and _contains(frozen, value)

        if expr.negate:
            return _fold(_Node(ValueKind.BOOLEAN, lambda r: not member(r)), left)
        return _fold(_Node(ValueKind.BOOLEAN, member), left)

    def _compile_between(self, expr: Between) -> _Node:
        name = "not between" if expr.negate else "between"
        left = self.compile(expr.left)
        if left.kind is ValueKind.TEXT:
            raise CompileError(
                f"Operator '{name}' is not supported for text operand {_label(expr.left)}"
            )
        if left.kind not in _BETWEEN_KINDS:
            raise CompileError(
                f"Operator '{name}' requires a number or timestamp operand, got {left.kind.value}"
            )

        bounds = []
        for bound_expr in (expr.lower, expr.upper):
            bound = self.compile(bound_expr)
            if bound.is_null_const:
                raise CompileError(f"Bounds of '{name}' cannot be NULL")
            bounds.append(self._align(name, left, bound, bound_expr))
        lower, upper = bounds
        lf, lof, upf = left.fn, lower.fn, upper.fn

        def between(record: Any) -> bool:
            value = lf(record)
            if value is None:
                return False
            lo = lof(record)
            hi = upf(record)
            return lo is not None and hi is not None and lo <= value <= hi

        if expr.negate:
            node = _Node(ValueKind.BOOLEAN, lambda r: not between(r))
        else:
            node = _Node(ValueKind.BOOLEAN, between)
        return _fold(node, left, lower, upper)


class Predicate:
    """
    A compiled filter: call it with a record to get a bool.

    Predicates are immutable and hold no per-call state, so one instance can
    be shared between threads and reused indefinitely.
    """

    __slots__ = ("_fn", "expr", "expression", "resolver")

    _fn: Fn
    expr: Expr
    expression: str | None
    resolver: FieldResolver

    def __init__(
        self, fn: Fn, *, expr: Expr, expression: str | None, resolver: FieldResolver
    ) -> None:
        object.__setattr__(self, "_fn", fn)
        object.__setattr__(self, "expr", expr)
        object.__setattr__(self, "expression", expression)
        object.__setattr__(self, "resolver", resolver)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Predicate is immutable")

    def __call__(self, record: Any) -> bool:
        return self._fn(record) is True

    def filter(self, records: Iterable[Any]) -> list[Any]:
        """Return the records that match, preserving order."""
        fn = self._fn
        return [record for record in records if fn(record) is True]

    def __repr__(self) -> str:
        return f"Predicate({self.expression!r})"


def compile_expr(
    expr: Expr, resolver: FieldResolver, *, expression: str | None = None
) -> Predicate:
    """
    Lower an Expr tree into a Predicate.

    Args:
        expr: Parsed expression tree
        resolver: Describes the fields of the records to be tested
        expression: Original filter text, kept for diagnostics

    Raises:
        CompileError: Unknown field, kind mismatch or unsupported operator
    """
    compiler = _Compiler(resolver)
    root = compiler.compile(expr)
    if root.kind is not ValueKind.BOOLEAN:
        raise CompileError(f"Filter must evaluate to a boolean, got {root.kind.value}")

    fn = root.fn
    if root.const is not None:
        result = root.const.raw is True
        fn = lambda _record: result  # noqa: E731

    logger.debug(f"Compiled filter {expression!r} ({compiler.node_count} nodes)")
    return Predicate(fn, expr=expr, expression=expression, resolver=resolver)
