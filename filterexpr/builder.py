"""
Filter builder.

Provides a Pythonic way to build filter expressions instead of writing the
text by hand, and render() to turn any expression tree back into filter text.

Example:
    from filterexpr import F

    condition = (
        F.field("Age").between(18, 30) &
        F.field("Name").contains("hello")
    )
    str(condition)  # "[Age] between 18 and 30 && [Name] like '%hello%'"
    predicate = condition.compile(resolver)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .ast import Between, Binary, BinaryOp, Const, Expr, FieldRef, In, Unary, UnaryOp
from .parser import parse_expression
from .values import Value, ValueKind

if TYPE_CHECKING:
    from .compiler import Predicate
    from .resolvers import FieldResolver


@dataclass(frozen=True)
class BuilderOptions:
    """How Python values are written as literals."""

    date_format: str = "%Y-%m-%d %H:%M:%S"
    true_literal: str = "1"
    false_literal: str = "0"


DEFAULT_OPTIONS = BuilderOptions()


def _format_text(text: str) -> str:
    if "'" in text:
        raise ValueError(
            f"Text literals cannot contain a single quote (no escape syntax): {text!r}"
        )
    return f"'{text}'"


def format_literal(value: Value, options: BuilderOptions = DEFAULT_OPTIONS) -> str:
    """Format a constant as filter text."""
    if value.kind is ValueKind.NULL:
        return "NULL"
    if value.kind is ValueKind.BOOLEAN:
        return options.true_literal if value.raw else options.false_literal
    if value.kind is ValueKind.NUMBER:
        return format(value.raw, "f")
    if value.kind is ValueKind.TIMESTAMP:
        return _format_text(value.raw.strftime(options.date_format))
    if value.kind is ValueKind.TEXT:
        return _format_text(value.raw)
    raise ValueError(f"{value.kind.value} values cannot be written as literals")


_OR, _AND, _COMPARISON, _ADDITIVE, _MULTIPLICATIVE, _UNARY, _PRIMARY = range(1, 8)

_BINARY_PRECEDENCE = {
    BinaryOp.OR: _OR,
    BinaryOp.AND: _AND,
    BinaryOp.ADD: _ADDITIVE,
    BinaryOp.SUB: _ADDITIVE,
    BinaryOp.MUL: _MULTIPLICATIVE,
    BinaryOp.DIV: _MULTIPLICATIVE,
}


def _is_not_like(expr: Expr) -> bool:
    return (
        isinstance(expr, Unary)
        and expr.op is UnaryOp.NOT
        and isinstance(expr.operand, Binary)
        and expr.operand.op is BinaryOp.LIKE
    )


def _precedence(expr: Expr) -> int:
    if isinstance(expr, (Const, FieldRef)):
        return _PRIMARY
    if isinstance(expr, Unary):
        return _COMPARISON if _is_not_like(expr) else _UNARY
    if isinstance(expr, Binary):
        return _BINARY_PRECEDENCE.get(expr.op, _COMPARISON)
    return _COMPARISON


def render(expr: Expr, options: BuilderOptions = DEFAULT_OPTIONS) -> str:
    """Render an expression tree as filter text that parses back to an equivalent tree."""

    def operand(node: Expr, minimum: int) -> str:
        text = render(node, options)
        return text if _precedence(node) >= minimum else f"({text})"

    if isinstance(expr, Const):
        return format_literal(expr.value, options)
    if isinstance(expr, FieldRef):
        if "]" in expr.name:
            raise ValueError(f"Field names cannot contain ']': {expr.name!r}")
        return f"[{expr.name}]"
    if isinstance(expr, Unary):
        like = expr.operand
        if _is_not_like(expr) and isinstance(like, Binary) and like.right is not None:
            return f"{operand(like.left, _ADDITIVE)} not like {operand(like.right, _ADDITIVE)}"
        return f"{expr.op.value}{operand(expr.operand, _UNARY)}"
    if isinstance(expr, Binary):
        if expr.right is None:
            return f"{operand(expr.left, _ADDITIVE)} {expr.op.value}"
        level = _BINARY_PRECEDENCE.get(expr.op)
        if level is None:
            left = operand(expr.left, _ADDITIVE)
            right = operand(expr.right, _ADDITIVE)
        else:
            # Left-associative: the right side needs parentheses at equal precedence
            left = operand(expr.left, level)
            right = operand(expr.right, level + 1)
        return f"{left} {expr.op.value} {right}"
    if isinstance(expr, In):
        keyword = "not in" if expr.negate else "in"
        values = ", ".join(operand(v, _ADDITIVE) for v in expr.values)
        return f"{operand(expr.left, _ADDITIVE)} {keyword} {{{values}}}"
    if isinstance(expr, Between):
        keyword = "not between" if expr.negate else "between"
        return (
            f"{operand(expr.left, _ADDITIVE)} {keyword} "
            f"{operand(expr.lower, _ADDITIVE)} and {operand(expr.upper, _ADDITIVE)}"
        )
    raise TypeError(f"Cannot render {type(expr).__name__}")


def _literal(value: Any) -> Const:
    if value is None:
        raise ValueError("None is not a valid filter literal; use is_null()/is_not_null().")
    if isinstance(value, Value):
        return Const(value)
    return Const(Value.of(value))


class Condition:
    """A built filter expression; combine with `&`, `|` and `~`."""

    __slots__ = ("expr",)

    def __init__(self, expr: Expr):
        self.expr = expr

    def __and__(self, other: Condition) -> Condition:
        return Condition(Binary(BinaryOp.AND, self.expr, other.expr))

    def __or__(self, other: Condition) -> Condition:
        return Condition(Binary(BinaryOp.OR, self.expr, other.expr))

    def __invert__(self) -> Condition:
        return Condition(Unary(UnaryOp.NOT, self.expr))

    def to_string(self, options: BuilderOptions = DEFAULT_OPTIONS) -> str:
        return render(self.expr, options)

    def compile(self, resolver: FieldResolver) -> Predicate:
        """Compile the condition against a resolver."""
        from .compiler import compile_expr

        return compile_expr(self.expr, resolver, expression=self.to_string())

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Filter({self.to_string()!r})"


class FieldBuilder:
    """Builder for field-based filter expressions."""

    def __init__(self, field_name: str):
        self._field = FieldRef(field_name)

    def _compare(self, op: BinaryOp, value: Any) -> Condition:
        return Condition(Binary(op, self._field, _literal(value)))

    def equals(self, value: Any) -> Condition:
        """Field equals value."""
        return self._compare(BinaryOp.EQ, value)

    def not_equals(self, value: Any) -> Condition:
        """Field does not equal value."""
        return self._compare(BinaryOp.NE, value)

    def greater_than(self, value: int | float | datetime | date | str) -> Condition:
        return self._compare(BinaryOp.GT, value)

    def greater_than_or_equal(self, value: int | float | datetime | date | str) -> Condition:
        return self._compare(BinaryOp.GE, value)

    def less_than(self, value: int | float | datetime | date | str) -> Condition:
        return self._compare(BinaryOp.LT, value)

    def less_than_or_equal(self, value: int | float | datetime | date | str) -> Condition:
        return self._compare(BinaryOp.LE, value)

    def like(self, pattern: str) -> Condition:
        """Field matches a LIKE pattern ('%' any run, '_' any character)."""
        return self._compare(BinaryOp.LIKE, str(pattern))

    def not_like(self, pattern: str) -> Condition:
        return ~self.like(pattern)

    def contains(self, text: str) -> Condition:
        """Field contains text (case-insensitive)."""
        return self.like(f"%{text}%")

    def starts_with(self, text: str) -> Condition:
        return self.like(f"{text}%")

    def ends_with(self, text: str) -> Condition:
        return self.like(f"%{text}")

    def in_list(self, values: Iterable[Any]) -> Condition:
        """Field value is one of the given values."""
        items = tuple(_literal(v) for v in values)
        if not items:
            raise ValueError("in_list() requires at least one value")
        return Condition(In(self._field, items))

    def not_in_list(self, values: Iterable[Any]) -> Condition:
        items = tuple(_literal(v) for v in values)
        if not items:
            raise ValueError("not_in_list() requires at least one value")
        return Condition(In(self._field, items, negate=True))

    def between(self, low: Any, high: Any) -> Condition:
        """Field lies in [low, high] (inclusive)."""
        return Condition(Between(self._field, _literal(low), _literal(high)))

    def not_between(self, low: Any, high: Any) -> Condition:
        return Condition(Between(self._field, _literal(low), _literal(high), negate=True))

    def is_null(self) -> Condition:
        return Condition(Binary(BinaryOp.IS_NULL, self._field))

    def is_not_null(self) -> Condition:
        return Condition(Binary(BinaryOp.IS_NOT_NULL, self._field))

    def is_empty(self) -> Condition:
        return Condition(Binary(BinaryOp.IS_EMPTY, self._field))

    def is_not_empty(self) -> Condition:
        return Condition(Binary(BinaryOp.IS_NOT_EMPTY, self._field))


class Filter:
    """
    Factory for building filter expressions.

    Example:
        # Simple comparison
        Filter.field("Name").contains("Acme")

        # Complex boolean logic
        (Filter.field("Status").equals("Active") &
         Filter.field("Type").in_list(["customer", "prospect"]))

        # Negation
        ~Filter.field("Archived").equals(True)
    """

    @staticmethod
    def field(name: str) -> FieldBuilder:
        """Start building a filter on a field."""
        return FieldBuilder(name)

    @staticmethod
    def raw(expression: str) -> Condition:
        """Parse filter text into a Condition (raises ParseError if malformed)."""
        return Condition(parse_expression(expression))

    @staticmethod
    def and_(*conditions: Condition) -> Condition:
        """Combine multiple conditions with `&&`."""
        if not conditions:
            raise ValueError("and_() requires at least one condition")
        result = conditions[0]
        for condition in conditions[1:]:
            result = result & condition
        return result

    @staticmethod
    def or_(*conditions: Condition) -> Condition:
        """Combine multiple conditions with `||`."""
        if not conditions:
            raise ValueError("or_() requires at least one condition")
        result = conditions[0]
        for condition in conditions[1:]:
            result = result | condition
        return result


# Shorthand alias for convenience
F = Filter
