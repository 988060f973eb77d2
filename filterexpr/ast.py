"""Abstract syntax tree for filter expressions."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .values import Value


class UnaryOp(Enum):
    NOT = "!"
    NEG = "-"
    PLUS = "+"


class BinaryOp(Enum):
    AND = "&&"
    OR = "||"
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    LIKE = "like"
    IS_NULL = "is null"
    IS_NOT_NULL = "is not null"
    IS_EMPTY = "is empty"
    IS_NOT_EMPTY = "is not empty"

    @property
    def is_postfix(self) -> bool:
        """True for the IS forms, which take no right operand."""
        return self in _POSTFIX_OPS


_POSTFIX_OPS = frozenset(
    [BinaryOp.IS_NULL, BinaryOp.IS_NOT_NULL, BinaryOp.IS_EMPTY, BinaryOp.IS_NOT_EMPTY]
)

COMPARISON_OPS = frozenset(
    [BinaryOp.EQ, BinaryOp.NE, BinaryOp.LT, BinaryOp.GT, BinaryOp.LE, BinaryOp.GE]
)
ARITHMETIC_OPS = frozenset([BinaryOp.ADD, BinaryOp.SUB, BinaryOp.MUL, BinaryOp.DIV])
LOGICAL_OPS = frozenset([BinaryOp.AND, BinaryOp.OR])


class Expr:
    """Base class for expression nodes."""

    __slots__ = ()


@dataclass(frozen=True, slots=True)
class Const(Expr):
    value: Value


@dataclass(frozen=True, slots=True)
class FieldRef(Expr):
    name: str


@dataclass(frozen=True, slots=True)
class Unary(Expr):
    op: UnaryOp
    operand: Expr


@dataclass(frozen=True, slots=True)
class Binary(Expr):
    op: BinaryOp
    left: Expr
    right: Expr | None = None

    def __post_init__(self) -> None:
        if self.op.is_postfix and self.right is not None:
            raise ValueError(f"'{self.op.value}' takes no right operand")
        if not self.op.is_postfix and self.right is None:
            raise ValueError(f"'{self.op.value}' requires a right operand")


@dataclass(frozen=True, slots=True)
class In(Expr):
    left: Expr
    values: tuple[Expr, ...]
    negate: bool = False

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("IN requires at least one value")


@dataclass(frozen=True, slots=True)
class Between(Expr):
    left: Expr
    lower: Expr
    upper: Expr
    negate: bool = False


def children(expr: Expr) -> tuple[Expr, ...]:
    """Direct sub-expressions of a node."""
    if isinstance(expr, Unary):
        return (expr.operand,)
    if isinstance(expr, Binary):
        return (expr.left,) if expr.right is None else (expr.left, expr.right)
    if isinstance(expr, In):
        return (expr.left, *expr.values)
    if isinstance(expr, Between):
        return (expr.left, expr.lower, expr.upper)
    return ()


def walk(expr: Expr) -> Iterator[Expr]:
    """Yield every node, parents before children."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(children(node)))


def field_names(expr: Expr) -> list[str]:
    """Field names referenced by an expression, in order of first use."""
    seen: dict[str, None] = {}
    for node in walk(expr):
        if isinstance(node, FieldRef):
            seen.setdefault(node.name, None)
    return list(seen)
