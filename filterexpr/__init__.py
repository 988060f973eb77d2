"""
filterexpr: compile SQL-like filter strings into fast record predicates.

Example:
    from filterexpr import DictResolver, compile

    resolver = DictResolver({"Id": "number", "Name": "text", "Tags": "collection"})
    predicate = compile("[Id] >= 100 && [Name] like '%hello%'", resolver)
    matches = predicate.filter(records)
"""

from __future__ import annotations

from .api import CheckResult, PredicateCache, check, compile, evaluate, filter_records
from .ast import Between, Binary, BinaryOp, Const, Expr, FieldRef, In, Unary, UnaryOp
from .builder import BuilderOptions, Condition, F, FieldBuilder, Filter, render
from .compiler import Predicate, compile_expr
from .exceptions import CoercionError, CompileError, FilterError, LexError, ParseError
from .parser import parse, parse_expression
from .resolvers import AttributeResolver, DictResolver, FieldResolver, SchemaResolver
from .text_search import filter_by_text
from .tokens import Token, TokenType, tokenize
from .values import Value, ValueKind, coerce, literal_value

__version__ = "0.3.0"

__all__ = [
    "AttributeResolver",
    "Between",
    "Binary",
    "BinaryOp",
    "BuilderOptions",
    "CheckResult",
    "CoercionError",
    "CompileError",
    "Condition",
    "Const",
    "DictResolver",
    "Expr",
    "F",
    "FieldBuilder",
    "FieldRef",
    "FieldResolver",
    "Filter",
    "FilterError",
    "In",
    "LexError",
    "ParseError",
    "Predicate",
    "PredicateCache",
    "SchemaResolver",
    "Token",
    "TokenType",
    "Unary",
    "UnaryOp",
    "Value",
    "ValueKind",
    "__version__",
    "check",
    "coerce",
    "compile",
    "compile_expr",
    "evaluate",
    "filter_by_text",
    "filter_records",
    "literal_value",
    "parse",
    "parse_expression",
    "render",
    "tokenize",
]
