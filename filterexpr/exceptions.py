"""
Exception hierarchy for filter expressions.

Every failure is detected before a predicate is returned: tokenizing and
parsing raise ParseError (LexError for unterminated literals), the compile
step raises CompileError. A compiled predicate never raises.
"""

from __future__ import annotations


class FilterError(Exception):
    """Base class for all filter expression errors."""

    def __init__(self, message: str, *, expression: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.expression = expression

    def __str__(self) -> str:
        if self.expression is None:
            return self.message
        return f"{self.message} (in filter {self.expression!r})"


class ParseError(FilterError):
    """Structural grammar violation."""

    def __init__(
        self,
        message: str,
        *,
        position: int,
        expression: str | None = None,
    ) -> None:
        super().__init__(message, expression=expression)
        self.position = position


class LexError(ParseError):
    """Unterminated string literal or field reference."""


class CompileError(FilterError):
    """Unknown field, kind mismatch or unsupported operator/kind pairing."""


class CoercionError(ValueError):
    """A value cannot be converted to the requested kind."""
