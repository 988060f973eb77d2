from __future__ import annotations

from typing import Any

from ..exceptions import FilterError, ParseError


class CLIError(Exception):
    def __init__(
        self,
        message: str,
        *,
        exit_code: int = 1,
        error_type: str = "error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.error_type = error_type
        self.details = details

    def __str__(self) -> str:  # pragma: no cover
        return self.message


def cli_error_for_filter_error(exc: FilterError) -> CLIError:
    """Translate a library filter error into a usage-level CLI error."""
    details: dict[str, Any] = {}
    if exc.expression is not None:
        details["expression"] = exc.expression
    if isinstance(exc, ParseError):
        details["position"] = exc.position
        error_type = "parse_error"
    else:
        error_type = "compile_error"
    return CLIError(exc.message, exit_code=2, error_type=error_type, details=details or None)
