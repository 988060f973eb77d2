from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .results import CommandResult


@dataclass(frozen=True, slots=True)
class RenderSettings:
    output: str  # "table" | "json"
    quiet: bool
    verbosity: int


def _error_title(error_type: str) -> str:
    normalized = (error_type or "").strip()
    mapping = {
        "usage_error": "Usage error",
        "parse_error": "Parse error",
        "compile_error": "Compile error",
        "not_found": "Not found",
        "validation_error": "Validation error",
        "permission_denied": "Permission denied",
        "io_error": "I/O error",
        "config_error": "Configuration error",
        "file_exists": "File exists",
        "internal_error": "Internal error",
    }
    return mapping.get(normalized, "Error")


def _caret_line(expression: str, position: int) -> Text:
    text = Text()
    text.append("  " + expression + "\n")
    text.append("  " + " " * max(0, min(position, len(expression))) + "^", style="bold red")
    return text


def _render_error_details(
    *,
    stderr: Console,
    command: str,
    error_type: str,
    hint: str | None,
    details: dict[str, Any] | None,
    settings: RenderSettings,
) -> None:
    if settings.quiet:
        return

    if hint:
        stderr.print(f"Hint: {hint}")

    if error_type == "parse_error" and details:
        expression = details.get("expression")
        position = details.get("position")
        if isinstance(expression, str) and isinstance(position, int):
            stderr.print(_caret_line(expression, position))
        return

    if error_type == "compile_error":
        return

    if error_type == "usage_error":
        if not hint:
            stderr.print(f"Hint: run `filterexpr {command} --help`")
        if details and settings.verbosity >= 1:
            stderr.print(Panel.fit(Text(json.dumps(details, ensure_ascii=False, indent=2))))
        return

    if details and settings.verbosity >= 2:
        stderr.print(Panel.fit(Text(json.dumps(details, ensure_ascii=False, indent=2))))


def _format_scalar_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        if all(isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value):
            return ", ".join(str(v) for v in value)
        return f"list ({len(value):,} items)"
    if isinstance(value, dict):
        return f"object ({len(value):,} keys)"
    return str(value)


def _table_from_rows(rows: list[Any], *, columns: list[str] | None = None) -> Table:
    table = Table(show_header=True, header_style="bold")
    if not rows:
        table.add_column("result")
        table.add_row("No results")
        return table

    if not all(isinstance(row, dict) for row in rows):
        table.add_column("value")
        for row in rows:
            table.add_row(Text(_format_scalar_value(row)))
        return table

    if not columns:
        columns = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
    for col in columns:
        table.add_column(Text(str(col)))
    for row in rows:
        table.add_row(*[Text(_format_scalar_value(row.get(col))) for col in columns])
    return table


def _kv_table(obj: dict[str, Any]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("field")
    table.add_column("value")
    for k, v in obj.items():
        table.add_row(Text(str(k)), Text(_format_scalar_value(v)))
    return table


def _render_check(data: dict[str, Any]) -> Any:
    body = Text()
    body.append(str(data.get("normalized", "")), style="bold")
    fields = data.get("fields") or []
    if fields:
        body.append("\nFields: " + ", ".join(str(f) for f in fields))
    title = "Compiled" if data.get("compiled") else "Parsed"
    return Panel.fit(body, title=title)


def render_result(result: CommandResult, *, settings: RenderSettings) -> int:
    stdout = Console(file=sys.stdout, force_terminal=False)
    stderr = Console(file=sys.stderr, force_terminal=False)

    if settings.output == "json":
        payload = result.model_dump(by_alias=True, mode="json")
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
        return 0

    if not result.ok:
        if result.error is not None:
            title = _error_title(result.error.type)
            stderr.print(f"{title}: {result.error.message}", markup=False)
            _render_error_details(
                stderr=stderr,
                command=result.command,
                error_type=result.error.type,
                hint=result.error.hint,
                details=result.error.details,
                settings=settings,
            )
        else:
            stderr.print("Error")
        return 0

    renderable: Any
    data = result.data
    if result.command == "version" and isinstance(data, dict):
        renderable = Text(str(data.get("version", "")), style="bold")
    elif result.command == "config path" and isinstance(data, dict):
        renderable = Text(str(data.get("path", "")))
    elif result.command == "config init" and isinstance(data, dict):
        renderable = Panel.fit(Text(f"Initialized config at {data.get('path', '')}"))
    elif result.command == "check" and isinstance(data, dict):
        renderable = _render_check(data)
    elif isinstance(data, list):
        table = _table_from_rows(data, columns=result.meta.columns)
        if result.meta.total is not None and result.meta.total > len(data):
            footer = Text(f"Showing {len(data):,} of {result.meta.total:,} matches", style="dim")
            renderable = Group(table, footer)
        else:
            renderable = table
    elif isinstance(data, dict):
        renderable = _kv_table(data)
    else:
        renderable = Panel.fit(Text(str(data) if data is not None else "OK"))

    stdout.print(renderable)
    return 0
