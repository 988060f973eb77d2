from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import click
from rich.console import Console

from .context import (
    CLIContext,
    build_result,
    error_info_for_exception,
    exit_code_for_exception,
    normalize_exception,
)
from .errors import CLIError
from .render import RenderSettings, render_result
from .results import Artifact, CommandResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandOutput:
    data: Any | None = None
    artifacts: list[Artifact] | None = None
    warnings: list[str] | None = None
    columns: list[str] | None = None
    total: int | None = None
    exit_code: int = 0


def _emit_json(result: CommandResult) -> None:
    payload = result.model_dump(by_alias=True, mode="json")
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")


def _emit_warnings(*, ctx: CLIContext, warnings: list[str]) -> None:
    if ctx.quiet:
        return
    if not warnings:
        return
    stderr = Console(file=sys.stderr, force_terminal=False)
    for w in warnings:
        stderr.print(f"Warning: {w}", markup=False)


def emit_result(ctx: CLIContext, result: CommandResult) -> None:
    output = ctx.resolved_output()
    if output == "json":
        _emit_json(result)
        return

    render_result(
        result,
        settings=RenderSettings(output="table", quiet=ctx.quiet, verbosity=ctx.verbosity),
    )
    _emit_warnings(ctx=ctx, warnings=result.warnings)


CommandFn = Callable[[CLIContext, list[str]], CommandOutput]


def run_command(
    ctx: CLIContext, *, command: str, fn: CommandFn, load_config: bool = True
) -> None:
    started = time.time()
    warnings: list[str] = []
    try:
        if load_config:
            ctx.load_config()
        out = fn(ctx, warnings)
        result = build_result(
            ok=True,
            command=command,
            started_at=started,
            data=out.data,
            artifacts=out.artifacts,
            warnings=(out.warnings or warnings),
            profile=ctx.profile,
            columns=out.columns,
            total=out.total,
        )
        emit_result(ctx, result)
        raise click.exceptions.Exit(out.exit_code)
    except click.exceptions.Exit:
        raise
    except Exception as exc:
        normalized = normalize_exception(exc)
        if not isinstance(normalized, CLIError):
            logger.debug(f"Command {command} failed", exc_info=exc)
        code = exit_code_for_exception(normalized)
        result = build_result(
            ok=False,
            command=command,
            started_at=started,
            data=None,
            artifacts=None,
            warnings=warnings,
            profile=ctx.profile,
            error=error_info_for_exception(normalized, verbosity=ctx.verbosity),
        )
        emit_result(ctx, result)
        raise click.exceptions.Exit(code) from exc
