from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import click

from .context import CLIContext

F = TypeVar("F", bound=Callable[..., object])


def _override_output(ctx: click.Context, param: click.Parameter, value: object) -> object:
    """Per-command --output/--json take precedence over the group-level choice."""
    if value is None or value is False:
        return value
    obj = ctx.obj
    if isinstance(obj, CLIContext):
        obj.output = "json" if param.name == "json_flag" else value  # type: ignore[assignment]
    return value


def output_options(fn: F) -> F:
    fn = click.option(
        "--output",
        type=click.Choice(["table", "json"]),
        default=None,
        help="Override output format for this command.",
        callback=_override_output,
        expose_value=False,
    )(fn)
    fn = click.option(
        "--json",
        "json_flag",
        is_flag=True,
        help="Alias for --output json.",
        callback=_override_output,
        expose_value=False,
    )(fn)
    return fn


def schema_option(fn: F) -> F:
    return click.option(
        "--schema",
        "schema_file",
        type=click.Path(dir_okay=False),
        default=None,
        help="JSON file mapping field names to kinds (overrides the profile's schema).",
    )(fn)


def input_options(fn: F) -> F:
    """Attach the INPUT argument and --format option shared by record-reading commands."""
    fn = click.option(
        "--format",
        "input_format",
        type=click.Choice(["auto", "json", "jsonl", "csv"]),
        default="auto",
        show_default=True,
        help="Input format; auto picks by file extension (stdin defaults to JSON).",
    )(fn)
    fn = click.argument(
        "input_file",
        metavar="[INPUT]",
        required=False,
        type=click.Path(dir_okay=False, allow_dash=True),
    )(fn)
    return fn
