from __future__ import annotations

import click
import rich_click

from ...api import check
from ...builder import render
from ..context import CLIContext
from ..errors import CLIError
from ..options import output_options, schema_option
from ..records import load_schema
from ..runner import CommandOutput, run_command


@click.command(name="check", cls=rich_click.RichCommand)
@click.argument("expression")
@schema_option
@output_options
@click.pass_obj
def check_cmd(ctx: CLIContext, expression: str, schema_file: str | None) -> None:
    """
    Validate a filter expression.

    The expression is always parsed; with a schema (from --schema or the
    active profile) it is also compiled, which catches unknown fields and
    type mismatches.
    """

    def fn(_: CLIContext, _warnings: list[str]) -> CommandOutput:
        schema_path = ctx.resolve_schema_path(schema_file)
        resolver = load_schema(schema_path) if schema_path is not None else None
        result = check(expression, resolver)
        if result.error is not None:
            raise result.error
        if result.expr is None:
            raise CLIError(f"Could not check expression {expression!r}.")
        data = {
            "expression": expression,
            "normalized": render(result.expr),
            "fields": result.fields,
            "compiled": resolver is not None,
        }
        return CommandOutput(data=data)

    run_command(ctx, command="check", fn=fn)
