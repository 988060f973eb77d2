from __future__ import annotations

import click
import rich_click

from ...text_search import filter_by_text
from ..context import CLIContext
from ..options import input_options, output_options, schema_option
from ..records import InputFormat, load_records, resolver_for
from ..runner import CommandOutput, run_command
from .filter_cmd import csv_option, limit_option, matches_output


@click.command(name="search", cls=rich_click.RichCommand)
@click.argument("text")
@input_options
@click.option(
    "--field",
    "fields",
    multiple=True,
    help="Field to search (repeatable). Defaults to the profile's fields, then all fields.",
)
@schema_option
@limit_option
@csv_option
@output_options
@click.pass_obj
def search_cmd(
    ctx: CLIContext,
    text: str,
    input_file: str | None,
    input_format: InputFormat,
    fields: tuple[str, ...],
    schema_file: str | None,
    limit: int | None,
    csv_path: str | None,
) -> None:
    """Print the records of INPUT with a field containing TEXT (case-insensitive)."""

    def fn(_: CLIContext, warnings: list[str]) -> CommandOutput:
        loaded = load_records(input_file, input_format)
        resolver = resolver_for(loaded, ctx.resolve_schema_path(schema_file))
        field_names = ctx.resolve_search_fields(fields)
        if field_names:
            unknown = [name for name in field_names if resolver.canonical_name(name) is None]
            if unknown:
                warnings.append("Unknown search fields ignored: " + ", ".join(unknown))
        matches = filter_by_text(loaded.records, text, resolver, field_names)
        return matches_output(
            matches,
            columns=loaded.columns,
            limit=ctx.resolve_limit(limit),
            csv_path=csv_path,
        )

    run_command(ctx, command="search", fn=fn)
