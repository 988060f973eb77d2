from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click
import rich_click

from ...api import compile
from ..context import CLIContext
from ..options import input_options, output_options, schema_option
from ..records import InputFormat, artifact_path, load_records, resolver_for, write_csv
from ..results import Artifact
from ..runner import CommandOutput, run_command

logger = logging.getLogger(__name__)


def matches_output(
    matches: list[dict[str, Any]],
    *,
    columns: list[str],
    limit: int | None,
    csv_path: str | None,
) -> CommandOutput:
    """Shape matched records as rows, or export them to CSV when requested."""
    total = len(matches)
    shown = matches[:limit] if limit else matches

    if csv_path:
        csv_path_obj = Path(csv_path)
        write_result = write_csv(path=csv_path_obj, rows=shown, fieldnames=columns)
        csv_ref, csv_is_relative = artifact_path(csv_path_obj)
        return CommandOutput(
            data={"csv": csv_ref, "rowsWritten": write_result.rows_written},
            artifacts=[
                Artifact(
                    type="csv",
                    path=csv_ref,
                    path_is_relative=csv_is_relative,
                    rows_written=write_result.rows_written,
                    bytes_written=write_result.bytes_written,
                )
            ],
            total=total,
        )

    return CommandOutput(data=shown, columns=columns, total=total)


def limit_option(fn: Any) -> Any:
    return click.option(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of matches to output (0 for no limit).",
    )(fn)


def csv_option(fn: Any) -> Any:
    return click.option(
        "--csv",
        "csv_path",
        type=click.Path(dir_okay=False),
        default=None,
        help="Write matches to a CSV file instead of printing them.",
    )(fn)


@click.command(name="filter", cls=rich_click.RichCommand)
@click.argument("expression")
@input_options
@schema_option
@limit_option
@csv_option
@output_options
@click.pass_obj
def filter_cmd(
    ctx: CLIContext,
    expression: str,
    input_file: str | None,
    input_format: InputFormat,
    schema_file: str | None,
    limit: int | None,
    csv_path: str | None,
) -> None:
    """
    Print the records of INPUT that match EXPRESSION.

    INPUT is a JSON array, JSON Lines or CSV file (stdin when omitted).
    Field kinds come from --schema or the active profile; otherwise they are
    inferred from the records.

    Example: filterexpr filter "[Age] >= 18 && [Name] like 'a%'" people.json
    """

    def fn(_: CLIContext, warnings: list[str]) -> CommandOutput:
        loaded = load_records(input_file, input_format)
        resolver = resolver_for(loaded, ctx.resolve_schema_path(schema_file))
        predicate = compile(expression, resolver)
        matches = predicate.filter(loaded.records)
        logger.info(f"{len(matches)} of {len(loaded.records)} records match")
        if not loaded.records:
            warnings.append("Input contained no records.")
        return matches_output(
            matches,
            columns=loaded.columns,
            limit=ctx.resolve_limit(limit),
            csv_path=csv_path,
        )

    run_command(ctx, command="filter", fn=fn)
