from __future__ import annotations

from pathlib import Path

import click
import rich_click

import filterexpr

from .context import CLIContext
from .logging import configure_logging, restore_logging
from .paths import get_paths


@click.group(
    name="filterexpr",
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=rich_click.RichGroup,
)
@click.option(
    "--output",
    type=click.Choice(["table", "json"]),
    default=None,
    help="Output format (default: profile setting, then table).",
)
@click.option("--json", "json_flag", is_flag=True, help="Same as --output json.")
@click.option("-q", "--quiet", is_flag=True, help="Only print results and errors.")
@click.option("-v", "verbose", count=True, help="Log compile details (-v: info, -vv: debug).")
@click.option(
    "--profile",
    type=str,
    default=None,
    help="Config profile to use (default: $FILTEREXPR_PROFILE, then default).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write logs to this file instead of the default log location.",
)
@click.option("--no-log-file", is_flag=True, help="Do not write a log file.")
@click.version_option(version=filterexpr.__version__, prog_name="filterexpr")
@click.pass_context
def cli(
    click_ctx: click.Context,
    *,
    output: str | None,
    json_flag: bool,
    quiet: bool,
    verbose: int,
    profile: str | None,
    log_file: str | None,
    no_log_file: bool,
) -> None:
    """Evaluate SQL-like filter expressions against JSON, JSON Lines and CSV records."""
    if click_ctx.invoked_subcommand is None:
        click.echo(click_ctx.get_help())
        click_ctx.exit(0)

    paths = get_paths()
    log_path = Path(log_file) if log_file else paths.log_file

    click_ctx.obj = CLIContext(
        output="json" if json_flag else output,  # type: ignore[arg-type]
        quiet=quiet,
        verbosity=verbose,
        profile=profile,
        log_file=log_path,
        enable_log_file=not no_log_file,
        _paths=paths,
    )

    saved = configure_logging(verbosity=verbose, log_file=log_path, enable_file=not no_log_file)
    click_ctx.call_on_close(lambda: restore_logging(saved))


# Commands
from .commands.check_cmd import check_cmd as _check_cmd  # noqa: E402
from .commands.config_cmds import config_group as _config_group  # noqa: E402
from .commands.filter_cmd import filter_cmd as _filter_cmd  # noqa: E402
from .commands.search_cmd import search_cmd as _search_cmd  # noqa: E402
from .commands.version_cmd import version_cmd as _version_cmd  # noqa: E402

cli.add_command(_version_cmd)
cli.add_command(_config_group)
cli.add_command(_check_cmd)
cli.add_command(_filter_cmd)
cli.add_command(_search_cmd)
