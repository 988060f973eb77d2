from __future__ import annotations

import click
import rich_click

from ..config import config_init_template
from ..context import CLIContext
from ..errors import CLIError
from ..options import output_options
from ..runner import CommandOutput, run_command


@click.group(name="config", cls=rich_click.RichGroup)
def config_group() -> None:
    """Configuration file and profiles."""


@config_group.command(name="path", cls=rich_click.RichCommand)
@output_options
@click.pass_obj
def config_path(ctx: CLIContext) -> None:
    """Show the path to the configuration file."""

    def fn(_: CLIContext, _warnings: list[str]) -> CommandOutput:
        path = ctx.paths.config_path
        return CommandOutput(data={"path": str(path), "exists": path.exists()})

    run_command(ctx, command="config path", fn=fn)


@config_group.command(name="init", cls=rich_click.RichCommand)
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@output_options
@click.pass_obj
def config_init(ctx: CLIContext, *, force: bool) -> None:
    """Write a commented config template."""

    def fn(_: CLIContext, _warnings: list[str]) -> CommandOutput:
        path = ctx.paths.config_path
        overwritten = path.exists()
        if overwritten and not force:
            raise CLIError(
                f"Config already exists: {path} (use --force to overwrite)",
                exit_code=2,
                error_type="file_exists",
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config_init_template(), encoding="utf-8")
        return CommandOutput(data={"path": str(path), "created": True, "overwritten": overwritten})

    run_command(ctx, command="config init", fn=fn, load_config=False)


@config_group.command(name="show", cls=rich_click.RichCommand)
@output_options
@click.pass_obj
def config_show(ctx: CLIContext) -> None:
    """Show the settings of the active profile."""

    def fn(_: CLIContext, _warnings: list[str]) -> CommandOutput:
        profile = ctx.profile_config()
        data = {
            "profile": ctx.effective_profile(),
            **profile.model_dump(mode="json", by_alias=True),
        }
        return CommandOutput(data=data)

    run_command(ctx, command="config show", fn=fn)
