"""
Profile configuration for the CLI.

The config file is TOML with a `[default]` table and optional
`[profiles.<name>]` tables:

    [default]
    output = "table"
    limit = 100

    [profiles.people]
    schema = "~/schemas/people.json"
    search_fields = ["Name", "Email"]
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CLIError


class ProfileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output: Literal["table", "json"] | None = None
    schema_path: Path | None = Field(None, alias="schema")
    search_fields: list[str] | None = None
    limit: int | None = Field(None, ge=0)


class _ConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default: ProfileConfig = Field(default_factory=ProfileConfig)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LoadedConfig:
    default: ProfileConfig
    profiles: dict[str, ProfileConfig] = field(default_factory=dict)
    path: Path | None = None


def load_config(path: Path) -> LoadedConfig:
    """Load and validate the config file; a missing file yields empty defaults."""
    if not path.exists():
        return LoadedConfig(default=ProfileConfig(), profiles={}, path=None)

    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise CLIError(
            f"Invalid TOML in config file {path}: {exc}",
            exit_code=2,
            error_type="config_error",
        ) from exc

    try:
        parsed = _ConfigFile.model_validate(raw)
    except ValidationError as exc:
        raise CLIError(
            f"Invalid config file {path}",
            exit_code=2,
            error_type="config_error",
            details={
                "errors": exc.errors(include_url=False, include_context=False, include_input=False)
            },
        ) from exc

    return LoadedConfig(default=parsed.default, profiles=parsed.profiles, path=path)


def config_init_template() -> str:
    return (
        "# filterexpr configuration\n"
        "\n"
        "[default]\n"
        '# output = "table"\n'
        "# limit = 100\n"
        "\n"
        "# [profiles.example]\n"
        '# schema = "schema.json"\n'
        '# search_fields = ["Name"]\n'
    )
