from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from ..exceptions import FilterError
from .config import LoadedConfig, ProfileConfig, load_config
from .errors import CLIError, cli_error_for_filter_error
from .paths import CliPaths, get_paths
from .results import Artifact, CommandMeta, CommandResult, ErrorInfo

OutputFormat = Literal["table", "json"]

PROFILE_ENV_VAR = "FILTEREXPR_PROFILE"


@dataclass
class CLIContext:
    output: OutputFormat | None
    quiet: bool
    verbosity: int
    profile: str | None
    log_file: Path | None
    enable_log_file: bool

    _paths: CliPaths = field(default_factory=get_paths)
    _loaded_config: LoadedConfig | None = None

    @property
    def paths(self) -> CliPaths:
        return self._paths

    def load_config(self) -> LoadedConfig:
        if self._loaded_config is None:
            self._loaded_config = load_config(self.paths.config_path)
        return self._loaded_config

    def effective_profile(self) -> str:
        return self.profile or os.getenv(PROFILE_ENV_VAR) or "default"

    def profile_config(self) -> ProfileConfig:
        cfg = self.load_config()
        name = self.effective_profile()
        if name == "default":
            return cfg.default
        return cfg.profiles.get(name, ProfileConfig())

    def resolved_output(self) -> OutputFormat:
        """Explicit --output/--json wins, then the profile, then table."""
        if self.output is not None:
            return self.output
        if self._loaded_config is None:
            return "table"
        return self.profile_config().output or "table"

    def resolve_schema_path(self, explicit: str | None) -> Path | None:
        if explicit is not None:
            return Path(explicit)
        configured = self.profile_config().schema_path
        return configured.expanduser() if configured is not None else None

    def resolve_limit(self, explicit: int | None) -> int | None:
        if explicit is not None:
            if explicit < 0:
                raise CLIError("--limit must be >= 0.", exit_code=2, error_type="usage_error")
            return explicit
        return self.profile_config().limit

    def resolve_search_fields(self, explicit: tuple[str, ...]) -> list[str] | None:
        if explicit:
            return list(explicit)
        return self.profile_config().search_fields


def normalize_exception(exc: Exception) -> Exception:
    """Map library and I/O failures onto CLIError so they render consistently."""
    if isinstance(exc, CLIError):
        return exc
    if isinstance(exc, FilterError):
        return cli_error_for_filter_error(exc)
    if isinstance(exc, FileNotFoundError):
        return CLIError(
            f"File not found: {exc.filename}",
            exit_code=2,
            error_type="not_found",
        )
    if isinstance(exc, PermissionError):
        return CLIError(
            f"Permission denied: {exc.filename}",
            exit_code=2,
            error_type="permission_denied",
        )
    if isinstance(exc, json.JSONDecodeError):
        return CLIError(
            f"Invalid JSON input: {exc.msg} (line {exc.lineno}, column {exc.colno})",
            exit_code=2,
            error_type="validation_error",
        )
    if isinstance(exc, OSError):
        return CLIError(str(exc), exit_code=1, error_type="io_error")
    return exc


def exit_code_for_exception(exc: Exception) -> int:
    if isinstance(exc, CLIError):
        return exc.exit_code
    return 1


def error_info_for_exception(exc: Exception, *, verbosity: int = 0) -> ErrorInfo:
    if isinstance(exc, CLIError):
        return ErrorInfo(type=exc.error_type, message=exc.message, details=exc.details)
    details: dict[str, Any] | None = None
    if verbosity >= 2:
        details = {"exception": repr(exc)}
    message = str(exc) or exc.__class__.__name__
    return ErrorInfo(type="internal_error", message=message, details=details)


def build_result(
    *,
    ok: bool,
    command: str,
    started_at: float,
    data: Any | None,
    artifacts: list[Artifact] | None = None,
    warnings: list[str],
    profile: str | None,
    columns: list[str] | None = None,
    total: int | None = None,
    error: ErrorInfo | None = None,
) -> CommandResult:
    duration_ms = int(max(0.0, (time.time() - started_at) * 1000))
    meta = CommandMeta(
        duration_ms=duration_ms,
        profile=profile,
        columns=columns,
        total=total,
    )
    return CommandResult(
        ok=ok,
        command=command,
        data=data,
        artifacts=artifacts or [],
        warnings=warnings,
        meta=meta,
        error=error,
    )
