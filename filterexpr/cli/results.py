from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CLIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class Artifact(CLIModel):
    type: str
    path: str
    path_is_relative: bool = Field(..., alias="pathIsRelative")
    rows_written: int | None = Field(None, alias="rowsWritten")
    bytes_written: int | None = Field(None, alias="bytesWritten")


class ErrorInfo(CLIModel):
    type: str
    message: str
    hint: str | None = None
    details: dict[str, Any] | None = None


class CommandMeta(CLIModel):
    duration_ms: int = Field(..., alias="durationMs")
    profile: str | None = None
    columns: list[str] | None = None
    total: int | None = None


class CommandResult(CLIModel):
    ok: bool
    command: str
    data: Any | None = None
    artifacts: list[Artifact] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    meta: CommandMeta
    error: ErrorInfo | None = None
