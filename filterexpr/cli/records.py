"""Reading record files and schema files, and writing CSV exports."""

from __future__ import annotations

import csv
import io
import json
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from ..resolvers import DictResolver
from ..values import ValueKind, format_value_text
from .errors import CLIError

InputFormat = Literal["auto", "json", "jsonl", "csv"]

_EXTENSION_FORMATS: dict[str, InputFormat] = {
    ".json": "json",
    ".jsonl": "jsonl",
    ".ndjson": "jsonl",
    ".csv": "csv",
}


@dataclass(frozen=True, slots=True)
class LoadedRecords:
    records: list[dict[str, Any]]
    format: InputFormat
    columns: list[str]


@dataclass(frozen=True, slots=True)
class CsvWriteResult:
    rows_written: int
    bytes_written: int


class SchemaFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: dict[str, ValueKind]


def _detect_format(input_file: str | None, requested: InputFormat) -> InputFormat:
    if requested != "auto":
        return requested
    if input_file is None or input_file == "-":
        return "json"
    return _EXTENSION_FORMATS.get(Path(input_file).suffix.lower(), "json")


def _read_text(input_file: str | None) -> str:
    if input_file is None or input_file == "-":
        return sys.stdin.read()
    return Path(input_file).read_text(encoding="utf-8-sig")


def _require_objects(items: Iterable[Any], *, source: str) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise CLIError(
                f"Record {index} in {source} is not an object.",
                exit_code=2,
                error_type="validation_error",
                details={"index": index, "type": type(item).__name__},
            )
        records.append(item)
    return records


def _columns(records: list[dict[str, Any]]) -> list[str]:
    columns: list[str] = []
    seen: set[str] = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def load_records(input_file: str | None, input_format: InputFormat = "auto") -> LoadedRecords:
    """
    Load records from a file (or stdin when `input_file` is None or "-").

    JSON input is either an array of objects or an object with a "records"
    array. JSONL holds one object per line. CSV rows become dicts of strings.
    """
    fmt = _detect_format(input_file, input_format)
    source = input_file if input_file not in (None, "-") else "<stdin>"
    text = _read_text(input_file)

    if fmt == "csv":
        reader = csv.DictReader(io.StringIO(text, newline=""))
        records = [dict(row) for row in reader]
        columns = list(reader.fieldnames or [])
        return LoadedRecords(records=records, format=fmt, columns=columns)

    if fmt == "jsonl":
        items = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        payload = json.loads(text) if text.strip() else []
        if isinstance(payload, dict) and isinstance(payload.get("records"), list):
            payload = payload["records"]
        if not isinstance(payload, list):
            raise CLIError(
                f"Expected a JSON array of records in {source}.",
                exit_code=2,
                error_type="validation_error",
            )
        items = payload

    records = _require_objects(items, source=source)
    return LoadedRecords(records=records, format=fmt, columns=_columns(records))


def load_schema(path: Path) -> DictResolver:
    """Read a schema file of the form {"fields": {"Id": "number", ...}}."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    try:
        schema = SchemaFile.model_validate(raw)
    except ValidationError as exc:
        raise CLIError(
            f"Invalid schema file {path}",
            exit_code=2,
            error_type="validation_error",
            details={
                "errors": exc.errors(include_url=False, include_context=False, include_input=False)
            },
        ) from exc
    return DictResolver(schema.fields)


def resolver_for(loaded: LoadedRecords, schema_path: Path | None) -> DictResolver:
    """Use the schema file when given; otherwise infer kinds from the records."""
    if schema_path is not None:
        return load_schema(schema_path)
    return DictResolver.infer(loaded.records, parse_text=loaded.format == "csv")


def write_csv(
    *,
    path: Path,
    rows: Iterable[dict[str, Any]],
    fieldnames: list[str],
) -> CsvWriteResult:
    path.parent.mkdir(parents=True, exist_ok=True)
    rows_written = 0

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({k: format_value_text(v) for k, v in row.items()})
            rows_written += 1

    return CsvWriteResult(rows_written=rows_written, bytes_written=path.stat().st_size)


def artifact_path(path: Path) -> tuple[str, bool]:
    """Return (reference, is_relative): relative to the cwd when the file lives under it."""
    resolved = path.resolve()
    try:
        return str(resolved.relative_to(Path.cwd().resolve())), True
    except ValueError:
        return str(resolved), False
