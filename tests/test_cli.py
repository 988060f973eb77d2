from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

import pytest

pytest.importorskip("rich_click")
pytest.importorskip("rich")
pytest.importorskip("platformdirs")

from click.testing import CliRunner

import filterexpr
from filterexpr.cli.main import cli
from filterexpr.cli.paths import CliPaths
from filterexpr.cli.render import RenderSettings, render_result
from filterexpr.cli.results import CommandMeta, CommandResult, ErrorInfo

PEOPLE = [
    {"Id": 1, "Name": "Ann", "Age": 34, "Tags": ["admin"]},
    {"Id": 2, "Name": "Bob", "Age": 17, "Tags": []},
    {"Id": 3, "Name": "Cyd", "Age": 52, "Tags": ["ops", "admin"]},
]


@pytest.fixture
def cli_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliPaths:
    paths = CliPaths(
        config_dir=tmp_path / "config",
        config_path=tmp_path / "config" / "config.toml",
        log_dir=tmp_path / "logs",
        log_file=tmp_path / "logs" / "filterexpr.log",
    )
    monkeypatch.setattr("filterexpr.cli.main.get_paths", lambda: paths)
    monkeypatch.delenv("FILTEREXPR_PROFILE", raising=False)
    return paths


@pytest.fixture
def people_file(tmp_path: Path) -> Path:
    path = tmp_path / "people.json"
    path.write_text(json.dumps(PEOPLE), encoding="utf-8")
    return path


def _json(output: str) -> dict[str, Any]:
    return json.loads(output.strip())


def test_cli_no_args_shows_help(cli_paths: CliPaths) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, [])
    assert result.exit_code == 0
    assert "Usage:" in result.output


def test_cli_version_table_output(cli_paths: CliPaths) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert filterexpr.__version__ in result.output


def test_cli_version_json_envelope(cli_paths: CliPaths) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--json", "version"])
    assert result.exit_code == 0
    payload = _json(result.output)
    assert payload["ok"] is True
    assert payload["command"] == "version"
    assert payload["data"]["version"] == filterexpr.__version__
    assert payload["error"] is None
    assert isinstance(payload["meta"]["durationMs"], int)


def test_cli_config_path_json_after_subcommand(cli_paths: CliPaths) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["config", "path", "--json"])
    assert result.exit_code == 0
    payload = _json(result.output)
    assert payload["command"] == "config path"
    assert payload["data"] == {"path": str(cli_paths.config_path), "exists": False}


class TestCheckCommand:
    @pytest.mark.req("FILTER-CLI-001")
    def test_valid_expression_json(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["check", "[Age]>=18 &&   [Name] LIKE 'a%'", "--json"])
        assert result.exit_code == 0
        payload = _json(result.output)
        assert payload["data"] == {
            "expression": "[Age]>=18 &&   [Name] LIKE 'a%'",
            "normalized": "[Age] >= 18 && [Name] like 'a%'",
            "fields": ["Age", "Name"],
            "compiled": False,
        }

    def test_valid_expression_table(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["check", "[Age] >= 18"])
        assert result.exit_code == 0
        assert "[Age] >= 18" in result.output
        assert "Fields: Age" in result.output

    def test_parse_error_table_shows_caret(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["check", "[Age] >= 'x"])
        assert result.exit_code == 2
        assert "Parse error: Unterminated string literal" in result.output
        assert "^" in result.output

    def test_parse_error_json(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "check", "[Age] >="])
        assert result.exit_code == 2
        payload = _json(result.output)
        assert payload["ok"] is False
        assert payload["data"] is None
        assert payload["error"]["type"] == "parse_error"
        assert payload["error"]["details"] == {"expression": "[Age] >=", "position": 8}

    def test_compile_error_with_schema(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        schema = tmp_path / "schema.json"
        schema.write_text(json.dumps({"fields": {"Age": "number"}}), encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["check", "[Nope] > 1", "--schema", str(schema)])
        assert result.exit_code == 2
        assert "Compile error: Unknown field 'Nope'" in result.output

    def test_invalid_schema_file(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        schema = tmp_path / "schema.json"
        schema.write_text(json.dumps({"fields": {"Age": "integer"}}), encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "check", "[Age] > 1", "--schema", str(schema)])
        assert result.exit_code == 2
        payload = _json(result.output)
        assert payload["error"]["type"] == "validation_error"
        assert payload["error"]["details"]["errors"][0]["loc"] == ["fields", "Age"]


class TestFilterCommand:
    @pytest.mark.req("FILTER-CLI-002")
    def test_filter_json_file(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "filter", "[Age] >= 18", str(people_file)])
        assert result.exit_code == 0, result.output
        payload = _json(result.output)
        assert [r["Name"] for r in payload["data"]] == ["Ann", "Cyd"]
        assert payload["meta"]["total"] == 2
        assert payload["meta"]["columns"] == ["Id", "Name", "Age", "Tags"]

    def test_filter_collection_membership(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["filter", "[Tags] in {'ops'}", str(people_file), "--json"])
        assert result.exit_code == 0
        assert [r["Id"] for r in _json(result.output)["data"]] == [3]

    def test_filter_table_output(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["filter", "[Name] like 'a%'", str(people_file)])
        assert result.exit_code == 0
        assert "Ann" in result.output
        assert "Bob" not in result.output

    def test_filter_stdin(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Id] == 2"], input=json.dumps({"records": PEOPLE})
        )
        assert result.exit_code == 0
        assert _json(result.output)["data"] == [PEOPLE[1]]

    def test_filter_jsonl(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        path = tmp_path / "people.jsonl"
        path.write_text("\n".join(json.dumps(p) for p in PEOPLE) + "\n\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "filter", "[Age] < 18", str(path)])
        assert result.exit_code == 0
        assert [r["Name"] for r in _json(result.output)["data"]] == ["Bob"]

    def test_filter_csv_infers_kinds(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        path = tmp_path / "people.csv"
        path.write_text("Id,Name,Joined\n1,Ann,2024-01-05\n2,Bob,2023-07-01\n10,Cyd,\n")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Id] >= 2 && [Joined] is null", str(path)]
        )
        assert result.exit_code == 0, result.output
        assert _json(result.output)["data"] == [{"Id": "10", "Name": "Cyd", "Joined": ""}]

    def test_filter_explicit_format(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        path = tmp_path / "people.txt"
        path.write_text("Id,Name\n1,Ann\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Name] == 'Ann'", str(path), "--format", "csv"]
        )
        assert result.exit_code == 0
        assert _json(result.output)["data"] == [{"Id": "1", "Name": "Ann"}]

    def test_filter_limit(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Id] > 0", str(people_file), "--limit", "1"]
        )
        payload = _json(result.output)
        assert len(payload["data"]) == 1
        assert payload["meta"]["total"] == 3

    def test_filter_csv_export(
        self, cli_paths: CliPaths, people_file: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "out" / "adults.csv"
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Age] > 18", str(people_file), "--csv", str(out)]
        )
        assert result.exit_code == 0, result.output
        payload = _json(result.output)
        assert payload["data"]["rowsWritten"] == 2
        assert payload["artifacts"][0]["type"] == "csv"
        assert payload["artifacts"][0]["rowsWritten"] == 2
        with out.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert rows[0] == {"Id": "1", "Name": "Ann", "Age": "34", "Tags": "admin"}
        assert rows[1]["Tags"] == "ops; admin"

    def test_filter_with_schema(
        self, cli_paths: CliPaths, people_file: Path, tmp_path: Path
    ) -> None:
        schema = tmp_path / "schema.json"
        schema.write_text(json.dumps({"fields": {"Age": "text"}}), encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Age] like '1%'", str(people_file), "--schema", str(schema)]
        )
        assert result.exit_code == 0
        assert [r["Name"] for r in _json(result.output)["data"]] == ["Bob"]

    def test_compile_error_exit_code(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--json", "filter", "[Name] between 1 and 2", str(people_file)]
        )
        assert result.exit_code == 2
        payload = _json(result.output)
        assert payload["error"]["type"] == "compile_error"
        assert "between" in payload["error"]["message"]

    def test_missing_input_file(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "filter", "[Id] > 1", str(tmp_path / "nope.json")])
        assert result.exit_code == 2
        assert _json(result.output)["error"]["type"] == "not_found"

    def test_invalid_json_input(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("[{", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["filter", "[Id] > 1", str(path)])
        assert result.exit_code == 2
        assert "Invalid JSON input" in result.output

    def test_non_object_records(self, cli_paths: CliPaths, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("[1, 2]", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "filter", "[Id] > 1", str(path)])
        assert result.exit_code == 2
        assert _json(result.output)["error"]["message"].startswith("Record 0")

    def test_empty_input_warns(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "filter", "1 == 1"], input="[]")
        assert result.exit_code == 0
        assert _json(result.output)["warnings"] == ["Input contained no records."]


class TestSearchCommand:
    def test_search_all_fields(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "search", "ADMIN", str(people_file)])
        assert result.exit_code == 0
        assert [r["Id"] for r in _json(result.output)["data"]] == [1, 3]

    def test_search_selected_fields(self, cli_paths: CliPaths, people_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--json", "search", "b", str(people_file), "--field", "Name", "--field", "Nope"],
        )
        assert result.exit_code == 0
        payload = _json(result.output)
        assert [r["Name"] for r in payload["data"]] == ["Bob"]
        assert payload["warnings"] == ["Unknown search fields ignored: Nope"]


class TestProfiles:
    def _write_config(self, paths: CliPaths, text: str) -> None:
        paths.config_dir.mkdir(parents=True, exist_ok=True)
        paths.config_path.write_text(text, encoding="utf-8")

    @pytest.mark.req("FILTER-CLI-003")
    def test_profile_supplies_defaults(
        self, cli_paths: CliPaths, people_file: Path, tmp_path: Path
    ) -> None:
        schema = tmp_path / "schema.json"
        schema.write_text(json.dumps({"fields": {"Age": "number", "Name": "text"}}))
        self._write_config(
            cli_paths,
            f"[default]\nlimit = 5\n\n[profiles.people]\noutput = \"json\"\n"
            f"schema = '{schema}'\nlimit = 1\nsearch_fields = [\"Name\"]\n",
        )
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--profile", "people", "filter", "[Age] > 1", str(people_file)]
        )
        assert result.exit_code == 0, result.output
        payload = _json(result.output)
        assert payload["meta"]["profile"] == "people"
        assert len(payload["data"]) == 1
        assert payload["meta"]["total"] == 3

    def test_profile_from_environment(
        self, cli_paths: CliPaths, people_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._write_config(cli_paths, '[profiles.quiet]\noutput = "json"\nlimit = 2\n')
        monkeypatch.setenv("FILTEREXPR_PROFILE", "quiet")
        runner = CliRunner()
        result = runner.invoke(cli, ["search", "a", str(people_file)])
        assert result.exit_code == 0
        assert len(_json(result.output)["data"]) == 2

    def test_explicit_output_beats_profile(self, cli_paths: CliPaths) -> None:
        self._write_config(cli_paths, '[default]\noutput = "json"\n')
        runner = CliRunner()
        result = runner.invoke(cli, ["version", "--output", "table"])
        assert result.exit_code == 0
        assert result.output.strip() == filterexpr.__version__

    def test_invalid_config(self, cli_paths: CliPaths) -> None:
        self._write_config(cli_paths, "[default]\nlimit = -1\ncolour = 'red'\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "version"])
        assert result.exit_code == 2
        assert _json(result.output)["error"]["type"] == "config_error"

    def test_invalid_toml(self, cli_paths: CliPaths) -> None:
        self._write_config(cli_paths, "[default\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 2
        assert "Configuration error: Invalid TOML" in result.output

    def test_config_init_and_show(self, cli_paths: CliPaths) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "config", "init"])
        assert result.exit_code == 0
        assert _json(result.output)["data"]["created"] is True
        assert cli_paths.config_path.exists()

        again = runner.invoke(cli, ["--json", "config", "init"])
        assert again.exit_code == 2
        assert _json(again.output)["error"]["type"] == "file_exists"

        forced = runner.invoke(cli, ["--json", "config", "init", "--force"])
        assert forced.exit_code == 0
        assert _json(forced.output)["data"]["overwritten"] is True

        shown = runner.invoke(cli, ["--json", "config", "show"])
        assert shown.exit_code == 0
        assert _json(shown.output)["data"] == {
            "profile": "default",
            "output": None,
            "schema": None,
            "search_fields": None,
            "limit": None,
        }


def test_render_usage_error_hint(capsys: pytest.CaptureFixture[str]) -> None:
    result = CommandResult(
        ok=False,
        command="filter",
        meta=CommandMeta(duration_ms=0),
        error=ErrorInfo(type="usage_error", message="--limit must be >= 0."),
    )
    render_result(result, settings=RenderSettings(output="table", quiet=False, verbosity=0))
    captured = capsys.readouterr()
    assert "Usage error: --limit must be >= 0." in captured.err
    assert "Hint: run `filterexpr filter --help`" in captured.err


def test_render_quiet_suppresses_details(capsys: pytest.CaptureFixture[str]) -> None:
    result = CommandResult(
        ok=False,
        command="check",
        meta=CommandMeta(duration_ms=0),
        error=ErrorInfo(
            type="parse_error",
            message="Unexpected end of expression",
            details={"expression": "[A] ==", "position": 6},
        ),
    )
    render_result(result, settings=RenderSettings(output="table", quiet=True, verbosity=0))
    captured = capsys.readouterr()
    assert "Parse error: Unexpected end of expression" in captured.err
    assert "^" not in captured.err
