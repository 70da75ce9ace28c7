"""Tests for the typebridge CLI commands (convert, formats, path, config)."""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from typebridge.cli import app, default_extension
from typebridge.config.models import TypeBridgeConfig
from typebridge.interfaces.types import FormatId
from typebridge.log import JsonFormatter, configure_logging

runner = CliRunner()

TS_SOURCE = "export interface Point { x: number; y: number; }\n"


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Run every command in an empty directory with no user-global config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    monkeypatch.delenv("TYPEBRIDGE_CONFIG", raising=False)
    return tmp_path


# ── typebridge convert ────────────────────────────────────────────────


class TestConvertCommand:
    def test_converts_next_to_source(self, workdir):
        (workdir / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(app, ["convert", "point.ts", "-f", "ts", "-t", "jsc"])

        assert result.exit_code == 0, result.output
        assert "Converted 1 types in 1 files" in result.output
        schema = json.loads((workdir / "point.json").read_text())
        assert schema["definitions"]["Point"]["required"] == ["x", "y"]

    def test_output_directory_and_extension(self, workdir):
        (workdir / "src").mkdir()
        (workdir / "src" / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(
            app, ["convert", "src/*.ts", "-f", "ts", "-t", "gql", "-o", "out", "-O", ".gql"]
        )

        assert result.exit_code == 0, result.output
        assert "type Point {" in (workdir / "out" / "point.gql").read_text()

    def test_stdout_extension(self, workdir):
        (workdir / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(app, ["convert", "point.ts", "-f", "ts", "-t", "jsc", "-O", "-"])

        assert result.exit_code == 0, result.output
        assert '"definitions"' in result.output
        assert not (workdir / "point.-").exists()

    def test_dry_run(self, workdir):
        (workdir / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(app, ["convert", "point.ts", "-f", "ts", "-t", "jsc", "--dry-run"])

        assert result.exit_code == 0
        assert "dry run" in result.output
        assert not (workdir / "point.json").exists()

    def test_open_api_flags(self, workdir):
        (workdir / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(
            app,
            ["convert", "point.ts", "-f", "ts", "-t", "oapi", "--oapi-format", "json", "--oapi-title", "Geo"],
        )

        assert result.exit_code == 0, result.output
        document = json.loads((workdir / "point.json").read_text())
        assert document["info"]["title"] == "Geo"

    def test_strip_annotations(self, workdir):
        (workdir / "point.ts").write_text("/** A point */\nexport type Point = { x: number };\n")

        result = runner.invoke(
            app, ["convert", "point.ts", "-f", "ts", "-t", "jsc", "--strip-annotations"]
        )

        assert result.exit_code == 0, result.output
        point = json.loads((workdir / "point.json").read_text())["definitions"]["Point"]
        assert "description" not in point
        assert "title" not in point

    def test_invalid_format_exits(self):
        result = runner.invoke(app, ["convert", "x.ts", "-f", "ts", "-t", "xml"])
        assert result.exit_code == 1
        assert "Invalid type system identifier" in result.output

    def test_invalid_flag_value_exits(self, workdir):
        (workdir / "point.ts").write_text(TS_SOURCE)
        result = runner.invoke(
            app, ["convert", "point.ts", "-f", "ts", "-t", "gql", "--gql-unsupported", "explode"]
        )
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_malformed_input_prints_error(self, workdir):
        (workdir / "broken.ts").write_text("export interface A { a: string\n")

        result = runner.invoke(app, ["convert", "broken.ts", "-f", "ts", "-t", "jsc"])

        assert result.exit_code == 1
        assert "[MalformedTypeError]" in result.output
        assert not (workdir / "broken.json").exists()

    def test_non_object_schema_prints_error(self, workdir):
        (workdir / "a.json").write_text("[]")

        result = runner.invoke(app, ["convert", "a.json", "-f", "jsc", "-t", "ts"])

        assert result.exit_code == 1
        assert "[MalformedTypeError]" in result.output
        assert "must be an object" in result.output
        assert not isinstance(result.exception, AttributeError)
        assert not (workdir / "a.ts").exists()

    def test_refuses_to_overwrite_source(self, workdir):
        (workdir / "types.json").write_text("{}")

        result = runner.invoke(app, ["convert", "types.json", "-f", "jsc", "-t", "ct"])

        assert result.exit_code == 1
        assert "overwrite source file" in result.output

    def test_project_config_is_used(self, workdir):
        (workdir / "typebridge.yaml").write_text("open_api:\n  format: json\n")
        (workdir / "point.ts").write_text(TS_SOURCE)

        result = runner.invoke(app, ["convert", "point.ts", "-f", "ts", "-t", "oapi"])

        assert result.exit_code == 0, result.output
        assert (workdir / "point.json").exists()

    def test_invalid_config_file_exits(self, workdir):
        (workdir / "typebridge.yaml").write_text("log_level: loud\n")
        result = runner.invoke(app, ["formats"])
        assert result.exit_code == 1
        assert "Invalid config" in result.output


class TestDefaultExtension:
    @pytest.mark.parametrize(
        ("fmt", "expected"),
        [
            (FormatId.ts, ".ts"),
            (FormatId.jsc, ".json"),
            (FormatId.gql, ".graphql"),
            (FormatId.oapi, ".yaml"),
            (FormatId.st, ".ts"),
            (FormatId.ct, ".json"),
        ],
    )
    def test_defaults(self, fmt, expected):
        assert default_extension(fmt, TypeBridgeConfig()) == expected

    def test_open_api_follows_format(self):
        cfg = TypeBridgeConfig(open_api={"format": "yml"})
        assert default_extension(FormatId.oapi, cfg) == ".yml"


# ── typebridge formats / path ─────────────────────────────────────────


class TestFormatsCommand:
    def test_lists_every_format(self):
        result = runner.invoke(app, ["formats"])
        assert result.exit_code == 0
        assert "Type systems" in result.output
        for fmt in FormatId:
            assert fmt.value in result.output
        assert "managed" in result.output


class TestPathCommand:
    def test_shortcut_path(self):
        result = runner.invoke(app, ["path", "jsc", "oapi"])
        assert result.exit_code == 0
        assert result.output.strip() == "jsc->{jsc}->oapi"

    def test_neutral_path_without_shortcuts(self):
        result = runner.invoke(app, ["path", "jsc", "oapi", "--no-shortcut"])
        assert result.output.strip() == "jsc->{ct}->oapi"

    def test_falls_back_to_neutral_route(self):
        result = runner.invoke(app, ["path", "gql", "st"])
        assert result.output.strip() == "gql->{ct}->st"

    def test_multi_hop(self):
        result = runner.invoke(app, ["path", "st", "oapi"])
        assert result.output.strip() == "st->{jsc}->oapi"

    def test_invalid_format(self):
        result = runner.invoke(app, ["path", "ts", "nope"])
        assert result.exit_code == 1


# ── typebridge config ─────────────────────────────────────────────────


class TestConfigCommands:
    def test_init_creates_file(self, workdir):
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0
        assert "Created" in result.output
        assert (workdir / "typebridge.yaml").read_text().startswith("# typebridge.yaml")

    def test_init_refuses_overwrite(self, workdir):
        (workdir / "typebridge.yaml").write_text("log_level: debug\n")
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert (workdir / "typebridge.yaml").read_text() == "log_level: debug\n"

    def test_init_force(self, workdir):
        (workdir / "typebridge.yaml").write_text("log_level: debug\n")
        result = runner.invoke(app, ["config", "init", "--force"])
        assert result.exit_code == 0
        assert "suretype:" in (workdir / "typebridge.yaml").read_text()

    def test_show(self, workdir):
        (workdir / "typebridge.yaml").write_text("graphql:\n  null_type_name: Nil\n")
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "null_type_name" in result.output
        assert "Nil" in result.output

    def test_explicit_config_path(self, workdir):
        custom = workdir / "custom.yaml"
        custom.write_text("batch:\n  concurrency: 3\n")
        result = runner.invoke(app, ["--config", str(custom), "config", "show"])
        assert result.exit_code == 0
        assert "concurrency: 3" in result.output

    def test_config_from_environment(self, workdir, monkeypatch):
        custom = workdir / "env.yaml"
        custom.write_text("batch:\n  concurrency: 5\n")
        monkeypatch.setenv("TYPEBRIDGE_CONFIG", str(custom))

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "concurrency: 5" in result.output

    def test_missing_explicit_config_exits(self, workdir):
        result = runner.invoke(app, ["--config", "nope.yaml", "formats"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


# ── Logging ───────────────────────────────────────────────────────────


class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord("typebridge.x", logging.WARNING, __file__, 1, "hi %s", ("there",), None)
        record.file = "a.ts"
        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "typebridge.x"
        assert payload["msg"] == "hi there"
        assert payload["file"] == "a.ts"
        assert payload["ts"].endswith("Z")

    def test_configure_replaces_handlers(self):
        logger = configure_logging("debug", "json")
        configure_logging("warn", "json")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_text_format_uses_rich(self):
        from rich.logging import RichHandler

        logger = configure_logging()
        assert isinstance(logger.handlers[0], RichHandler)
