"""Tests for toolschema.cli — Click command-line interface."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from toolschema.cli import load_document, main

USER_SCHEMA = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string"},
        "age": {"type": "integer", "minimum": 0},
    },
}


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    for name in (
        "TOOLSCHEMA_ADDITIONAL_PROPERTIES",
        "TOOLSCHEMA_OUTPUT_ADDITIONAL_PROPERTIES",
        "TOOLSCHEMA_TYPE_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "toolschema.config._config_path", lambda: tmp_path / "missing" / "config.json"
    )


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data))
    return str(path)


# ---------------------------------------------------------------------------
# load_document
# ---------------------------------------------------------------------------


class TestLoadDocument:
    def test_json_file(self, tmp_path):
        assert load_document(_write(tmp_path, "s.json", USER_SCHEMA)) == USER_SCHEMA

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "s.yaml"
        path.write_text("type: string\nminLength: 2\n")
        assert load_document(str(path)) == {"type": "string", "minLength": 2}

    def test_url(self):
        response = MagicMock(status_code=200, text='{"type": "string"}')
        with patch("toolschema.cli.httpx.Client") as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = response
            assert load_document("https://example.com/schema.json") == {"type": "string"}

    def test_url_error(self):
        response = MagicMock(status_code=404, text="missing")
        with patch("toolschema.cli.httpx.Client") as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = response
            with pytest.raises(click.ClickException):
                load_document("https://example.com/schema.json")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


class TestMainGroup:
    def test_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("check", "validate", "types", "tools"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output


# ---------------------------------------------------------------------------
# toolschema check
# ---------------------------------------------------------------------------


class TestCheck:
    def test_valid_schema(self, tmp_path):
        result = CliRunner().invoke(main, ["check", _write(tmp_path, "s.json", USER_SCHEMA)])
        assert result.exit_code == 0
        assert "OK" in result.output

    def test_malformed_schema(self, tmp_path):
        bad = {"type": "string", "minLength": -1}
        result = CliRunner().invoke(main, ["check", _write(tmp_path, "s.json", bad)])
        assert result.exit_code == 1
        assert "Invalid JSON Schema" in result.output

    def test_unsupported_schema(self, tmp_path):
        result = CliRunner().invoke(
            main, ["check", _write(tmp_path, "s.json", {"type": "array"})]
        )
        assert result.exit_code == 1
        assert "items" in result.output

    def test_missing_file(self, tmp_path):
        result = CliRunner().invoke(main, ["check", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "Cannot read" in result.output


# ---------------------------------------------------------------------------
# toolschema validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid_instance(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"name": "Ada", "age": 42})
        result = CliRunner().invoke(main, ["validate", schema, instance])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"name": "Ada", "age": 42}

    def test_invalid_instance(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"age": -1})
        result = CliRunner().invoke(main, ["validate", schema, instance])
        assert result.exit_code == 1
        assert "/name: Required" in result.output
        assert "/age:" in result.output

    def test_strict_by_default(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"name": "Ada", "extra": 1})
        result = CliRunner().invoke(main, ["validate", schema, instance])
        assert result.exit_code == 1

    def test_strip_option(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"name": "Ada", "extra": 1})
        result = CliRunner().invoke(
            main, ["validate", schema, instance, "--additional-properties", "strip"]
        )
        assert result.exit_code == 0
        assert json.loads(result.output) == {"name": "Ada"}

    def test_json_format(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"age": 1})
        result = CliRunner().invoke(main, ["validate", schema, instance, "--format", "json"])
        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["ok"] is False
        assert payload["issues"][0]["path"] == "/name"

    def test_bad_settings_env_is_reported(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOOLSCHEMA_ADDITIONAL_PROPERTIES", "loose")
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        instance = _write(tmp_path, "i.json", {"name": "Ada"})
        result = CliRunner().invoke(main, ["validate", schema, instance])
        assert result.exit_code == 1
        assert "Unknown additional properties mode 'loose'" in result.output
        assert not isinstance(result.exception, ValueError)


# ---------------------------------------------------------------------------
# toolschema types
# ---------------------------------------------------------------------------


class TestTypes:
    def test_prints_declarations(self, tmp_path):
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        result = CliRunner().invoke(main, ["types", schema, "--name", "UserInput"])
        assert result.exit_code == 0
        assert "class UserInput(TypedDict)" in result.output

    def test_type_name_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOOLSCHEMA_TYPE_NAME", "ToolArgs")
        schema = _write(tmp_path, "s.json", USER_SCHEMA)
        result = CliRunner().invoke(main, ["types", schema])
        assert result.exit_code == 0
        assert "class ToolArgs(TypedDict)" in result.output

    def test_bad_settings_env_is_reported(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOOLSCHEMA_OUTPUT_ADDITIONAL_PROPERTIES", "open")
        result = CliRunner().invoke(main, ["types", _write(tmp_path, "s.json", USER_SCHEMA)])
        assert result.exit_code == 1
        assert "'open'" in result.output


# ---------------------------------------------------------------------------
# toolschema tools
# ---------------------------------------------------------------------------


class TestTools:
    def test_registers_manifest(self, tmp_path):
        manifest = {
            "tools": [
                {
                    "name": "greet",
                    "description": "Say hello.",
                    "schema": USER_SCHEMA,
                    "schemaOut": {"type": "string"},
                },
                {
                    "name": "ping",
                    "description": "Health check.",
                    "schema": {"type": "object"},
                    "impl": {"kind": "mock"},
                },
            ]
        }
        result = CliRunner().invoke(main, ["tools", _write(tmp_path, "m.json", manifest)])
        assert result.exit_code == 0
        assert "2 tool(s) registered" in result.output
        assert "greet: mock (input+output)" in result.output
        assert "ping: mock (input)" in result.output

    def test_duplicate_tools(self, tmp_path):
        tool = {"name": "ping", "description": "Health check.", "schema": {}}
        result = CliRunner().invoke(
            main, ["tools", _write(tmp_path, "m.json", {"tools": [tool, tool]})]
        )
        assert result.exit_code == 1
        assert "Duplicate tool name" in result.output

    def test_missing_tools_list(self, tmp_path):
        result = CliRunner().invoke(main, ["tools", _write(tmp_path, "m.json", {"name": "x"})])
        assert result.exit_code == 1
