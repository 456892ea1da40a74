"""
toolschema command-line interface.

Usage::

    toolschema check schema.json
    toolschema check https://example.com/tools/search.schema.json
    toolschema validate schema.json args.json
    toolschema validate schema.yaml args.json --additional-properties strip
    toolschema types schema.json --name SearchArgs
    toolschema tools manifest.json
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Optional

import click
import httpx
import yaml

from . import __version__
from .compiler import CompileOptions, compile_schema
from .config import Settings, load_settings, parse_closedness
from .errors import ToolSchemaError
from .manifest import register_tools
from .metaschema import validate_schema
from .typegen import generate_type_text

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _read_source(source: str) -> str:
    """Read a local file or fetch an http(s) URL."""
    if _is_url(source):
        with httpx.Client(timeout=20.0, follow_redirects=True) as client:
            res = client.get(source)
        if res.status_code >= 400:
            raise click.ClickException(f"GET {source} failed with HTTP {res.status_code}")
        return res.text
    try:
        with open(source, encoding="utf-8") as f:
            return f.read()
    except OSError as exc:
        raise click.ClickException(f"Cannot read {source}: {exc}")


def load_document(source: str) -> Any:
    """Load a JSON or YAML document from a path or URL."""
    text = _read_source(source)
    path = source.split("?", 1)[0].lower()
    try:
        if path.endswith((".yaml", ".yml")):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise click.ClickException(f"Cannot parse {source}: {exc}")


def _settings() -> Settings:
    try:
        return load_settings()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _fail(exc: ToolSchemaError) -> None:
    click.echo(click.style(str(exc), fg="red"), err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="toolschema")
def main() -> None:
    """toolschema — compile tool schemas into validators and type declarations."""


# ---------------------------------------------------------------------------
# toolschema check
# ---------------------------------------------------------------------------


@main.command()
@click.argument("source")
@click.option("--pointer", default="#/schema", help="Pointer reported in errors.")
def check(source: str, pointer: str) -> None:
    """Check that SOURCE is a well-formed, compilable schema."""
    schema = load_document(source)
    try:
        validate_schema(schema, pointer)
        compile_schema(schema, pointer=pointer)
    except ToolSchemaError as exc:
        _fail(exc)
    click.echo(click.style(f"OK: {source}", fg="green"))


# ---------------------------------------------------------------------------
# toolschema validate
# ---------------------------------------------------------------------------


@main.command()
@click.argument("schema_source")
@click.argument("instance_source")
@click.option(
    "--additional-properties",
    "additional_properties",
    type=click.Choice(["strip", "passthrough", "strict"], case_sensitive=False),
    default=None,
    help="How objects treat unknown keys (default: from settings).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
def validate(
    schema_source: str,
    instance_source: str,
    additional_properties: Optional[str],
    output_format: str,
) -> None:
    """Validate INSTANCE_SOURCE against SCHEMA_SOURCE."""
    settings = _settings()
    closedness = (
        parse_closedness(additional_properties)
        if additional_properties
        else settings.additional_properties
    )
    schema = load_document(schema_source)
    instance = load_document(instance_source)
    try:
        validate_schema(schema)
        validator = compile_schema(schema, CompileOptions(closedness))
    except ToolSchemaError as exc:
        _fail(exc)

    result = validator(instance)

    if output_format == "json":
        payload = {
            "ok": result.ok,
            "value": result.value if result.ok else None,
            "issues": [issue.to_dict() for issue in result.issues],
        }
        click.echo(json.dumps(payload, indent=2))
    elif result.ok:
        click.echo(json.dumps(result.value, indent=2))
    else:
        for issue in result.issues:
            click.echo(f"{issue.instance_path or '/'}: {issue.message} ({issue.pointer})", err=True)

    if not result.ok:
        sys.exit(1)


# ---------------------------------------------------------------------------
# toolschema types
# ---------------------------------------------------------------------------


@main.command()
@click.argument("source")
@click.option("--name", "type_name", default=None, help="Name of the root type.")
def types(source: str, type_name: Optional[str]) -> None:
    """Print TypedDict declarations for the schema in SOURCE."""
    schema = load_document(source)
    name = type_name or _settings().type_name
    try:
        text = asyncio.run(generate_type_text(schema, type_name=name))
    except ToolSchemaError as exc:
        _fail(exc)
    click.echo(text, nl=False)


# ---------------------------------------------------------------------------
# toolschema tools
# ---------------------------------------------------------------------------


@main.command()
@click.argument("source")
def tools(source: str) -> None:
    """Register every tool in the manifest at SOURCE and list them."""
    document = load_document(source)
    entries = document.get("tools") if isinstance(document, dict) else document
    if not isinstance(entries, list):
        raise click.ClickException("Manifest must contain a `tools` list")
    try:
        registered = register_tools(entries, _settings())
    except ToolSchemaError as exc:
        _fail(exc)

    click.echo(f"{len(registered)} tool(s) registered")
    for name, tool in registered.items():
        guards = "input+output" if tool.output_validator is not None else "input"
        click.echo(f"  {name}: {tool.manifest.impl_kind} ({guards})")


if __name__ == "__main__":
    main()
