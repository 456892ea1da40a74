"""
Tool manifests: declarative tool definitions guarded by compiled schemas.

A manifest entry looks like::

    {
        "name": "check_ride_prices",
        "description": "Return estimated fares for available ride options.",
        "schema": {"type": "object", "properties": {...}, "required": [...]},
        "schemaOut": {"type": "object", ...},
        "impl": {"kind": "custom", "config": {"modulePath": "rides.prices"}},
    }

Registering a manifest meta-validates both schemas, then compiles an input
validator (unknown keys rejected by default) and an optional output
validator (unknown keys passed through by default).  The resulting
:class:`GuardedTool` wraps any handler so it only ever sees validated
arguments and only ever returns validated results.
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from .compiler import ValidationResult, Validator, compile_schema
from .config import Settings
from .errors import ManifestError
from .metaschema import validate_schema

logger = logging.getLogger(__name__)

IMPL_KINDS = ("mock", "proxy", "custom")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ToolManifest:
    """A single tool definition."""

    name: str
    description: str
    schema: Any
    schema_out: Any = None
    impl_kind: str = "mock"
    impl_config: dict[str, Any] = field(default_factory=dict)
    category: Optional[str] = None

    @property
    def pointer(self) -> str:
        return f"#/tools/{self.name}"

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> "ToolManifest":
        """Parse one entry of a manifest's ``tools`` list."""
        path = f"#/tools/{index}"
        if not isinstance(data, dict):
            raise ManifestError("Tool manifest must be an object", path)

        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestError("Tool name must be a non-empty string", f"{path}/name")
        description = data.get("description")
        if not isinstance(description, str) or not description:
            raise ManifestError(
                "Tool description must be a non-empty string", f"{path}/description"
            )
        if "schema" not in data:
            raise ManifestError("Tool is missing an input schema", f"{path}/schema")

        impl = data.get("impl") or {"kind": "mock"}
        if not isinstance(impl, dict):
            raise ManifestError("Tool implementation must be an object", f"{path}/impl")
        kind = impl.get("kind")
        if kind not in IMPL_KINDS:
            raise ManifestError(f"Unknown implementation kind {kind!r}", f"{path}/impl/kind")
        config = impl.get("config") or {}
        if kind == "custom" and not config.get("modulePath"):
            raise ManifestError(
                "Custom implementation is missing modulePath", f"{path}/impl/config"
            )
        if kind == "proxy" and not config.get("url"):
            raise ManifestError("Proxy implementation is missing url", f"{path}/impl/config")

        return cls(
            name=name,
            description=description,
            schema=data["schema"],
            schema_out=data.get("schemaOut"),
            impl_kind=kind,
            impl_config=dict(config),
            category=data.get("category"),
        )


# ---------------------------------------------------------------------------
# Guarded tools
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GuardedTool:
    """A registered tool with its compiled validators."""

    manifest: ToolManifest
    input_validator: Validator
    output_validator: Optional[Validator] = None

    @property
    def name(self) -> str:
        return self.manifest.name

    def check_input(self, args: Any) -> ValidationResult:
        return self.input_validator(args)

    def check_output(self, result: Any) -> ValidationResult:
        if self.output_validator is None:
            return ValidationResult(value=result)
        return self.output_validator(result)

    def wrap(self, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Guard *handler* with the tool's validators.

        Bad arguments raise :class:`~toolschema.errors.InstanceValidationError`
        before the handler runs; a bad result raises it afterwards.  Coroutine
        functions are wrapped into coroutine functions.
        """
        if inspect.iscoroutinefunction(handler):

            @functools.wraps(handler)
            async def guarded_async(args: Any) -> Any:
                clean = self._accept_input(args)
                result = await handler(clean)
                return self._accept_output(result)

            return guarded_async

        @functools.wraps(handler)
        def guarded(args: Any) -> Any:
            clean = self._accept_input(args)
            return self._accept_output(handler(clean))

        return guarded

    def mock_result(self, args: Any) -> Any:
        """Result of a ``mock`` implementation: the configured result or an echo."""
        if self.manifest.impl_kind != "mock":
            raise ManifestError(
                f'Tool "{self.name}" mock executor invoked for non-mock implementation',
                f"{self.manifest.pointer}/impl",
            )
        config = self.manifest.impl_config
        if "result" in config:
            return config["result"]
        return {"ok": True, "echo": args}

    def _accept_input(self, args: Any) -> Any:
        result = self.check_input(args)
        if not result.ok:
            logger.debug("Tool %s rejected %d argument issue(s)", self.name, len(result.issues))
        return result.raise_for_issues()

    def _accept_output(self, value: Any) -> Any:
        result = self.check_output(value)
        if not result.ok:
            logger.warning("Tool %s returned an invalid result", self.name)
        return result.raise_for_issues()


# ---------------------------------------------------------------------------
# Registration pipeline
# ---------------------------------------------------------------------------


def register_tool(manifest: ToolManifest, settings: Optional[Settings] = None) -> GuardedTool:
    """Meta-validate and compile the schemas of *manifest*.

    Raises
    ------
    SchemaValidationError
        When either schema is not a well-formed JSON Schema.
    SchemaConversionError
        When either schema uses an unsupported construct.
    """
    settings = settings or Settings()
    schema_pointer = f"{manifest.pointer}/schema"
    validate_schema(manifest.schema, schema_pointer)
    input_validator = compile_schema(manifest.schema, settings.input_options, schema_pointer)

    output_validator = None
    if manifest.schema_out is not None:
        out_pointer = f"{manifest.pointer}/schemaOut"
        validate_schema(manifest.schema_out, out_pointer)
        output_validator = compile_schema(
            manifest.schema_out, settings.output_options, out_pointer
        )

    logger.debug("Registered tool %s", manifest.name)
    return GuardedTool(
        manifest=manifest,
        input_validator=input_validator,
        output_validator=output_validator,
    )


def register_tools(
    tools: Iterable[Union[ToolManifest, dict[str, Any]]],
    settings: Optional[Settings] = None,
) -> dict[str, GuardedTool]:
    """Register every tool of a manifest, keyed by tool name.

    Raises :class:`ManifestError` on malformed entries or duplicate names.
    """
    registered: dict[str, GuardedTool] = {}
    for index, entry in enumerate(tools):
        manifest = entry if isinstance(entry, ToolManifest) else ToolManifest.from_dict(entry, index)
        if manifest.name in registered:
            raise ManifestError(f'Duplicate tool name "{manifest.name}"', "#/tools")
        registered[manifest.name] = register_tool(manifest, settings)
    return registered
