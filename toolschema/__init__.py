"""
toolschema — declarative tool schemas for AI-callable tools.

Compile JSON-Schema-like tool definitions into runtime validators and
static type declarations.
"""

from __future__ import annotations

__version__ = "1.0.0"

from .compiler import (
    CompileOptions,
    Issue,
    ObjectClosedness,
    ValidationResult,
    Validator,
    compile_schema,
)
from .config import Settings, load_settings
from .errors import (
    InstanceValidationError,
    ManifestError,
    SchemaConversionError,
    SchemaValidationError,
    ToolSchemaError,
)
from .manifest import GuardedTool, ToolManifest, register_tool, register_tools
from .metaschema import schema_issues, validate_schema
from .typegen import generate_type_text, normalize_for_typegen

__all__ = [
    "CompileOptions",
    "GuardedTool",
    "InstanceValidationError",
    "Issue",
    "ManifestError",
    "ObjectClosedness",
    "SchemaConversionError",
    "SchemaValidationError",
    "Settings",
    "ToolManifest",
    "ToolSchemaError",
    "ValidationResult",
    "Validator",
    "compile_schema",
    "generate_type_text",
    "load_settings",
    "normalize_for_typegen",
    "register_tool",
    "register_tools",
    "schema_issues",
    "validate_schema",
]
