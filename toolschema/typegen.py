"""
Static type declarations from tool schemas.

Generates Python ``TypedDict`` source for a schema so tool authors get
editor completion and type checking for tool arguments and results.  Text
generation is delegated to ``datamodel-code-generator``; this module only
rewrites the schema into the dialect that generator expects.

Usage::

    import asyncio
    from toolschema.typegen import generate_type_text

    text = asyncio.run(generate_type_text(schema, type_name="UserInput"))
"""

from __future__ import annotations

import json
from typing import Any

from datamodel_code_generator import DataModelType, PythonVersion
from datamodel_code_generator.model import get_data_model_types
from datamodel_code_generator.parser.jsonschema import JsonSchemaParser

from .errors import SchemaConversionError

# Keywords whose value maps names to sub-schemas.
_SCHEMA_MAP_KEYS = (
    "properties",
    "patternProperties",
    "definitions",
    "$defs",
    "dependencies",
)

# Keywords holding a sub-schema or a list of sub-schemas.
_SCHEMA_OR_LIST_KEYS = (
    "allOf",
    "anyOf",
    "oneOf",
    "items",
    "prefixItems",
    "contains",
    "not",
    "if",
    "then",
    "else",
)

# Keywords that are either a boolean or a sub-schema.
_SCHEMA_OBJECT_KEYS = (
    "additionalItems",
    "additionalProperties",
    "propertyNames",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_for_typegen(node: Any) -> Any:
    """Return a copy of *node* using boolean exclusive-bound flags.

    Newer drafts write ``{"exclusiveMinimum": 3}``; the generator expects the
    draft-4 form ``{"minimum": 3, "exclusiveMinimum": true}``.  Every nested
    schema is rewritten; the input is left untouched.
    """
    if isinstance(node, list):
        return [normalize_for_typegen(item) for item in node]
    if not isinstance(node, dict):
        return node

    result = dict(node)

    if _is_number(result.get("exclusiveMaximum")):
        result["maximum"] = result["exclusiveMaximum"]
        result["exclusiveMaximum"] = True
    if _is_number(result.get("exclusiveMinimum")):
        result["minimum"] = result["exclusiveMinimum"]
        result["exclusiveMinimum"] = True

    for key in _SCHEMA_MAP_KEYS:
        value = result.get(key)
        if isinstance(value, dict):
            result[key] = {name: normalize_for_typegen(sub) for name, sub in value.items()}

    for key in _SCHEMA_OR_LIST_KEYS:
        value = result.get(key)
        if isinstance(value, (dict, list)):
            result[key] = normalize_for_typegen(value)

    for key in _SCHEMA_OBJECT_KEYS:
        value = result.get(key)
        if isinstance(value, dict):
            result[key] = normalize_for_typegen(value)

    return result


def _build_parser(schema: Any, type_name: str) -> JsonSchemaParser:
    model_types = get_data_model_types(
        DataModelType.TypingTypedDict,
        target_python_version=PythonVersion.PY_310,
    )
    return JsonSchemaParser(
        json.dumps(schema),
        data_model_type=model_types.data_model,
        data_model_root_type=model_types.root_model,
        data_model_field_type=model_types.field_model,
        data_type_manager_type=model_types.data_type_manager,
        dump_resolve_reference_action=model_types.dump_resolve_reference_action,
        target_python_version=PythonVersion.PY_310,
        class_name=type_name,
    )


async def generate_type_text(node: Any, type_name: str = "Schema") -> str:
    """Generate ``TypedDict`` declarations for *node*.

    The root type is named *type_name*; nested objects get their own
    classes.  Output is black-formatted by the generator and carries no
    banner comment.  This coroutine performs no I/O; it is awaitable so it
    can sit next to the async tool APIs that call it.

    Raises
    ------
    SchemaConversionError
        When the generator cannot handle the schema.
    """
    schema = normalize_for_typegen(node)
    try:
        text = _build_parser(schema, type_name).parse()
    except Exception as exc:
        raise SchemaConversionError(f"Type generation failed: {exc}", "#") from exc
    if not isinstance(text, str):
        # Multi-module output only happens for multi-file inputs.
        text = "\n".join(result.body for result in text.values())
    return text.strip() + "\n"
