"""Meta-schema validation of tool schemas.

Checks that a schema document is itself a well-formed JSON Schema before it
is handed to the compiler.  All violations are collected, not just the
first, and unknown (vendor extension) keywords are tolerated.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator, validators

from .errors import SchemaValidationError


def _instance_path(error: Any) -> str:
    return "".join(f"/{part}" for part in error.absolute_path)


def schema_issues(document: Any) -> list[tuple[str, str]]:
    """Return ``(instance_path, message)`` for every meta-schema violation.

    The draft is picked from ``$schema`` when the document declares one and
    defaults to Draft 7.
    """
    validator_cls = Draft7Validator
    if isinstance(document, dict):
        validator_cls = validators.validator_for(document, default=Draft7Validator)
    meta_validator = validator_cls(validator_cls.META_SCHEMA)
    errors = sorted(
        meta_validator.iter_errors(document),
        key=lambda error: [str(part) for part in error.absolute_path],
    )
    return [(_instance_path(error), error.message) for error in errors]


def validate_schema(document: Any, pointer: str = "#/schema") -> None:
    """Raise :class:`SchemaValidationError` if *document* is not a valid schema."""
    issues = schema_issues(document)
    if issues:
        raise SchemaValidationError(issues, pointer)
