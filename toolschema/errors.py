"""Exception types raised by toolschema.

Authoring-time problems (a broken schema or manifest) raise
:class:`SchemaValidationError`, :class:`SchemaConversionError` or
:class:`ManifestError`.  Bad *instances* are normally returned as issues on a
:class:`~toolschema.compiler.ValidationResult`; :class:`InstanceValidationError`
exists for callers that ask for an exception instead.
"""

from __future__ import annotations

from typing import Any, Sequence


class ToolSchemaError(Exception):
    """Base class for every error raised by this package."""


class SchemaValidationError(ToolSchemaError):
    """The schema document is not itself a well-formed JSON Schema.

    Args:
        issues: ``(instance_path, message)`` pairs, one per meta-schema
            violation.
        pointer: Where the schema lives in its enclosing document.
    """

    def __init__(self, issues: Sequence[tuple[str, str]], pointer: str) -> None:
        self.issues = list(issues)
        self.pointer = pointer
        details = ", ".join(f"{path or pointer} {message}" for path, message in self.issues)
        super().__init__(f"Invalid JSON Schema at {pointer}: {details}")


class SchemaConversionError(ToolSchemaError):
    """The schema uses a construct the compiler does not support."""

    def __init__(self, message: str, pointer: str) -> None:
        self.message = message
        self.pointer = pointer
        super().__init__(f"{message} (at {pointer})")


class InstanceValidationError(ToolSchemaError):
    """A value was rejected by a compiled validator."""

    def __init__(self, issues: Sequence[Any]) -> None:
        self.issues = tuple(issues)
        lines = [f"{issue.instance_path or '/'}: {issue.message}" for issue in self.issues]
        super().__init__("; ".join(lines) or "Invalid value")


class ManifestError(ToolSchemaError):
    """A tool manifest does not have the expected shape."""

    def __init__(self, message: str, path: str = "#") -> None:
        self.message = message
        self.path = path
        super().__init__(f"{message} (at {path})")
