"""
JSON Schema to runtime validator compilation.

Turns a JSON-Schema-like document into an immutable validator tree.  The
compiler is a pure function: it performs no I/O, keeps no caches and holds
no global state, so validators can be built and shared across threads
freely.  Validation never raises for bad input; every independent problem is
returned as an :class:`Issue` carrying both the schema pointer that rejected
the value and the instance path of the offending value.

Usage::

    from toolschema.compiler import ObjectClosedness, CompileOptions, compile_schema

    schema = {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "age": {"type": "integer", "minimum": 0},
        },
        "required": ["name"],
    }
    validator = compile_schema(
        schema, CompileOptions(ObjectClosedness.STRICT), "#/tools/greet/schema"
    )
    result = validator({"name": "Ada", "age": 42})
    assert result.ok

Supported keywords:

* ``const``, ``enum``, ``anyOf``, ``oneOf``, ``allOf``
* ``type`` as a single name or a list of names
* ``string``: ``minLength``, ``maxLength``, ``pattern``, ``format: date-time``
* ``number`` / ``integer``: ``minimum``, ``maximum``, numeric
  ``exclusiveMinimum`` / ``exclusiveMaximum``
* ``array``: ``items`` (required), ``minItems``, ``maxItems``, ``uniqueItems``
* ``object``: ``properties``, ``required``, ``additionalProperties``

``$ref`` is rejected with :class:`~toolschema.errors.SchemaConversionError`.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .errors import InstanceValidationError, SchemaConversionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------


class ObjectClosedness(str, enum.Enum):
    """What an object validator does with keys it has no schema for."""

    STRIP = "strip"  # drop unknown keys from the output
    PASSTHROUGH = "passthrough"  # keep them untouched
    STRICT = "strict"  # report them as an issue


@dataclass(frozen=True)
class CompileOptions:
    """Compiler-wide settings.

    ``additional_properties`` is the closedness applied to object nodes that
    do not pin it themselves.  ``additionalProperties: false`` on a node
    always wins.
    """

    additional_properties: ObjectClosedness = ObjectClosedness.STRIP


@dataclass(frozen=True)
class Issue:
    """One reason a value was rejected."""

    pointer: str  # schema location, e.g. "#/properties/age"
    path: tuple[Any, ...]  # instance location, e.g. ("age",)
    message: str
    causes: tuple["Issue", ...] = ()  # per-branch issues of a failed union

    @property
    def instance_path(self) -> str:
        return "".join(f"/{_escape_token(str(part))}" for part in self.path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "pointer": self.pointer,
            "path": self.instance_path,
            "message": self.message,
        }
        if self.causes:
            data["causes"] = [cause.to_dict() for cause in self.causes]
        return data


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of running a validator over one value.

    ``value`` is the accepted value (with unknown object keys stripped where
    the schema asks for it) or, when ``issues`` is non-empty, the original
    input.
    """

    value: Any
    issues: tuple[Issue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues

    def raise_for_issues(self) -> Any:
        """Return the accepted value or raise :class:`InstanceValidationError`."""
        if self.issues:
            raise InstanceValidationError(self.issues)
        return self.value


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _escape_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _json_type(value: Any) -> str:
    """Name the JSON type of *value* for issue messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _canonical(value: Any) -> Any:
    """Hashable form of a JSON value for structural equality.

    Booleans never compare equal to numbers and ``1 == 1.0``; object key
    order is irrelevant.
    """
    if isinstance(value, bool):
        return ("boolean", value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return ("number", value)
    if isinstance(value, str):
        return ("string", value)
    if value is None:
        return ("null",)
    if isinstance(value, (list, tuple)):
        return ("array", tuple(_canonical(item) for item in value))
    if isinstance(value, dict):
        return (
            "object",
            tuple(sorted((str(key), _canonical(item)) for key, item in value.items())),
        )
    return ("other", repr(value))


def json_equal(left: Any, right: Any) -> bool:
    """Structural equality of two JSON values."""
    return _canonical(left) == _canonical(right)


def _render(value: Any) -> str:
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


_DATE_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.\d+)?Z",
    re.ASCII,
)


def _is_date_time(text: str) -> bool:
    """UTC date-time: uppercase ``T`` and ``Z``, optional fractional seconds."""
    match = _DATE_TIME_RE.fullmatch(text)
    if not match:
        return False
    year, month, day, hour, minute, second = (int(g) for g in match.groups())
    try:
        datetime(year, month, day, hour, minute, second)
    except ValueError:
        return False
    return True


def _anchor_end(pattern: str) -> str:
    """Rewrite bare ``$`` anchors to ``\\Z`` so a trailing newline never matches."""
    out = []
    escaped = in_class = False
    for char in pattern:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif in_class:
            in_class = char != "]"
        elif char == "[":
            in_class = True
        elif char == "$":
            out.append(r"\Z")
            continue
        out.append(char)
    return "".join(out)


def _merge(left: Any, right: Any) -> Any:
    """Combine the outputs of both sides of an intersection."""
    if isinstance(left, dict) and isinstance(right, dict):
        merged = dict(left)
        for key, item in right.items():
            merged[key] = _merge(merged[key], item) if key in merged else item
        return merged
    if isinstance(left, list) and isinstance(right, list) and len(left) == len(right):
        return [_merge(a, b) for a, b in zip(left, right)]
    return left


# ---------------------------------------------------------------------------
# Validator nodes
# ---------------------------------------------------------------------------


class Validator:
    """A compiled, immutable validator.

    Calling a validator returns a :class:`ValidationResult`.  Subclasses
    implement :meth:`check`, which receives the instance path accumulated so
    far and returns ``(output, issues)``.
    """

    pointer: str

    def __call__(self, value: Any) -> ValidationResult:
        output, issues = self.check(value, ())
        if issues:
            return ValidationResult(value=value, issues=tuple(issues))
        return ValidationResult(value=output)

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        raise NotImplementedError

    def _issue(self, path: tuple[Any, ...], message: str) -> Issue:
        return Issue(pointer=self.pointer, path=path, message=message)


@dataclass(frozen=True)
class AnyValidator(Validator):
    """Accepts every value."""

    pointer: str

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        return value, []


@dataclass(frozen=True)
class NeverValidator(Validator):
    """Rejects every value (the ``false`` schema)."""

    pointer: str

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        return value, [self._issue(path, "No value is allowed here")]


@dataclass(frozen=True)
class LiteralValidator(Validator):
    pointer: str
    literal: Any

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        if json_equal(value, self.literal):
            return value, []
        return value, [
            self._issue(path, f"Invalid literal value, expected {_render(self.literal)}")
        ]


@dataclass(frozen=True)
class StringEnumValidator(Validator):
    pointer: str
    options: tuple[str, ...]

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        if isinstance(value, str) and value in self.options:
            return value, []
        expected = " | ".join(repr(option) for option in self.options)
        return value, [
            self._issue(
                path, f"Invalid enum value. Expected {expected}, received {_render(value)}"
            )
        ]


@dataclass(frozen=True)
class UnionValidator(Validator):
    """Accepts a value when at least one branch does."""

    pointer: str
    branches: tuple[Validator, ...]

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        causes: list[Issue] = []
        for branch in self.branches:
            output, issues = branch.check(value, path)
            if not issues:
                return output, []
            causes.extend(issues)
        issue = Issue(
            pointer=self.pointer,
            path=path,
            message=f"Value did not match any of {len(self.branches)} alternatives",
            causes=tuple(causes),
        )
        return value, [issue]


@dataclass(frozen=True)
class IntersectionValidator(Validator):
    """Both sides must accept; issues from both sides are reported."""

    pointer: str
    left: Validator
    right: Validator

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        left_out, left_issues = self.left.check(value, path)
        right_out, right_issues = self.right.check(value, path)
        issues = left_issues + right_issues
        if issues:
            return value, issues
        return _merge(left_out, right_out), []


@dataclass(frozen=True)
class TypeValidator(Validator):
    """Exact JSON type check for ``boolean`` and ``null``."""

    pointer: str
    expected: str

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        actual = _json_type(value)
        if actual == self.expected:
            return value, []
        return value, [self._issue(path, f"Expected {self.expected}, received {actual}")]


@dataclass(frozen=True)
class StringValidator(Validator):
    pointer: str
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[re.Pattern] = None
    pattern_source: Optional[str] = None
    date_time: bool = False

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        if not isinstance(value, str):
            return value, [self._issue(path, f"Expected string, received {_json_type(value)}")]
        issues: list[Issue] = []
        if self.min_length is not None and len(value) < self.min_length:
            issues.append(
                self._issue(
                    path, f"String must contain at least {self.min_length} character(s)"
                )
            )
        if self.max_length is not None and len(value) > self.max_length:
            issues.append(
                self._issue(
                    path, f"String must contain at most {self.max_length} character(s)"
                )
            )
        if self.pattern is not None and not self.pattern.search(value):
            issues.append(
                self._issue(path, f"String does not match pattern {self.pattern_source!r}")
            )
        if self.date_time and not _is_date_time(value):
            issues.append(self._issue(path, "Invalid date-time"))
        return value, issues


@dataclass(frozen=True)
class NumberValidator(Validator):
    pointer: str
    integer: bool = False
    minimum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_maximum: Optional[float] = None

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        expected = "integer" if self.integer else "number"
        if not _is_number(value):
            return value, [self._issue(path, f"Expected {expected}, received {_json_type(value)}")]
        issues: list[Issue] = []
        if self.integer and isinstance(value, float) and not value.is_integer():
            issues.append(self._issue(path, "Expected integer, received float"))
        if self.minimum is not None and value < self.minimum:
            issues.append(
                self._issue(path, f"Number must be greater than or equal to {self.minimum}")
            )
        if self.exclusive_minimum is not None and value <= self.exclusive_minimum:
            issues.append(
                self._issue(path, f"Number must be greater than {self.exclusive_minimum}")
            )
        if self.maximum is not None and value > self.maximum:
            issues.append(
                self._issue(path, f"Number must be less than or equal to {self.maximum}")
            )
        if self.exclusive_maximum is not None and value >= self.exclusive_maximum:
            issues.append(
                self._issue(path, f"Number must be less than {self.exclusive_maximum}")
            )
        return value, issues


@dataclass(frozen=True)
class ArrayValidator(Validator):
    pointer: str
    items: Validator
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        if not isinstance(value, (list, tuple)):
            return value, [self._issue(path, f"Expected array, received {_json_type(value)}")]
        issues: list[Issue] = []
        output = []
        for index, item in enumerate(value):
            item_out, item_issues = self.items.check(item, path + (index,))
            output.append(item_out)
            issues.extend(item_issues)
        if self.min_items is not None and len(value) < self.min_items:
            issues.append(
                self._issue(path, f"Array must contain at least {self.min_items} element(s)")
            )
        if self.max_items is not None and len(value) > self.max_items:
            issues.append(
                self._issue(path, f"Array must contain at most {self.max_items} element(s)")
            )
        if self.unique_items:
            # Every repeat is reported, not only the first one.
            seen: set[Any] = set()
            for index, item in enumerate(value):
                key = _canonical(item)
                if key in seen:
                    issues.append(self._issue(path + (index,), "Items must be unique"))
                seen.add(key)
        return output, issues


@dataclass(frozen=True)
class ObjectValidator(Validator):
    pointer: str
    properties: tuple[tuple[str, Validator], ...] = ()
    required: frozenset = frozenset()
    closedness: ObjectClosedness = ObjectClosedness.STRIP

    def check(self, value: Any, path: tuple[Any, ...]) -> tuple[Any, list[Issue]]:
        if not isinstance(value, dict):
            return value, [self._issue(path, f"Expected object, received {_json_type(value)}")]
        issues: list[Issue] = []
        output: dict[str, Any] = {}
        declared = set()
        for key, validator in self.properties:
            declared.add(key)
            if key not in value:
                if key in self.required:
                    issues.append(self._issue(path + (key,), "Required"))
                continue
            item_out, item_issues = validator.check(value[key], path + (key,))
            output[key] = item_out
            issues.extend(item_issues)

        extra = [key for key in value if key not in declared]
        if extra and self.closedness is ObjectClosedness.STRICT:
            keys = ", ".join(repr(key) for key in extra)
            issues.append(self._issue(path, f"Unrecognized key(s) in object: {keys}"))
        elif self.closedness is ObjectClosedness.PASSTHROUGH:
            for key in extra:
                output[key] = value[key]
        return output, issues


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


def _numeric(node: dict[str, Any], keyword: str) -> Optional[float]:
    """Read a numeric keyword, ignoring the boolean-flag convention."""
    value = node.get(keyword)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class _ValidatorCompiler:
    """Recursively translates schema nodes into :class:`Validator` trees.

    The pointer is passed down as an argument; the only state held here is
    the (immutable) options object, so one instance per compile call is
    enough and nothing leaks between calls.
    """

    def __init__(self, options: CompileOptions) -> None:
        self._options = options

    def compile(self, node: Any, pointer: str) -> Validator:
        if isinstance(node, bool):
            return AnyValidator(pointer) if node else NeverValidator(pointer)
        if not isinstance(node, dict):
            raise SchemaConversionError("Schema must be an object or a boolean", pointer)

        if "$ref" in node:
            raise SchemaConversionError("Schema references ($ref) are not supported", pointer)

        if "const" in node:
            return LiteralValidator(pointer, node["const"])

        if "enum" in node:
            return self._enum(node["enum"], pointer)

        if "anyOf" in node:
            return self._union(node["anyOf"], f"{pointer}/anyOf")

        # oneOf shares the anyOf machinery: at least one branch must match.
        if "oneOf" in node:
            return self._union(node["oneOf"], f"{pointer}/oneOf")

        if "allOf" in node:
            return self._intersection(node["allOf"], f"{pointer}/allOf")

        schema_type = node.get("type")

        if isinstance(schema_type, list):
            branches = [{**node, "type": inner} for inner in schema_type]
            return self._union(branches, f"{pointer}/type")

        if schema_type is None:
            # Untyped nodes accept anything so manifests can carry free-form fields.
            return AnyValidator(pointer)
        if schema_type == "string":
            return self._string(node, pointer)
        if schema_type == "number":
            return self._number(node, pointer, integer=False)
        if schema_type == "integer":
            return self._number(node, pointer, integer=True)
        if schema_type in ("boolean", "null"):
            return TypeValidator(pointer, schema_type)
        if schema_type == "array":
            return self._array(node, pointer)
        if schema_type == "object":
            return self._object(node, pointer)

        raise SchemaConversionError(f"Unsupported schema type: {schema_type}", pointer)

    # -- composites ---------------------------------------------------------

    def _enum(self, values: Any, pointer: str) -> Validator:
        if not isinstance(values, list):
            raise SchemaConversionError("Enum must be a list of values", pointer)
        if not values:
            raise SchemaConversionError("Enum must contain at least one value", pointer)
        if len(values) == 1:
            return LiteralValidator(pointer, values[0])
        if all(isinstance(value, str) for value in values):
            return StringEnumValidator(pointer, tuple(values))
        literals = tuple(
            LiteralValidator(f"{pointer}/enum/{index}", value)
            for index, value in enumerate(values)
        )
        return UnionValidator(pointer, literals)

    def _union(self, nodes: Any, pointer: str) -> Validator:
        if not isinstance(nodes, list):
            raise SchemaConversionError("Union must be a list of schemas", pointer)
        branches = [self.compile(node, f"{pointer}/{index}") for index, node in enumerate(nodes)]
        if not branches:
            raise SchemaConversionError("Union must contain at least one schema", pointer)
        if len(branches) == 1:
            return branches[0]
        return UnionValidator(pointer, tuple(branches))

    def _intersection(self, nodes: Any, pointer: str) -> Validator:
        if not isinstance(nodes, list):
            raise SchemaConversionError("allOf must be a list of schemas", pointer)
        result: Optional[Validator] = None
        for index, node in enumerate(nodes):
            current = self.compile(node, f"{pointer}/{index}")
            result = current if result is None else IntersectionValidator(pointer, result, current)
        return result if result is not None else AnyValidator(pointer)

    # -- scalars ------------------------------------------------------------

    def _string(self, node: dict[str, Any], pointer: str) -> Validator:
        pattern = None
        if node.get("pattern"):
            try:
                pattern = re.compile(_anchor_end(node["pattern"]))
            except re.error as exc:
                raise SchemaConversionError(
                    f"Invalid pattern {node['pattern']!r}: {exc}", f"{pointer}/pattern"
                ) from exc
        fmt = node.get("format")
        if fmt is not None and fmt != "date-time":
            logger.debug("String format %r at %s is not enforced", fmt, pointer)
        return StringValidator(
            pointer,
            min_length=node.get("minLength"),
            max_length=node.get("maxLength"),
            pattern=pattern,
            pattern_source=node.get("pattern"),
            date_time=fmt == "date-time",
        )

    def _number(self, node: dict[str, Any], pointer: str, integer: bool) -> Validator:
        return NumberValidator(
            pointer,
            integer=integer,
            minimum=_numeric(node, "minimum"),
            exclusive_minimum=_numeric(node, "exclusiveMinimum"),
            maximum=_numeric(node, "maximum"),
            exclusive_maximum=_numeric(node, "exclusiveMaximum"),
        )

    # -- containers ---------------------------------------------------------

    def _array(self, node: dict[str, Any], pointer: str) -> Validator:
        if "items" not in node or node["items"] is None:
            raise SchemaConversionError("Array schema requires an `items` definition", pointer)
        items = self.compile(node["items"], f"{pointer}/items")
        return ArrayValidator(
            pointer,
            items=items,
            min_items=node.get("minItems"),
            max_items=node.get("maxItems"),
            unique_items=node.get("uniqueItems") is True,
        )

    def _object(self, node: dict[str, Any], pointer: str) -> Validator:
        properties = node.get("properties") or {}
        compiled = tuple(
            (key, self.compile(sub, f"{pointer}/properties/{_escape_token(key)}"))
            for key, sub in properties.items()
        )
        return ObjectValidator(
            pointer,
            properties=compiled,
            required=frozenset(node.get("required") or ()),
            closedness=self._closedness(node, pointer),
        )

    def _closedness(self, node: dict[str, Any], pointer: str) -> ObjectClosedness:
        additional = node.get("additionalProperties")
        default = self._options.additional_properties
        if additional is False:
            return ObjectClosedness.STRICT
        if default is ObjectClosedness.STRICT:
            return ObjectClosedness.STRICT
        if additional is True or default is ObjectClosedness.PASSTHROUGH:
            return ObjectClosedness.PASSTHROUGH
        if isinstance(additional, dict):
            logger.debug("additionalProperties schema at %s is not enforced", pointer)
        return ObjectClosedness.STRIP


def compile_schema(
    node: Any,
    options: Optional[CompileOptions] = None,
    pointer: str = "#",
) -> Validator:
    """Compile a JSON Schema document into a :class:`Validator`.

    Parameters
    ----------
    node:
        The schema, as decoded JSON (a ``dict`` or a boolean schema).  It is
        assumed to have passed :func:`toolschema.metaschema.validate_schema`.
    options:
        Compiler-wide settings; defaults to stripping unknown object keys.
    pointer:
        Location of *node* in its enclosing document, used in issues and
        errors.

    Raises
    ------
    SchemaConversionError
        When the schema uses ``$ref``, an unknown ``type``, an array without
        ``items`` or another unsupported construct.
    """
    return _ValidatorCompiler(options or CompileOptions()).compile(node, pointer)
