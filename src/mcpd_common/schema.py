"""JSON Schema type mapping and parameter validation.

Covers the subset of JSON Schema that MCP tools use for their
arguments: type, properties, required, items, enum and anyOf. This is
not a general validator; unknown types are accepted so that schemas
written for newer drafts keep working.
"""

import json
import math
from collections.abc import Mapping
from typing import Any, Optional

from mcpd_common.exceptions import ParameterValidationError


# JSON Schema type -> coarse runtime category used in descriptions
TYPE_CATEGORIES = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
    "null": "null",
}


def type_names(node: Mapping[str, Any]) -> list[str]:
    """Declared type names; "type" may be a single name or a list of names."""
    node_type = node.get("type")
    if isinstance(node_type, str):
        return [node_type]
    if isinstance(node_type, list):
        return [name for name in node_type if isinstance(name, str)]
    return []


def primary_type(node: Mapping[str, Any]) -> Optional[str]:
    """First declared type other than null, or "null" if that is the only one."""
    names = type_names(node)
    non_null = [name for name in names if name != "null"]
    return (non_null or names or [None])[0]


def describe_type(node: Mapping[str, Any]) -> str:
    """
    Get a human-readable description of the type a schema node expects.

    Args:
        node: JSON Schema fragment

    Returns:
        Description such as "string", "array of number" or
        'one of: "low", "high"'
    """
    enum = node.get("enum")
    if isinstance(enum, list):
        return "one of: " + ", ".join(json.dumps(value) for value in enum)

    node_type = primary_type(node)
    items = node.get("items")
    if node_type == "array" and items:
        return f"array of {describe_type(items)}"

    if node_type:
        return TYPE_CATEGORIES.get(node_type, "any")

    any_of = node.get("anyOf")
    if isinstance(any_of, list) and any_of:
        return describe_type(any_of[0])

    return "any"


def json_kind(value: Any) -> str:
    """Name the JSON kind of a Python value, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _json_equal(left: Any, right: Any) -> bool:
    # bool is an int subclass; JSON keeps them apart
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            _json_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            _json_equal(a, b) for a, b in zip(left, right)
        )
    return left == right


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_value(value: Any, node: Mapping[str, Any]) -> bool:
    """
    Check a value against a schema node.

    Args:
        value: Candidate value
        node: JSON Schema fragment

    Returns:
        True if the value is acceptable
    """
    any_of = node.get("anyOf")
    branches = any_of if isinstance(any_of, list) else []

    if value is None:
        return "null" in type_names(node) or any(
            isinstance(branch, Mapping) and "null" in type_names(branch)
            for branch in branches
        )

    enum = node.get("enum")
    if isinstance(enum, list):
        return any(_json_equal(value, allowed) for allowed in enum)

    if branches:
        return any(validate_value(value, branch) for branch in branches)

    names = type_names(node)
    if not names:
        return True

    return any(_matches_type(value, name, node) for name in names)


def _matches_type(value: Any, node_type: str, node: Mapping[str, Any]) -> bool:
    if node_type == "string":
        return isinstance(value, str)
    if node_type == "number":
        return _is_number(value) and math.isfinite(value)
    if node_type == "integer":
        if isinstance(value, int) and not isinstance(value, bool):
            return True
        return isinstance(value, float) and value.is_integer()
    if node_type == "boolean":
        return isinstance(value, bool)
    if node_type == "array":
        if not isinstance(value, (list, tuple)):
            return False
        items = node.get("items")
        if items:
            return all(validate_value(item, items) for item in value)
        return True
    if node_type == "object":
        return isinstance(value, Mapping)
    if node_type == "null":
        return False

    return True


def find_missing_required(
    params: Mapping[str, Any],
    input_schema: Mapping[str, Any]
) -> list[str]:
    """Return every required parameter that is absent or None."""
    return [
        name for name in input_schema.get("required") or []
        if params.get(name) is None
    ]


def find_type_violations(
    params: Mapping[str, Any],
    input_schema: Mapping[str, Any]
) -> list[str]:
    """Return one message per present parameter whose value fails its schema."""
    properties = input_schema.get("properties") or {}
    errors = []

    for name, value in params.items():
        node = properties.get(name)
        if value is None or node is None:
            continue
        if not validate_value(value, node):
            errors.append(
                f"Parameter '{name}' should be {describe_type(node)}, got {json_kind(value)}"
            )

    return errors


def validate_parameters(
    params: Mapping[str, Any],
    input_schema: Mapping[str, Any]
) -> None:
    """
    Validate tool arguments against a tool's input schema.

    Missing required parameters are reported before type errors. Each
    stage collects every violation rather than stopping at the first.

    Raises:
        ParameterValidationError: If any parameter is missing or invalid
    """
    missing = find_missing_required(params, input_schema)
    if missing:
        raise ParameterValidationError(
            f"Missing required parameters: {', '.join(missing)}",
            missing
        )

    errors = find_type_violations(params, input_schema)
    if errors:
        raise ParameterValidationError(
            f"Parameter validation failed: {'; '.join(errors)}",
            errors
        )
