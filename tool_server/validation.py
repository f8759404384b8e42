"""Input validation of call params against a tool's declared parameters."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Dict

from error_handling import ValidationError

if TYPE_CHECKING:
    from .registry import ToolDefinition


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a number on the wire; NaN and Infinity
    # parse as floats but are not amounts
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


PARAMETER_TYPES: Dict[str, Callable[[Any], bool]] = {
    "number": _is_number,
    "integer": _is_integer,
    "string": lambda value: isinstance(value, str),
    "boolean": lambda value: isinstance(value, bool),
    "object": lambda value: isinstance(value, Mapping),
    "array": lambda value: isinstance(value, list),
}


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, float) and not math.isfinite(value):
        return "non-finite number"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def validate(definition: "ToolDefinition", params: Any) -> Any:
    """Check ``params`` against ``definition`` and return them unchanged.

    Parameters are checked in declaration order and the first problem found is
    raised as a ValidationError. Values are never coerced, and keys that the tool
    does not declare are left alone.
    """
    if not isinstance(params, Mapping):
        raise ValidationError("params", f"expected object, got {_describe(params)}")

    for spec in definition.parameters:
        value = params.get(spec.name)
        if value is None:
            if spec.required:
                raise ValidationError(spec.name, "required parameter is missing")
            continue
        if not PARAMETER_TYPES[spec.type](value):
            raise ValidationError(spec.name, f"expected {spec.type}, got {_describe(value)}")

    return params
