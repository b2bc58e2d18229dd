"""
Field resolution and best-effort type coercion used by the condition evaluator.

None of these helpers raise: values that cannot be coerced degrade to an empty
string or NaN so comparisons simply come out False.
"""

import math
from collections.abc import Mapping
from typing import Any


class _Missing:
    """Marker for a field the record does not have, distinct from a present None."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve_field(record: Any, field_name: str) -> Any:
    """Look up a field on a record, returning MISSING when it is absent.

    Mappings are read by key; any other object is read by attribute.
    """
    if isinstance(record, Mapping):
        return record.get(field_name, MISSING)
    if record is None:
        return MISSING
    return getattr(record, field_name, MISSING)


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_null(value: Any) -> bool:
    return value is MISSING or value is None


def to_text(value: Any) -> str:
    """String form of a value for text operators."""
    if is_null(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if is_sequence(value):
        return ",".join(to_text(item) for item in value)
    return str(value)


def to_number(value: Any) -> float:
    """Numeric form of a value; NaN when the value is not numeric."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without coercion between types.

    Numbers compare by value across int and float, booleans are not numbers,
    and MISSING is only equal to itself.
    """
    if left is MISSING or right is MISSING:
        return left is right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right
