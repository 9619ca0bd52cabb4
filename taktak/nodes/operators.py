"""Comparison operators and the value coercions they rely on."""

import json
import math
import re
from typing import Any, Callable, Dict

from taktak.executor.errors import DataValidationError


# Coercions follow the loose semantics workflow authors expect from the builder

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Numeric coercion; anything unparseable becomes NaN."""
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def to_text(value: Any) -> str:
    """String coercion used by the substring operators."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """Equality with string/number/bool coercion."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    scalars = (str, bool, int, float)
    if isinstance(left, scalars) and isinstance(right, scalars):
        return to_number(left) == to_number(right)
    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without coercion; ints and floats are both numbers."""
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def is_empty(value: Any) -> bool:
    """Falsy, empty collection or whitespace-only string."""
    if isinstance(value, str):
        return not value.strip()
    return not value


def _regex(left: Any, right: Any) -> bool:
    try:
        return re.search(to_text(right), to_text(left)) is not None
    except re.error as e:
        raise DataValidationError(f"Invalid regular expression: {right}", actual_value=e) from e


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": loose_equals,
    "equals": loose_equals,
    "===": strict_equals,
    "strictEquals": strict_equals,
    "eq": strict_equals,
    "!=": lambda left, right: not loose_equals(left, right),
    "notEquals": lambda left, right: not loose_equals(left, right),
    "!==": lambda left, right: not strict_equals(left, right),
    "strictNotEquals": lambda left, right: not strict_equals(left, right),
    "ne": lambda left, right: not strict_equals(left, right),
    ">": lambda left, right: to_number(left) > to_number(right),
    "greaterThan": lambda left, right: to_number(left) > to_number(right),
    "gt": lambda left, right: to_number(left) > to_number(right),
    ">=": lambda left, right: to_number(left) >= to_number(right),
    "greaterThanOrEqual": lambda left, right: to_number(left) >= to_number(right),
    "gte": lambda left, right: to_number(left) >= to_number(right),
    "<": lambda left, right: to_number(left) < to_number(right),
    "lessThan": lambda left, right: to_number(left) < to_number(right),
    "lt": lambda left, right: to_number(left) < to_number(right),
    "<=": lambda left, right: to_number(left) <= to_number(right),
    "lessThanOrEqual": lambda left, right: to_number(left) <= to_number(right),
    "lte": lambda left, right: to_number(left) <= to_number(right),
    "contains": lambda left, right: to_text(right) in to_text(left),
    "startsWith": lambda left, right: to_text(left).startswith(to_text(right)),
    "endsWith": lambda left, right: to_text(left).endswith(to_text(right)),
    "regex": _regex,
    "isEmpty": lambda left, right: is_empty(left),
    "isNotEmpty": lambda left, right: not is_empty(left),
}


ORDERING_OPERATORS = frozenset({
    ">", "greaterThan", "gt",
    ">=", "greaterThanOrEqual", "gte",
    "<", "lessThan", "lt",
    "<=", "lessThanOrEqual", "lte",
})


def compare(operator: str, left: Any, right: Any) -> bool:
    """Apply a comparison operator."""
    func = OPERATORS.get(operator)
    if func is None:
        raise DataValidationError(f"Unknown operator: {operator}", field="operator")
    return func(left, right)


