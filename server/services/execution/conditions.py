"""Condition evaluation for If/Filter logic nodes.

Evaluates a ``{field, operator, value}`` predicate against arbitrary nested
node input. Comparison semantics follow the editor's JavaScript expectations:

- equals: strict equality (no type coercion, 1 != "1", True != 1)
- notEquals: negation of equals
- contains: both sides coerced to strings, substring test
- greaterThan: numeric coercion, NaN compares false
- lessThan: numeric coercion, NaN compares false

Unknown operators evaluate to False. Evaluation never raises.
"""

import math
from typing import Any, Dict, List, Optional

from core.logging import get_logger

logger = get_logger(__name__)


# Type alias for condition dict
ConditionDict = Dict[str, Any]


class _Undefined:
    """Marker for a path segment that does not resolve."""

    def __repr__(self) -> str:
        return "undefined"


UNDEFINED = _Undefined()


def _resolve_path(data: Any, field_path: str) -> Any:
    if not field_path:
        return UNDEFINED

    current = data
    for part in field_path.split('.'):
        if isinstance(current, dict):
            if part not in current:
                return UNDEFINED
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return UNDEFINED
            current = current[index]
        else:
            return UNDEFINED
    return current


def get_nested_value(data: Any, field_path: str) -> Any:
    """Get a nested value using dot notation.

    Args:
        data: Dict/list structure to extract value from
        field_path: Dot-separated path (e.g., "result.status", "items.0.name")

    Returns:
        Value at path or None if any segment is missing

    Examples:
        >>> get_nested_value({"result": {"status": "ok"}}, "result.status")
        'ok'
        >>> get_nested_value({"items": [{"name": "a"}]}, "items.0.name")
        'a'
    """
    value = _resolve_path(data, field_path)
    return None if value is UNDEFINED else value


def set_nested_value(data: Dict[str, Any], field_path: str, value: Any) -> Dict[str, Any]:
    """Write ``value`` at a dot path, creating intermediate dicts."""
    parts = field_path.split('.')
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value
    return data


# =============================================================================
# COERCION HELPERS
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def to_js_string(value: Any) -> str:
    """String coercion matching JavaScript's String(value)."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return _format_number(value)
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None or item is UNDEFINED else to_js_string(item)
                        for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def to_js_number(value: Any) -> float:
    """Numeric coercion matching JavaScript's Number(value)."""
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        if "_" in text or text.lower().lstrip("+-") in ("inf", "infinity", "nan"):
            return math.nan
        try:
            return float(text)
        except ValueError:
            pass
        try:
            if text.lower().startswith(("0x", "0o", "0b")):
                return float(int(text, 0))
        except ValueError:
            pass
        return math.nan
    if isinstance(value, (list, tuple)):
        if not value:
            return 0.0
        if len(value) == 1:
            return to_js_number(to_js_string(value))
    return math.nan


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without type coercion."""
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    if type(left) is not type(right):
        return False
    return left == right


# =============================================================================
# EVALUATION
# =============================================================================

def evaluate(condition: Optional[ConditionDict], data: Any) -> bool:
    """Evaluate a condition against node input.

    Args:
        condition: Condition dict with field, operator, value
            {
                "field": "a.b",              # Dot path into data
                "operator": "greaterThan",   # Comparison operator
                "value": 5                   # Value to compare against
            }
        data: Node input (any JSON-like structure)

    Returns:
        True if the condition matches, False otherwise
    """
    if not condition:
        return False

    field = condition.get("field", "")
    operator = condition.get("operator", "")
    target_value = condition.get("value")

    actual_value = _resolve_path(data, field)

    logger.debug("Evaluating condition",
                field=field,
                operator=operator,
                target=target_value,
                actual=actual_value)

    try:
        result = _evaluate_operator(operator, actual_value, target_value)
    except Exception as e:
        logger.warning("Condition evaluation error",
                      field=field,
                      operator=operator,
                      error=str(e))
        return False

    logger.debug("Condition result", result=result)
    return result


def _evaluate_operator(operator: str, actual: Any, target: Any) -> bool:
    if operator == "equals":
        return strict_equals(actual, target)

    elif operator == "notEquals":
        return not strict_equals(actual, target)

    elif operator == "contains":
        return to_js_string(target) in to_js_string(actual)

    # NaN on either side makes both comparisons false
    elif operator == "greaterThan":
        return to_js_number(actual) > to_js_number(target)

    elif operator == "lessThan":
        return to_js_number(actual) < to_js_number(target)

    else:
        logger.warning("Unknown operator", operator=operator)
        return False


def filter_items(condition: ConditionDict, items: List[Any]) -> List[Any]:
    """Keep the items for which ``condition`` holds."""
    return [item for item in items if evaluate(condition, item)]


# Operator metadata for frontend UI
OPERATORS = {
    "equals": {"label": "Equals", "description": "Value strictly equals target", "requires_value": True},
    "notEquals": {"label": "Not Equals", "description": "Value does not strictly equal target", "requires_value": True},
    "contains": {"label": "Contains", "description": "Value as text contains target as text", "requires_value": True},
    "greaterThan": {"label": "Greater Than", "description": "Value is numerically greater than target", "requires_value": True},
    "lessThan": {"label": "Less Than", "description": "Value is numerically less than target", "requires_value": True},
}


def get_available_operators() -> Dict[str, Dict[str, Any]]:
    """Get operator metadata for frontend UI."""
    return OPERATORS.copy()
