"""Transform node handler - map/filter/reduce/sort/group/merge over items.

JavaScript scripts are function bodies evaluated in an embedded V8 isolate
(mini-racer); JSONPath scripts are expressions evaluated with jsonpath-ng.

Script parameters per operation (JavaScript):
- map, filter, group, merge: ``item, index, array``
- sort: ``a, b`` (comparator)
- reduce: ``acc, item, index, array`` (``accumulator`` is an alias of ``acc``)

Reduce starts from ``config.initialValue`` when given, otherwise from the
first item; an empty input without ``initialValue`` reduces to None.
JSONPath reduce sums the numeric values the expression matches.
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Tuple

from jsonpath_ng import parse as parse_jsonpath
from jsonpath_ng.exceptions import JSONPathError
from py_mini_racer import MiniRacer, JSEvalException

from constants import TRANSFORM_LANGUAGES, TRANSFORM_OPERATIONS
from core.logging import get_logger
from services.execution.conditions import get_nested_value, set_nested_value, to_js_string
from services.execution.models import NodeExecutionContext, NodeResult

logger = get_logger(__name__)

SCRIPT_TIMEOUT_SECONDS = 5

TRANSFORM_DEFAULTS: Dict[str, Any] = {
    "operation": "map",
    "language": "javascript",
    "script": "",
    "inputPath": "",
    "outputPath": "",
}

SCRIPT_PARAMS: Dict[str, Tuple[str, ...]] = {
    "map": ("item", "index", "array"),
    "filter": ("item", "index", "array"),
    "group": ("item", "index", "array"),
    "merge": ("item", "index", "array"),
    "sort": ("a", "b"),
    "reduce": ("acc", "accumulator", "item", "index", "array"),
}

# Each template reads `data` (items), `fn` (compiled script) and `seed`
OPERATION_TEMPLATES: Dict[str, str] = {
    "map": "data.map(function (item, index, array) { return fn(item, index, array); })",
    "filter": "data.filter(function (item, index, array) { return fn(item, index, array); })",
    "sort": "data.slice().sort(function (a, b) { return Number(fn(a, b)) || 0; })",
    "reduce": ("(function (step) { return hasSeed ? data.reduce(step, seed)"
               " : (data.length ? data.reduce(step) : null); })"
               "(function (acc, item, index, array) { return fn(acc, acc, item, index, array); })"),
    "group": ("data.reduce(function (groups, item, index, array) {"
              " var key = String(fn(item, index, array));"
              " (groups[key] = groups[key] || []).push(item);"
              " return groups; }, {})"),
    "merge": ("data.map(function (item, index, array) { return fn(item, index, array); })"
              ".reduce(function (merged, value) {"
              " return (value && typeof value === 'object' && !Array.isArray(value))"
              " ? Object.assign(merged, value) : merged; }, {})"),
}


class TransformError(Exception):
    """Script failed while running against the data."""


# =============================================================================
# VALIDATION
# =============================================================================

def _first_line(error: Exception) -> str:
    text = str(error).strip()
    for line in text.splitlines():
        if "Error" in line:
            return line.strip()
    return text.splitlines()[0] if text else type(error).__name__


def check_javascript_syntax(script: str, params: Tuple[str, ...] = SCRIPT_PARAMS["map"]) -> Optional[str]:
    """Compile ``script`` as a function body without running it.

    Returns:
        The parser's message on a syntax error, otherwise None
    """
    args = ", ".join(json.dumps(p) for p in params)
    source = f"(function () {{ new Function({args}, {json.dumps(script)}); return true; }})()"
    try:
        MiniRacer().eval(source)
    except JSEvalException as e:
        return _first_line(e)
    return None


def check_jsonpath_syntax(script: str) -> Optional[str]:
    try:
        parse_jsonpath(script)
    except JSONPathError as e:
        return str(e) or type(e).__name__
    return None


def validate_transform_config(config: Dict[str, Any]) -> List[str]:
    errors = []

    operation = config.get("operation")
    if operation not in TRANSFORM_OPERATIONS:
        errors.append("Valid operation is required")

    language = config.get("language")
    if language not in TRANSFORM_LANGUAGES:
        errors.append("Valid script language is required")

    script = config.get("script")
    if not isinstance(script, str) or not script.strip():
        errors.append("Transformation script is required")
        return errors

    syntax_error = _syntax_error(language, operation, script)
    if syntax_error:
        errors.append(syntax_error)
    return errors


def _syntax_error(language: Any, operation: Any, script: str) -> Optional[str]:
    if language == "javascript":
        message = check_javascript_syntax(script, SCRIPT_PARAMS.get(operation, SCRIPT_PARAMS["map"]))
        if message:
            return f"Invalid JavaScript syntax in transformation script: {message}"
    elif language == "jsonpath":
        message = check_jsonpath_syntax(script)
        if message:
            return f"Invalid JSONPath expression in transformation script: {message}"
    return None


# =============================================================================
# OPERATIONS
# =============================================================================

def run_javascript(operation: str, script: str, items: List[Any],
                   config: Dict[str, Any]) -> Any:
    """Evaluate one operation over ``items`` inside a fresh V8 context."""
    params = ", ".join(json.dumps(p) for p in SCRIPT_PARAMS[operation])
    has_seed = "initialValue" in config
    source = (
        "(function () {"
        f" var data = JSON.parse({json.dumps(json.dumps(items))});"
        f" var seed = JSON.parse({json.dumps(json.dumps(config.get('initialValue')))});"
        f" var hasSeed = {'true' if has_seed else 'false'};"
        f" var fn = new Function({params}, {json.dumps(script)});"
        f" var result = {OPERATION_TEMPLATES[operation]};"
        " return JSON.stringify(result === undefined ? null : result);"
        " })()"
    )
    try:
        raw = MiniRacer().eval(source, timeout_sec=SCRIPT_TIMEOUT_SECONDS)
    except JSEvalException as e:
        raise TransformError(f"Transform script failed: {_first_line(e)}") from e
    return json.loads(raw) if raw is not None else None


def _jsonpath_values(expression, item: Any) -> List[Any]:
    return [match.value for match in expression.find(item)]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _single(values: List[Any]) -> Any:
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def run_jsonpath(operation: str, script: str, items: List[Any],
                 config: Dict[str, Any]) -> Any:
    """Evaluate one operation using a JSONPath expression as the item projection."""
    expression = parse_jsonpath(script)

    if operation == "map":
        return [_single(_jsonpath_values(expression, item)) for item in items]

    if operation == "filter":
        return [item for item in items if any(_jsonpath_values(expression, item))]

    if operation == "sort":
        keyed = [(_single(_jsonpath_values(expression, item)), item) for item in items]
        try:
            keyed.sort(key=lambda pair: (pair[0] is None, pair[0] if pair[0] is not None else 0))
        except TypeError as e:
            raise TransformError(f"Cannot sort items: {e}") from e
        return [item for _, item in keyed]

    if operation == "group":
        groups: Dict[str, List[Any]] = {}
        for item in items:
            key = to_js_string(_single(_jsonpath_values(expression, item)))
            groups.setdefault(key, []).append(item)
        return groups

    if operation == "reduce":
        values = [value for item in items for value in _jsonpath_values(expression, item)]
        if "initialValue" in config:
            values.insert(0, config["initialValue"])
        if not values:
            return None
        for value in values:
            if not _is_number(value):
                raise TransformError(f"Cannot reduce non-numeric value: {to_js_string(value)}")
        return sum(values[1:], values[0])

    merged: Dict[str, Any] = {}
    for item in items:
        for value in _jsonpath_values(expression, item):
            if isinstance(value, dict):
                merged.update(value)
    return merged


def run_transform(language: str, operation: str, script: str, items: List[Any],
                  config: Dict[str, Any]) -> Any:
    """Syntax-check then evaluate; blocking, meant for a worker thread."""
    syntax_error = _syntax_error(language, operation, script)
    if syntax_error:
        raise TransformError(syntax_error)

    runner = run_javascript if language == "javascript" else run_jsonpath
    return runner(operation, script, items, config)


def _as_items(data: Any) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


# =============================================================================
# HANDLER
# =============================================================================

async def handle_transform(context: NodeExecutionContext) -> NodeResult:
    """Handle transform node execution.

    Returns:
        NodeResult with {operation, originalData, transformedData, itemsProcessed, duration}
    """
    if context.cancelled:
        return NodeResult.cancelled()

    start_time = time.time()
    config = context.config

    script = config.get("script")
    if not isinstance(script, str) or not script.strip():
        return NodeResult.fail("Transformation script is required")

    language = config.get("language") or TRANSFORM_DEFAULTS["language"]
    if language not in TRANSFORM_LANGUAGES:
        return NodeResult.fail("Valid script language is required")

    operation = config.get("operation") or TRANSFORM_DEFAULTS["operation"]
    if operation not in TRANSFORM_OPERATIONS:
        return NodeResult.fail(f"Unsupported operation: {operation}")

    input_path = config.get("inputPath")
    original = get_nested_value(context.input, input_path) if input_path else context.input
    items = _as_items(original)

    try:
        transformed = await asyncio.to_thread(run_transform, language, operation, script, items, config)
    except TransformError as e:
        logger.error("Transform failed", node_id=context.node_id, operation=operation, error=str(e))
        return NodeResult.fail(str(e))

    if context.cancelled:
        return NodeResult.cancelled()

    output_path = config.get("outputPath")
    if output_path:
        transformed = set_nested_value({}, output_path, transformed)

    duration_ms = round((time.time() - start_time) * 1000, 2)
    logger.info("[Transform] Completed", node_id=context.node_id, operation=operation,
               language=language, items=len(items), duration_ms=duration_ms)

    return NodeResult.ok({
        "operation": operation,
        "originalData": original,
        "transformedData": transformed,
        "itemsProcessed": len(items),
        "duration": duration_ms,
    })
