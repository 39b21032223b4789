"""Logic node handlers - If, Filter, and the Switch/Loop placeholders."""

from typing import Any, Dict, List

from constants import CONDITION_OPERATORS
from core.logging import get_logger
from services.execution.conditions import evaluate, filter_items
from services.execution.models import NodeExecutionContext, NodeResult

logger = get_logger(__name__)

CONDITION_DEFAULTS: Dict[str, Any] = {
    "condition": {"field": "", "operator": "equals", "value": ""},
}


def validate_condition_config(config: Dict[str, Any]) -> List[str]:
    errors = []
    condition = config.get("condition")
    if not isinstance(condition, dict):
        condition = {}

    if not condition.get("field"):
        errors.append("Condition field is required")

    operator = condition.get("operator")
    if not operator:
        errors.append("Operator is required")
    elif operator not in CONDITION_OPERATORS:
        errors.append(f"Invalid operator: {operator}")

    if "value" not in condition or condition["value"] is None:
        errors.append("Comparison value is required")

    return errors


async def handle_if(context: NodeExecutionContext) -> NodeResult:
    """Evaluate the condition against the node input and pick a branch."""
    if context.cancelled:
        return NodeResult.cancelled()

    errors = validate_condition_config(context.config)
    if errors:
        return NodeResult.fail(errors[0])

    condition = context.config["condition"]
    condition_met = evaluate(condition, context.input)
    branch = "true" if condition_met else "false"

    logger.info("[If] Evaluated", node_id=context.node_id, field=condition.get("field"),
               operator=condition.get("operator"), branch=branch)
    return NodeResult.ok({"conditionMet": condition_met, "branch": branch})


async def handle_filter(context: NodeExecutionContext) -> NodeResult:
    """Keep the input items that satisfy the condition."""
    if context.cancelled:
        return NodeResult.cancelled()

    errors = validate_condition_config(context.config)
    if errors:
        return NodeResult.fail(errors[0])

    data = context.input
    if data is None:
        items = []
    elif isinstance(data, list):
        items = data
    else:
        items = [data]

    filtered = filter_items(context.config["condition"], items)
    logger.info("[Filter] Applied", node_id=context.node_id,
               total=len(items), kept=len(filtered))
    return NodeResult.ok({"filtered": filtered, "count": len(filtered)})


async def handle_switch(context: NodeExecutionContext) -> NodeResult:
    """Placeholder: always reports the default case, routes nothing."""
    if context.cancelled:
        return NodeResult.cancelled()

    logger.warning("[Switch] Placeholder node, no cases are evaluated", node_id=context.node_id)
    return NodeResult.ok({"case": "default"})


async def handle_loop(context: NodeExecutionContext) -> NodeResult:
    """Placeholder: performs no iterations."""
    if context.cancelled:
        return NodeResult.cancelled()

    logger.warning("[Loop] Placeholder node, no iterations are performed", node_id=context.node_id)
    return NodeResult.ok({"iterations": 0, "items": []})
