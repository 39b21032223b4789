"""Trigger node handlers - Manual, Webhook and Schedule entry points.

Triggers do not listen for anything inside the engine: webhook receipt and
cron firing live outside it. At execution time they emit the payload that
downstream nodes receive as input.
"""

from typing import Any, Dict, List

from core.logging import get_logger
from services.execution.models import NodeExecutionContext, NodeResult, utcnow
from services.scheduler import describe_cron, get_next_run_time, validate_cron

logger = get_logger(__name__)

WEBHOOK_DEFAULTS: Dict[str, Any] = {
    "method": "POST",
    "secret": "",
    "signatureHeader": "x-webhook-signature",
}

SCHEDULE_DEFAULTS: Dict[str, Any] = {
    "cron": "0 0 * * *",
    "timezone": "UTC",
}


async def handle_manual_trigger(context: NodeExecutionContext) -> NodeResult:
    """Manual start: no config, always succeeds."""
    if context.cancelled:
        return NodeResult.cancelled()

    logger.info("[Manual Trigger] Fired", node_id=context.node_id)
    return NodeResult.ok({
        "triggered": True,
        "timestamp": utcnow().isoformat(),
    })


async def handle_webhook_trigger(context: NodeExecutionContext) -> NodeResult:
    """Webhook start: placeholder payload, the request itself is not replayed."""
    if context.cancelled:
        return NodeResult.cancelled()

    method = str(context.config.get("method") or WEBHOOK_DEFAULTS["method"]).upper()
    logger.info("[Webhook Trigger] Fired", node_id=context.node_id, method=method)
    return NodeResult.ok({
        "triggered": True,
        "method": method,
        "body": {},
    })


def validate_schedule_config(config: Dict[str, Any]) -> List[str]:
    cron = str(config.get("cron") or "").strip()
    if not cron:
        return ["Cron expression is required"]

    error = validate_cron(cron, config.get("timezone") or SCHEDULE_DEFAULTS["timezone"])
    return [error] if error else []


async def handle_schedule_trigger(context: NodeExecutionContext) -> NodeResult:
    """Schedule start: reports the cron expression and when it fires next."""
    if context.cancelled:
        return NodeResult.cancelled()

    errors = validate_schedule_config(context.config)
    if errors:
        return NodeResult.fail(errors[0])

    cron = str(context.config["cron"]).strip()
    timezone = context.config.get("timezone") or SCHEDULE_DEFAULTS["timezone"]
    next_run = get_next_run_time(cron, timezone)

    logger.info("[Schedule Trigger] Fired", node_id=context.node_id, cron=cron, timezone=timezone)
    return NodeResult.ok({
        "triggered": True,
        "cron": cron,
        "timezone": timezone,
        "description": describe_cron(cron),
        "nextRunAt": next_run.isoformat() if next_run else None,
    })
