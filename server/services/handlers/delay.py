"""Delay node handler - cancellable wait before continuing."""

import random
import time
from typing import Any, Dict, List, Optional

from constants import DELAY_TYPES, DELAY_UNITS
from core.logging import get_logger
from services.execution.models import NodeExecutionContext, NodeResult, utcnow

logger = get_logger(__name__)

DEFAULT_DELAY_MS = 1000
# Exponential draws are capped at this multiple of the planned delay
EXPONENTIAL_CAP_FACTOR = 10

DELAY_DEFAULTS: Dict[str, Any] = {
    "delayType": "fixed",
    "value": 1,
    "unit": "seconds",
    "passthrough": True,
}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def planned_delay_ms(config: Dict[str, Any]) -> float:
    """Planned wait: ``value`` x ``unit`` when given, else ``delayMs``, else 1s."""
    unit = config.get("unit") or "milliseconds"
    value = _as_number(config.get("value"))
    if value is not None:
        return value * DELAY_UNITS.get(unit, 1)
    delay_ms = _as_number(config.get("delayMs"))
    if delay_ms is not None:
        return delay_ms
    return float(DEFAULT_DELAY_MS)


def actual_delay_ms(delay_type: str, planned: float, max_delay: Optional[float]) -> float:
    """Draw the real wait for ``delay_type`` from the planned value."""
    if planned <= 0:
        return 0.0
    if delay_type == "random":
        if max_delay is not None and max_delay > planned:
            return random.uniform(planned, max_delay)
        return random.uniform(0, planned)
    if delay_type == "exponential":
        cap = max_delay if max_delay is not None else planned * EXPONENTIAL_CAP_FACTOR
        return min(random.expovariate(1 / planned), cap)
    return planned


def validate_delay_config(config: Dict[str, Any]) -> List[str]:
    errors = []

    delay_type = config.get("delayType") or "fixed"
    if delay_type not in DELAY_TYPES:
        errors.append(f"Invalid delay type: {delay_type}")

    unit = config.get("unit") or "milliseconds"
    if unit not in DELAY_UNITS:
        errors.append(f"Invalid time unit: {unit}")

    for key in ("value", "delayMs", "maxDelayMs"):
        if config.get(key) is None:
            continue
        number = _as_number(config[key])
        if number is None or number < 0:
            errors.append("Delay must be a non-negative number")
            break

    return errors


async def handle_delay(context: NodeExecutionContext) -> NodeResult:
    """Handle delay node execution.

    Returns:
        NodeResult with {delayType, actualDelayMs, plannedDelayMs, unit,
        startTime, endTime, passthrough, passthroughData?}
    """
    if context.cancelled:
        return NodeResult.cancelled()

    config = context.config
    errors = validate_delay_config(config)
    if errors:
        return NodeResult.fail(errors[0])

    delay_type = config.get("delayType") or "fixed"
    unit = config.get("unit") or "milliseconds"
    passthrough = bool(config.get("passthrough", False))
    planned = planned_delay_ms(config)
    actual = actual_delay_ms(delay_type, planned, _as_number(config.get("maxDelayMs")))

    logger.info("[Delay] Waiting", node_id=context.node_id, delay_type=delay_type,
               planned_ms=planned, actual_ms=round(actual, 2))

    start_time = utcnow()
    started = time.monotonic()
    if not await context.signal.sleep(actual / 1000):
        logger.info("[Delay] Cancelled", node_id=context.node_id,
                   waited_ms=round((time.monotonic() - started) * 1000, 2))
        return NodeResult.cancelled()
    end_time = utcnow()

    result = {
        "delayType": delay_type,
        "actualDelayMs": round(actual, 2),
        "plannedDelayMs": planned,
        "unit": unit,
        "startTime": start_time.isoformat(),
        "endTime": end_time.isoformat(),
        "passthrough": passthrough,
    }
    if passthrough:
        result["passthroughData"] = context.input
    return NodeResult.ok(result)
