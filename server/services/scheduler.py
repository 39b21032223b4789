"""
Cron schedule helpers using APScheduler triggers.

Schedule triggers only validate and describe their cron expression; nothing
here registers jobs or runs a scheduler loop.
"""
from datetime import datetime, timezone as dt_timezone
from typing import Dict, Optional

from apscheduler.triggers.cron import CronTrigger

from core.logging import get_logger

logger = get_logger(__name__)

CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")
CRON_PARTS_ERROR = "Invalid cron expression. Expected 5 parts: minute hour day month weekday"

# Crontab weekday numbers (0 and 7 are Sunday) to APScheduler names
_WEEKDAY_NAMES = {
    "0": "sun", "1": "mon", "2": "tue", "3": "wed",
    "4": "thu", "5": "fri", "6": "sat", "7": "sun",
}


def _normalize_day_of_week(field: str) -> str:
    """Translate crontab weekday numbers into names APScheduler understands."""
    parts = []
    for part in field.split(","):
        expr, _, step = part.partition("/")
        bounds = [_WEEKDAY_NAMES.get(bound, bound) for bound in expr.split("-")]
        normalized = "-".join(bounds)
        parts.append(f"{normalized}/{step}" if step else normalized)
    return ",".join(parts)


def parse_cron_expression(cron: str) -> Dict[str, str]:
    """Split a 5-field crontab expression into named fields.

    Raises:
        ValueError: If the expression does not have exactly 5 parts
    """
    parts = (cron or "").split()
    if len(parts) != 5:
        raise ValueError(CRON_PARTS_ERROR)
    return dict(zip(CRON_FIELDS, parts))


def build_cron_trigger(cron: str, timezone: str = "UTC") -> CronTrigger:
    """Build an APScheduler CronTrigger from a 5-field crontab expression.

    Raises:
        ValueError: If the expression or timezone is invalid
    """
    fields = parse_cron_expression(cron)
    fields["day_of_week"] = _normalize_day_of_week(fields["day_of_week"])
    try:
        return CronTrigger(second="0", timezone=timezone or "UTC", **fields)
    except Exception as e:
        raise ValueError(f"Invalid cron expression: {e}") from e


def validate_cron(cron: str, timezone: str = "UTC") -> Optional[str]:
    """Return an error message for an unusable expression, or None."""
    try:
        build_cron_trigger(cron, timezone)
    except ValueError as e:
        return str(e)
    return None


def describe_cron(cron: str) -> str:
    """Human-readable summary of common schedules."""
    fields = parse_cron_expression(cron)
    minute, hour = fields["minute"], fields["hour"]
    rest = (fields["day"], fields["month"], fields["day_of_week"])

    if minute == "*" and hour == "*" and rest == ("*", "*", "*"):
        return "Every minute"

    if minute == "0" and hour == "0" and rest == ("*", "*", "*"):
        return "Daily at midnight"

    if minute == "0" and hour == "9" and rest == ("*", "*", "1-5"):
        return "Weekdays at 9 AM"

    if minute.startswith("*/") and hour == "*" and rest == ("*", "*", "*"):
        interval = minute[2:]
        if interval.isdigit():
            return f"Every {interval} minutes"

    return f"Custom schedule: {cron}"


def get_next_run_time(cron: str, timezone: str = "UTC",
                      now: Optional[datetime] = None) -> Optional[datetime]:
    """Next time the expression fires after ``now`` (defaults to current time)."""
    trigger = build_cron_trigger(cron, timezone)
    now = now or datetime.now(dt_timezone.utc)
    next_fire = trigger.get_next_fire_time(None, now)
    logger.debug("Computed next run time", cron=cron, timezone=timezone,
                next_run=next_fire.isoformat() if next_fire else None)
    return next_fire
