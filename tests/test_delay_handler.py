"""
Unit tests for the delay node.
"""

import asyncio
from unittest.mock import patch

import pytest

from conftest import make_context
from services.handlers.delay import (
    actual_delay_ms,
    handle_delay,
    planned_delay_ms,
    validate_delay_config,
)


def test_planned_delay_units():
    assert planned_delay_ms({"value": 2, "unit": "seconds"}) == 2000
    assert planned_delay_ms({"value": 1, "unit": "minutes"}) == 60000
    assert planned_delay_ms({"value": 250}) == 250
    assert planned_delay_ms({"delayMs": 300}) == 300
    assert planned_delay_ms({}) == 1000


def test_random_delay_bounds():
    with patch("services.handlers.delay.random.uniform", side_effect=lambda a, b: (a, b)):
        assert actual_delay_ms("random", 100, 500) == (100, 500)
        assert actual_delay_ms("random", 100, None) == (0, 100)


def test_exponential_delay_is_capped():
    with patch("services.handlers.delay.random.expovariate", return_value=10_000):
        assert actual_delay_ms("exponential", 100, None) == 1000
        assert actual_delay_ms("exponential", 100, 250) == 250


def test_fixed_delay():
    assert actual_delay_ms("fixed", 100, 999) == 100
    assert actual_delay_ms("random", 0, 999) == 0


@pytest.mark.asyncio
async def test_fixed_delay_with_passthrough():
    config = {"delayType": "fixed", "value": 10, "unit": "milliseconds", "passthrough": True}

    result = await handle_delay(make_context(config, {"order": 1}))

    assert result.success
    assert result.output["delayType"] == "fixed"
    assert result.output["plannedDelayMs"] == 10
    assert result.output["actualDelayMs"] == 10
    assert result.output["unit"] == "milliseconds"
    assert result.output["passthroughData"] == {"order": 1}
    assert result.output["endTime"] >= result.output["startTime"]


@pytest.mark.asyncio
async def test_without_passthrough_omits_data():
    result = await handle_delay(make_context({"value": 0, "passthrough": False}, {"order": 1}))

    assert result.success
    assert "passthroughData" not in result.output


@pytest.mark.asyncio
async def test_abort_interrupts_wait():
    context = make_context({"value": 5, "unit": "seconds"})

    task = asyncio.create_task(handle_delay(context))
    await asyncio.sleep(0.02)
    context.signal.abort()
    result = await asyncio.wait_for(task, timeout=1)

    assert not result.success
    assert result.error == "Execution was cancelled"


def test_validation():
    assert validate_delay_config({"delayType": "fixed", "value": 1, "unit": "seconds"}) == []
    assert validate_delay_config({"delayType": "linear"}) == ["Invalid delay type: linear"]
    assert validate_delay_config({"unit": "days"}) == ["Invalid time unit: days"]
    assert validate_delay_config({"value": -1}) == ["Delay must be a non-negative number"]
    assert validate_delay_config({"value": "soon"}) == ["Delay must be a non-negative number"]
