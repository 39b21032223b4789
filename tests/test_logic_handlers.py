"""
Unit tests for If, Filter and the Switch/Loop placeholders.
"""

import pytest

from conftest import make_context
from services.handlers.logic import (
    handle_filter,
    handle_if,
    handle_loop,
    handle_switch,
    validate_condition_config,
)


def condition(field="status", operator="equals", value="active"):
    return {"condition": {"field": field, "operator": operator, "value": value}}


@pytest.mark.asyncio
async def test_if_true_and_false():
    met = await handle_if(make_context(condition(), {"status": "active"}))
    unmet = await handle_if(make_context(condition(), {"status": "paused"}))

    assert met.output == {"conditionMet": True, "branch": "true"}
    assert unmet.output == {"conditionMet": False, "branch": "false"}


@pytest.mark.asyncio
async def test_if_invalid_config_fails():
    result = await handle_if(make_context({"condition": {"operator": "equals", "value": 1}}))

    assert result.error == "Condition field is required"


@pytest.mark.asyncio
async def test_filter_list_input():
    items = [{"status": "active"}, {"status": "paused"}, {"status": "active"}]

    result = await handle_filter(make_context(condition(), items))

    assert result.output == {"filtered": [{"status": "active"}, {"status": "active"}], "count": 2}


@pytest.mark.asyncio
async def test_filter_wraps_single_item_and_handles_none():
    single = await handle_filter(make_context(condition(), {"status": "active"}))
    nothing = await handle_filter(make_context(condition(), None))

    assert single.output["count"] == 1
    assert nothing.output == {"filtered": [], "count": 0}


@pytest.mark.asyncio
async def test_placeholders():
    assert (await handle_switch(make_context())).output == {"case": "default"}
    assert (await handle_loop(make_context())).output == {"iterations": 0, "items": []}


def test_condition_validation():
    assert validate_condition_config(condition()) == []
    assert validate_condition_config({}) == [
        "Condition field is required",
        "Operator is required",
        "Comparison value is required",
    ]
    assert validate_condition_config(condition(operator="regex")) == ["Invalid operator: regex"]
    assert validate_condition_config(condition(value=0)) == []
