"""
Unit tests for the transform node (JavaScript and JSONPath).
"""

import pytest

from conftest import make_context
from services.handlers.transform import handle_transform, validate_transform_config

USERS = [
    {"name": "Ada", "age": 36, "team": "core"},
    {"name": "Linus", "age": 28, "team": "kernel"},
    {"name": "Grace", "age": 45, "team": "core"},
]


def js(operation, script, **extra):
    return {"operation": operation, "language": "javascript", "script": script, **extra}


@pytest.mark.asyncio
async def test_javascript_map():
    result = await handle_transform(make_context(js("map", "return item.name;"), USERS))

    assert result.success
    assert result.output["transformedData"] == ["Ada", "Linus", "Grace"]
    assert result.output["itemsProcessed"] == 3
    assert result.output["originalData"] == USERS


@pytest.mark.asyncio
async def test_javascript_filter_and_sort():
    filtered = await handle_transform(make_context(js("filter", "return item.age > 30;"), USERS))
    ordered = await handle_transform(make_context(js("sort", "return a.age - b.age;"), USERS))

    assert [u["name"] for u in filtered.output["transformedData"]] == ["Ada", "Grace"]
    assert [u["name"] for u in ordered.output["transformedData"]] == ["Linus", "Ada", "Grace"]


@pytest.mark.asyncio
async def test_javascript_reduce_with_and_without_seed():
    seeded = await handle_transform(make_context(
        js("reduce", "return accumulator + item.age;", initialValue=0), USERS))
    unseeded = await handle_transform(make_context(
        js("reduce", "return accumulator + item;"), [1, 2, 3]))
    empty = await handle_transform(make_context(js("reduce", "return accumulator + item;"), []))

    assert seeded.output["transformedData"] == 109
    assert unseeded.output["transformedData"] == 6
    assert empty.output["transformedData"] is None


@pytest.mark.asyncio
async def test_javascript_group():
    result = await handle_transform(make_context(js("group", "return item.team;"), USERS))

    groups = result.output["transformedData"]
    assert [u["name"] for u in groups["core"]] == ["Ada", "Grace"]
    assert [u["name"] for u in groups["kernel"]] == ["Linus"]


@pytest.mark.asyncio
async def test_input_and_output_paths():
    config = js("map", "return item * 2;", inputPath="payload.values", outputPath="result.doubled")

    result = await handle_transform(make_context(config, {"payload": {"values": [1, 2]}}))

    assert result.output["transformedData"] == {"result": {"doubled": [2, 4]}}


@pytest.mark.asyncio
async def test_runtime_error_fails_node():
    result = await handle_transform(make_context(js("map", "return item.missing.deep;"), USERS))

    assert not result.success
    assert result.error.startswith("Transform script failed:")


@pytest.mark.asyncio
async def test_syntax_error_fails_node():
    result = await handle_transform(make_context(js("map", "return item.name +;"), USERS))

    assert not result.success
    assert result.error.startswith("Invalid JavaScript syntax in transformation script:")


@pytest.mark.asyncio
async def test_jsonpath_map_and_filter():
    mapped = await handle_transform(make_context(
        {"operation": "map", "language": "jsonpath", "script": "$.name"}, USERS))
    filtered = await handle_transform(make_context(
        {"operation": "filter", "language": "jsonpath", "script": "$.team"}, USERS + [{"name": "x"}]))

    assert mapped.output["transformedData"] == ["Ada", "Linus", "Grace"]
    assert len(filtered.output["transformedData"]) == 3


@pytest.mark.asyncio
async def test_single_object_input_is_wrapped():
    result = await handle_transform(make_context(js("map", "return item.name;"), USERS[0]))

    assert result.output["transformedData"] == ["Ada"]
    assert result.output["itemsProcessed"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("config, message", [
    ({"operation": "map", "language": "javascript", "script": ""}, "Transformation script is required"),
    ({"operation": "map", "language": "python", "script": "x"}, "Valid script language is required"),
    ({"operation": "pivot", "language": "javascript", "script": "return 1;"}, "Unsupported operation: pivot"),
])
async def test_execution_errors(config, message):
    result = await handle_transform(make_context(config, []))

    assert result.error == message


def test_validation():
    assert validate_transform_config(js("map", "return item;")) == []
    assert validate_transform_config({}) == [
        "Valid operation is required",
        "Valid script language is required",
        "Transformation script is required",
    ]
    jsonpath_errors = validate_transform_config(
        {"operation": "map", "language": "jsonpath", "script": "$.[[["})
    assert jsonpath_errors[0].startswith("Invalid JSONPath expression in transformation script:")


@pytest.mark.asyncio
async def test_reduce_accepts_acc_parameter():
    config = js("reduce", "return acc + item.id", initialValue=0)

    result = await handle_transform(make_context(config, [{"id": 1}, {"id": 2}]))

    assert validate_transform_config(config) == []
    assert result.success
    assert result.output["transformedData"] == 3


def jsonpath(operation, script, **extra):
    return {"operation": operation, "language": "jsonpath", "script": script, **extra}


@pytest.mark.asyncio
async def test_jsonpath_sort_and_group():
    ordered = await handle_transform(make_context(jsonpath("sort", "$.age"), USERS))
    grouped = await handle_transform(make_context(jsonpath("group", "$.team"), USERS))

    assert [u["name"] for u in ordered.output["transformedData"]] == ["Linus", "Ada", "Grace"]
    groups = grouped.output["transformedData"]
    assert [u["name"] for u in groups["core"]] == ["Ada", "Grace"]
    assert [u["name"] for u in groups["kernel"]] == ["Linus"]


@pytest.mark.asyncio
async def test_jsonpath_reduce_sums_matches():
    unseeded = await handle_transform(make_context(jsonpath("reduce", "id"), [{"id": 1}, {"id": 2}]))
    seeded = await handle_transform(make_context(jsonpath("reduce", "$.age", initialValue=100), USERS))
    empty = await handle_transform(make_context(jsonpath("reduce", "$.age"), []))

    assert unseeded.output["transformedData"] == 3
    assert seeded.output["transformedData"] == 209
    assert empty.output["transformedData"] is None


@pytest.mark.asyncio
async def test_jsonpath_reduce_rejects_non_numbers():
    result = await handle_transform(make_context(jsonpath("reduce", "$.name"), USERS))

    assert not result.success
    assert result.error == "Cannot reduce non-numeric value: Ada"


@pytest.mark.asyncio
async def test_jsonpath_merge():
    items = [{"meta": {"a": 1}}, {"meta": {"b": 2}}, {"meta": {"a": 3}}, {"other": True}]

    result = await handle_transform(make_context(jsonpath("merge", "$.meta"), items))

    assert result.output["transformedData"] == {"a": 3, "b": 2}
