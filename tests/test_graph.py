"""
Unit tests for graph traversal helpers.
"""

from conftest import make_edge, make_node, make_workflow
from models.workflow import WorkflowEdge
from services.execution.graph import (
    filter_branch_edges,
    find_entry_nodes,
    get_branch_label,
    next_targets,
    previous_node_ids,
    previous_output,
)


def branching_workflow():
    return make_workflow(
        [
            make_node("t1", "trigger", "manual"),
            make_node("if1", "logic", "if"),
            make_node("yes", "action", "delay"),
            make_node("no", "action", "delay"),
            make_node("always", "action", "delay"),
        ],
        [
            make_edge("t1", "if1"),
            make_edge("if1", "yes", "true"),
            make_edge("if1", "no", "false"),
            make_edge("if1", "always"),
            make_edge("if1", "ghost"),
        ],
    )


def test_branch_label_prefers_explicit_branch():
    assert get_branch_label({"branch": "false", "conditionMet": True}) == "false"
    assert get_branch_label({"conditionMet": True}) == "true"
    assert get_branch_label({"conditionMet": False}) == "false"
    assert get_branch_label({"other": 1}) is None
    assert get_branch_label(None) is None


def test_filter_branch_edges_keeps_unconditional():
    edges = [
        WorkflowEdge(id="1", source="a", target="b", sourceHandle="true"),
        WorkflowEdge(id="2", source="a", target="c", sourceHandle="false"),
        WorkflowEdge(id="3", source="a", target="d"),
    ]
    assert [e.id for e in filter_branch_edges(edges, "true")] == ["1", "3"]
    assert [e.id for e in filter_branch_edges(edges, None)] == ["3"]


def test_next_targets_follows_branch_and_skips_missing():
    workflow = branching_workflow()
    node = workflow.get_node("if1")

    targets = next_targets(workflow, node, {"conditionMet": False, "branch": "false"})

    assert [target.id for _, target in targets] == ["no", "always"]


def test_next_targets_ignores_handles_on_non_branching_nodes():
    workflow = make_workflow(
        [make_node("t1", "trigger", "manual"), make_node("a", "action", "delay"),
         make_node("b", "action", "delay")],
        [make_edge("t1", "a", "true"), make_edge("t1", "b", "false")],
    )

    targets = next_targets(workflow, workflow.get_node("t1"), {"triggered": True})

    assert [target.id for _, target in targets] == ["a", "b"]


def test_find_entry_nodes():
    workflow = make_workflow([
        make_node("a", "action", "delay"),
        make_node("t2", "trigger", "webhook"),
        make_node("t1", "trigger", "manual"),
    ])

    assert [n.id for n in find_entry_nodes(workflow)] == ["t2", "t1"]
    assert [n.id for n in find_entry_nodes(workflow, "a")] == ["a"]
    assert find_entry_nodes(workflow, "missing") == []


def test_previous_outputs():
    workflow = branching_workflow()
    outputs = {"if1": {"branch": "true"}}

    assert previous_node_ids(workflow, "yes", outputs) == ["if1"]
    assert previous_output(workflow, "yes", outputs) == {"branch": "true"}
    assert previous_output(workflow, "t1", outputs) is None
