"""Graph traversal helpers for the workflow executor.

Downstream edges are followed in declaration order. Only branching logic
nodes (If) filter their outgoing edges: an edge is followed when its
``sourceHandle`` equals the node's branch label or when it has no handle.
"""

from typing import Any, Dict, List, Optional, Tuple

from constants import BRANCHING_LOGIC_TYPES, CATEGORY_LOGIC
from core.logging import get_logger
from models.workflow import Workflow, WorkflowEdge, WorkflowNode

logger = get_logger(__name__)


def is_branching_node(node: WorkflowNode) -> bool:
    return node.category == CATEGORY_LOGIC and node.subtype in BRANCHING_LOGIC_TYPES


def get_branch_label(output: Any) -> Optional[str]:
    """Derive the "true"/"false" branch label from an If node's output.

    An explicit ``branch`` string wins over the ``conditionMet`` boolean.
    Returns None when the output carries neither.
    """
    if not isinstance(output, dict):
        return None
    branch = output.get("branch")
    if isinstance(branch, str) and branch:
        return branch
    condition_met = output.get("conditionMet")
    if isinstance(condition_met, bool):
        return "true" if condition_met else "false"
    return None


def get_downstream_edges(workflow: Workflow, node_id: str) -> List[WorkflowEdge]:
    return [edge for edge in workflow.edges if edge.source == node_id]


def get_incoming_edges(workflow: Workflow, node_id: str) -> List[WorkflowEdge]:
    return [edge for edge in workflow.edges if edge.target == node_id]


def filter_branch_edges(edges: List[WorkflowEdge], branch: Optional[str]) -> List[WorkflowEdge]:
    """Keep unconditional edges plus those whose handle matches ``branch``."""
    return [
        edge for edge in edges
        if not edge.source_handle or (branch is not None and edge.source_handle == branch)
    ]


def next_targets(workflow: Workflow, node: WorkflowNode,
                 output: Any) -> List[Tuple[WorkflowEdge, WorkflowNode]]:
    """Resolve the (edge, target) pairs to execute after ``node`` finished.

    Edges whose target does not exist are skipped silently.
    """
    edges = get_downstream_edges(workflow, node.id)

    if is_branching_node(node):
        branch = get_branch_label(output)
        edges = filter_branch_edges(edges, branch)
        logger.debug("Branch edges selected",
                    node_id=node.id,
                    branch=branch,
                    edge_ids=[edge.id for edge in edges])

    targets = []
    for edge in edges:
        target = workflow.get_node(edge.target)
        if target is None:
            logger.debug("Skipping edge with missing target", edge_id=edge.id, target=edge.target)
            continue
        targets.append((edge, target))
    return targets


def find_entry_nodes(workflow: Workflow, start_node_id: Optional[str] = None) -> List[WorkflowNode]:
    """Entry points of a run: the explicit start node, or every trigger.

    Triggers are returned in the order they are listed in the workflow.
    An unknown ``start_node_id`` yields an empty list.
    """
    if start_node_id:
        node = workflow.get_node(start_node_id)
        return [node] if node else []
    return workflow.trigger_nodes()


def previous_node_ids(workflow: Workflow, node_id: str, outputs: Dict[str, Any]) -> List[str]:
    """Sources of incoming edges that have produced output in this run."""
    return [edge.source for edge in get_incoming_edges(workflow, node_id) if edge.source in outputs]


def previous_output(workflow: Workflow, node_id: str, outputs: Dict[str, Any]) -> Any:
    """Output of the first incoming edge's source, or None."""
    incoming = get_incoming_edges(workflow, node_id)
    if not incoming:
        return None
    return outputs.get(incoming[0].source)
