"""Execution engine package.

Depth-first workflow execution with:
- Per-node timeout, retry and continue-on-fail policy
- If-branch routing over the node/edge graph
- Cooperative cancellation
- Structured per-run execution records
"""

from .models import (
    ExecutionStatus,
    LogLevel,
    ExecutionLog,
    WorkflowExecution,
    NodeExecutionContext,
    NodeResult,
    CancellationSignal,
    OperationCancelledError,
)
from .errors import (
    WorkflowExecutionError,
    NoTriggerNodesError,
    StartNodeNotFoundError,
    NodeExecutionError,
    NodeTimeoutError,
    ExecutionCancelledError,
    CycleDetectedError,
    WorkflowAlreadyRunningError,
)
from .conditions import (
    evaluate,
    filter_items,
    get_nested_value,
    set_nested_value,
    get_available_operators,
    OPERATORS,
)
from .graph import (
    get_branch_label,
    get_downstream_edges,
    filter_branch_edges,
    next_targets,
    find_entry_nodes,
)
from .executor import WorkflowExecutor, error_output, is_error_output
from .registry import ExecutorRegistry

__all__ = [
    # Models
    "ExecutionStatus",
    "LogLevel",
    "ExecutionLog",
    "WorkflowExecution",
    "NodeExecutionContext",
    "NodeResult",
    "CancellationSignal",
    "OperationCancelledError",
    # Errors
    "WorkflowExecutionError",
    "NoTriggerNodesError",
    "StartNodeNotFoundError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "ExecutionCancelledError",
    "CycleDetectedError",
    "WorkflowAlreadyRunningError",
    # Conditions
    "evaluate",
    "filter_items",
    "get_nested_value",
    "set_nested_value",
    "get_available_operators",
    "OPERATORS",
    # Graph
    "get_branch_label",
    "get_downstream_edges",
    "filter_branch_edges",
    "next_targets",
    "find_entry_nodes",
    # Executor
    "WorkflowExecutor",
    "error_output",
    "is_error_output",
    "ExecutorRegistry",
]
