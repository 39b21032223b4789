"""Exceptions driving the executor's internal control flow.

None of these escape ``WorkflowExecutor.execute``: they are caught at the run
boundary and recorded on the WorkflowExecution.
"""

from constants import NO_TRIGGERS_MESSAGE, RUN_CANCELLED_MESSAGE


class WorkflowExecutionError(Exception):
    """Base class for run-level failures."""


class NoTriggerNodesError(WorkflowExecutionError):
    def __init__(self):
        super().__init__(NO_TRIGGERS_MESSAGE)


class StartNodeNotFoundError(WorkflowExecutionError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Start node not found: {node_id}")


class NodeExecutionError(WorkflowExecutionError):
    """A node attempt failed; subject to the node's retry policy."""

    def __init__(self, node_id: str, message: str):
        self.node_id = node_id
        super().__init__(message)


class NodeTimeoutError(NodeExecutionError):
    def __init__(self, node_id: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(node_id, f"Node execution timed out after {timeout_ms}ms")


class ExecutionCancelledError(WorkflowExecutionError):
    """Run was stopped; never retried."""

    def __init__(self, message: str = RUN_CANCELLED_MESSAGE):
        super().__init__(message)


class CycleDetectedError(WorkflowExecutionError):
    """A node was reached again while still executing on the same path."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Cycle detected at node: {node_id}")


class WorkflowAlreadyRunningError(WorkflowExecutionError):
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow is already running: {workflow_id}")
