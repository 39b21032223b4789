"""Workflow executor - depth-first run of a workflow graph.

Implements:
- Entry point discovery (every trigger, or one explicit start node)
- Sequential depth-first execution of descendants
- If-branch routing through the graph helpers
- Per-node timeout, retry and continue-on-fail policy
- Cooperative cancellation through a shared CancellationSignal
- Cycle detection on the active recursion path
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING

from core.logging import get_logger, bind_execution_context, clear_execution_context
from constants import (
    DEFAULT_CONTINUE_ON_FAIL,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    LOG_WORKFLOW_END,
    LOG_WORKFLOW_ERROR,
    LOG_WORKFLOW_START,
    RUN_CANCELLED_MESSAGE,
)
from models.workflow import RunSettings, Workflow, WorkflowNode
from . import graph
from .errors import (
    CycleDetectedError,
    ExecutionCancelledError,
    NodeExecutionError,
    NodeTimeoutError,
    NoTriggerNodesError,
    StartNodeNotFoundError,
)
from .models import (
    CancellationSignal,
    ExecutionLog,
    ExecutionStatus,
    LogLevel,
    NodeExecutionContext,
    WorkflowExecution,
    utcnow,
)

if TYPE_CHECKING:
    from services.node_executor import NodeExecutor

logger = get_logger(__name__)

ERROR_OUTPUT_KEY = "__error"


def error_output(message: str) -> Dict[str, Any]:
    """Sentinel output stored for a node that failed with continueOnFail."""
    return {ERROR_OUTPUT_KEY: True, "message": message}


def is_error_output(output: Any) -> bool:
    return isinstance(output, dict) and output.get(ERROR_OUTPUT_KEY) is True


class WorkflowExecutor:
    """Runs one workflow once.

    An executor instance owns a single WorkflowExecution and a single
    CancellationSignal; create a new instance per run. ``stop()`` may be
    called from any other task while ``execute()`` is in flight.
    """

    def __init__(self, workflow: Workflow, node_executor: "NodeExecutor",
                 default_settings: Optional[RunSettings] = None):
        """Initialize executor.

        Args:
            workflow: Materialized workflow, treated as read-only
            node_executor: Dispatcher from (category, subtype) to handler
            default_settings: Run settings for nodes that declare none
        """
        self.workflow = workflow
        self.node_executor = node_executor
        self.default_settings = default_settings or RunSettings(
            timeout_ms=DEFAULT_TIMEOUT_MS,
            retry_count=DEFAULT_RETRY_COUNT,
            retry_delay_ms=DEFAULT_RETRY_DELAY_MS,
            continue_on_fail=DEFAULT_CONTINUE_ON_FAIL,
        )
        self.execution = WorkflowExecution.create(workflow.id)
        self.signal = CancellationSignal()
        self._active_path: Set[str] = set()

    @property
    def execution_id(self) -> str:
        return self.execution.id

    @property
    def is_cancelled(self) -> bool:
        return self.signal.aborted

    # =========================================================================
    # EXECUTION ENTRY POINTS
    # =========================================================================

    async def execute(self, start_node_id: Optional[str] = None) -> WorkflowExecution:
        """Run the workflow and return its execution record.

        Never raises for workflow or node failures: the outcome is reported
        through ``status`` and ``error`` on the returned record.

        Args:
            start_node_id: Run from this node instead of from every trigger
        """
        execution = self.execution
        start_time = time.time()
        bind_execution_context(execution_id=execution.id, workflow_id=self.workflow.id)

        self._log(LOG_WORKFLOW_START, LogLevel.INFO, f"Starting workflow: {self.workflow.name}")
        logger.info("Starting workflow execution",
                   node_count=len(self.workflow.nodes),
                   edge_count=len(self.workflow.edges),
                   start_node_id=start_node_id)

        try:
            entry_nodes = self._resolve_entry_nodes(start_node_id)

            for node in entry_nodes:
                if self.signal.aborted:
                    break
                input_data = graph.previous_output(self.workflow, node.id, execution.node_outputs)
                await self._execute_node(node, input_data)

            if self.signal.aborted:
                raise ExecutionCancelledError()

            execution.status = ExecutionStatus.COMPLETED
            self._log(LOG_WORKFLOW_END, LogLevel.INFO, "Workflow completed successfully")

        except ExecutionCancelledError as e:
            self._finish_cancelled(str(e))

        except Exception as e:
            if self.signal.aborted:
                self._finish_cancelled(RUN_CANCELLED_MESSAGE)
            else:
                message = str(e) or type(e).__name__
                execution.status = ExecutionStatus.FAILED
                execution.error = message
                self._log(LOG_WORKFLOW_ERROR, LogLevel.ERROR, f"Workflow failed: {message}")
                if not isinstance(e, (NodeExecutionError, CycleDetectedError,
                                      NoTriggerNodesError, StartNodeNotFoundError)):
                    logger.error("Unexpected executor failure", error=message, exc_info=True)

        finally:
            if execution.completed_at is None:
                execution.completed_at = utcnow()
            logger.info("Workflow execution finished",
                       status=execution.status.value,
                       error=execution.error,
                       nodes_executed=len(execution.node_outputs),
                       execution_time=round(time.time() - start_time, 3))
            clear_execution_context("execution_id", "workflow_id")

        return execution

    def stop(self) -> None:
        """Flip the cancellation signal and mark the run cancelled immediately.

        In-flight handler work observes the signal at its next check point;
        this call does not wait for it to unwind.
        """
        if self.execution.status.is_terminal:
            return
        self.signal.abort(RUN_CANCELLED_MESSAGE)
        self.execution.status = ExecutionStatus.CANCELLED
        self.execution.completed_at = utcnow()
        logger.info("Workflow execution stopped",
                   execution_id=self.execution.id, workflow_id=self.workflow.id)

    # =========================================================================
    # NODE EXECUTION
    # =========================================================================

    def _resolve_entry_nodes(self, start_node_id: Optional[str]) -> List[WorkflowNode]:
        entry_nodes = graph.find_entry_nodes(self.workflow, start_node_id)
        if start_node_id and not entry_nodes:
            raise StartNodeNotFoundError(start_node_id)
        if not entry_nodes:
            raise NoTriggerNodesError()
        return entry_nodes

    async def _execute_node(self, node: WorkflowNode, input_data: Any) -> Any:
        if self.signal.aborted:
            raise ExecutionCancelledError()
        if node.id in self._active_path:
            raise CycleDetectedError(node.id)

        self._active_path.add(node.id)
        try:
            self._log(node.id, LogLevel.INFO, f"Executing node: {node.label}")
            try:
                output = await self._execute_with_retry(node, input_data)
            except NodeExecutionError as e:
                self._log(node.id, LogLevel.ERROR, f"Node execution failed: {e}")
                raise

            self.execution.node_outputs[node.id] = output
            self._log(node.id, LogLevel.INFO, "Node executed successfully", output)

            for edge, target in graph.next_targets(self.workflow, node, output):
                await self._execute_node(target, output)

            return output
        finally:
            self._active_path.discard(node.id)

    # =========================================================================
    # RETRY LOGIC
    # =========================================================================

    def _run_settings(self, node: WorkflowNode) -> RunSettings:
        return node.run_settings or self.default_settings

    async def _execute_with_retry(self, node: WorkflowNode, input_data: Any) -> Any:
        settings = self._run_settings(node)
        max_attempts = settings.retry_count + 1
        attempt = 0

        while True:
            attempt += 1
            attempt_data = {"attempt": attempt, "maxAttempts": max_attempts}
            try:
                output = await self._run_attempt(node, input_data, settings)
            except NodeExecutionError as e:
                self._log(node.id, LogLevel.ERROR,
                          f"Attempt {attempt}/{max_attempts} failed: {e}", attempt_data)
                logger.warning("Node attempt failed",
                              node_id=node.id,
                              attempt=attempt,
                              max_attempts=max_attempts,
                              error=str(e))

                if attempt >= max_attempts:
                    if settings.continue_on_fail:
                        self._log(node.id, LogLevel.WARNING,
                                  f"Continuing after failure: {e}")
                        return error_output(str(e))
                    raise

                if settings.retry_delay_ms > 0:
                    completed = await self.signal.sleep(settings.retry_delay_ms / 1000)
                    if not completed:
                        raise ExecutionCancelledError()
                continue

            self._log(node.id, LogLevel.INFO,
                      f"Attempt {attempt}/{max_attempts} succeeded", attempt_data)
            return output

    async def _run_attempt(self, node: WorkflowNode, input_data: Any,
                           settings: RunSettings) -> Any:
        """Run one attempt under a fresh timeout scope.

        Raises:
            ExecutionCancelledError: The run was stopped
            NodeExecutionError: Handled failure, handler fault or timeout
        """
        if self.signal.aborted:
            raise ExecutionCancelledError()

        scope = self.signal.child()
        context = NodeExecutionContext(
            node_id=node.id,
            workflow_id=self.workflow.id,
            execution_id=self.execution.id,
            config=dict(node.config),
            input=input_data,
            previous_node_ids=graph.previous_node_ids(
                self.workflow, node.id, self.execution.node_outputs),
            signal=scope,
        )

        try:
            result = await asyncio.wait_for(
                self.node_executor.execute(node, context),
                timeout=settings.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            scope.abort("timeout")
            if self.signal.aborted:
                raise ExecutionCancelledError()
            raise NodeTimeoutError(node.id, settings.timeout_ms)
        finally:
            self.signal.release(scope)

        if self.signal.aborted:
            raise ExecutionCancelledError()
        if not result.success:
            raise NodeExecutionError(node.id, result.error or "Node execution failed")
        return result.output

    # =========================================================================
    # RECORD HELPERS
    # =========================================================================

    def _finish_cancelled(self, message: str) -> None:
        execution = self.execution
        execution.status = ExecutionStatus.CANCELLED
        if execution.error is None:
            execution.error = message
        self._log(LOG_WORKFLOW_END, LogLevel.WARNING, "Workflow cancelled")

    def _log(self, node_id: str, level: LogLevel, message: str, data: Any = None) -> None:
        self.execution.logs.append(ExecutionLog(
            node_id=node_id,
            level=level,
            message=message,
            data=data,
        ))
