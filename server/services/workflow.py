"""Workflow Service - facade for workflow execution and validation.

Delegates to specialized modules:
- NodeRegistry / NodeExecutor: per-subtype handlers and validators
- WorkflowExecutor: depth-first run of one workflow
- ExecutorRegistry: at most one active run per workflow id, routes stop()
"""

import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from pydantic import ValidationError

from constants import CATEGORY_ACTION
from core.credentials import migrate_database_node_config, needs_database_migration
from core.logging import get_logger, log_execution_time
from models.workflow import RunSettings, Workflow, validate_workflow_id
from services.execution import ExecutorRegistry, WorkflowExecution, WorkflowExecutor
from services.node_executor import NodeExecutor, NodeRegistry

if TYPE_CHECKING:
    from core.config import Settings
    from core.credentials import CredentialStore

logger = get_logger(__name__)


class WorkflowService:
    """Workflow execution and validation service."""

    def __init__(
        self,
        settings: "Settings",
        node_registry: NodeRegistry,
        executor_registry: ExecutorRegistry,
        credential_store: Optional["CredentialStore"] = None,
    ):
        self.settings = settings
        self.node_registry = node_registry
        self.executor_registry = executor_registry
        self.credential_store = credential_store
        self._node_executor = NodeExecutor(node_registry)

    @property
    def default_run_settings(self) -> RunSettings:
        return RunSettings(
            timeout_ms=self.settings.node_timeout_ms,
            retry_count=self.settings.node_retry_count,
            retry_delay_ms=self.settings.node_retry_delay_ms,
        )

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def create_executor(self, workflow: Workflow) -> WorkflowExecutor:
        return WorkflowExecutor(workflow, self._node_executor, self.default_run_settings)

    async def execute_workflow(self, workflow: Workflow,
                               start_node_id: Optional[str] = None) -> WorkflowExecution:
        """Run ``workflow`` to completion and return its execution record.

        Raises:
            WorkflowAlreadyRunningError: A run for this workflow id is in flight
        """
        executor = self.create_executor(workflow)
        self.executor_registry.register(workflow.id, executor)

        start_time = time.time()
        try:
            execution = await executor.execute(start_node_id)
        finally:
            self.executor_registry.release(workflow.id, executor)

        log_execution_time(logger, "execute_workflow", start_time, time.time(),
                           workflow_id=workflow.id, execution_id=execution.id,
                           status=execution.status.value, duration_ms=execution.duration_ms)
        return execution

    def stop_workflow(self, workflow_id: str) -> bool:
        """Signal cancellation to the active run of ``workflow_id``, if any."""
        stopped = self.executor_registry.stop(workflow_id)
        if stopped:
            logger.info("Workflow stop requested", workflow_id=workflow_id)
        else:
            logger.debug("No active run to stop", workflow_id=workflow_id)
        return stopped

    def is_running(self, workflow_id: str) -> bool:
        return self.executor_registry.is_running(workflow_id)

    # =========================================================================
    # MIGRATION
    # =========================================================================

    def migrate_workflow(self, workflow: Workflow) -> List[str]:
        """Move legacy database connection strings into the credential store.

        Updates node configs in place.

        Returns:
            Ids of the nodes whose config changed
        """
        if self.credential_store is None:
            return []

        migrated = []
        for node in workflow.nodes:
            if node.category != CATEGORY_ACTION or node.subtype != "database":
                continue
            if not needs_database_migration(node.config):
                continue
            node.config = migrate_database_node_config(node.config, self.credential_store)
            migrated.append(node.id)

        if migrated:
            logger.info("Migrated database nodes", workflow_id=workflow.id, node_ids=migrated)
        return migrated

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_nodes(self, workflow: Workflow) -> Dict[str, List[str]]:
        """Per-node config errors; nodes without errors are omitted."""
        node_errors: Dict[str, List[str]] = {}
        for node in workflow.nodes:
            errors = self.node_registry.validate_node(node)
            if errors:
                node_errors[node.id] = errors
        return node_errors

    def validate_workflow(self, data: Any) -> Dict[str, Any]:
        """Save-time validation of a serialized workflow.

        Args:
            data: Workflow dict as sent by the editor, or a Workflow

        Returns:
            {valid, errors, nodeErrors}
        """
        if isinstance(data, Workflow):
            data = data.model_dump(by_alias=True)

        if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
            return self._validation_result(["Invalid workflow: missing required fields"])

        errors = []
        id_error = validate_workflow_id(data["id"])
        if id_error:
            errors.append(id_error)

        if not data.get("nodes"):
            return self._validation_result(errors + ["Workflow must have at least one node"])

        try:
            workflow = Workflow.model_validate(data)
        except ValidationError as e:
            details = "; ".join(err["msg"] for err in e.errors())
            return self._validation_result(errors + [f"Invalid workflow: {details}"])

        if not workflow.trigger_nodes():
            errors.append("Workflow must have at least one trigger node")

        return self._validation_result(errors, self.validate_nodes(workflow))

    @staticmethod
    def _validation_result(errors: List[str],
                           node_errors: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
        node_errors = node_errors or {}
        return {
            "valid": not errors and not node_errors,
            "errors": errors,
            "nodeErrors": node_errors,
        }
