"""Registry of in-flight workflow executors, used to route stop requests."""

import threading
from typing import Dict, List, Optional

from core.logging import get_logger
from .errors import WorkflowAlreadyRunningError
from .executor import WorkflowExecutor

logger = get_logger(__name__)


class ExecutorRegistry:
    """Maps workflow id -> active WorkflowExecutor.

    Enforces at most one active run per workflow id. Instances are injected
    (see core.container) rather than shared module state, so tests can build
    isolated registries.
    """

    def __init__(self):
        self._executors: Dict[str, WorkflowExecutor] = {}
        self._lock = threading.Lock()

    def register(self, workflow_id: str, executor: WorkflowExecutor) -> None:
        """Claim the slot for ``workflow_id``.

        Raises:
            WorkflowAlreadyRunningError: Another run holds the slot
        """
        with self._lock:
            current = self._executors.get(workflow_id)
            if current is not None and current is not executor:
                raise WorkflowAlreadyRunningError(workflow_id)
            self._executors[workflow_id] = executor
        logger.debug("Executor registered", workflow_id=workflow_id,
                    execution_id=executor.execution_id)

    def release(self, workflow_id: str, executor: WorkflowExecutor) -> None:
        """Free the slot if it is still held by ``executor``."""
        with self._lock:
            if self._executors.get(workflow_id) is executor:
                del self._executors[workflow_id]

    def get(self, workflow_id: str) -> Optional[WorkflowExecutor]:
        with self._lock:
            return self._executors.get(workflow_id)

    def is_running(self, workflow_id: str) -> bool:
        return self.get(workflow_id) is not None

    def stop(self, workflow_id: str) -> bool:
        """Stop the active run for ``workflow_id``.

        Returns:
            True if a run was found and stopped
        """
        with self._lock:
            executor = self._executors.pop(workflow_id, None)
        if executor is None:
            logger.info("No active run to stop", workflow_id=workflow_id)
            return False
        executor.stop()
        return True

    def active_workflow_ids(self) -> List[str]:
        with self._lock:
            return list(self._executors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._executors)
