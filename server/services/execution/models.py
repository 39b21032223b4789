"""Execution engine state models.

All record models are JSON-serializable (camelCase ``to_dict``) so the API
layer can hand them to the editor unchanged.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from constants import NODE_CANCELLED_MESSAGE
from core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ExecutionStatus(str, Enum):
    """Workflow run states.

    State transitions:
        RUNNING -> COMPLETED
                -> FAILED
                -> CANCELLED
    Terminal states are final.
    """
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != ExecutionStatus.RUNNING


class LogLevel(str, Enum):
    """Severity of an execution log entry."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# CANCELLATION
# =============================================================================

class OperationCancelledError(Exception):
    """Raised by CancellationSignal.guard when the signal fires first."""

    def __init__(self, message: str = NODE_CANCELLED_MESSAGE):
        super().__init__(message)


class CancellationSignal:
    """Cooperative cancellation flag shared by one run and its handlers.

    A child scope aborts when its parent aborts, but aborting a child (for
    example on a per-attempt timeout) leaves the parent untouched.
    """

    def __init__(self, parent: Optional["CancellationSignal"] = None):
        self._event = asyncio.Event()
        self._children: List["CancellationSignal"] = []
        self.reason: Optional[str] = None
        if parent is not None and parent.aborted:
            self.abort(parent.reason)

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        for child in list(self._children):
            child.abort(reason)

    def child(self) -> "CancellationSignal":
        scope = CancellationSignal(parent=self)
        self._children.append(scope)
        return scope

    def release(self, scope: "CancellationSignal") -> None:
        if scope in self._children:
            self._children.remove(scope)

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless aborted first.

        Returns:
            True if the full duration elapsed, False if interrupted
        """
        if self.aborted:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` but abandon it as soon as the signal fires.

        Raises:
            OperationCancelledError: If the signal fired before completion
        """
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise OperationCancelledError()


# =============================================================================
# NODE CONTRACT
# =============================================================================

@dataclass
class NodeExecutionContext:
    """Everything a node handler is allowed to see."""
    node_id: str
    workflow_id: str
    execution_id: str
    config: Dict[str, Any] = field(default_factory=dict)
    input: Any = None
    previous_node_ids: List[str] = field(default_factory=list)
    signal: CancellationSignal = field(default_factory=CancellationSignal)

    @property
    def cancelled(self) -> bool:
        return self.signal.aborted


@dataclass
class NodeResult:
    """Handler outcome: success with output, or a handled failure."""
    success: bool
    output: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: Any = None) -> "NodeResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "NodeResult":
        return cls(success=False, error=error)

    @classmethod
    def cancelled(cls) -> "NodeResult":
        return cls(success=False, error=NODE_CANCELLED_MESSAGE)


# =============================================================================
# EXECUTION RECORD
# =============================================================================

@dataclass
class ExecutionLog:
    """One entry in a run's user-facing log trail."""
    node_id: str
    level: LogLevel
    message: str
    data: Any = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "timestamp": isoformat(self.timestamp),
            "nodeId": self.node_id,
            "level": self.level.value,
            "message": self.message,
        }
        if self.data is not None:
            d["data"] = self.data
        return d


@dataclass
class WorkflowExecution:
    """Record of one workflow run.

    Created at run start, mutated only by the owning WorkflowExecutor.
    """
    id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    logs: List[ExecutionLog] = field(default_factory=list)
    node_outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def create(cls, workflow_id: str) -> "WorkflowExecution":
        """Factory method to create a new running execution."""
        return cls(id=f"exec_{uuid.uuid4().hex[:12]}", workflow_id=workflow_id)

    @property
    def duration_ms(self) -> Optional[float]:
        if not self.completed_at:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def logs_for(self, node_id: str) -> List[ExecutionLog]:
        return [entry for entry in self.logs if entry.node_id == node_id]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "workflowId": self.workflow_id,
            "status": self.status.value,
            "startedAt": isoformat(self.started_at),
            "completedAt": isoformat(self.completed_at),
            "durationMs": self.duration_ms,
            "logs": [entry.to_dict() for entry in self.logs],
            "nodeOutputs": dict(self.node_outputs),
            "error": self.error,
        }
