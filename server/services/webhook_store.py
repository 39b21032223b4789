"""In-memory store for received webhook payloads.

Payloads are kept per workflow id, newest last, up to a retention cap.
Receiving a webhook does not start a workflow run.
"""

import threading
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from core.logging import get_logger
from services.execution.models import utcnow

logger = get_logger(__name__)


class WebhookStore:
    """Thread-safe per-workflow ring buffer of webhook entries."""

    def __init__(self, retention: int = 100):
        self.retention = retention
        self._entries: Dict[str, Deque[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def add(self, workflow_id: str, payload: Dict[str, Any],
            headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Record a validated payload and return the stored entry."""
        entry = {
            "id": str(uuid.uuid4()),
            "workflowId": workflow_id,
            "receivedAt": utcnow().isoformat(),
            "headers": dict(headers or {}),
            **payload,
        }
        with self._lock:
            bucket = self._entries.setdefault(workflow_id, deque(maxlen=self.retention))
            bucket.append(entry)
        logger.info("Webhook stored", workflow_id=workflow_id, webhook_id=entry["id"])
        return entry

    def list(self, workflow_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._entries.get(workflow_id, ()))

    def count(self, workflow_id: str) -> int:
        with self._lock:
            return len(self._entries.get(workflow_id, ()))

    def clear(self, workflow_id: Optional[str] = None) -> None:
        with self._lock:
            if workflow_id is None:
                self._entries.clear()
            else:
                self._entries.pop(workflow_id, None)
