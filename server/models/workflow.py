"""Pydantic models for the serialized workflow graph.

The editor produces React Flow shaped nodes (``data.nodeType``,
``data.triggerType`` ...); API clients may also send the flat shape
(``category``, ``subtype``, ``config``). Both are normalized here so the
engine only ever sees ``WorkflowNode`` instances.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from constants import (
    DEFAULT_CONTINUE_ON_FAIL,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    NODE_CATEGORIES,
    RESERVED_WORKFLOW_IDS,
    SUBTYPE_KEYS,
    is_trigger_category,
)


# =============================================================================
# GRAPH MODELS
# =============================================================================

class RunSettings(BaseModel):
    """Per-node timeout, retry and continue-on-fail policy."""
    model_config = {"populate_by_name": True, "extra": "ignore"}

    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, alias="timeoutMs", ge=1)
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, alias="retryCount", ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, alias="retryDelayMs", ge=0)
    continue_on_fail: bool = Field(default=DEFAULT_CONTINUE_ON_FAIL, alias="continueOnFail")


class WorkflowNode(BaseModel):
    """A single node: category + subtype select the handler, config feeds it."""
    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str = Field(min_length=1)
    category: str
    subtype: str
    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    run_settings: Optional[RunSettings] = Field(default=None, alias="runSettings")
    error: Optional[str] = None
    position: Optional[Dict[str, float]] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_editor_shape(cls, values: Any) -> Any:
        """Lift ``data.*`` fields of an editor node to the top level."""
        if not isinstance(values, dict) or not isinstance(values.get("data"), dict):
            return values

        data = values["data"]
        category = values.get("category") or data.get("nodeType") or values.get("type")
        flat = {
            "id": values.get("id"),
            "category": category,
            "subtype": values.get("subtype") or data.get(SUBTYPE_KEYS.get(category, ""), ""),
            "label": data.get("label", values.get("label", "")),
            "config": data.get("config") or {},
            "error": data.get("error"),
            "position": values.get("position"),
        }
        run_settings = data.get("runSettings", values.get("runSettings"))
        if run_settings is not None:
            flat["runSettings"] = run_settings
        return flat

    @model_validator(mode="after")
    def check_category(self) -> "WorkflowNode":
        if self.category not in NODE_CATEGORIES:
            raise ValueError(f"Unknown node category: {self.category}")
        if not self.label:
            self.label = self.id
        return self

    @property
    def is_trigger(self) -> bool:
        return is_trigger_category(self.category)

    @property
    def key(self) -> tuple:
        return (self.category, self.subtype)


class WorkflowEdge(BaseModel):
    """Directed connection; ``source_handle`` only matters for If branches."""
    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")


class Workflow(BaseModel):
    """Fully materialized workflow handed to the engine for one run."""
    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    is_active: bool = Field(default=False, alias="isActive")

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def trigger_nodes(self) -> List[WorkflowNode]:
        return [node for node in self.nodes if node.is_trigger]


# =============================================================================
# WORKFLOW ID VALIDATION
# =============================================================================

# Letters, digits, '-' and '_'; no leading, trailing or doubled separators
WORKFLOW_ID_PATTERN = re.compile(r"^(?!.*[_-]{2})(?![_-])(?!.*[_-]$)[a-zA-Z0-9_-]+$")
WORKFLOW_ID_MAX_LENGTH = 64


def validate_workflow_id(value: Any) -> Optional[str]:
    """Return an error message for an unusable workflow id, or None.

    Examples:
        >>> validate_workflow_id("order-sync") is None
        True
        >>> validate_workflow_id("admin")
        "Workflow ID 'admin' is reserved"
    """
    if not isinstance(value, str):
        return "Workflow ID must be a string"

    workflow_id = value.strip()
    if not workflow_id:
        return "Workflow ID is required"
    if len(workflow_id) > WORKFLOW_ID_MAX_LENGTH:
        return f"Workflow ID must be at most {WORKFLOW_ID_MAX_LENGTH} characters"
    if not WORKFLOW_ID_PATTERN.match(workflow_id):
        return ("Workflow ID may only contain letters, numbers, hyphens and underscores, "
                "and cannot start, end or repeat a separator")
    if workflow_id.lower() in RESERVED_WORKFLOW_IDS:
        return f"Workflow ID '{workflow_id}' is reserved"
    return None


def is_valid_workflow_id(value: Any) -> bool:
    return validate_workflow_id(value) is None
