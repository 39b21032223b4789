"""Node Executor - node definitions and handler dispatch.

Uses a registry keyed by ``(category, subtype)`` for handler dispatch without
if-else chains. Collaborators (settings, credential store, HTTP transport) are
bound into handlers via ``functools.partial`` when the registry is built.
"""

import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

import httpx

from core.logging import get_logger
from constants import CATEGORY_ACTION, CATEGORY_LOGIC, CATEGORY_TRIGGER
from models.workflow import WorkflowNode
from services.execution.models import NodeExecutionContext, NodeResult
from services.handlers import (
    handle_manual_trigger, handle_webhook_trigger, handle_schedule_trigger,
    validate_schedule_config, WEBHOOK_DEFAULTS, SCHEDULE_DEFAULTS,
    handle_http_request, validate_http_config, HTTP_DEFAULTS,
    handle_email, validate_email_config, EMAIL_DEFAULTS,
    handle_database, validate_database_config, DATABASE_DEFAULTS,
    handle_transform, validate_transform_config, TRANSFORM_DEFAULTS,
    handle_delay, validate_delay_config, DELAY_DEFAULTS,
    handle_if, handle_filter, handle_switch, handle_loop,
    validate_condition_config, CONDITION_DEFAULTS,
)

if TYPE_CHECKING:
    from core.config import Settings
    from core.credentials import CredentialStore

logger = get_logger(__name__)

NodeHandler = Callable[[NodeExecutionContext], Awaitable[NodeResult]]
ConfigValidator = Callable[[Dict[str, Any]], List[str]]


def _accept_any(config: Dict[str, Any]) -> List[str]:
    return []


@dataclass
class NodeDefinition:
    """Execution contract and editor metadata for one node subtype."""
    category: str
    subtype: str
    label: str
    execute: NodeHandler
    validate: ConfigValidator = _accept_any
    description: str = ""
    defaults: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.category, self.subtype)

    def describe(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "subtype": self.subtype,
            "label": self.label,
            "description": self.description,
            "defaults": dict(self.defaults),
        }


class NodeRegistry:
    """Lookup table from (category, subtype) to NodeDefinition."""

    def __init__(self):
        self._definitions: Dict[Tuple[str, str], NodeDefinition] = {}

    def register(self, definition: NodeDefinition) -> None:
        if definition.key in self._definitions:
            logger.warning("Replacing node definition",
                          category=definition.category, subtype=definition.subtype)
        self._definitions[definition.key] = definition

    def get(self, category: str, subtype: str) -> Optional[NodeDefinition]:
        return self._definitions.get((category, subtype))

    def has(self, category: str, subtype: str) -> bool:
        return (category, subtype) in self._definitions

    def list(self) -> List[NodeDefinition]:
        return list(self._definitions.values())

    def describe(self) -> List[Dict[str, Any]]:
        return [definition.describe() for definition in self._definitions.values()]

    def get_default_config(self, category: str, subtype: str) -> Dict[str, Any]:
        definition = self.get(category, subtype)
        return dict(definition.defaults) if definition else {}

    def validate(self, category: str, subtype: str, config: Dict[str, Any]) -> List[str]:
        """Run the subtype's validator; unknown subtypes yield a single error."""
        definition = self.get(category, subtype)
        if definition is None:
            return [f"Unknown {category} type: {subtype}"]
        return list(definition.validate(config or {}))

    def validate_node(self, node: WorkflowNode) -> List[str]:
        return self.validate(node.category, node.subtype, node.config)


class NodeExecutor:
    """Executes individual workflow nodes using registry-based dispatch.

    Any exception escaping a handler is converted into a failed NodeResult;
    only asyncio cancellation propagates.
    """

    def __init__(self, registry: NodeRegistry):
        self.registry = registry

    async def execute(self, node: WorkflowNode, context: NodeExecutionContext) -> NodeResult:
        definition = self.registry.get(node.category, node.subtype)
        if definition is None:
            logger.error("No handler registered", node_id=node.id,
                        category=node.category, subtype=node.subtype)
            return NodeResult.fail(f"Unknown {node.category} type: {node.subtype}")

        try:
            result = await definition.execute(context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Node handler raised", node_id=node.id,
                        subtype=node.subtype, error=str(e), exc_info=True)
            return NodeResult.fail(str(e) or type(e).__name__)

        if not isinstance(result, NodeResult):
            return NodeResult.fail(f"Handler returned invalid result: {type(result).__name__}")
        return result


def build_node_registry(settings: "Settings",
                        credential_store: Optional["CredentialStore"] = None,
                        transport: Optional[httpx.AsyncBaseTransport] = None) -> NodeRegistry:
    """Build the built-in node registry with service dependencies bound via partial."""
    registry = NodeRegistry()

    definitions = [
        # Triggers
        NodeDefinition(CATEGORY_TRIGGER, 'manual', 'Manual Trigger', handle_manual_trigger,
                       description='Start the workflow by hand'),
        NodeDefinition(CATEGORY_TRIGGER, 'webhook', 'Webhook', handle_webhook_trigger,
                       description='Start on an incoming HTTP request', defaults=WEBHOOK_DEFAULTS),
        NodeDefinition(CATEGORY_TRIGGER, 'schedule', 'Schedule', handle_schedule_trigger,
                       validate=validate_schedule_config,
                       description='Start on a cron schedule', defaults=SCHEDULE_DEFAULTS),
        # Actions
        NodeDefinition(CATEGORY_ACTION, 'http', 'HTTP Request',
                       partial(handle_http_request, settings=settings, transport=transport),
                       validate=validate_http_config,
                       description='Call an HTTP endpoint', defaults=HTTP_DEFAULTS),
        NodeDefinition(CATEGORY_ACTION, 'email', 'Send Email',
                       partial(handle_email, settings=settings, transport=transport),
                       validate=validate_email_config,
                       description='Send an email message', defaults=EMAIL_DEFAULTS),
        NodeDefinition(CATEGORY_ACTION, 'database', 'Database Query',
                       partial(handle_database, credential_store=credential_store),
                       validate=partial(validate_database_config, credential_store=credential_store),
                       description='Run a SQL query', defaults=DATABASE_DEFAULTS),
        NodeDefinition(CATEGORY_ACTION, 'transform', 'Transform Data', handle_transform,
                       validate=validate_transform_config,
                       description='Map, filter, reduce, sort, group or merge items',
                       defaults=TRANSFORM_DEFAULTS),
        NodeDefinition(CATEGORY_ACTION, 'delay', 'Delay', handle_delay,
                       validate=validate_delay_config,
                       description='Wait before continuing', defaults=DELAY_DEFAULTS),
        # Logic
        NodeDefinition(CATEGORY_LOGIC, 'if', 'If Condition', handle_if,
                       validate=validate_condition_config,
                       description='Branch on a condition', defaults=CONDITION_DEFAULTS),
        NodeDefinition(CATEGORY_LOGIC, 'filter', 'Filter', handle_filter,
                       validate=validate_condition_config,
                       description='Keep items matching a condition', defaults=CONDITION_DEFAULTS),
        NodeDefinition(CATEGORY_LOGIC, 'switch', 'Switch', handle_switch,
                       description='Route by value (placeholder)'),
        NodeDefinition(CATEGORY_LOGIC, 'loop', 'Loop', handle_loop,
                       description='Iterate over items (placeholder)'),
    ]

    for definition in definitions:
        registry.register(definition)

    logger.debug("Node registry built", node_types=len(definitions))
    return registry
