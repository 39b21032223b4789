"""Database node handler.

Resolves the connection (credential reference or legacy raw string) and
returns mock results per operation; no database driver is contacted.
"""

import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from constants import DATABASE_OPERATIONS
from core.credentials import validate_database_node_config
from core.logging import get_logger
from services.execution.models import NodeExecutionContext, NodeResult

if TYPE_CHECKING:
    from core.credentials import CredentialStore

logger = get_logger(__name__)

SIMULATED_LATENCY_SECONDS = 0.1

DATABASE_DEFAULTS: Dict[str, Any] = {
    "operation": "select",
    "query": "",
    "credentialId": "",
}

MOCK_ROWS = [
    {"id": 1, "name": "Mock User 1", "email": "user1@example.com"},
    {"id": 2, "name": "Mock User 2", "email": "user2@example.com"},
]


def validate_database_config(config: Dict[str, Any],
                             credential_store: Optional["CredentialStore"] = None) -> List[str]:
    errors = validate_database_node_config(config, credential_store)

    query = config.get("query")
    if not isinstance(query, str) or not query.strip():
        errors.append("SQL query is required")

    operation = config.get("operation") or DATABASE_DEFAULTS["operation"]
    if operation not in DATABASE_OPERATIONS:
        errors.append(f"Unsupported operation: {operation}")

    return errors


def _mock_result(operation: str, query: str, duration_ms: float) -> Optional[Dict[str, Any]]:
    base = {"operation": operation, "duration": duration_ms, "query": query}
    if operation == "select":
        return {**base, "rows": [dict(row) for row in MOCK_ROWS]}
    if operation == "insert":
        return {**base, "affectedRows": 1, "insertId": 123}
    if operation == "update":
        return {**base, "affectedRows": 2}
    if operation == "delete":
        return {**base, "affectedRows": 1}
    return None


async def handle_database(
    context: NodeExecutionContext,
    credential_store: Optional["CredentialStore"] = None,
) -> NodeResult:
    """Handle database node execution.

    Args:
        context: Node execution context (config holds credentialId/connectionString,
                 operation and query)
        credential_store: Store used to resolve credential references

    Returns:
        NodeResult with operation, duration, query and mock rows/affectedRows
    """
    if context.cancelled:
        return NodeResult.cancelled()

    start_time = time.time()
    config = context.config
    if not config:
        return NodeResult.fail("Node configuration is missing")

    credential_id = config.get("credentialId")
    legacy_connection = config.get("connectionString")

    if isinstance(credential_id, str) and credential_id.strip():
        connection_string = (
            credential_store.resolve_connection_string(credential_id)
            if credential_store is not None else None
        )
        if not connection_string:
            logger.error("Failed to resolve database credential",
                        node_id=context.node_id, credential_id=credential_id)
            return NodeResult.fail("Failed to resolve database credential")
    elif isinstance(legacy_connection, str) and legacy_connection.strip():
        logger.warning("Using legacy connectionString, consider migrating to a credential reference",
                      node_id=context.node_id)
    else:
        return NodeResult.fail("Database credential is required")

    query = config.get("query")
    if not isinstance(query, str) or not query.strip():
        return NodeResult.fail("SQL query is required")

    operation = config.get("operation") or DATABASE_DEFAULTS["operation"]
    if operation not in DATABASE_OPERATIONS:
        return NodeResult.fail(f"Unsupported operation: {operation}")

    if not await context.signal.sleep(SIMULATED_LATENCY_SECONDS):
        return NodeResult.cancelled()

    duration_ms = round((time.time() - start_time) * 1000, 2)
    result = _mock_result(operation, query, duration_ms)

    logger.info("[Database] Query executed", node_id=context.node_id,
               operation=operation, duration_ms=duration_ms)
    return NodeResult.ok(result)
