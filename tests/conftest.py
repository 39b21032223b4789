"""
Shared fixtures for engine, handler and API tests.

Workflows are built from flat node dicts; handlers that need the network
get an ``httpx.MockTransport``.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from cryptography.fernet import Fernet

from core.config import Settings
from core.credentials import CredentialStore
from core.encryption import EncryptionService
from models.workflow import Workflow
from services.execution import ExecutorRegistry, NodeExecutionContext
from services.node_executor import NodeExecutor, build_node_registry
from services.workflow import WorkflowService


# ============================================================================
# Builders
# ============================================================================

def make_node(node_id: str, category: str, subtype: str,
              config: Optional[Dict[str, Any]] = None, **run_settings) -> Dict[str, Any]:
    """Flat node dict; keyword args become runSettings (camelCase)."""
    node = {"id": node_id, "category": category, "subtype": subtype, "config": config or {}}
    if run_settings:
        node["runSettings"] = run_settings
    return node


def make_edge(source: str, target: str, handle: Optional[str] = None) -> Dict[str, Any]:
    edge = {"id": f"{source}->{target}", "source": source, "target": target}
    if handle is not None:
        edge["sourceHandle"] = handle
    return edge


def make_workflow(nodes: List[Dict[str, Any]], edges: Optional[List[Dict[str, Any]]] = None,
                  workflow_id: str = "wf-test") -> Workflow:
    return Workflow.model_validate({
        "id": workflow_id,
        "name": "Test Workflow",
        "nodes": nodes,
        "edges": edges or [],
    })


def make_context(config: Optional[Dict[str, Any]] = None, input: Any = None,
                 node_id: str = "node-1") -> NodeExecutionContext:
    return NodeExecutionContext(
        node_id=node_id,
        workflow_id="wf-test",
        execution_id="exec_test",
        config=config or {},
        input=input,
    )


def json_transport(payload: Any = None, status_code: int = 200,
                   recorder: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """MockTransport answering every request with the same JSON body."""
    def handler(request: httpx.Request) -> httpx.Response:
        if recorder is not None:
            recorder.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else {"ok": True})
    return httpx.MockTransport(handler)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content.decode())


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return Settings(
        email_simulate=False,
        smtp_host=None,
        sendgrid_api_key=None,
        node_timeout_ms=30000,
        node_retry_count=0,
        node_retry_delay_ms=0,
        webhook_retention=100,
    )


@pytest.fixture(scope="session")
def encryption():
    # Skips PBKDF2 derivation, which is slow by design
    return EncryptionService.from_key(Fernet.generate_key())


@pytest.fixture
def credential_store(encryption):
    return CredentialStore(encryption)


@pytest.fixture
def http_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def transport(http_requests):
    return json_transport({"message": "hello"}, recorder=http_requests)


@pytest.fixture
def node_registry(settings, credential_store, transport):
    return build_node_registry(settings, credential_store=credential_store, transport=transport)


@pytest.fixture
def node_executor(node_registry):
    return NodeExecutor(node_registry)


@pytest.fixture
def executor_registry():
    return ExecutorRegistry()


@pytest.fixture
def workflow_service(settings, node_registry, executor_registry, credential_store):
    return WorkflowService(
        settings=settings,
        node_registry=node_registry,
        executor_registry=executor_registry,
        credential_store=credential_store,
    )


@pytest.fixture
def register_handler(node_registry) -> Callable:
    """Register an ad-hoc handler under ``(category, subtype)`` for one test."""
    from services.node_executor import NodeDefinition

    def register(category: str, subtype: str, handler, validate=None):
        definition = NodeDefinition(category, subtype, subtype.title(), handler)
        if validate is not None:
            definition.validate = validate
        node_registry.register(definition)
        return definition

    return register
