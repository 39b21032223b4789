"""
API tests for workflow execution, validation and webhook routes.

Container providers are overridden with test instances so no real
credentials, SMTP or network are involved.
"""

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from conftest import make_edge, make_node, make_workflow
from core.container import container
from main import app
from services.execution import WorkflowExecutor
from services.webhook_store import WebhookStore


@pytest.fixture
def webhook_store():
    return WebhookStore(retention=5)


@pytest.fixture
def client(workflow_service, node_registry, webhook_store):
    with container.workflow_service.override(providers.Object(workflow_service)), \
            container.node_registry.override(providers.Object(node_registry)), \
            container.webhook_store.override(providers.Object(webhook_store)):
        yield TestClient(app)


def workflow_payload(workflow_id="orders"):
    return {
        "id": workflow_id,
        "name": "Orders",
        "nodes": [
            make_node("t1", "trigger", "manual"),
            make_node("h1", "action", "http", {"method": "GET", "url": "https://api.example.com"}),
        ],
        "edges": [make_edge("t1", "h1")],
    }


# ============================================================================
# Execution
# ============================================================================

def test_execute_workflow(client):
    response = client.post("/api/execute-workflow", json={"workflow": workflow_payload()})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["workflowId"] == "orders"
    assert set(body["nodeOutputs"]) == {"t1", "h1"}
    assert body["completedAt"] is not None


def test_execute_reports_failure_in_record(client):
    payload = workflow_payload()
    payload["nodes"] = [make_node("d1", "action", "delay", {"value": 0})]
    payload["edges"] = []

    response = client.post("/api/execute-workflow", json={"workflow": payload})

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error"] == "No trigger nodes found in workflow"


def test_execute_from_start_node(client):
    response = client.post("/api/execute-workflow",
                           json={"workflow": workflow_payload(), "startNodeId": "h1"})

    assert set(response.json()["nodeOutputs"]) == {"h1"}


@pytest.mark.parametrize("body", [{}, {"workflow": {"name": "no id"}}])
def test_execute_invalid_workflow(client, body):
    response = client.post("/api/execute-workflow", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid workflow"


def test_execute_malformed_nodes(client):
    payload = workflow_payload()
    payload["nodes"] = [{"id": "x", "category": "sensor", "subtype": "temp"}]

    response = client.post("/api/execute-workflow", json={"workflow": payload})

    assert response.status_code == 400
    assert response.json()["details"]


def test_execute_conflict_when_running(client, executor_registry, node_executor):
    holder = WorkflowExecutor(make_workflow(workflow_payload()["nodes"], workflow_id="orders"),
                              node_executor)
    executor_registry.register("orders", holder)

    response = client.post("/api/execute-workflow", json={"workflow": workflow_payload()})

    assert response.status_code == 409
    assert response.json()["error"] == "Workflow is already running: orders"


def test_stop_workflow(client, executor_registry, node_executor):
    holder = WorkflowExecutor(make_workflow(workflow_payload()["nodes"], workflow_id="orders"),
                              node_executor)
    executor_registry.register("orders", holder)

    response = client.request("DELETE", "/api/execute-workflow", json={"workflowId": "orders"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert holder.execution.status.value == "cancelled"
    assert not executor_registry.is_running("orders")


def test_stop_unknown_workflow_is_ok(client):
    response = client.request("DELETE", "/api/execute-workflow", json={"workflowId": "nothing"})

    assert response.json() == {"ok": True}


# ============================================================================
# Editor support
# ============================================================================

def test_validate_workflow(client):
    payload = workflow_payload()
    payload["nodes"][1]["config"] = {"method": "GET"}

    response = client.post("/api/workflow/validate", json={"workflow": payload})

    assert response.status_code == 200
    assert response.json() == {"valid": False, "errors": [], "nodeErrors": {"h1": ["URL is required"]}}


def test_migrate_workflow(client):
    payload = workflow_payload()
    payload["nodes"][1] = make_node("db1", "action", "database",
                                    {"connectionString": "sqlite:///shop.db", "query": "SELECT 1"})

    response = client.post("/api/workflow/migrate", json={"workflow": payload})

    assert response.status_code == 200
    body = response.json()
    assert body["migratedNodes"] == ["db1"]
    migrated = next(n for n in body["workflow"]["nodes"] if n["id"] == "db1")
    assert migrated["config"]["credentialId"].startswith("cred_")
    assert "connectionString" not in migrated["config"]


def test_migrate_invalid_workflow(client):
    response = client.post("/api/workflow/migrate", json={"workflow": {"id": "x", "nodes": "bad"}})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid workflow"


def test_node_types(client):
    response = client.get("/api/workflow/node-types")

    subtypes = {(t["category"], t["subtype"]) for t in response.json()["nodeTypes"]}
    assert ("action", "email") in subtypes
    assert len(subtypes) == 12


def test_operators(client):
    operators = client.get("/api/workflow/operators").json()["operators"]

    assert set(operators) == {"equals", "notEquals", "contains", "greaterThan", "lessThan"}


def test_cron_describe(client):
    valid = client.get("/api/workflow/cron/describe", params={"cron": "0 9 * * 1-5"}).json()
    invalid = client.get("/api/workflow/cron/describe", params={"cron": "bad"}).json()

    assert valid["valid"] is True
    assert valid["description"] == "Weekdays at 9 AM"
    assert valid["nextRunAt"]
    assert invalid["valid"] is False
    assert invalid["error"].startswith("Invalid cron expression")


# ============================================================================
# Webhooks
# ============================================================================

def test_receive_and_list_webhooks(client, webhook_store):
    response = client.post("/webhooks/orders", json={"event": "created", "data": {"id": 7},
                                                     "timestamp": "2026-01-02T03:04:05Z"},
                           headers={"X-Source": "shop"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Webhook received"

    listed = client.get("/webhooks/orders").json()
    assert listed["workflowId"] == "orders"
    assert listed["count"] == 1
    entry = listed["webhooks"][0]
    assert entry["id"] == body["id"]
    assert entry["event"] == "created"
    assert entry["data"] == {"id": 7}
    assert entry["headers"]["x-source"] == "shop"


def test_webhook_does_not_start_a_run(client, executor_registry):
    client.post("/webhooks/orders", json={"data": 1})

    assert len(executor_registry) == 0


@pytest.mark.parametrize("payload", [
    {"event": 5},
    {"timestamp": "yesterday"},
    ["not", "an", "object"],
])
def test_invalid_webhook_payload(client, payload):
    response = client.post("/webhooks/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"] == "Invalid payload"
    assert response.json()["details"]


def test_non_json_webhook_body(client):
    response = client.post("/webhooks/orders", content=b"plain text",
                           headers={"Content-Type": "text/plain"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payload"


def test_invalid_workflow_id(client):
    response = client.post("/webhooks/admin", json={"data": 1})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid workflow ID"


def test_webhook_retention(client):
    for index in range(7):
        client.post("/webhooks/orders", json={"data": index})

    listed = client.get("/webhooks/orders").json()
    assert listed["count"] == 5
    assert listed["webhooks"][0]["data"] == 2


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "OK"
