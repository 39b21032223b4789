"""Workflow execution and editor support routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field, ValidationError

from core.container import container
from core.logging import get_logger
from models.workflow import Workflow
from services.execution import WorkflowAlreadyRunningError, get_available_operators
from services.node_executor import NodeRegistry
from services.scheduler import describe_cron, get_next_run_time, validate_cron
from services.workflow import WorkflowService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["workflow"])


class ExecuteWorkflowRequest(BaseModel):
    model_config = {"populate_by_name": True}

    workflow: Optional[Dict[str, Any]] = None
    start_node_id: Optional[str] = Field(default=None, alias="startNodeId")


class StopWorkflowRequest(BaseModel):
    model_config = {"populate_by_name": True}

    workflow_id: str = Field(alias="workflowId")


def _error_details(error: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in error.errors()]


@router.post("/execute-workflow")
async def execute_workflow(
    request: ExecuteWorkflowRequest,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Run a workflow and return its execution record.

    Failures inside the run are reported in the record itself; only
    malformed input (400) and a concurrent run of the same id (409) are
    reported as HTTP errors.
    """
    if not request.workflow or not request.workflow.get("id"):
        return ORJSONResponse(status_code=400, content={"error": "Invalid workflow"})

    try:
        workflow = Workflow.model_validate(request.workflow)
    except ValidationError as e:
        return ORJSONResponse(status_code=400,
                              content={"error": "Invalid workflow", "details": _error_details(e)})

    try:
        execution = await workflow_service.execute_workflow(workflow, request.start_node_id)
    except WorkflowAlreadyRunningError as e:
        logger.warning("Rejected concurrent run", workflow_id=workflow.id)
        return ORJSONResponse(status_code=409, content={"error": str(e)})

    return execution.to_dict()


@router.delete("/execute-workflow")
async def stop_workflow(
    request: StopWorkflowRequest,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Signal cancellation for the active run of a workflow."""
    workflow_service.stop_workflow(request.workflow_id)
    return {"ok": True}


@router.post("/workflow/validate")
async def validate_workflow(
    payload: Dict[str, Any] = Body(...),
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Save-time validation: structure, triggers and per-node config."""
    data = payload.get("workflow") if isinstance(payload.get("workflow"), dict) else payload
    return workflow_service.validate_workflow(data)


@router.post("/workflow/migrate")
async def migrate_workflow(
    payload: Dict[str, Any] = Body(...),
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Replace legacy database connection strings with stored credentials."""
    data = payload.get("workflow") if isinstance(payload.get("workflow"), dict) else payload
    try:
        workflow = Workflow.model_validate(data)
    except ValidationError as e:
        return ORJSONResponse(status_code=400,
                              content={"error": "Invalid workflow", "details": _error_details(e)})

    migrated = workflow_service.migrate_workflow(workflow)
    return {"workflow": workflow.model_dump(by_alias=True), "migratedNodes": migrated}


@router.get("/workflow/node-types")
async def list_node_types(
    node_registry: NodeRegistry = Depends(lambda: container.node_registry())
):
    """Node subtypes with labels and default configs for the palette."""
    return {"nodeTypes": node_registry.describe()}


@router.get("/workflow/operators")
async def list_operators():
    """Condition operators for If and Filter nodes."""
    return {"operators": get_available_operators()}


@router.get("/workflow/cron/describe")
async def describe_cron_expression(
    cron: str = Query(...),
    timezone: str = Query("UTC"),
):
    """Describe a cron expression and compute its next run time."""
    error = validate_cron(cron, timezone)
    if error:
        return {"cron": cron, "valid": False, "error": error}

    next_run = get_next_run_time(cron, timezone)
    return {
        "cron": cron,
        "valid": True,
        "description": describe_cron(cron),
        "nextRunAt": next_run.isoformat() if next_run else None,
    }
