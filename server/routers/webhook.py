"""Webhook ingestion routes.

Received payloads are stored per workflow for inspection; receipt does not
start a workflow run.
"""

import json
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ValidationError, field_validator

from core.container import container
from core.logging import get_logger
from models.workflow import validate_workflow_id
from services.webhook_store import WebhookStore

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhook"])


class WebhookPayload(BaseModel):
    model_config = {"extra": "ignore"}

    event: Optional[str] = None
    data: Any = None
    timestamp: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v):
        if v is None:
            return v
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("timestamp must be an ISO 8601 datetime")
        return v


def _invalid_payload(details: Any) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid payload", "details": details},
    )


def _invalid_workflow_id(message: str) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid workflow ID", "details": [message]},
    )


@router.post("/{workflow_id}")
async def receive_webhook(
    workflow_id: str,
    request: Request,
    webhook_store: WebhookStore = Depends(lambda: container.webhook_store())
):
    """Validate and store an incoming webhook payload."""
    id_error = validate_workflow_id(workflow_id)
    if id_error:
        return _invalid_workflow_id(id_error)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _invalid_payload([{"loc": ["body"], "msg": "Body must be valid JSON"}])

    try:
        payload = WebhookPayload.model_validate(body)
    except ValidationError as e:
        return _invalid_payload([{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])

    entry = webhook_store.add(
        workflow_id.strip(),
        payload.model_dump(exclude_unset=True),
        headers=dict(request.headers),
    )
    logger.info("[Webhook] Received", workflow_id=workflow_id, event=payload.event)

    return {"success": True, "message": "Webhook received", "id": entry["id"]}


@router.get("/{workflow_id}")
async def list_webhooks(
    workflow_id: str,
    webhook_store: WebhookStore = Depends(lambda: container.webhook_store())
):
    """Stored payloads for a workflow, oldest first."""
    id_error = validate_workflow_id(workflow_id)
    if id_error:
        return _invalid_workflow_id(id_error)

    webhooks = webhook_store.list(workflow_id.strip())
    return {"workflowId": workflow_id, "webhooks": webhooks, "count": len(webhooks)}
