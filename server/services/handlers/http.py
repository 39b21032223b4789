"""HTTP node handler - HTTP Request action."""

import base64
import json
import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

from constants import HTTP_AUTH_TYPES, HTTP_METHODS
from core.logging import get_logger
from services.execution.models import NodeExecutionContext, NodeResult, OperationCancelledError

if TYPE_CHECKING:
    from core.config import Settings

logger = get_logger(__name__)

HTTP_DEFAULTS: Dict[str, Any] = {
    "method": "GET",
    "url": "",
    "authentication": {"type": "none"},
}

DEFAULT_API_KEY_HEADER = "X-API-Key"


def validate_http_config(config: Dict[str, Any]) -> List[str]:
    errors = []

    url = config.get("url")
    if not isinstance(url, str) or not url.strip():
        errors.append("URL is required")

    method = config.get("method") or "GET"
    if method not in HTTP_METHODS:
        errors.append(f"Invalid HTTP method: {method}")

    auth = config.get("authentication") or {}
    auth_type = auth.get("type") or "none"
    if auth_type not in HTTP_AUTH_TYPES:
        errors.append(f"Invalid authentication type: {auth_type}")
    elif auth_type != "none" and not auth.get("value"):
        errors.append("Authentication value is required for selected auth type")

    return errors


def _parse_json_field(value: Any, field_name: str) -> Any:
    """Accept a dict/list directly or decode it from a JSON string."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {field_name}: {e.msg}") from e
    return value


def build_request_headers(config: Dict[str, Any]) -> Dict[str, str]:
    """Merge configured headers with authentication headers."""
    headers = _parse_json_field(config.get("headers"), "headers") or {}
    if not isinstance(headers, dict):
        raise ValueError("Headers must be a JSON object")
    headers = {str(k): str(v) for k, v in headers.items()}

    auth = config.get("authentication") or {}
    auth_type = auth.get("type") or "none"
    value = str(auth.get("value") or "")

    if auth_type == "bearer":
        headers["Authorization"] = f"Bearer {value}"
    elif auth_type == "basic":
        # Raw "user:pass" is encoded; anything else is assumed pre-encoded
        token = base64.b64encode(value.encode()).decode() if ":" in value else value
        headers["Authorization"] = f"Basic {token}"
    elif auth_type == "apiKey":
        headers[auth.get("headerName") or DEFAULT_API_KEY_HEADER] = value

    return headers


def _parse_response_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def handle_http_request(
    context: NodeExecutionContext,
    settings: Optional["Settings"] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NodeResult:
    """Handle HTTP request node execution.

    Args:
        context: Node execution context (config holds method/url/headers/body/auth)
        settings: Application settings (default request timeout)
        transport: Optional httpx transport, used by tests to mock responses

    Returns:
        NodeResult with status/statusText/headers/data/url/method
    """
    if context.cancelled:
        return NodeResult.cancelled()

    config = context.config
    errors = validate_http_config(config)
    if errors:
        return NodeResult.fail(errors[0])

    start_time = time.time()
    method = config.get("method") or "GET"
    url = config["url"].strip()
    timeout_ms = config.get("timeoutMs") or (settings.http_timeout_ms if settings else 30000)

    try:
        headers = build_request_headers(config)
        body = _parse_json_field(config.get("body"), "body")
    except ValueError as e:
        return NodeResult.fail(str(e))

    request_kwargs: Dict[str, Any] = {"method": method, "url": url, "headers": headers}
    if config.get("queryParams"):
        request_kwargs["params"] = config["queryParams"]
    if body is not None and method != "GET":
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        else:
            request_kwargs["content"] = str(body)

    logger.info("[HTTP Request] Executing", node_id=context.node_id, method=method, url=url)

    client_kwargs: Dict[str, Any] = {"timeout": timeout_ms / 1000}
    if transport is not None:
        client_kwargs["transport"] = transport

    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            response = await context.signal.guard(client.request(**request_kwargs))
    except OperationCancelledError:
        logger.info("HTTP request cancelled", node_id=context.node_id, url=url)
        return NodeResult.cancelled()
    except httpx.TimeoutException:
        logger.error("HTTP request timed out", node_id=context.node_id, url=url)
        return NodeResult.fail(f"Request timed out after {timeout_ms}ms")
    except httpx.HTTPError as e:
        logger.error("HTTP request failed", node_id=context.node_id, url=url, error=str(e))
        return NodeResult.fail(f"HTTP request failed: {e}")

    result_data = {
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "headers": dict(response.headers),
        "data": _parse_response_body(response),
        "url": str(response.url),
        "method": method,
    }

    logger.info("[HTTP Request] Completed", node_id=context.node_id,
               status=response.status_code,
               execution_time=round(time.time() - start_time, 3))

    if response.status_code >= 400:
        return NodeResult.fail(f"HTTP {response.status_code}: {response.reason_phrase}")
    return NodeResult.ok(result_data)
