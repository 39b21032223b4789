"""Email node handler - SMTP, Gmail, Outlook and SendGrid providers.

Recipient/subject/body checks are shared between ``validate_email_config``
(editor-time) and ``handle_email`` (run-time) so both report identical
messages for the same problem.

When ``EMAIL_SIMULATE`` is enabled the handler logs a warning and returns a
result marked ``(Simulated)`` instead of contacting a provider.
"""

import re
import uuid
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import aiosmtplib
import httpx

from constants import EMAIL_SERVICE_TYPES
from core.logging import get_logger
from services.execution.models import (
    NodeExecutionContext,
    NodeResult,
    OperationCancelledError,
    utcnow,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
SMTP_TIMEOUT_SECONDS = 30

# Fixed endpoints for hosted providers
PROVIDER_HOSTS: Dict[str, Dict[str, Any]] = {
    "gmail": {"host": "smtp.gmail.com", "port": 587, "secure": False},
    "outlook": {"host": "smtp-mail.outlook.com", "port": 587, "secure": False},
}

PROVIDER_NAMES = {
    "smtp": "SMTP",
    "gmail": "Gmail",
    "outlook": "Outlook",
    "sendgrid": "SendGrid",
}

EMAIL_DEFAULTS: Dict[str, Any] = {
    "to": [],
    "subject": "",
    "body": "",
}


def is_valid_email(address: Any) -> bool:
    return isinstance(address, str) and bool(EMAIL_PATTERN.match(address))


# =============================================================================
# VALIDATION
# =============================================================================

def validate_message_fields(config: Dict[str, Any]) -> List[str]:
    """Recipient, subject, body and sender checks."""
    errors = []

    recipients = config.get("to")
    if not isinstance(recipients, list) or not recipients:
        errors.append("At least one recipient is required")
    else:
        for index, recipient in enumerate(recipients, start=1):
            if not isinstance(recipient, str) or not recipient.strip():
                errors.append(f"Recipient {index} cannot be empty")
            elif not is_valid_email(recipient.strip()):
                errors.append(f"Invalid email format for recipient {index}: {recipient}")

    subject = config.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        errors.append("Subject is required")

    body = config.get("body")
    if not isinstance(body, str) or not body.strip():
        errors.append("Email body is required")

    sender = config.get("from")
    if sender and not is_valid_email(sender):
        errors.append(f"Invalid email format for sender: {sender}")

    return errors


def validate_provider_config(service: Optional[Dict[str, Any]]) -> List[str]:
    """Provider checks, reported in the order a user would fix them."""
    if not service:
        return ["Email service configuration is required"]

    service_type = service.get("type")
    if service_type not in EMAIL_SERVICE_TYPES:
        return ["Valid email service type is required (smtp, gmail, outlook, sendgrid)"]

    auth = service.get("auth") or {}
    user = auth.get("user")
    if not user:
        return ["Email address is required"]
    if not is_valid_email(user):
        return ["Valid email address format is required"]

    if service_type == "sendgrid":
        api_key = service.get("apiKey")
        if not api_key:
            return ["SendGrid API key is required"]
        if not str(api_key).startswith("SG."):
            return ['SendGrid API key should start with "SG."']
    else:
        password = auth.get("pass")
        if not password:
            return ["Password or app-specific password is required"]
        if len(str(password)) < 6:
            return ["Password should be at least 6 characters long"]

    if service_type == "smtp":
        host = service.get("host")
        if not isinstance(host, str) or not host.strip():
            return ["SMTP host is required for SMTP service"]
        port = service.get("port")
        if port is not None:
            try:
                valid_port = 1 <= int(port) <= 65535
            except (TypeError, ValueError):
                valid_port = False
            if not valid_port:
                return ["SMTP port must be between 1 and 65535"]

    return []


def validate_email_config(config: Dict[str, Any]) -> List[str]:
    errors = validate_message_fields(config)
    # Provider may also come from server settings, so only check it when present
    if config.get("emailService"):
        errors.extend(validate_provider_config(config["emailService"]))
    return errors


def resolve_email_service(config: Dict[str, Any],
                          settings: Optional["Settings"]) -> Optional[Dict[str, Any]]:
    """Node-level provider config, else the server's default provider."""
    if config.get("emailService"):
        return config["emailService"]
    if settings is None:
        return None

    if settings.smtp_host:
        return {
            "type": "smtp",
            "host": settings.smtp_host,
            "port": settings.smtp_port,
            "secure": settings.smtp_secure,
            "auth": {"user": settings.smtp_user or settings.smtp_from,
                     "pass": settings.smtp_password},
        }
    if settings.sendgrid_api_key:
        return {
            "type": "sendgrid",
            "apiKey": settings.sendgrid_api_key,
            "auth": {"user": settings.smtp_from},
        }
    return None


# =============================================================================
# PROVIDERS
# =============================================================================

def _result(config: Dict[str, Any], message_id: str, provider: str) -> Dict[str, Any]:
    return {
        "sent": True,
        "to": list(config["to"]),
        "subject": config["subject"],
        "messageId": message_id,
        "timestamp": utcnow().isoformat(),
        "provider": provider,
    }


async def send_with_smtp(config: Dict[str, Any], service: Dict[str, Any],
                         provider: str) -> Dict[str, Any]:
    """Send through an SMTP server (also used for Gmail and Outlook)."""
    auth = service["auth"]
    secure = bool(service.get("secure", False))

    message = EmailMessage()
    message["From"] = config.get("from") or auth["user"]
    message["To"] = ", ".join(config["to"])
    message["Subject"] = config["subject"]
    message["Message-ID"] = make_msgid()
    message.set_content(config["body"])

    try:
        await aiosmtplib.send(
            message,
            hostname=service["host"],
            port=int(service.get("port") or 587),
            username=auth["user"],
            password=auth["pass"],
            use_tls=secure,
            start_tls=False if secure else None,
            timeout=SMTP_TIMEOUT_SECONDS,
        )
    except aiosmtplib.SMTPException as e:
        raise RuntimeError(f"{provider} error: {e}") from e

    return _result(config, message["Message-ID"], provider)


async def send_with_sendgrid(config: Dict[str, Any], service: Dict[str, Any],
                             transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    """Send through the SendGrid v3 mail API."""
    payload = {
        "personalizations": [{"to": [{"email": address} for address in config["to"]]}],
        "from": {"email": config.get("from") or service["auth"]["user"]},
        "subject": config["subject"],
        "content": [{"type": "text/plain", "value": config["body"]}],
    }
    headers = {"Authorization": f"Bearer {service['apiKey']}"}

    client_kwargs: Dict[str, Any] = {"timeout": SMTP_TIMEOUT_SECONDS}
    if transport is not None:
        client_kwargs["transport"] = transport

    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            response = await client.post(SENDGRID_URL, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise RuntimeError(f"SendGrid error: {e}") from e

    if response.status_code >= 400:
        raise RuntimeError(
            f"SendGrid error: SendGrid API error: {response.status_code} {response.reason_phrase}")

    message_id = response.headers.get("x-message-id") or str(uuid.uuid4())
    return _result(config, message_id, "SendGrid")


def simulate_send(config: Dict[str, Any], service: Dict[str, Any], provider: str) -> Dict[str, Any]:
    logger.warning("Email simulation mode enabled - message not sent",
                  provider=provider,
                  sender=config.get("from") or (service.get("auth") or {}).get("user"),
                  to=config["to"],
                  subject=config["subject"])
    return _result(config, f"sim-{uuid.uuid4()}", f"{provider} (Simulated)")


async def dispatch_email(config: Dict[str, Any], service: Dict[str, Any],
                         transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    service_type = service["type"]
    provider = PROVIDER_NAMES[service_type]

    if service_type == "sendgrid":
        return await send_with_sendgrid(config, service, transport)
    if service_type in PROVIDER_HOSTS:
        service = {**service, **PROVIDER_HOSTS[service_type]}
    return await send_with_smtp(config, service, provider)


# =============================================================================
# HANDLER
# =============================================================================

async def handle_email(
    context: NodeExecutionContext,
    settings: Optional["Settings"] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NodeResult:
    """Handle email node execution.

    Args:
        context: Node execution context (config holds to/subject/body/from/emailService)
        settings: Application settings (default provider, simulation flag)
        transport: Optional httpx transport for the SendGrid API

    Returns:
        NodeResult with {sent, to, subject, messageId, timestamp, provider}
    """
    if context.cancelled:
        return NodeResult.cancelled()

    config = context.config
    errors = validate_message_fields(config)
    if errors:
        return NodeResult.fail(errors[0])

    service = resolve_email_service(config, settings)
    errors = validate_provider_config(service)
    if errors:
        return NodeResult.fail(errors[0])

    if context.cancelled:
        return NodeResult.cancelled()

    provider = PROVIDER_NAMES[service["type"]]
    if settings is not None and settings.email_simulate:
        return NodeResult.ok(simulate_send(config, service, provider))

    logger.info("[Email] Sending", node_id=context.node_id, provider=provider,
               recipients=len(config["to"]))
    try:
        result = await context.signal.guard(dispatch_email(config, service, transport))
    except OperationCancelledError:
        return NodeResult.cancelled()
    except RuntimeError as e:
        logger.error("Email send failed", node_id=context.node_id, provider=provider, error=str(e))
        return NodeResult.fail(str(e))

    logger.info("[Email] Sent", node_id=context.node_id, message_id=result["messageId"])
    return NodeResult.ok(result)
