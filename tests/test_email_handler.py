"""
Unit tests for the email node: validation parity, simulation, SMTP and SendGrid.
"""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from conftest import json_transport, make_context, request_json
from services.handlers.email import handle_email, validate_email_config

SMTP_SERVICE = {
    "type": "smtp",
    "host": "smtp.example.com",
    "port": 587,
    "auth": {"user": "robot@example.com", "pass": "secret-pass"},
}


def email_config(**overrides):
    config = {
        "to": ["ada@example.com"],
        "subject": "Report",
        "body": "All green",
        "emailService": dict(SMTP_SERVICE),
    }
    config.update(overrides)
    return config


@pytest.mark.parametrize("overrides, message", [
    ({"to": []}, "At least one recipient is required"),
    ({"to": [""]}, "Recipient 1 cannot be empty"),
    ({"to": ["not-an-email"]}, "Invalid email format for recipient 1: not-an-email"),
    ({"subject": " "}, "Subject is required"),
    ({"body": ""}, "Email body is required"),
    ({"from": "nobody"}, "Invalid email format for sender: nobody"),
    ({"emailService": {"type": "fax"}},
     "Valid email service type is required (smtp, gmail, outlook, sendgrid)"),
    ({"emailService": {"type": "sendgrid", "auth": {"user": "a@b.co"}, "apiKey": "key"}},
     'SendGrid API key should start with "SG."'),
    ({"emailService": {"type": "smtp", "auth": {"user": "a@b.co", "pass": "secret"}}},
     "SMTP host is required for SMTP service"),
    ({"emailService": {**SMTP_SERVICE, "port": 70000}}, "SMTP port must be between 1 and 65535"),
])
@pytest.mark.asyncio
async def test_validate_and_execute_agree(settings, overrides, message):
    """The first validation error is exactly what execution reports"""
    config = email_config(**overrides)

    errors = validate_email_config(config)
    result = await handle_email(make_context(config), settings)

    assert errors[0] == message
    assert not result.success
    assert result.error == message


def test_validate_is_idempotent():
    config = email_config(to=["bad"], subject="")
    assert validate_email_config(config) == validate_email_config(config)


def test_valid_config_has_no_errors():
    assert validate_email_config(email_config()) == []


@pytest.mark.asyncio
async def test_missing_provider_without_defaults(settings):
    config = email_config()
    del config["emailService"]

    result = await handle_email(make_context(config), settings)

    assert result.error == "Email service configuration is required"


@pytest.mark.asyncio
async def test_simulation_mode(settings):
    settings.email_simulate = True

    with patch("services.handlers.email.aiosmtplib.send", new_callable=AsyncMock) as send:
        result = await handle_email(make_context(email_config()), settings)

    assert result.success
    assert result.output["provider"] == "SMTP (Simulated)"
    assert result.output["messageId"].startswith("sim-")
    send.assert_not_called()


@pytest.mark.asyncio
async def test_smtp_send(settings):
    with patch("services.handlers.email.aiosmtplib.send", new_callable=AsyncMock) as send:
        result = await handle_email(make_context(email_config()), settings)

    assert result.success
    assert result.output["sent"] is True
    assert result.output["to"] == ["ada@example.com"]
    assert result.output["provider"] == "SMTP"
    message = send.call_args.args[0]
    assert message["To"] == "ada@example.com"
    assert message["Subject"] == "Report"
    assert send.call_args.kwargs["hostname"] == "smtp.example.com"
    assert send.call_args.kwargs["username"] == "robot@example.com"


@pytest.mark.asyncio
async def test_gmail_uses_provider_host(settings):
    service = {"type": "gmail", "auth": {"user": "robot@gmail.com", "pass": "app-password"}}

    with patch("services.handlers.email.aiosmtplib.send", new_callable=AsyncMock) as send:
        result = await handle_email(make_context(email_config(emailService=service)), settings)

    assert result.success
    assert result.output["provider"] == "Gmail"
    assert send.call_args.kwargs["hostname"] == "smtp.gmail.com"


@pytest.mark.asyncio
async def test_smtp_failure_is_reported(settings):
    error = aiosmtplib.SMTPException("mailbox unavailable")

    with patch("services.handlers.email.aiosmtplib.send", new=AsyncMock(side_effect=error)):
        result = await handle_email(make_context(email_config()), settings)

    assert not result.success
    assert result.error == "SMTP error: mailbox unavailable"


@pytest.mark.asyncio
async def test_sendgrid_send(settings):
    seen = []
    service = {"type": "sendgrid", "apiKey": "SG.test", "auth": {"user": "robot@example.com"}}
    transport = json_transport({}, 202, recorder=seen)

    result = await handle_email(make_context(email_config(emailService=service)), settings, transport)

    assert result.success
    assert result.output["provider"] == "SendGrid"
    assert seen[0].headers["Authorization"] == "Bearer SG.test"
    payload = request_json(seen[0])
    assert payload["personalizations"][0]["to"] == [{"email": "ada@example.com"}]
    assert payload["from"] == {"email": "robot@example.com"}


@pytest.mark.asyncio
async def test_sendgrid_error_status(settings):
    service = {"type": "sendgrid", "apiKey": "SG.test", "auth": {"user": "robot@example.com"}}

    result = await handle_email(make_context(email_config(emailService=service)), settings,
                                json_transport({}, 401))

    assert not result.success
    assert result.error.startswith("SendGrid error:")
    assert "401" in result.error


@pytest.mark.asyncio
async def test_falls_back_to_server_smtp(settings):
    settings.smtp_host = "mail.internal"
    settings.smtp_user = "ops@example.com"
    settings.smtp_password = "server-pass"
    config = email_config()
    del config["emailService"]

    with patch("services.handlers.email.aiosmtplib.send", new_callable=AsyncMock) as send:
        result = await handle_email(make_context(config), settings)

    assert result.success
    assert send.call_args.kwargs["hostname"] == "mail.internal"
