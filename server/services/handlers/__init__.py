"""Node handlers package.

Handlers are organized by category:
- triggers.py: Manual, Webhook, Schedule
- http.py: HTTP Request
- email.py: Send Email (SMTP, SendGrid, simulated)
- database.py: Database Query (credential-backed, mock results)
- transform.py: Transform Data (JavaScript / JSONPath)
- delay.py: Delay (fixed, random, exponential)
- logic.py: If, Filter, Switch, Loop

Each module also exports its config validator and editor defaults.
"""

# Trigger handlers
from .triggers import (
    handle_manual_trigger,
    handle_webhook_trigger,
    handle_schedule_trigger,
    validate_schedule_config,
    WEBHOOK_DEFAULTS,
    SCHEDULE_DEFAULTS,
)

# HTTP handlers
from .http import (
    handle_http_request,
    validate_http_config,
    HTTP_DEFAULTS,
)

# Email handlers
from .email import (
    handle_email,
    validate_email_config,
    EMAIL_DEFAULTS,
)

# Database handlers
from .database import (
    handle_database,
    validate_database_config,
    DATABASE_DEFAULTS,
)

# Transform handlers
from .transform import (
    handle_transform,
    validate_transform_config,
    TRANSFORM_DEFAULTS,
)

# Delay handlers
from .delay import (
    handle_delay,
    validate_delay_config,
    DELAY_DEFAULTS,
)

# Logic handlers
from .logic import (
    handle_if,
    handle_filter,
    handle_switch,
    handle_loop,
    validate_condition_config,
    CONDITION_DEFAULTS,
)

__all__ = [
    # Triggers
    'handle_manual_trigger',
    'handle_webhook_trigger',
    'handle_schedule_trigger',
    'validate_schedule_config',
    'WEBHOOK_DEFAULTS',
    'SCHEDULE_DEFAULTS',
    # HTTP
    'handle_http_request',
    'validate_http_config',
    'HTTP_DEFAULTS',
    # Email
    'handle_email',
    'validate_email_config',
    'EMAIL_DEFAULTS',
    # Database
    'handle_database',
    'validate_database_config',
    'DATABASE_DEFAULTS',
    # Transform
    'handle_transform',
    'validate_transform_config',
    'TRANSFORM_DEFAULTS',
    # Delay
    'handle_delay',
    'validate_delay_config',
    'DELAY_DEFAULTS',
    # Logic
    'handle_if',
    'handle_filter',
    'handle_switch',
    'handle_loop',
    'validate_condition_config',
    'CONDITION_DEFAULTS',
]
