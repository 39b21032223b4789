"""Centralized constants for node categories, subtypes and run settings.

This module provides a single source of truth for node type definitions,
eliminating duplicate string arrays across the codebase.
"""

from typing import Dict, FrozenSet

# =============================================================================
# NODE CATEGORIES
# =============================================================================

CATEGORY_TRIGGER = 'trigger'
CATEGORY_ACTION = 'action'
CATEGORY_LOGIC = 'logic'

NODE_CATEGORIES: FrozenSet[str] = frozenset([
    CATEGORY_TRIGGER,
    CATEGORY_ACTION,
    CATEGORY_LOGIC,
])

# =============================================================================
# NODE SUBTYPES
# =============================================================================

# Editor payloads carry the subtype under a category-specific key
SUBTYPE_KEYS: Dict[str, str] = {
    CATEGORY_TRIGGER: 'triggerType',
    CATEGORY_ACTION: 'actionType',
    CATEGORY_LOGIC: 'logicType',
}

# Logic nodes whose output selects which outgoing edges are followed
BRANCHING_LOGIC_TYPES: FrozenSet[str] = frozenset([
    'if',
])

# =============================================================================
# RUN SETTINGS DEFAULTS
# =============================================================================

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_COUNT = 0
DEFAULT_RETRY_DELAY_MS = 0
DEFAULT_CONTINUE_ON_FAIL = False

# =============================================================================
# EXECUTION LOG SENTINELS
# =============================================================================

LOG_WORKFLOW_START = 'workflow-start'
LOG_WORKFLOW_END = 'workflow-end'
LOG_WORKFLOW_ERROR = 'workflow-error'

# =============================================================================
# ERROR MESSAGES
# =============================================================================

NODE_CANCELLED_MESSAGE = 'Execution was cancelled'
RUN_CANCELLED_MESSAGE = 'Execution cancelled'
NO_TRIGGERS_MESSAGE = 'No trigger nodes found in workflow'

# =============================================================================
# CONDITION OPERATORS
# =============================================================================

CONDITION_OPERATORS: FrozenSet[str] = frozenset([
    'equals',
    'notEquals',
    'contains',
    'greaterThan',
    'lessThan',
])

# =============================================================================
# ACTION NODE OPTIONS
# =============================================================================

HTTP_METHODS: FrozenSet[str] = frozenset(['GET', 'POST', 'PUT', 'DELETE', 'PATCH'])
HTTP_AUTH_TYPES: FrozenSet[str] = frozenset(['none', 'bearer', 'basic', 'apiKey'])

EMAIL_SERVICE_TYPES: FrozenSet[str] = frozenset(['smtp', 'gmail', 'outlook', 'sendgrid'])

DATABASE_OPERATIONS: FrozenSet[str] = frozenset(['select', 'insert', 'update', 'delete'])

TRANSFORM_OPERATIONS: FrozenSet[str] = frozenset(['map', 'filter', 'reduce', 'sort', 'group', 'merge'])
TRANSFORM_LANGUAGES: FrozenSet[str] = frozenset(['javascript', 'jsonpath'])

DELAY_TYPES: FrozenSet[str] = frozenset(['fixed', 'random', 'exponential'])

# Milliseconds per delay unit
DELAY_UNITS: Dict[str, int] = {
    'milliseconds': 1,
    'seconds': 1000,
    'minutes': 60 * 1000,
    'hours': 60 * 60 * 1000,
}

# =============================================================================
# WORKFLOW IDS
# =============================================================================

RESERVED_WORKFLOW_IDS: FrozenSet[str] = frozenset([
    'api', 'app', 'www', 'admin', 'root', 'config', 'test', 'dev', 'prod',
    'system', 'public', 'private', 'static', 'assets', 'lib', 'src',
    'node_modules', 'null', 'undefined', 'true', 'false', 'new', 'delete',
    'edit', 'create',
])


def is_trigger_category(category: str) -> bool:
    """Check if a node category marks a workflow entry point."""
    return category == CATEGORY_TRIGGER
