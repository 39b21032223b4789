"""In-memory encrypted credential store and database-config migration helpers.

Database nodes reference credentials by id (``cred_<uuid4>``) instead of
embedding raw connection strings. Legacy configs that still carry a plain
``connectionString`` can be migrated into the store.
"""

import re
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.encryption import EncryptionService
from core.logging import get_logger

logger = get_logger(__name__)

CREDENTIAL_ID_PATTERN = re.compile(
    r"^cred_[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

CREDENTIAL_TYPES = ("database", "api_key", "oauth", "smtp")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredCredential:
    id: str
    name: str
    type: str
    encrypted_value: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Public view; never includes the secret."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class CredentialStore:
    """Thread-safe store of encrypted secrets keyed by credential id."""

    def __init__(self, encryption: EncryptionService):
        self._encryption = encryption
        self._credentials: Dict[str, StoredCredential] = {}
        self._lock = threading.Lock()

    @staticmethod
    def is_valid_credential_id(credential_id: Any) -> bool:
        return isinstance(credential_id, str) and bool(CREDENTIAL_ID_PATTERN.match(credential_id))

    def store_credential(self, name: str, value: str, type: str = "database",
                         description: Optional[str] = None,
                         metadata: Optional[Dict[str, Any]] = None) -> str:
        """Encrypt and store a secret, returning its new id."""
        credential = StoredCredential(
            id=f"cred_{uuid.uuid4()}",
            name=name,
            type=type,
            encrypted_value=self._encryption.encrypt(value),
            description=description,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._credentials[credential.id] = credential
        logger.info("Credential stored", credential_id=credential.id, type=type)
        return credential.id

    def get_credential(self, credential_id: str) -> Optional[StoredCredential]:
        with self._lock:
            return self._credentials.get(credential_id)

    def credential_exists(self, credential_id: str) -> bool:
        return self.get_credential(credential_id) is not None

    def get_credential_value(self, credential_id: str) -> Optional[str]:
        credential = self.get_credential(credential_id)
        if credential is None:
            return None
        try:
            return self._encryption.decrypt(credential.encrypted_value)
        except ValueError:
            logger.error("Failed to decrypt credential", credential_id=credential_id)
            return None

    def update_credential(self, credential_id: str, name: Optional[str] = None,
                          description: Optional[str] = None,
                          metadata: Optional[Dict[str, Any]] = None,
                          value: Optional[str] = None) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            changes: Dict[str, Any] = {"updated_at": _now()}
            if name is not None:
                changes["name"] = name
            if description is not None:
                changes["description"] = description
            if metadata is not None:
                changes["metadata"] = dict(metadata)
            if value is not None:
                changes["encrypted_value"] = self._encryption.encrypt(value)
            self._credentials[credential_id] = replace(credential, **changes)
        return True

    def delete_credential(self, credential_id: str) -> bool:
        with self._lock:
            return self._credentials.pop(credential_id, None) is not None

    def list_credentials(self, type: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            credentials = list(self._credentials.values())
        return [c.to_dict() for c in credentials if type is None or c.type == type]

    def resolve_connection_string(self, value: Optional[str]) -> Optional[str]:
        """Decrypt a credential reference; plain strings pass through unchanged."""
        if not value or not value.strip():
            return None
        if self.is_valid_credential_id(value):
            return self.get_credential_value(value)
        return value

    def migrate_connection_string(self, connection_string: str,
                                  name: Optional[str] = None) -> str:
        """Move a raw connection string into the store and return its id."""
        if not connection_string or not connection_string.strip():
            raise ValueError("Connection string is required")
        if self.is_valid_credential_id(connection_string):
            return connection_string
        return self.store_credential(
            name or f"Database Connection {_now().isoformat()}",
            connection_string,
            "database",
            "Migrated from plain connection string",
        )


# =============================================================================
# DATABASE NODE CONFIG MIGRATION
# =============================================================================

def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def needs_database_migration(config: Dict[str, Any]) -> bool:
    return not _has_text(config.get("credentialId")) and _has_text(config.get("connectionString"))


def migrate_database_node_config(config: Dict[str, Any], store: CredentialStore) -> Dict[str, Any]:
    """Replace a legacy ``connectionString`` with a ``credentialId``.

    Returns a new dict when anything changed, otherwise ``config`` itself.
    """
    if _has_text(config.get("credentialId")):
        if "connectionString" in config:
            return {k: v for k, v in config.items() if k != "connectionString"}
        return config

    if not _has_text(config.get("connectionString")):
        return config

    name = f"Database Connection (migrated {_now().date().isoformat()})"
    credential_id = store.migrate_connection_string(config["connectionString"], name)
    migrated = {k: v for k, v in config.items() if k != "connectionString"}
    migrated["credentialId"] = credential_id
    logger.info("Migrated database connectionString to credential", credential_id=credential_id)
    return migrated


def validate_database_node_config(config: Dict[str, Any],
                                  store: Optional[CredentialStore]) -> List[str]:
    """Credential-reference checks for a database node config."""
    has_credential = _has_text(config.get("credentialId"))
    if not has_credential and not _has_text(config.get("connectionString")):
        return ["Database credential is required"]

    if has_credential:
        credential_id = config["credentialId"]
        if not CredentialStore.is_valid_credential_id(credential_id):
            return ["Invalid credential ID format"]
        if store is not None and not store.credential_exists(credential_id):
            return ["Referenced credential does not exist"]
    return []
