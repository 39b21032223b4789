"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import get_settings
from core.credentials import CredentialStore
from core.encryption import create_encryption_service
from services.execution import ExecutorRegistry
from services.node_executor import build_node_registry
from services.webhook_store import WebhookStore
from services.workflow import WorkflowService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        get_settings,
    )

    # Credentials
    encryption = providers.Singleton(
        create_encryption_service,
        password=settings.provided.credential_encryption_key,
        salt=settings.provided.credential_salt,
    )

    credential_store = providers.Singleton(
        CredentialStore,
        encryption=encryption,
    )

    # Execution engine
    node_registry = providers.Singleton(
        build_node_registry,
        settings=settings,
        credential_store=credential_store,
    )

    executor_registry = providers.Singleton(
        ExecutorRegistry,
    )

    # Services
    webhook_store = providers.Singleton(
        WebhookStore,
        retention=settings.provided.webhook_retention,
    )

    workflow_service = providers.Singleton(
        WorkflowService,
        settings=settings,
        node_registry=node_registry,
        executor_registry=executor_registry,
        credential_store=credential_store,
    )


# Global container instance
container = Container()
