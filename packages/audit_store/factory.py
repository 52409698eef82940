"""
Storage provider factory.

Builds the configured audit storage provider and installs it, together with
the default creation policy, as the process-wide audit configuration.
"""

import structlog
from typing import Optional

from packages.audit_core.configuration import AuditConfiguration, configure
from packages.audit_settings import AuditSettings, get_audit_settings

from .file import FileStorageProvider
from .memory import InMemoryStorageProvider
from .provider import StorageProvider
from .sqlite import SqliteStorageProvider


logger = structlog.get_logger(__name__)


class ProviderType:
    """Storage provider type constants."""
    MEMORY = "memory"
    SQLITE = "sqlite"
    FILE = "file"


_PROVIDERS = {
    ProviderType.MEMORY: InMemoryStorageProvider,
    ProviderType.SQLITE: SqliteStorageProvider,
    ProviderType.FILE: FileStorageProvider,
}


def create_storage_provider(settings: Optional[AuditSettings] = None) -> StorageProvider:
    """
    Create storage provider instance.

    Args:
        settings: Audit settings (uses global if None)

    Returns:
        StorageProvider instance

    Raises:
        ValueError: If the provider type is invalid
        StorageUnavailableError: If the backend cannot be opened
    """
    settings = settings or get_audit_settings()

    provider_cls = _PROVIDERS.get(settings.data_provider)
    if provider_cls is None:
        raise ValueError(
            f"Invalid data_provider: {settings.data_provider}. Use 'memory', 'sqlite', or 'file'"
        )

    provider = provider_cls(
        connection_string=settings.connection_string,
        database=settings.database,
        collection=settings.collection,
    )
    logger.info(
        "storage_provider_selected",
        type=settings.data_provider,
        connection_string=settings.connection_string,
        database=settings.database,
        collection=settings.collection,
    )
    return provider


def configure_auditing(settings: Optional[AuditSettings] = None) -> AuditConfiguration:
    """
    Build the storage provider from settings and install it process-wide.

    Call once at startup.

    Args:
        settings: Audit settings (uses global if None)

    Returns:
        Installed configuration

    Raises:
        AuditConfigurationError: If auditing is already configured
    """
    settings = settings or get_audit_settings()
    provider = create_storage_provider(settings)
    return configure(provider, settings.creation_policy)
