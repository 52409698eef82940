"""
Process-wide audit configuration.

Holds the storage provider and default creation policy installed once at
startup. Scopes never read it themselves: create_scope() resolves the defaults
and injects them, so scopes stay testable without global state.

Usage:
    from packages.audit_core import configure, create_scope

    configure(SqliteStorageProvider("data"), EventCreationPolicy.INSERT_ON_END)

    with create_scope("Order:Create", {"OrderId": 42}) as scope:
        ...
"""

from threading import Lock
from typing import TYPE_CHECKING, Any, Mapping, Optional

import structlog

from .errors import AuditConfigurationError
from .models import ActionType, EventCreationPolicy
from .scope import AuditScope, CustomAction

if TYPE_CHECKING:
    from packages.audit_store.provider import StorageProvider


logger = structlog.get_logger(__name__)


class AuditConfiguration:
    """Storage provider, default policy and custom actions for the process."""

    def __init__(
        self,
        data_provider: "StorageProvider",
        creation_policy: EventCreationPolicy = EventCreationPolicy.INSERT_ON_END,
    ) -> None:
        self.data_provider = data_provider
        self.creation_policy = EventCreationPolicy(creation_policy)
        self._custom_actions: dict[ActionType, list[CustomAction]] = {}
        self._lock = Lock()

    def add_custom_action(self, action_type: ActionType, callback: CustomAction) -> None:
        """Register a callback for a hook point on every scope created afterwards."""
        with self._lock:
            self._custom_actions.setdefault(ActionType(action_type), []).append(callback)

    @property
    def custom_actions(self) -> dict[ActionType, list[CustomAction]]:
        with self._lock:
            return {key: list(value) for key, value in self._custom_actions.items()}


_configuration: Optional[AuditConfiguration] = None
_configuration_lock = Lock()


def configure(
    data_provider: "StorageProvider",
    creation_policy: EventCreationPolicy = EventCreationPolicy.INSERT_ON_END,
) -> AuditConfiguration:
    """
    Install the process-wide audit configuration.

    Args:
        data_provider: Storage provider shared by all scopes
        creation_policy: Default policy for scopes created without one

    Returns:
        The installed configuration

    Raises:
        AuditConfigurationError: If a configuration is already installed
    """
    global _configuration

    with _configuration_lock:
        if _configuration is not None:
            raise AuditConfigurationError("Audit configuration is already installed")
        _configuration = AuditConfiguration(data_provider, creation_policy)

    logger.info(
        "audit_configured",
        data_provider=type(data_provider).__name__,
        creation_policy=_configuration.creation_policy.value,
    )
    return _configuration


def get_audit_configuration() -> AuditConfiguration:
    """
    Get the installed audit configuration.

    Raises:
        AuditConfigurationError: If configure() has not been called
    """
    if _configuration is None:
        raise AuditConfigurationError("Audit configuration has not been installed")
    return _configuration


def is_configured() -> bool:
    return _configuration is not None


def reset_audit_configuration() -> None:
    """Remove the installed configuration (for testing)."""
    global _configuration
    with _configuration_lock:
        _configuration = None


def create_scope(
    event_type: str,
    extra_fields: Optional[Mapping[str, Any]] = None,
    policy: Optional[EventCreationPolicy] = None,
    provider: Optional["StorageProvider"] = None,
    calling_method_name: Optional[str] = None,
) -> AuditScope:
    """
    Create an audit scope, filling unspecified settings from the configuration.

    An explicit provider and policy need no installed configuration.

    Raises:
        AuditConfigurationError: If a default is needed and nothing is installed
        StorageUnavailableError: If an immediate insert cannot reach the backend
        SerializationError: If an immediate insert cannot encode the event
    """
    configuration = _configuration
    custom_actions = None

    if configuration is not None:
        if provider is None:
            provider = configuration.data_provider
        if policy is None:
            policy = configuration.creation_policy
        custom_actions = configuration.custom_actions
    elif provider is None:
        raise AuditConfigurationError(
            "No storage provider given and no audit configuration installed"
        )

    return AuditScope(
        event_type,
        provider,
        extra_fields=extra_fields,
        policy=policy or EventCreationPolicy.INSERT_ON_END,
        custom_actions=custom_actions,
        calling_method_name=calling_method_name,
    )
