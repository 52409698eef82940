"""
Audit core package: scoped audit events and their creation policies.

An AuditScope wraps one audited operation. Its creation policy decides when
the event is inserted or replaced through a pluggable storage provider.
"""

from .configuration import (
    AuditConfiguration,
    configure,
    create_scope,
    get_audit_configuration,
    is_configured,
    reset_audit_configuration,
)
from .environment import capture_environment
from .errors import (
    AuditConfigurationError,
    AuditError,
    EventNotFoundError,
    SerializationError,
    StorageUnavailableError,
)
from .models import (
    ActionType,
    AuditPhase,
    EventCreationPolicy,
    EventEnvironment,
    EventRecord,
)
from .policy import CreationPolicyEngine, LifecycleStage, WriteAction
from .scope import AuditScope

__all__ = [
    "ActionType",
    "AuditConfiguration",
    "AuditConfigurationError",
    "AuditError",
    "AuditPhase",
    "AuditScope",
    "CreationPolicyEngine",
    "EventCreationPolicy",
    "EventEnvironment",
    "EventNotFoundError",
    "EventRecord",
    "LifecycleStage",
    "SerializationError",
    "StorageUnavailableError",
    "WriteAction",
    "capture_environment",
    "configure",
    "create_scope",
    "get_audit_configuration",
    "is_configured",
    "reset_audit_configuration",
]
