"""Error types raised by audit scopes and storage providers."""


class AuditError(Exception):
    """Base class for all audit errors."""
    pass


class StorageUnavailableError(AuditError):
    """Raised when the storage backend cannot be reached."""
    pass


class SerializationError(AuditError):
    """Raised when an event contains a value the backend cannot encode."""
    pass


class EventNotFoundError(AuditError):
    """Raised when a replace targets an event id that no longer exists."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Audit event not found: {event_id}")
        self.event_id = event_id


class AuditConfigurationError(AuditError):
    """Raised on misuse of the process-wide audit configuration."""
    pass
