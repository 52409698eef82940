"""Storage provider protocol for audit events.

This module defines the interface that all audit storage backends must implement.
"""

from typing import Protocol

from packages.audit_core.models import EventRecord


class StorageProvider(Protocol):
    """Protocol defining the audit storage backend interface.

    Implementations are shared by many scopes and must be safe for concurrent
    use. Writes for the same event must be applied in the order issued.
    The provider knows nothing about when a scope decides to write.
    """

    def insert(self, event: EventRecord) -> str:
        """Persist a new document for the event.

        Args:
            event: Event to persist.

        Returns:
            Backend-assigned event id.

        Raises:
            StorageUnavailableError: If the backend cannot be reached.
            SerializationError: If the event contains a value that cannot be encoded.
        """
        ...

    def replace(self, event_id: str, event: EventRecord) -> None:
        """Overwrite a previously inserted document with the event's current state.

        Args:
            event_id: Id returned by the insert of this event.
            event: Event to persist.

        Raises:
            EventNotFoundError: If event_id no longer exists in the backend.
            StorageUnavailableError: If the backend cannot be reached.
            SerializationError: If the event contains a value that cannot be encoded.
        """
        ...
