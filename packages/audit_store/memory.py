"""In-memory storage provider.

Keeps encoded event documents in a dict. Useful for tests and development
without a database.
"""

import uuid
from threading import Lock
from typing import Any, Optional

from packages.audit_core.errors import EventNotFoundError
from packages.audit_core.models import EventRecord

from .serialization import decode_document, encode_event


class InMemoryStorageProvider:
    """
    Storage provider backed by a process-local dict.

    Documents are stored as decoded JSON snapshots, so later changes to an
    event do not leak into what was written.
    """

    def __init__(
        self,
        connection_string: str = "memory",
        database: str = "audit",
        collection: str = "events",
    ) -> None:
        self.connection_string = connection_string
        self.database = database
        self.collection = collection
        self._events: dict[str, dict[str, Any]] = {}
        self._lock = Lock()

    def insert(self, event: EventRecord) -> str:
        document = decode_document(encode_event(event))
        event_id = uuid.uuid4().hex
        with self._lock:
            self._events[event_id] = document
        return event_id

    def replace(self, event_id: str, event: EventRecord) -> None:
        document = decode_document(encode_event(event))
        with self._lock:
            if event_id not in self._events:
                raise EventNotFoundError(event_id)
            self._events[event_id] = document

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]:
        """Get a stored document by id, or None."""
        with self._lock:
            return self._events.get(event_id)

    def delete_event(self, event_id: str) -> bool:
        """Remove a document. Returns True if it existed."""
        with self._lock:
            return self._events.pop(event_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._events)
