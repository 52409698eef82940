"""
Audit event models.

An EventRecord describes one occurrence of an audited operation. It is a plain
data container: when and how it is written is decided by the owning
AuditScope, and encoding it for a backend is the storage provider's job.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, PrivateAttr


class EventCreationPolicy(str, Enum):
    """When, during a scope's life, the event is written to storage."""

    INSERT_ON_START = "InsertOnStart"
    INSERT_ON_END = "InsertOnEnd"
    INSERT_ON_START_REPLACE_ON_END = "InsertOnStartReplaceOnEnd"
    MANUAL = "Manual"


class AuditPhase(str, Enum):
    """Lifecycle phase of an audit scope."""

    CREATED = "Created"
    IN_PROGRESS = "InProgress"
    SAVED = "Saved"
    DISPOSED = "Disposed"


class EventEnvironment(BaseModel):
    """Machine, user and process metadata captured when the event is created."""

    user_name: Optional[str] = Field(default=None, description="Login name of the process owner")
    machine_name: Optional[str] = Field(default=None, description="Host name")
    domain_name: Optional[str] = Field(default=None, description="Network domain")
    calling_method_name: Optional[str] = Field(
        default=None, description="Module and function that opened the scope"
    )
    process_id: Optional[int] = Field(default=None, description="Operating system process id")
    python_version: Optional[str] = Field(default=None, description="Interpreter version")
    culture: Optional[str] = Field(default=None, description="Locale of the process")

    model_config = {"frozen": True}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventRecord(BaseModel):
    """
    One audited operation occurrence.

    Custom fields are opaque to the audit core; adapters may add or replace any
    key at any time before the event is written.
    """

    event_type: str = Field(..., description="Event type name, placeholders already resolved")
    environment: EventEnvironment = Field(
        default_factory=EventEnvironment, description="Creation-time environment"
    )
    start_time: datetime = Field(default_factory=_utc_now, description="Operation start (UTC)")
    end_time: Optional[datetime] = Field(default=None, description="Operation end (UTC)")
    duration_ms: Optional[int] = Field(default=None, description="Elapsed milliseconds")
    custom_fields: dict[str, Any] = Field(
        default_factory=dict, description="Adapter-supplied structured values"
    )
    comments: list[str] = Field(default_factory=list, description="Free-text notes")
    exception: Optional[str] = Field(
        default=None, description="Exception raised inside the audited block"
    )

    _persisted_id: Optional[str] = PrivateAttr(default=None)

    @property
    def persisted_id(self) -> Optional[str]:
        """Backend id assigned by the first successful insert."""
        return self._persisted_id

    def mark_persisted(self, event_id: str) -> None:
        """
        Record the backend id of this event.

        Raises:
            ValueError: If a different id was already recorded
        """
        if self._persisted_id is not None and self._persisted_id != event_id:
            raise ValueError(
                f"Event already persisted as {self._persisted_id}, refusing {event_id}"
            )
        self._persisted_id = event_id

    def set_custom_field(self, key: str, value: Any) -> None:
        self.custom_fields[key] = value

    def mark_ended(self, end_time: Optional[datetime] = None) -> None:
        """Set the end time and duration."""
        self.end_time = end_time or _utc_now()
        elapsed = self.end_time - self.start_time
        self.duration_ms = int(elapsed.total_seconds() * 1000)


class ActionType(str, Enum):
    """Hook points where custom actions run."""

    ON_SCOPE_CREATED = "OnScopeCreated"
    ON_EVENT_SAVING = "OnEventSaving"
    ON_EVENT_SAVED = "OnEventSaved"
