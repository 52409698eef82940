"""Shared fixtures for audit tests."""

from typing import Optional

import pytest

from packages.audit_core import reset_audit_configuration
from packages.audit_core.models import EventRecord
from packages.audit_settings import reset_audit_settings
from packages.audit_store import InMemoryStorageProvider


class RecordingStorageProvider(InMemoryStorageProvider):
    """In-memory provider that records every call and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, Optional[str]]] = []
        self.snapshots: list[dict] = []
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

    def insert(self, event: EventRecord) -> str:
        self._maybe_fail()
        event_id = super().insert(event)
        self.calls.append(("insert", event_id))
        self.snapshots.append(self.get_event(event_id))
        return event_id

    def replace(self, event_id: str, event: EventRecord) -> None:
        self._maybe_fail()
        super().replace(event_id, event)
        self.calls.append(("replace", event_id))
        self.snapshots.append(self.get_event(event_id))

    @property
    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]


@pytest.fixture
def provider() -> RecordingStorageProvider:
    """Create a recording storage provider."""
    return RecordingStorageProvider()


@pytest.fixture(autouse=True)
def reset_globals():
    """Remove process-wide audit configuration and settings between tests."""
    reset_audit_configuration()
    reset_audit_settings()
    yield
    reset_audit_configuration()
    reset_audit_settings()
