"""
Unit tests for audit storage providers and event encoding.
"""

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import uuid4

import pytest
from pydantic import BaseModel

from packages.audit_core import (
    AuditScope,
    EventCreationPolicy,
    EventNotFoundError,
    EventRecord,
    SerializationError,
    StorageUnavailableError,
)
from packages.audit_store import (
    FileStorageProvider,
    InMemoryStorageProvider,
    SqliteStorageProvider,
    encode_event,
    event_to_document,
)


class Side(str, Enum):
    BUY = "BUY"


class Payload(BaseModel):
    name: str
    at: datetime


@dataclass
class Point:
    x: int
    y: int


class TestSerialization:
    """Tests for event document encoding."""

    def test_document_shape(self) -> None:
        """Test the document holds structured fields and custom fields."""
        event = EventRecord(event_type="X", custom_fields={"k": "v"})
        document = event_to_document(event)

        assert document["event_type"] == "X"
        assert document["custom_fields"] == {"k": "v"}
        assert isinstance(document["start_time"], str)
        assert "environment" in document

    def test_encodes_common_value_types(self) -> None:
        """Test values outside plain JSON are encoded."""
        event_id = uuid4()
        event = EventRecord(
            event_type="X",
            custom_fields={
                "amount": Decimal("10.50"),
                "id": event_id,
                "side": Side.BUY,
                "tags": {"a"},
                "payload": Payload(name="n", at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
                "point": Point(1, 2),
            },
        )
        fields = json.loads(encode_event(event))["custom_fields"]

        assert fields["amount"] == "10.50"
        assert fields["id"] == str(event_id)
        assert fields["side"] == "BUY"
        assert fields["tags"] == ["a"]
        assert fields["payload"] == {"name": "n", "at": "2024-01-01T00:00:00Z"}
        assert fields["point"] == {"x": 1, "y": 2}

    def test_unencodable_value_raises_serialization_error(self) -> None:
        """Test arbitrary objects are rejected."""
        event = EventRecord(event_type="X", custom_fields={"bad": object()})

        with pytest.raises(SerializationError, match="not JSON serializable"):
            encode_event(event)

    def test_circular_reference_raises_serialization_error(self) -> None:
        """Test self-referencing values are rejected."""
        loop: dict = {}
        loop["self"] = loop
        event = EventRecord(event_type="X")
        event.set_custom_field("loop", loop)

        with pytest.raises(SerializationError):
            encode_event(event)


@pytest.fixture(params=["memory", "sqlite", "sqlite-memory", "file"])
def storage(request, tmp_path):
    """Create each storage provider in turn."""
    if request.param == "memory":
        yield InMemoryStorageProvider()
    elif request.param == "sqlite":
        provider = SqliteStorageProvider(str(tmp_path), database="audit", collection="events")
        yield provider
        provider.close()
    elif request.param == "sqlite-memory":
        provider = SqliteStorageProvider(":memory:")
        yield provider
        provider.close()
    else:
        yield FileStorageProvider(str(tmp_path), database="audit", collection="events")


class TestStorageProviders:
    """Contract tests shared by all storage providers."""

    def test_insert_and_get(self, storage) -> None:
        """Test inserting an event returns an id that reads back."""
        event = EventRecord(event_type="GET orders/index", custom_fields={"k": "v"})

        event_id = storage.insert(event)
        document = storage.get_event(event_id)

        assert event_id
        assert document["event_type"] == "GET orders/index"
        assert document["custom_fields"] == {"k": "v"}

    def test_insert_assigns_distinct_ids(self, storage) -> None:
        """Test each insert produces a new document."""
        event = EventRecord(event_type="X")

        assert storage.insert(event) != storage.insert(event)

    def test_replace_overwrites(self, storage) -> None:
        """Test replace stores the event's current state."""
        event = EventRecord(event_type="X", custom_fields={"step": 1})
        event_id = storage.insert(event)

        event.set_custom_field("step", 2)
        event.mark_ended()
        storage.replace(event_id, event)

        document = storage.get_event(event_id)
        assert document["custom_fields"] == {"step": 2}
        assert document["end_time"] is not None

    def test_replace_missing_raises_not_found(self, storage) -> None:
        """Test replace of an unknown id raises EventNotFoundError."""
        event = EventRecord(event_type="X")

        with pytest.raises(EventNotFoundError):
            storage.replace("does-not-exist", event)

    def test_get_missing_returns_none(self, storage) -> None:
        """Test reading an unknown id returns None."""
        assert storage.get_event(uuid4().hex) is None

    def test_serialization_error_writes_nothing(self, storage) -> None:
        """Test an unencodable event leaves the store untouched."""
        good = EventRecord(event_type="X", custom_fields={"k": "v"})
        event_id = storage.insert(good)
        bad = EventRecord(event_type="X", custom_fields={"bad": object()})

        with pytest.raises(SerializationError):
            storage.insert(bad)
        with pytest.raises(SerializationError):
            storage.replace(event_id, bad)

        assert storage.get_event(event_id)["custom_fields"] == {"k": "v"}

    def test_stored_document_is_a_snapshot(self, storage) -> None:
        """Test later event changes do not alter what was written."""
        event = EventRecord(event_type="X", custom_fields={"step": 1})
        event_id = storage.insert(event)

        event.set_custom_field("step", 99)

        assert storage.get_event(event_id)["custom_fields"] == {"step": 1}

    def test_concurrent_scopes_share_provider(self, storage) -> None:
        """Test many scopes can write through one provider at once."""
        event_ids = []
        lock = threading.Lock()

        def run(index: int) -> None:
            scope = AuditScope(
                "X",
                storage,
                {"index": index},
                policy=EventCreationPolicy.INSERT_ON_START_REPLACE_ON_END,
            )
            scope.set_custom_field("done", True)
            scope.dispose()
            with lock:
                event_ids.append((index, scope.event_id))

        threads = [threading.Thread(target=run, args=(i,)) for i in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(event_ids) == 10
        for index, event_id in event_ids:
            assert storage.get_event(event_id)["custom_fields"] == {
                "index": index,
                "done": True,
            }


class TestSqliteStorageProvider:
    """SQLite-specific tests."""

    def test_database_file_location(self, tmp_path) -> None:
        """Test the database file is named after the database."""
        provider = SqliteStorageProvider(str(tmp_path / "store"), database="ledger")

        assert provider.db_path == tmp_path / "store" / "ledger.db"
        assert provider.db_path.exists()
        provider.close()

    def test_collection_name_is_quoted(self, tmp_path) -> None:
        """Test unusual collection names are used verbatim as table names."""
        provider = SqliteStorageProvider(str(tmp_path), collection='audit "events"; --')
        event_id = provider.insert(EventRecord(event_type="X"))

        assert provider.get_event(event_id)["event_type"] == "X"
        assert provider.count() == 1
        provider.close()

    def test_data_survives_reopen(self, tmp_path) -> None:
        """Test events persist across provider instances."""
        provider = SqliteStorageProvider(str(tmp_path))
        event_id = provider.insert(EventRecord(event_type="X"))
        provider.close()

        reopened = SqliteStorageProvider(str(tmp_path))
        assert reopened.get_event(event_id)["event_type"] == "X"
        reopened.close()

    def test_closed_connection_raises_storage_unavailable(self, tmp_path) -> None:
        """Test backend failures surface as StorageUnavailableError."""
        provider = SqliteStorageProvider(str(tmp_path))
        event_id = provider.insert(EventRecord(event_type="X"))
        provider.close()
        provider.close()

        with pytest.raises(StorageUnavailableError):
            provider.insert(EventRecord(event_type="X"))
        with pytest.raises(StorageUnavailableError):
            provider.replace(event_id, EventRecord(event_type="X"))
        with pytest.raises(StorageUnavailableError):
            provider.count()

    def test_unopenable_path_raises_storage_unavailable(self, tmp_path) -> None:
        """Test an unusable connection target is reported as unavailable."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")

        with pytest.raises(StorageUnavailableError):
            SqliteStorageProvider(str(blocker))


class TestFileStorageProvider:
    """File provider specific tests."""

    def test_file_layout(self, tmp_path) -> None:
        """Test events are written as JSON files under database/collection."""
        provider = FileStorageProvider(str(tmp_path), database="db", collection="col")
        event_id = provider.insert(EventRecord(event_type="X"))

        path = tmp_path / "db" / "col" / f"{event_id}.json"
        assert path.exists()
        assert json.loads(path.read_text())["event_type"] == "X"
        assert list((tmp_path / "db" / "col").glob("*.tmp")) == []

    def test_unreadable_event_raises_storage_unavailable(self, tmp_path) -> None:
        """Test read failures other than a missing file surface as StorageUnavailableError."""
        provider = FileStorageProvider(str(tmp_path), database="db", collection="col")
        (tmp_path / "db" / "col" / "broken.json").mkdir(parents=True)

        with pytest.raises(StorageUnavailableError):
            provider.get_event("broken")

    def test_unwritable_directory_raises_storage_unavailable(self, tmp_path) -> None:
        """Test filesystem failures surface as StorageUnavailableError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        provider = FileStorageProvider(str(blocker))

        with pytest.raises(StorageUnavailableError):
            provider.insert(EventRecord(event_type="X"))


class TestInMemoryStorageProvider:
    """In-memory provider specific tests."""

    def test_count_and_delete(self) -> None:
        """Test count and delete helpers."""
        provider = InMemoryStorageProvider()
        event_id = provider.insert(EventRecord(event_type="X"))

        assert provider.count() == 1
        assert provider.delete_event(event_id) is True
        assert provider.delete_event(event_id) is False
        assert provider.count() == 0
