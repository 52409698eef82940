"""
SQLite storage provider for audit events.

Each event is one row holding its JSON document plus a few indexed columns.
The connection string names a directory, the database name the file in it and
the collection name the table.
"""

import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Optional

from packages.audit_core.errors import EventNotFoundError, StorageUnavailableError
from packages.audit_core.models import EventRecord

from .serialization import decode_document, encode_event

MEMORY_CONNECTION = ":memory:"


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SqliteStorageProvider:
    """
    Audit storage provider with SQLite backend.

    Thread-safe: one shared connection guarded by a lock, so inserts and
    replaces for an event are applied in the order they are issued.
    """

    def __init__(
        self,
        connection_string: str = "data",
        database: str = "audit",
        collection: str = "events",
    ) -> None:
        """
        Initialize SQLite provider.

        Args:
            connection_string: Directory holding the database file, or ":memory:"
            database: Database file name (without extension)
            collection: Table name

        Raises:
            StorageUnavailableError: If the database cannot be opened
        """
        self.connection_string = connection_string
        self.database = database
        self.collection = collection
        self._table = _quote_identifier(collection)
        self._lock = Lock()
        self._closed = False

        if connection_string == MEMORY_CONNECTION:
            self.db_path: Optional[Path] = None
            target = MEMORY_CONNECTION
        else:
            self.db_path = Path(connection_string) / f"{database}.db"
            target = str(self.db_path)

        try:
            if self.db_path is not None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(target, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_db()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailableError(f"Cannot open audit database {target}: {e}") from e

    def _init_db(self) -> None:
        """Create table and indexes if they don't exist."""
        index_prefix = self.collection.replace('"', "")
        self._conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id TEXT PRIMARY KEY,
                event_type TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT,
                document TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.execute(f"""
            CREATE INDEX IF NOT EXISTS {_quote_identifier(index_prefix + '_event_type')}
            ON {self._table}(event_type)
        """)
        self._conn.execute(f"""
            CREATE INDEX IF NOT EXISTS {_quote_identifier(index_prefix + '_start_time')}
            ON {self._table}(start_time DESC)
        """)
        self._conn.commit()

    def insert(self, event: EventRecord) -> str:
        """
        Insert a new event row.

        Returns:
            Generated event id

        Raises:
            SerializationError: If the event cannot be encoded
            StorageUnavailableError: If the database write fails
        """
        document = encode_event(event)
        event_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()

        try:
            with self._lock:
                self._conn.execute(
                    f"""
                    INSERT INTO {self._table}
                    (id, event_type, start_time, end_time, document, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event_id,
                        event.event_type,
                        event.start_time.isoformat(),
                        event.end_time.isoformat() if event.end_time else None,
                        document,
                        now,
                        now,
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Failed to insert audit event: {e}") from e

        return event_id

    def replace(self, event_id: str, event: EventRecord) -> None:
        """
        Overwrite the row of a previously inserted event.

        Raises:
            SerializationError: If the event cannot be encoded
            EventNotFoundError: If no row has this id
            StorageUnavailableError: If the database write fails
        """
        document = encode_event(event)
        now = datetime.now(timezone.utc).isoformat()

        try:
            with self._lock:
                cursor = self._conn.execute(
                    f"""
                    UPDATE {self._table}
                    SET event_type = ?, start_time = ?, end_time = ?, document = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        event.event_type,
                        event.start_time.isoformat(),
                        event.end_time.isoformat() if event.end_time else None,
                        document,
                        now,
                        event_id,
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Failed to replace audit event {event_id}: {e}") from e

        if cursor.rowcount == 0:
            raise EventNotFoundError(event_id)

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a stored document by id.

        Returns:
            The decoded document if found, None otherwise
        """
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT document FROM {self._table} WHERE id = ?", (event_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Failed to read audit event {event_id}: {e}") from e

        if not row:
            return None
        return decode_document(row["document"])

    def delete_event(self, event_id: str) -> bool:
        """Delete a row. Returns True if it existed."""
        try:
            with self._lock:
                cursor = self._conn.execute(
                    f"DELETE FROM {self._table} WHERE id = ?", (event_id,)
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Failed to delete audit event {event_id}: {e}") from e
        return cursor.rowcount > 0

    def count(self) -> int:
        try:
            with self._lock:
                return self._conn.execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Failed to count audit events: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True
