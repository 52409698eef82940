"""
File storage provider: one JSON document per audit event.

Layout: <connection_string>/<database>/<collection>/<event_id>.json
"""

import os
import tempfile
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Optional

from packages.audit_core.errors import EventNotFoundError, StorageUnavailableError
from packages.audit_core.models import EventRecord

from .serialization import decode_document, encode_event


class FileStorageProvider:
    """Audit storage provider writing JSON files to a directory tree."""

    def __init__(
        self,
        connection_string: str = "data",
        database: str = "audit",
        collection: str = "events",
    ) -> None:
        self.connection_string = connection_string
        self.database = database
        self.collection = collection
        self.directory = Path(connection_string) / database / collection
        self._lock = Lock()

    def _path(self, event_id: str) -> Path:
        return self.directory / f"{event_id}.json"

    def _write(self, path: Path, document: str) -> None:
        # Readers never see a partial document
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def insert(self, event: EventRecord) -> str:
        document = encode_event(event)
        event_id = uuid.uuid4().hex
        try:
            with self._lock:
                self._write(self._path(event_id), document)
        except OSError as e:
            raise StorageUnavailableError(f"Failed to write audit event file: {e}") from e
        return event_id

    def replace(self, event_id: str, event: EventRecord) -> None:
        document = encode_event(event)
        path = self._path(event_id)
        try:
            with self._lock:
                if not path.exists():
                    raise EventNotFoundError(event_id)
                self._write(path, document)
        except OSError as e:
            raise StorageUnavailableError(
                f"Failed to write audit event file {path}: {e}"
            ) from e

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]:
        path = self._path(event_id)
        try:
            with self._lock:
                text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Failed to read audit event file {path}: {e}") from e
        return decode_document(text)
