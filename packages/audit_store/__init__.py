"""
Audit store package: storage providers for audit events.

This package provides the storage provider contract and its in-memory, SQLite
and file backends, plus the factory that builds one from settings.
"""

from .factory import ProviderType, configure_auditing, create_storage_provider
from .file import FileStorageProvider
from .memory import InMemoryStorageProvider
from .provider import StorageProvider
from .serialization import decode_document, encode_event, event_to_document, json_default
from .sqlite import SqliteStorageProvider

__all__ = [
    "FileStorageProvider",
    "InMemoryStorageProvider",
    "ProviderType",
    "SqliteStorageProvider",
    "StorageProvider",
    "configure_auditing",
    "create_storage_provider",
    "decode_document",
    "encode_event",
    "event_to_document",
    "json_default",
]
