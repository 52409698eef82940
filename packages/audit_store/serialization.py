"""JSON encoding of audit events for storage backends."""

import dataclasses
import datetime
import decimal
import enum
import json
import uuid
from typing import Any

from pydantic import BaseModel

from packages.audit_core.errors import SerializationError
from packages.audit_core.models import EventRecord


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        return str(obj)
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def event_to_document(event: EventRecord) -> dict[str, Any]:
    """Build the storage document for an event (custom field values not yet encoded)."""
    document = event.model_dump(mode="json", exclude={"custom_fields"})
    document["custom_fields"] = dict(event.custom_fields)
    return document


def encode_event(event: EventRecord) -> str:
    """
    Encode an event as JSON text.

    Raises:
        SerializationError: If a custom field value cannot be encoded
    """
    try:
        return json.dumps(event_to_document(event), default=json_default, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Cannot encode audit event '{event.event_type}': {e}"
        ) from e


def decode_document(text: str) -> dict[str, Any]:
    return json.loads(text)
