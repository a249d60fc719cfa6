"""JSON codec for lease records and registry documents kept in the shared store.

Documents are written sorted and indented: equal content always produces
equal bytes, and files of the filesystem store stay readable by hand.
"""

import json
from enum import Enum
from typing import Any
from datetime import datetime
from pathlib import Path

from ..core.errors import SerializationError, DeserializationError


class DocumentEncoder(json.JSONEncoder):
    """Encoder for the value types found in stored documents."""

    def default(self, o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, Path):
            return str(o)
        if hasattr(o, "model_dump"):
            return o.model_dump(mode="json")
        return super().default(o)


_ENCODER = DocumentEncoder(indent=2, sort_keys=True, ensure_ascii=False)


def to_json_string(obj: Any) -> str:
    try:
        return _ENCODER.encode(obj)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to encode object to JSON: {e}") from e


def from_json_string(json_str: str, expect_object: bool = False) -> Any:
    """Parse JSON text; with ``expect_object`` anything but a JSON object is rejected."""
    try:
        value = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise DeserializationError(f"Failed to decode JSON string: {e}") from e
    if expect_object and not isinstance(value, dict):
        raise DeserializationError(
            f"Expected a JSON object, got {type(value).__name__}"
        )
    return value


def to_json_bytes(obj: Any) -> bytes:
    return to_json_string(obj).encode("utf-8")


def from_json_bytes(data: bytes, expect_object: bool = False) -> Any:
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DeserializationError(f"Document is not valid UTF-8: {e}") from e
    return from_json_string(text, expect_object=expect_object)
