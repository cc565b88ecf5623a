"""
Record Codec - attributes <-> attributes.json

Attributes are stored as UTF-8 JSON in insertion order, so a mapping always
produces the same bytes (and therefore the same git blob) and reads back in
the order it was written.
Blobs are never parsed; they only get coerced to bytes.

Key normalization:
- str keys are used as-is
- Enum members map to their str value, else to their name
- anything else maps to str(key)
"""

import json
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from gitrecords.core.errors import CorruptRecordError, InvalidValueError


def normalize_key(key: Any) -> str:
    """Canonical string form of an attribute or blob key"""
    if isinstance(key, str):
        return key
    if isinstance(key, Enum):
        return key.value if isinstance(key.value, str) else key.name
    return str(key)


def normalize_value(value: Any) -> Any:
    """Normalize nested mapping keys and turn tuples into lists"""
    if isinstance(value, Mapping):
        return {normalize_key(k): normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def normalize_blob(value: Any) -> bytes:
    """Coerce a blob payload to bytes"""
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise InvalidValueError("Blob content must be bytes or str", type=type(value).__name__)


def encode_attributes(attributes: Mapping[Any, Any]) -> Optional[bytes]:
    """
    Serialize attributes

    Returns:
        JSON bytes, or None for an empty mapping (no attributes file)

    Raises:
        InvalidValueError: a value is not JSON-serializable
    """
    if not attributes:
        return None
    try:
        text = json.dumps(
            normalize_value(attributes),
            indent=2,
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise InvalidValueError(f"Attributes are not serializable: {e}") from e
    return (text + "\n").encode("utf-8")


def decode_attributes(data: bytes, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Deserialize attributes

    Raises:
        CorruptRecordError: data is not a JSON object
    """
    try:
        value = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptRecordError(f"Attributes are not valid JSON: {e}", path=path) from e
    if not isinstance(value, dict):
        raise CorruptRecordError(
            "Attributes must be a JSON object", path=path, found=type(value).__name__
        )
    return value
