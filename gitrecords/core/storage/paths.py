# gitrecords/core/storage/paths.py
from __future__ import annotations

from typing import Any, Optional

from gitrecords.core.errors import InvalidKeyError, NullIdError
from gitrecords.core.naming import type_subdirectory

# 记录目录内的保留文件名
ATTRIBUTES_FILENAME = "attributes.json"
MARKER_FILENAME = ".record"
RESERVED_NAMES = {ATTRIBUTES_FILENAME, MARKER_FILENAME}


def _check_segment(value: str, what: str) -> str:
    """Reject anything that is not a single, plain path segment"""
    if value in (".", ".."):
        raise InvalidKeyError(f"{what} must not be '.' or '..'", value=value)
    if "/" in value or "\\" in value or "\0" in value:
        raise InvalidKeyError(f"{what} must be a single path segment", value=value)
    return value


def type_dir(record_type: Any) -> str:
    """Directory of a record type (a Record subclass or an explicit subdirectory)"""
    if record_type is None:
        raise InvalidKeyError("Record type is not set")
    subdir = record_type if isinstance(record_type, str) else type_subdirectory(record_type)
    if not subdir:
        raise InvalidKeyError("Record type subdirectory is empty", record_type=record_type)
    return _check_segment(subdir, "Record type subdirectory")


def check_id(record_id: Optional[str], record_type: Any = None) -> str:
    """Validate a record id"""
    if record_id is None or record_id == "":
        name = record_type if isinstance(record_type, str) or record_type is None else record_type.__name__
        raise NullIdError(name)
    if not isinstance(record_id, str):
        raise InvalidKeyError("Record id must be a string", record_id=repr(record_id))
    return _check_segment(record_id, "Record id")


def check_blob_name(name: str) -> str:
    """Validate a blob file name"""
    if not name:
        raise InvalidKeyError("Blob name is empty")
    if name in RESERVED_NAMES:
        raise InvalidKeyError("Blob name is reserved", name=name)
    return _check_segment(name, "Blob name")


def record_dir(record_type: Any, record_id: Optional[str]) -> str:
    """Directory of one record: <type-subdir>/<id>"""
    return f"{type_dir(record_type)}/{check_id(record_id, record_type)}"


def attributes_path(record_type: Any, record_id: Optional[str]) -> str:
    """Serialized attributes file of a record"""
    return f"{record_dir(record_type, record_id)}/{ATTRIBUTES_FILENAME}"


def blob_path(record_type: Any, record_id: Optional[str], name: str) -> str:
    """File holding one blob of a record"""
    return f"{record_dir(record_type, record_id)}/{check_blob_name(name)}"


def marker_path(record_type: Any, record_id: Optional[str]) -> str:
    """Sentinel file of a record that has neither attributes nor blobs"""
    return f"{record_dir(record_type, record_id)}/{MARKER_FILENAME}"
