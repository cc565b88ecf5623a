"""Record Store Error Definitions

Custom exceptions for the git-backed record store.
All errors include reason_code field for structured error handling.

Validation failures are not exceptions: ``save`` reports them through a falsy
``SaveResult``. ``save_or_fail`` converts them into ``SaveFailedError``.
"""

from typing import Dict, List, Optional


# ============================================================================
# Base Error
# ============================================================================


class GitRecordsError(Exception):
    """Base exception for record store errors"""

    reason_code: str = "GITRECORDS_ERROR"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.context = kwargs
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context"""
        parts = [self.message]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[{context_str}]")
        return " ".join(parts)


# ============================================================================
# Caller Input Errors
# ============================================================================


class InvalidKeyError(GitRecordsError):
    """Raised when a type, id or field name cannot be mapped to a storage path"""

    reason_code = "INVALID_KEY"


class NullIdError(InvalidKeyError):
    """Raised when a record is saved or looked up without an id"""

    reason_code = "NULL_ID"

    def __init__(self, record_type: Optional[str] = None):
        super().__init__("Record id is not set", record_type=record_type)


class InvalidValueError(GitRecordsError):
    """Raised when an attribute value cannot be serialized"""

    reason_code = "INVALID_VALUE"


class EmptyRecordError(GitRecordsError):
    """Raised when a record has neither attributes nor blobs and placeholders are disabled"""

    reason_code = "EMPTY_RECORD"

    def __init__(self, record_type: str, record_id: str):
        super().__init__(
            "Record has no attributes and no blobs",
            record_type=record_type,
            record_id=record_id,
        )


class FrozenRecordError(GitRecordsError):
    """Raised when a deleted record is mutated"""

    reason_code = "RECORD_FROZEN"

    def __init__(self, record_type: str, record_id: Optional[str]):
        super().__init__(
            "Record has been deleted and can no longer be modified",
            record_type=record_type,
            record_id=record_id,
        )


# ============================================================================
# Lookup / Save Errors
# ============================================================================


class RecordNotFoundError(GitRecordsError):
    """Raised when a record id is absent from the resolved snapshot"""

    reason_code = "RECORD_NOT_FOUND"

    def __init__(self, record_type: str, record_id: str, commit: Optional[str] = None):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            f"Record not found: {record_type}/{record_id}",
            commit=commit or "empty",
        )


class SaveFailedError(GitRecordsError):
    """Raised by save_or_fail when validation rejects the record"""

    reason_code = "SAVE_FAILED"

    def __init__(self, record_type: str, record_id: Optional[str], errors: Dict[str, List[str]]):
        self.errors = errors
        fields = ", ".join(sorted(errors)) or "-"
        super().__init__(
            "Record failed validation",
            record_type=record_type,
            record_id=record_id,
            fields=fields,
        )


class CorruptRecordError(GitRecordsError):
    """Raised when stored attributes cannot be deserialized"""

    reason_code = "CORRUPT_RECORD"


# ============================================================================
# Store / Transaction Errors
# ============================================================================


class ConcurrentModificationError(GitRecordsError):
    """Raised when the branch head moved after the parent snapshot was resolved"""

    reason_code = "CONCURRENT_MODIFICATION"

    def __init__(self, expected: Optional[str], actual: Optional[str]):
        self.expected = expected
        self.actual = actual
        super().__init__(
            "Branch head has advanced since this snapshot",
            expected=expected or "none",
            actual=actual or "none",
        )


class StoreUnavailableError(GitRecordsError):
    """Raised when the underlying git object store fails an I/O operation"""

    reason_code = "STORE_UNAVAILABLE"


class WriteTimeoutError(GitRecordsError):
    """Raised when the write lock cannot be acquired in time"""

    reason_code = "WRITE_TIMEOUT"

    def __init__(self, timeout: float):
        super().__init__("Timed out waiting for the write lock", timeout=timeout)


class ContextNotInitializedError(GitRecordsError):
    """Raised when a record operation runs before init_context()"""

    reason_code = "CONTEXT_NOT_INITIALIZED"

    def __init__(self):
        super().__init__("Repository context is not initialized; call init_context() first")
