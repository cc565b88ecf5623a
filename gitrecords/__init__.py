"""gitrecords - records persisted as directories in a git repository.

Every save and delete is a commit on one linear branch.

Usage:
    from gitrecords import Record, attribute, init_context

    class Note(Record):
        title = attribute(default="untitled")

    init_context("/tmp/notes-db")
    Note.create(id="first", attributes={"title": "Hello"})
    Note.find("first").title
"""

from gitrecords.core.config import GitRecordsConfig, get_config, load_config
from gitrecords.core.context import (
    RepositoryContext,
    get_context,
    init_context,
    reset_context,
    use_context,
)
from gitrecords.core.errors import (
    ConcurrentModificationError,
    ContextNotInitializedError,
    CorruptRecordError,
    EmptyRecordError,
    FrozenRecordError,
    GitRecordsError,
    InvalidKeyError,
    InvalidValueError,
    NullIdError,
    RecordNotFoundError,
    SaveFailedError,
    StoreUnavailableError,
    WriteTimeoutError,
)
from gitrecords.core.logging import configure_logging
from gitrecords.core.record import AttributeMap, Record, attribute, blob
from gitrecords.core.schema import EntitySchema, SchemaRegistry, default_registry
from gitrecords.core.service import RecordService, SaveResult
from gitrecords.core.validation import ValidationErrors, ValidationResult, format_of, presence_of

__version__ = "0.1.0"

__all__ = [
    "AttributeMap",
    "ConcurrentModificationError",
    "ContextNotInitializedError",
    "CorruptRecordError",
    "EmptyRecordError",
    "EntitySchema",
    "FrozenRecordError",
    "GitRecordsConfig",
    "GitRecordsError",
    "InvalidKeyError",
    "InvalidValueError",
    "NullIdError",
    "Record",
    "RecordNotFoundError",
    "RecordService",
    "RepositoryContext",
    "SaveFailedError",
    "SaveResult",
    "SchemaRegistry",
    "StoreUnavailableError",
    "ValidationErrors",
    "ValidationResult",
    "WriteTimeoutError",
    "attribute",
    "blob",
    "configure_logging",
    "default_registry",
    "format_of",
    "get_config",
    "get_context",
    "init_context",
    "load_config",
    "presence_of",
    "reset_context",
    "use_context",
]
