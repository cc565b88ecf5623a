"""
Record Service - record-facing API

Provides find/find_all/exists/create/save/delete over the repository
context. Every write resolves a fresh snapshot, computes a tree diff and
commits it, all under the context's write lock.

Design principles:
1. Reads resolve one snapshot and never block on writers
2. Writes are serialized by the write lock; the ref update is a compare-and-set
3. ConcurrentModificationError is retried a bounded number of times, then raised
4. Validation failures are a falsy SaveResult, not an exception (except save_or_fail)
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from gitrecords.core.config import GitRecordsConfig
from gitrecords.core.context import RepositoryContext, get_context
from gitrecords.core.errors import (
    ConcurrentModificationError,
    FrozenRecordError,
    RecordNotFoundError,
    SaveFailedError,
)
from gitrecords.core.record import Record
from gitrecords.core.storage import paths
from gitrecords.core.storage.codec import decode_attributes, encode_attributes
from gitrecords.core.storage.diff import (
    TreeDiff,
    build_delete_all_diff,
    build_delete_diff,
    build_save_diff,
)
from gitrecords.core.storage.snapshot import Snapshot
from gitrecords.core.validation import ValidationErrors, as_dict

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


@dataclass
class SaveResult:
    """
    Outcome of RecordService.save

    Truthy when the record was committed. A rejected save carries the
    validation errors and leaves the repository untouched.
    """
    commit_id: Optional[str] = None
    errors: ValidationErrors = field(default_factory=ValidationErrors)
    committed: bool = False

    def __bool__(self) -> bool:
        return self.committed

    @property
    def rejected(self) -> bool:
        return not self.committed


class RecordService:
    """Record operations against a repository context"""

    def __init__(self, context: Optional[RepositoryContext] = None, config: Optional[GitRecordsConfig] = None):
        """
        Args:
            context: Bound context; None looks up get_context() on every call
            config: Overrides the context's configuration
        """
        self._context = context
        self._config = config

    @property
    def context(self) -> RepositoryContext:
        return self._context or get_context()

    @property
    def config(self) -> GitRecordsConfig:
        return self._config or self.context.config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load(self, record_type: Type[R], record_id: str, snapshot: Snapshot) -> R:
        record_dir = paths.record_dir(record_type, record_id)
        attributes: Dict[str, Any] = {}
        blobs: Dict[str, bytes] = {}
        for entry in snapshot.entries(record_dir):
            if entry.is_tree or entry.name == paths.MARKER_FILENAME:
                continue
            path = f"{record_dir}/{entry.name}"
            data = snapshot.read(path)
            if entry.name == paths.ATTRIBUTES_FILENAME:
                attributes = decode_attributes(data, path=path)
            else:
                blobs[entry.name] = data

        record = record_type(id=record_id, attributes=attributes, blobs=blobs)
        record.mark_persisted()
        return record

    def find(self, record_type: Type[R], record_id: str, at: Optional[str] = None) -> R:
        """
        Load one record

        Args:
            record_type: Record class
            record_id: Record id
            at: Commit/revision to read from (default: current head)

        Raises:
            RecordNotFoundError: record absent from the snapshot
            CorruptRecordError: stored attributes are not valid JSON
        """
        record_dir = paths.record_dir(record_type, record_id)
        snapshot = self.context.snapshot(at)
        if not snapshot.is_dir(record_dir):
            raise RecordNotFoundError(paths.type_dir(record_type), record_id, snapshot.commit_id)
        return self._load(record_type, record_id, snapshot)

    def find_all(self, record_type: Type[R], at: Optional[str] = None) -> List[R]:
        """Load every record of a type from one snapshot"""
        type_dir = paths.type_dir(record_type)
        snapshot = self.context.snapshot(at)
        return [
            self._load(record_type, entry.name, snapshot)
            for entry in snapshot.entries(type_dir)
            if entry.is_tree
        ]

    def exists(self, record_type: Type[Record], record_id: str, at: Optional[str] = None) -> bool:
        record_dir = paths.record_dir(record_type, record_id)
        return self.context.snapshot(at).is_dir(record_dir)

    def reload(self, record: R) -> R:
        """Replace the in-memory state of record with the stored one"""
        stored = self.find(type(record), record.id)
        record.attributes = stored.attributes
        record.blobs = stored.blobs
        record.materialize()
        record.mark_persisted()
        return record

    def history(self, record_type: Type[Record], record_id: str, count: Optional[int] = None) -> List[dict]:
        """Commits that touched a record, newest first"""
        record_dir = paths.record_dir(record_type, record_id)
        return self.context.log(count=count, path=record_dir)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _commit_with_retry(
        self,
        build_diff: Callable[[Snapshot], TreeDiff],
        message: str,
    ) -> Optional[str]:
        """
        Resolve a snapshot, build a diff and commit it

        Retries on ConcurrentModificationError with exponential backoff and
        jitter; the last error is raised once retries are exhausted.
        """
        context = self.context
        retries = self.config.max_commit_retries
        for attempt in range(retries + 1):
            with context.committer:
                snapshot = context.snapshot()
                diff = build_diff(snapshot)
                try:
                    return context.committer.commit(snapshot, diff, message)
                except ConcurrentModificationError:
                    if attempt == retries:
                        logger.error(f"Giving up after {retries} retries: {message}")
                        raise
            delay = min(self.config.retry_backoff_seconds * (2 ** attempt), 0.2)
            logger.warning(f"Concurrent modification, retrying ({attempt + 1}/{retries}): {message}")
            time.sleep(random.uniform(0, delay))
        return None

    def save(self, record: Record, message: Optional[str] = None) -> SaveResult:
        """
        Validate and commit a record

        Returns:
            SaveResult: truthy with commit_id on success, falsy with errors on
            validation failure

        Raises:
            FrozenRecordError: record was deleted
            NullIdError / InvalidKeyError: id missing or malformed (before any I/O)
            EmptyRecordError: empty record under the "reject" policy
            ConcurrentModificationError: retries exhausted
        """
        record_type = type(record)
        if record.frozen:
            raise FrozenRecordError(record_type.__name__, record.id)
        record_dir = paths.record_dir(record_type, record.id)

        result = record.validate()
        record.errors = result.errors
        if not result.ok:
            logger.info(f"Validation rejected {record_dir}: {result.errors.full_messages()}")
            return SaveResult(errors=result.errors)

        record.materialize()
        attributes_data = encode_attributes(record.attributes)
        blobs = record.blobs.to_dict()
        policy = self.config.empty_record_policy

        commit_id = self._commit_with_retry(
            lambda snapshot: build_save_diff(
                snapshot, record_type, record.id, attributes_data, blobs, policy
            ),
            message or f"save {record_dir}",
        )
        record.mark_persisted()
        return SaveResult(commit_id=commit_id, committed=True)

    def save_or_fail(self, record: Record, message: Optional[str] = None) -> str:
        """
        Like save, but a validation failure raises

        Raises:
            SaveFailedError: validation rejected the record
        """
        result = self.save(record, message=message)
        if not result:
            raise SaveFailedError(type(record).__name__, record.id, as_dict(result.errors))
        return result.commit_id

    def _build(self, record_type: Type[R], fields: Optional[Mapping[str, Any]], kwargs: Dict[str, Any]) -> R:
        values = dict(fields or {})
        values.update(kwargs)
        return record_type(**values)

    def create(
        self,
        record_type: Type[R],
        fields: Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None] = None,
        **kwargs: Any,
    ) -> Union[R, List[R]]:
        """
        Construct and save a record

        A list of field mappings creates (and returns) one record per element.
        The record is returned even if validation rejected it; check
        record.errors / record.persisted.
        """
        if isinstance(fields, (list, tuple)):
            return [self.create(record_type, item) for item in fields]
        record = self._build(record_type, fields, kwargs)
        self.save(record)
        return record

    def create_or_fail(
        self,
        record_type: Type[R],
        fields: Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None] = None,
        **kwargs: Any,
    ) -> Union[R, List[R]]:
        """Construct and save_or_fail a record (or each record of a list)"""
        if isinstance(fields, (list, tuple)):
            return [self.create_or_fail(record_type, item) for item in fields]
        record = self._build(record_type, fields, kwargs)
        self.save_or_fail(record)
        return record

    def delete(self, record_type: Type[Record], record_id: str, message: Optional[str] = None) -> Optional[str]:
        """
        Remove a record and all its files

        Idempotent: deleting an absent record commits nothing.

        Returns:
            new commit sha, or None when nothing was deleted
        """
        record_dir = paths.record_dir(record_type, record_id)
        deleted: List[bool] = []

        def build(snapshot: Snapshot) -> TreeDiff:
            diff = build_delete_diff(snapshot, record_type, record_id)
            deleted[:] = [not diff.is_empty]
            return diff

        commit_id = self._commit_with_retry(build, message or f"delete {record_dir}")
        if not deleted[0]:
            logger.debug(f"Nothing to delete at {record_dir}")
            return None
        return commit_id

    def delete_record(self, record: Record, message: Optional[str] = None) -> Optional[str]:
        """Delete a record instance and freeze it"""
        commit_id = self.delete(type(record), record.id, message=message)
        record.freeze()
        return commit_id

    def delete_all(self, record_type: Type[Record], message: Optional[str] = None) -> Optional[str]:
        """Remove every record of a type"""
        type_dir = paths.type_dir(record_type)
        deleted: List[bool] = []

        def build(snapshot: Snapshot) -> TreeDiff:
            diff = build_delete_all_diff(snapshot, record_type)
            deleted[:] = [not diff.is_empty]
            return diff

        commit_id = self._commit_with_retry(build, message or f"delete all {type_dir}")
        if not deleted[0]:
            return None
        return commit_id
