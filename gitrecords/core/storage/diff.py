"""
Tree Diff Builder

Computes the path writes and removals that move a snapshot to the desired
state of one record (or of a whole record type). The result is applied by
the TransactionCommitter; this module does no writes itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

from gitrecords.core.errors import EmptyRecordError
from gitrecords.core.storage import paths
from gitrecords.core.storage.snapshot import Snapshot

logger = logging.getLogger(__name__)

EMPTY_RECORD_MARKER = "marker"
EMPTY_RECORD_REJECT = "reject"


@dataclass
class TreeDiff:
    """Ordered path writes plus path removals"""
    writes: Dict[str, bytes] = field(default_factory=dict)
    removals: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.writes and not self.removals

    def summary(self) -> str:
        return f"{len(self.writes)} write(s), {len(self.removals)} removal(s)"


def build_save_diff(
    snapshot: Snapshot,
    record_type: Any,
    record_id: str,
    attributes_data: Optional[bytes],
    blobs: Mapping[str, bytes],
    empty_record_policy: str = EMPTY_RECORD_MARKER,
) -> TreeDiff:
    """
    Diff for saving one record

    Args:
        snapshot: Parent snapshot
        record_type: Record class or type subdirectory
        record_id: Record id
        attributes_data: Encoded attributes, None when there are none
        blobs: Blob name -> bytes
        empty_record_policy: "marker" or "reject" for records without content

    Returns:
        TreeDiff

    Raises:
        EmptyRecordError: record is empty and the policy is "reject"
    """
    record_dir = paths.record_dir(record_type, record_id)
    attributes_path = paths.attributes_path(record_type, record_id)
    marker_path = paths.marker_path(record_type, record_id)
    existing = set(snapshot.walk(record_dir))

    diff = TreeDiff()

    if attributes_data is not None:
        diff.writes[attributes_path] = attributes_data
    elif attributes_path in existing:
        diff.removals.add(attributes_path)

    wanted = set()
    for name, data in blobs.items():
        path = paths.blob_path(record_type, record_id, name)
        wanted.add(path)
        diff.writes[path] = data

    # Blobs removed since the last save
    for path in sorted(existing - wanted - {attributes_path, marker_path}):
        diff.removals.add(path)

    if attributes_data is None and not blobs:
        if empty_record_policy == EMPTY_RECORD_REJECT:
            raise EmptyRecordError(paths.type_dir(record_type), record_id)
        diff.writes[marker_path] = b""
    elif marker_path in existing:
        diff.removals.add(marker_path)

    logger.debug(f"Save diff for {record_dir}: {diff.summary()}")
    return diff


def build_delete_diff(snapshot: Snapshot, record_type: Any, record_id: str) -> TreeDiff:
    """Diff removing every file of one record; empty if the record is absent"""
    record_dir = paths.record_dir(record_type, record_id)
    diff = TreeDiff(removals=set(snapshot.walk(record_dir)))
    logger.debug(f"Delete diff for {record_dir}: {diff.summary()}")
    return diff


def build_delete_all_diff(snapshot: Snapshot, record_type: Any) -> TreeDiff:
    """Diff removing every record of a type"""
    type_dir = paths.type_dir(record_type)
    diff = TreeDiff(removals=set(snapshot.walk(type_dir)))
    logger.debug(f"Delete-all diff for {type_dir}: {diff.summary()}")
    return diff
