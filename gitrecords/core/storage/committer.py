"""
Transaction Committer

Applies a TreeDiff to the tree of a parent snapshot and produces exactly one
new commit on top of it.

Ordering:
1. take the write lock
2. check the branch head is still the parent commit
3. write blob objects, then trees bottom-up
4. create the commit object
5. move the branch ref with a compare-and-set

Objects written before a failure stay unreferenced; the ref only ever points
at complete commits.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Dict, Optional, Set

from git import Actor

from gitrecords.core.errors import ConcurrentModificationError, WriteTimeoutError
from gitrecords.core.infra.git_client import GitClient, TreeEntry
from gitrecords.core.storage.diff import TreeDiff
from gitrecords.core.storage.snapshot import Snapshot
from gitrecords.util.ulid import ulid, with_transaction_trailer

logger = logging.getLogger(__name__)


class TransactionCommitter:
    """Turns tree diffs into commits on one branch"""

    def __init__(
        self,
        client: GitClient,
        author: Actor,
        lock: Optional[threading.RLock] = None,
        lock_timeout: Optional[float] = None,
    ):
        """
        Args:
            client: Object store client
            author: Identity written into each commit
            lock: Write lock shared with the owning context
            lock_timeout: Seconds to wait for the lock, None waits indefinitely
        """
        self._client = client
        self._author = author
        self.lock = lock or threading.RLock()
        self.lock_timeout = lock_timeout

    def acquire(self) -> None:
        """Take the write lock, honoring lock_timeout"""
        timeout = -1 if self.lock_timeout is None else self.lock_timeout
        if not self.lock.acquire(timeout=timeout):
            raise WriteTimeoutError(self.lock_timeout)

    def release(self) -> None:
        self.lock.release()

    def __enter__(self) -> "TransactionCommitter":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def commit(self, parent: Snapshot, diff: TreeDiff, message: str) -> Optional[str]:
        """
        Commit diff on top of parent

        Args:
            parent: Snapshot the diff was computed against
            diff: Writes and removals
            message: Commit message subject

        Returns:
            New commit sha; the parent commit sha when the tree is unchanged
            (None if the repository has no commits yet)

        Raises:
            ConcurrentModificationError: head moved since parent was resolved
            WriteTimeoutError: write lock not acquired in time
            StoreUnavailableError: object or ref write failed
        """
        with self:
            head = self._client.get_head()
            if head != parent.commit_id:
                raise ConcurrentModificationError(parent.commit_id, head)

            if diff.is_empty:
                return parent.commit_id

            blob_shas = {path: self._client.write_blob(data) for path, data in diff.writes.items()}
            tree_sha = self._apply(parent.tree_id, blob_shas, diff.removals)
            if tree_sha is None:
                tree_sha = self._client.write_tree([])

            if tree_sha == parent.tree_id:
                logger.debug(f"Tree unchanged, no commit for: {message}")
                return parent.commit_id

            txn_id = ulid()
            full_message = with_transaction_trailer(message, txn_id)
            commit_sha = self._client.create_commit(tree_sha, parent.commit_id, full_message, self._author)
            self._client.set_head(
                commit_sha, parent.commit_id, message=f"commit: {message}", committer=self._author
            )

        logger.info(f"Committed {commit_sha[:8]} ({diff.summary()}): {message} [txn={txn_id}]")
        return commit_sha

    def _apply(
        self,
        tree_sha: Optional[str],
        writes: Dict[str, str],
        removals: Set[str],
    ) -> Optional[str]:
        """
        Rebuild one tree level

        Removals are applied before writes so a path can be removed and
        rewritten in the same diff. Subtrees left empty are dropped.

        Returns:
            tree sha, None if the tree ends up empty
        """
        entries = {e.name: e for e in self._client.read_tree(tree_sha)} if tree_sha else {}

        child_writes: Dict[str, Dict[str, str]] = defaultdict(dict)
        child_removals: Dict[str, Set[str]] = defaultdict(set)

        for path in removals:
            name, _, rest = path.partition("/")
            if rest:
                child_removals[name].add(rest)
            else:
                entries.pop(name, None)

        for path, blob_sha in writes.items():
            name, _, rest = path.partition("/")
            if rest:
                child_writes[name][rest] = blob_sha
            else:
                entries[name] = TreeEntry(name, blob_sha, "blob")

        for name in set(child_writes) | set(child_removals):
            existing = entries.get(name)
            base = existing.sha if existing is not None and existing.is_tree else None
            if base is None and not child_writes.get(name):
                continue
            sub_sha = self._apply(base, child_writes.get(name, {}), child_removals.get(name, set()))
            if sub_sha is None:
                entries.pop(name, None)
            else:
                entries[name] = TreeEntry(name, sub_sha, "tree")

        if not entries:
            return None
        return self._client.write_tree(entries.values())
