"""Snapshot: immutable view of the record tree at one commit."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from gitrecords.core.infra.git_client import GitClient, TreeEntry

logger = logging.getLogger(__name__)


def _split(path: str) -> List[str]:
    return [part for part in path.strip("/").split("/") if part]


class Snapshot:
    """
    Read-only view of the tree of one commit.

    The commit is fixed when the snapshot is created, so commits made
    afterwards are invisible to it. Tree listings are cached; a snapshot can
    be shared between threads.

    Attributes:
        commit_id: Commit sha, None for a repository without commits
        tree_id: Root tree sha, None for a repository without commits
    """

    def __init__(self, client: GitClient, commit_id: Optional[str]):
        self._client = client
        self.commit_id = commit_id
        self.tree_id = client.commit_tree(commit_id) if commit_id else None
        self._trees: Dict[str, List[TreeEntry]] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Snapshot(commit_id={self.commit_id!r})"

    @property
    def is_empty(self) -> bool:
        return self.commit_id is None

    def _tree_entries(self, tree_sha: str) -> List[TreeEntry]:
        with self._lock:
            cached = self._trees.get(tree_sha)
        if cached is None:
            cached = self._client.read_tree(tree_sha)
            with self._lock:
                self._trees[tree_sha] = cached
        return cached

    def _lookup(self, path: str) -> Optional[TreeEntry]:
        """Entry at path; the root is returned as a synthetic tree entry"""
        if self.tree_id is None:
            return None
        entry = TreeEntry("", self.tree_id, "tree")
        for part in _split(path):
            if not entry.is_tree:
                return None
            entry = next((e for e in self._tree_entries(entry.sha) if e.name == part), None)
            if entry is None:
                return None
        return entry

    def exists(self, path: str) -> bool:
        return self._lookup(path) is not None

    def is_dir(self, path: str) -> bool:
        entry = self._lookup(path)
        return entry is not None and entry.is_tree

    def read(self, path: str) -> Optional[bytes]:
        """Content of the file at path, None if absent or a directory"""
        entry = self._lookup(path)
        if entry is None or entry.is_tree:
            return None
        return self._client.read_blob(entry.sha)

    def entries(self, dir_path: str) -> List[TreeEntry]:
        """Entries of a directory in git order, empty if absent"""
        entry = self._lookup(dir_path)
        if entry is None or not entry.is_tree:
            return []
        return list(self._tree_entries(entry.sha))

    def list(self, dir_path: str) -> List[str]:
        """Entry names of a directory in git order, empty if absent"""
        return [e.name for e in self.entries(dir_path)]

    def walk(self, dir_path: str) -> List[str]:
        """Every file path below dir_path, recursively"""
        prefix = "/".join(_split(dir_path))
        files = []
        for entry in self.entries(dir_path):
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            if entry.is_tree:
                files.extend(self.walk(path))
            else:
                files.append(path)
        return files
