"""Git Client - object-level adapter over GitPython

All git access goes through this GitClient. Records never touch a working
tree or index: blobs, trees and commits are written straight into the
object database of a bare repository, and the branch ref is advanced with
a compare-and-set.

Object access is serialized per client: the default object database shares
one persistent `git cat-file` process between all callers.

GitPython/gitdb failures are wrapped into StoreUnavailableError here so the
rest of the package deals with one error taxonomy.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from git import Actor, Repo
from git.exc import GitCommandError, GitError, InvalidGitRepositoryError, NoSuchPathError
from git.objects.commit import Commit
from git.objects.fun import tree_entries_from_data, tree_to_stream
from git.refs.head import Head
from gitdb.base import IStream
from gitdb.exc import ODBError
from gitdb.util import bin_to_hex, hex_to_bin

from gitrecords.core.errors import ConcurrentModificationError, StoreUnavailableError

logger = logging.getLogger(__name__)

BLOB_MODE = 0o100644
TREE_MODE = 0o040000

ZERO_SHA = "0" * 40

_STORE_ERRORS = (GitError, ODBError, OSError, ValueError)


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a git tree"""
    name: str
    sha: str
    kind: str  # blob, tree

    @property
    def is_tree(self) -> bool:
        return self.kind == "tree"


def _hexsha(binsha: bytes) -> str:
    return bin_to_hex(binsha).decode("ascii")


def _git_sort_key(entry: TreeEntry) -> bytes:
    # git orders trees as if their name had a trailing slash
    name = entry.name.encode("utf-8")
    return name + b"/" if entry.is_tree else name


class GitClient:
    """Git object store client - uses GitPython"""

    def __init__(self, repo_path: Path, ref_path: str = "refs/heads/master"):
        """
        Open an existing repository

        Args:
            repo_path: Repository path (bare or not)
            ref_path: Full name of the branch ref records are committed to
        """
        self.repo_path = Path(repo_path)
        self.ref_path = ref_path
        try:
            self.repo = Repo(str(self.repo_path))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise StoreUnavailableError(
                "Not a git repository", path=str(self.repo_path)
            ) from e
        self._lock = threading.RLock()

    @classmethod
    def open_or_init(cls, repo_path: Path, ref_path: str = "refs/heads/master") -> "GitClient":
        """
        Open the repository at repo_path, creating a bare one if missing

        HEAD is pointed at ref_path so plain git tools see the record history.
        """
        repo_path = Path(repo_path)
        try:
            Repo(str(repo_path))
        except (InvalidGitRepositoryError, NoSuchPathError):
            repo_path.mkdir(parents=True, exist_ok=True)
            try:
                repo = Repo.init(str(repo_path), bare=True)
                repo.git.symbolic_ref("HEAD", ref_path)
            except _STORE_ERRORS as e:
                raise StoreUnavailableError(
                    "Failed to initialize repository", path=str(repo_path)
                ) from e
            logger.info(f"Initialized bare record repository at {repo_path}")
        return cls(repo_path, ref_path)

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def _read_object(self, sha: str) -> Tuple[str, bytes]:
        """Object type name and raw content"""
        with self._lock:
            ostream = self.repo.odb.stream(hex_to_bin(sha))
            data = ostream.read()
        kind = ostream.type
        if isinstance(kind, bytes):
            kind = kind.decode("ascii")
        return kind, data

    def read_blob(self, sha: str) -> bytes:
        """Read raw blob content"""
        try:
            _, data = self._read_object(sha)
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to read blob", sha=sha) from e
        return data

    def write_blob(self, data: bytes) -> str:
        """
        Store a blob object

        Returns:
            blob sha (40 hex chars)
        """
        try:
            with self._lock:
                istream = self.repo.odb.store(IStream("blob", len(data), BytesIO(data)))
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to write blob", size=len(data)) from e
        return _hexsha(istream.binsha)

    def read_tree(self, sha: str) -> List[TreeEntry]:
        """List the entries of a tree object, in git order"""
        try:
            kind, data = self._read_object(sha)
            if kind != "tree":
                raise StoreUnavailableError("Object is not a tree", sha=sha, type=kind)
            return [
                TreeEntry(name, _hexsha(binsha), "tree" if mode >> 12 == TREE_MODE >> 12 else "blob")
                for binsha, mode, name in tree_entries_from_data(data)
            ]
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to read tree", sha=sha) from e

    def write_tree(self, entries: Iterable[TreeEntry]) -> str:
        """
        Store a tree object built from entries

        Returns:
            tree sha
        """
        items = []
        for entry in sorted(entries, key=_git_sort_key):
            mode = TREE_MODE if entry.is_tree else BLOB_MODE
            items.append((hex_to_bin(entry.sha), mode, entry.name))

        sio = BytesIO()
        tree_to_stream(items, sio.write)
        data = sio.getvalue()
        try:
            with self._lock:
                istream = self.repo.odb.store(IStream("tree", len(data), BytesIO(data)))
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to write tree", entries=len(items)) from e
        return _hexsha(istream.binsha)

    def commit_tree(self, commit_sha: str) -> str:
        """Get the root tree sha of a commit"""
        try:
            with self._lock:
                return self.repo.commit(commit_sha).tree.hexsha
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to read commit", sha=commit_sha) from e

    def resolve_commit(self, rev: str) -> str:
        """Resolve a revision (sha, short sha, ref, HEAD~n) to a commit sha"""
        try:
            with self._lock:
                return self.repo.commit(rev).hexsha
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Unknown revision", rev=rev) from e

    def create_commit(
        self,
        tree_sha: str,
        parent_sha: Optional[str],
        message: str,
        author: Actor,
    ) -> str:
        """
        Create a commit object without moving any ref

        Args:
            tree_sha: Root tree of the commit
            parent_sha: Parent commit, None for the first commit
            message: Commit message
            author: Author and committer identity

        Returns:
            commit sha
        """
        try:
            with self._lock:
                parents = [self.repo.commit(parent_sha)] if parent_sha else []
                commit = Commit.create_from_tree(
                    self.repo,
                    self.repo.tree(tree_sha),
                    message,
                    parent_commits=parents,
                    head=False,
                    author=author,
                    committer=author,
                )
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to create commit", tree=tree_sha) from e
        return commit.hexsha

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    def get_head(self) -> Optional[str]:
        """Get the branch head commit sha, None while the branch is unborn"""
        ref = Head(self.repo, self.ref_path)
        try:
            with self._lock:
                if not ref.is_valid():
                    return None
                return ref.commit.hexsha
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to read head", ref=self.ref_path) from e

    def set_head(
        self,
        new_sha: str,
        expected_sha: Optional[str],
        message: str = "",
        committer: Optional[Actor] = None,
    ) -> None:
        """
        Advance the branch ref atomically

        Uses `git update-ref <ref> <new> <old>`, which refuses the update when
        the ref no longer points at expected_sha (or exists although
        expected_sha is None).

        Raises:
            ConcurrentModificationError: head is no longer expected_sha
            StoreUnavailableError: any other failure
        """
        env = {}
        if committer is not None:
            env = {"GIT_COMMITTER_NAME": committer.name, "GIT_COMMITTER_EMAIL": committer.email}
        try:
            self.repo.git.update_ref(
                "-m", message or "gitrecords: commit",
                self.ref_path,
                new_sha,
                expected_sha or ZERO_SHA,
                env=env,
            )
        except GitCommandError as e:
            actual = self.get_head()
            # another writer holding the ref lock counts as a lost race
            if actual != expected_sha or "cannot lock ref" in str(e.stderr):
                raise ConcurrentModificationError(expected_sha, actual) from e
            raise StoreUnavailableError("Failed to update ref", ref=self.ref_path) from e

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_commit_log(
        self,
        count: Optional[int] = None,
        paths: Optional[str] = None,
        rev: Optional[str] = None,
    ) -> List[dict]:
        """
        Get commit log, newest first

        Args:
            count: Maximum number of commits
            paths: Only commits touching this path
            rev: Start revision (default: branch head)

        Returns:
            commit list
        """
        start = rev or self.get_head()
        if start is None:
            return []

        kwargs = {}
        if count is not None:
            kwargs["max_count"] = count
        if paths:
            kwargs["paths"] = paths

        commits = []
        try:
            with self._lock:
                for commit in self.repo.iter_commits(start, **kwargs):
                    commits.append({
                        "sha": commit.hexsha,
                        "short_sha": commit.hexsha[:8],
                        "message": commit.message.strip(),
                        "author": str(commit.author),
                        "date": datetime.fromtimestamp(commit.committed_date).isoformat()
                    })
        except _STORE_ERRORS as e:
            raise StoreUnavailableError("Failed to read history", rev=start) from e
        return commits

    def get_commit_count(self) -> int:
        """Number of commits on the branch"""
        return len(self.get_commit_log())

    def close(self) -> None:
        """Release cached git processes and file handles"""
        with self._lock:
            self.repo.close()
