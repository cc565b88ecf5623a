"""Repository Context - process-wide handle on the record repository

Binds a storage root to a GitClient, the write lock and the committer.
Record operations look the context up at call time through get_context(),
so tests can swap it per test case with use_context().

Lifecycle:
    init_context(root)   once, before any record operation
    reset_context()      teardown (also run at interpreter exit)

A second init_context() is an idempotent no-op that returns the existing
context; call reset_context() first to point at another root.
"""

import atexit
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from git import Actor

from gitrecords.core.config import GitRecordsConfig, get_config
from gitrecords.core.errors import ContextNotInitializedError
from gitrecords.core.infra.git_client import GitClient
from gitrecords.core.storage.committer import TransactionCommitter
from gitrecords.core.storage.snapshot import Snapshot

logger = logging.getLogger(__name__)


class RepositoryContext:
    """Handle on one record repository"""

    def __init__(self, root: Optional[Path] = None, config: Optional[GitRecordsConfig] = None):
        """
        Open (or create) the repository

        Args:
            root: Repository directory (default: config.db_root)
            config: Configuration (default: global config)
        """
        self.config = config or get_config()
        self.root = Path(root or self.config.db_root).expanduser().resolve()
        self.client = GitClient.open_or_init(self.root, self.config.ref_path)
        self.write_lock = threading.RLock()
        self.committer = TransactionCommitter(
            self.client,
            Actor(self.config.author_name, self.config.author_email),
            lock=self.write_lock,
            lock_timeout=self.config.lock_timeout,
        )
        self._closed = False
        logger.debug(f"Opened repository context at {self.root} ({self.config.ref_path})")

    def __repr__(self) -> str:
        return f"RepositoryContext(root={str(self.root)!r})"

    def head(self) -> Optional[str]:
        """Current branch head commit, None before the first commit"""
        return self.client.get_head()

    def snapshot(self, commit: Optional[str] = None) -> Snapshot:
        """
        Resolve a snapshot

        Args:
            commit: Commit sha or revision; None for the current head
        """
        if commit is None:
            return Snapshot(self.client, self.client.get_head())
        return Snapshot(self.client, self.client.resolve_commit(commit))

    def log(self, count: Optional[int] = None, path: Optional[str] = None) -> List[dict]:
        """Commit history of the branch, newest first"""
        return self.client.get_commit_log(count=count, paths=path)

    def close(self) -> None:
        if self._closed:
            return
        self.client.close()
        self._closed = True
        logger.debug(f"Closed repository context at {self.root}")


# Global context instance (one per process)
_context: Optional[RepositoryContext] = None
_context_lock = threading.Lock()


def init_context(root: Optional[Path] = None, config: Optional[GitRecordsConfig] = None) -> RepositoryContext:
    """
    Initialize the process-wide repository context

    Idempotent: when a context already exists it is returned unchanged.
    """
    global _context
    with _context_lock:
        if _context is not None:
            if root is not None and Path(root).expanduser().resolve() != _context.root:
                logger.warning(
                    f"Repository context already initialized at {_context.root}; "
                    f"ignoring request for {root}"
                )
            return _context
        _context = RepositoryContext(root, config)
        logger.info(f"Repository context initialized at {_context.root}")
        return _context


def get_context() -> RepositoryContext:
    """Get the process-wide repository context"""
    if _context is None:
        raise ContextNotInitializedError()
    return _context


def set_context(context: Optional[RepositoryContext]) -> Optional[RepositoryContext]:
    """Replace the process-wide context, returning the previous one"""
    global _context
    with _context_lock:
        previous, _context = _context, context
    return previous


def reset_context() -> None:
    """Close and forget the process-wide context"""
    previous = set_context(None)
    if previous is not None:
        previous.close()
        logger.info(f"Repository context at {previous.root} torn down")


@contextmanager
def use_context(context: RepositoryContext) -> Iterator[RepositoryContext]:
    """Temporarily make context the process-wide one"""
    previous = set_context(context)
    try:
        yield context
    finally:
        set_context(previous)


atexit.register(reset_context)
