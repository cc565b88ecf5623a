"""Infrastructure components for gitrecords core."""

from .git_client import GitClient, TreeEntry

__all__ = ["GitClient", "TreeEntry"]
