"""Pytest configuration for the gitrecords test suite."""

from pathlib import Path

import pytest

from gitrecords.core.config import GitRecordsConfig, reset_config
from gitrecords.core.context import RepositoryContext, use_context


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep user environment/config files out of the tests"""
    for name in ("GITRECORDS_CONFIG", "GITRECORDS_EMPTY_RECORD_POLICY", "GITRECORDS_BRANCH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITRECORDS_DB_ROOT", str(tmp_path / "default-db"))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_config(tmp_path: Path):
    """Factory for test configs rooted under tmp_path"""

    def _make(name: str = "db", **overrides) -> GitRecordsConfig:
        values = dict(
            db_root=tmp_path / name,
            author_name="Test Author",
            author_email="test@example.com",
            retry_backoff_seconds=0,
        )
        values.update(overrides)
        return GitRecordsConfig(**values)

    return _make


@pytest.fixture
def make_context(make_config):
    """Factory for throwaway repository contexts (closed at teardown)"""
    created = []

    def _make(name: str = "db", **overrides) -> RepositoryContext:
        config = make_config(name, **overrides)
        ctx = RepositoryContext(config.db_root, config)
        created.append(ctx)
        return ctx

    yield _make
    for ctx in created:
        ctx.close()


@pytest.fixture
def context(make_context):
    """Throwaway repository context installed as the process-wide one"""
    ctx = make_context()
    with use_context(ctx):
        yield ctx
