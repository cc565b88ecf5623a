from __future__ import annotations

import threading

import pytest
from git import Actor

from gitrecords.core.errors import ConcurrentModificationError, StoreUnavailableError, WriteTimeoutError
from gitrecords.core.storage.diff import TreeDiff


def test_first_commit_has_no_parent(context) -> None:
    parent = context.snapshot()
    sha = context.committer.commit(parent, TreeDiff(writes={"things/a/x": b"1"}), "first")

    assert len(sha) == 40
    assert context.head() == sha
    commit = context.client.repo.commit(sha)
    assert len(commit.parents) == 0
    assert commit.message.startswith("first\n\nTransaction-Id: ")
    assert commit.author.name == "Test Author"


def test_commit_parent_is_snapshot_commit(context) -> None:
    first = context.committer.commit(context.snapshot(), TreeDiff(writes={"a/x": b"1"}), "one")
    second = context.committer.commit(context.snapshot(), TreeDiff(writes={"a/y": b"2"}), "two")

    commit = context.client.repo.commit(second)
    assert [p.hexsha for p in commit.parents] == [first]


def test_removals_prune_empty_directories(context) -> None:
    context.committer.commit(
        context.snapshot(),
        TreeDiff(writes={"things/a/x": b"1", "things/b/y": b"2"}),
        "seed",
    )
    context.committer.commit(context.snapshot(), TreeDiff(removals={"things/a/x"}), "drop a")
    snap = context.snapshot()
    assert snap.list("things") == ["b"]

    context.committer.commit(snap, TreeDiff(removals={"things/b/y"}), "drop b")
    snap = context.snapshot()
    assert snap.list("") == []
    assert not snap.exists("things")


def test_unchanged_tree_creates_no_commit(context) -> None:
    head = context.committer.commit(context.snapshot(), TreeDiff(writes={"a/x": b"1"}), "seed")
    again = context.committer.commit(context.snapshot(), TreeDiff(writes={"a/x": b"1"}), "same")
    nothing = context.committer.commit(context.snapshot(), TreeDiff(), "empty")

    assert again == head
    assert nothing == head
    assert context.client.get_commit_count() == 1


def test_stale_parent_is_rejected_and_head_kept(context) -> None:
    stale = context.snapshot()
    head = context.committer.commit(stale, TreeDiff(writes={"a/x": b"1"}), "winner")

    with pytest.raises(ConcurrentModificationError) as exc_info:
        context.committer.commit(stale, TreeDiff(writes={"a/y": b"2"}), "loser")

    assert exc_info.value.expected is None
    assert exc_info.value.actual == head
    assert context.head() == head
    assert context.snapshot().read("a/x") == b"1"


def test_ref_moved_by_another_writer_is_detected(context) -> None:
    """A writer outside the lock (e.g. another process) advancing the ref"""
    parent = context.snapshot()
    outsider = context.client.create_commit(
        context.client.write_tree([]), None, "outsider", Actor("Other", "other@example.com")
    )
    context.client.set_head(outsider, None)

    with pytest.raises(ConcurrentModificationError):
        context.committer.commit(parent, TreeDiff(writes={"a/x": b"1"}), "late")
    assert context.head() == outsider


def test_failed_object_write_leaves_head_unchanged(context, monkeypatch) -> None:
    head = context.committer.commit(context.snapshot(), TreeDiff(writes={"a/x": b"1"}), "seed")

    def broken_write_tree(entries):
        raise StoreUnavailableError("disk full")

    monkeypatch.setattr(context.client, "write_tree", broken_write_tree)
    with pytest.raises(StoreUnavailableError):
        context.committer.commit(context.snapshot(), TreeDiff(writes={"a/y": b"2"}), "broken")

    assert context.head() == head


def test_lock_timeout(make_context) -> None:
    ctx = make_context(lock_timeout=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with ctx.committer:
            held.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        held.wait(5)
        with pytest.raises(WriteTimeoutError):
            ctx.committer.commit(ctx.snapshot(), TreeDiff(writes={"a/x": b"1"}), "blocked")
    finally:
        release.set()
        thread.join()
    assert ctx.head() is None
