from __future__ import annotations

from gitrecords.core.storage.diff import TreeDiff


def _commit(context, writes=None, removals=None, message="test"):
    parent = context.snapshot()
    diff = TreeDiff(writes=dict(writes or {}), removals=set(removals or ()))
    return context.committer.commit(parent, diff, message)


def test_empty_repository_snapshot(context) -> None:
    snap = context.snapshot()
    assert snap.is_empty
    assert snap.commit_id is None
    assert snap.read("anything") is None
    assert snap.list("") == []
    assert not snap.exists("things")


def test_read_list_and_walk(context) -> None:
    _commit(context, {
        "things/a/attributes.json": b"{}",
        "things/a/blob": b"data",
        "things/b/.record": b"",
    })
    snap = context.snapshot()

    assert snap.read("things/a/blob") == b"data"
    assert snap.read("things/a") is None
    assert snap.read("things/missing") is None
    assert snap.list("things") == ["a", "b"]
    assert snap.list("things/a") == ["attributes.json", "blob"]
    assert snap.is_dir("things/a")
    assert not snap.is_dir("things/a/blob")
    assert snap.exists("things/a/blob")
    assert sorted(snap.walk("things")) == [
        "things/a/attributes.json",
        "things/a/blob",
        "things/b/.record",
    ]
    assert snap.walk("nothing") == []


def test_snapshot_is_isolated_from_later_commits(context) -> None:
    _commit(context, {"things/a/blob": b"v1"})
    old = context.snapshot()

    _commit(context, {"things/a/blob": b"v2", "things/c/blob": b"new"})

    assert old.read("things/a/blob") == b"v1"
    assert old.list("things") == ["a"]
    assert context.snapshot().read("things/a/blob") == b"v2"


def test_historical_snapshot(context) -> None:
    first = _commit(context, {"things/a/blob": b"v1"})
    _commit(context, {"things/a/blob": b"v2"})

    assert context.snapshot(first).read("things/a/blob") == b"v1"
    assert context.snapshot("HEAD~1").commit_id == first
