from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from gitrecords.core.errors import ConcurrentModificationError
from gitrecords.core.record import Record
from gitrecords.core.service import RecordService
from gitrecords.core.storage.committer import TransactionCommitter


class Monkey(Record):
    pass


def test_parallel_saves_of_different_ids_all_land(context) -> None:
    errors = []

    def worker(n: int) -> None:
        try:
            for i in range(5):
                Monkey.create_or_fail(id=f"m{n}-{i}", attributes={"n": n, "i": i})
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(Monkey.find_all()) == 20
    assert len(context.log()) == 20


def test_parallel_saves_of_same_id_keep_one_valid_record(context) -> None:
    def worker(n: int) -> None:
        Monkey(id="shared", attributes={"writer": n}).save_or_fail()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert Monkey.find("shared").attributes["writer"] in range(4)


def test_two_contexts_on_one_repository_race_safely(make_context) -> None:
    left = make_context("shared", max_commit_retries=50)
    right = make_context("shared", max_commit_retries=50)
    errors = []

    def worker(ctx, prefix: str) -> None:
        service = RecordService(ctx)
        try:
            for i in range(15):
                service.save_or_fail(Monkey(id=f"{prefix}{i}", attributes={"i": i}))
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [
        threading.Thread(target=worker, args=(left, "l")),
        threading.Thread(target=worker, args=(right, "r")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(RecordService(left).find_all(Monkey)) == 30
    assert len(right.log()) == 30


def test_readers_run_alongside_writers(context) -> None:
    Monkey.create_or_fail(id="seed", attributes={"n": 0})
    errors = []
    done = threading.Event()

    def reader() -> None:
        try:
            while not done.is_set():
                assert Monkey.find("seed").attributes["n"] == 0
                Monkey.find_all()
        except Exception as exc:  # surfaced below
            errors.append(exc)

    readers = [threading.Thread(target=reader) for _ in range(3)]
    for t in readers:
        t.start()
    try:
        for i in range(10):
            Monkey.create_or_fail(id=f"w{i}", attributes={"n": i})
    finally:
        done.set()
        for t in readers:
            t.join()

    assert errors == []
    assert len(Monkey.find_all()) == 11


def test_outside_writer_is_retried(context) -> None:
    original = TransactionCommitter.commit
    calls = []

    def flaky_commit(self, parent, diff, message):
        calls.append(message)
        if len(calls) == 1:
            raise ConcurrentModificationError(parent.commit_id, "f" * 40)
        return original(self, parent, diff, message)

    with patch.object(TransactionCommitter, "commit", flaky_commit):
        assert Monkey(id="retry", attributes={"a": 1}).save()

    assert len(calls) == 2
    assert Monkey.exists("retry")


def test_retries_exhausted_surface_concurrent_modification(make_context) -> None:
    ctx = make_context(max_commit_retries=2)

    def always_conflict(self, parent, diff, message):
        raise ConcurrentModificationError(parent.commit_id, "f" * 40)

    with patch.object(TransactionCommitter, "commit", always_conflict):
        with pytest.raises(ConcurrentModificationError) as exc_info:
            RecordService(ctx).save(Monkey(id="lost", attributes={"a": 1}))

    assert exc_info.value.actual == "f" * 40
    assert ctx.head() is None


def test_failed_save_leaves_record_unpersisted(make_context) -> None:
    ctx = make_context(max_commit_retries=0)
    record = Monkey(id="lost", attributes={"a": 1})

    with patch.object(
        TransactionCommitter, "commit",
        side_effect=ConcurrentModificationError(None, "f" * 40),
    ):
        with pytest.raises(ConcurrentModificationError):
            RecordService(ctx).save(record)

    assert record.new_record
