# tests/test_file_store.py

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tasknotes.core.errors import NotFoundError, PersistenceError
from tasknotes.storage.file_store import FileStore
from tasknotes.storage.models import Note, Priority, Task, TaskStatus, utc_now

from .fakes import FakeClock

T = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _future_task(title: str, days: int = 3) -> Task:
    return Task.new(title, "", utc_now() + timedelta(days=days))


def test_empty_directory_creates_empty_documents(tmp_path: Path) -> None:
    data_dir = tmp_path / "fresh"
    store = FileStore(data_dir)

    assert store.get_all_notes() == []
    assert store.get_all_tasks() == []

    assert json.loads((data_dir / "notes.json").read_text("utf-8")) == {"notes": []}
    assert json.loads((data_dir / "tasks.json").read_text("utf-8")) == {"tasks": []}


def test_note_roundtrip_and_upsert_keeps_position(store: FileStore) -> None:
    a, b, c = Note.new("a", "1"), Note.new("b", "2"), Note.new("c", "3")
    for n in (a, b, c):
        store.save_note(n)

    b.update("b2", "changed")
    b.add_tag("work")
    b.set_priority(Priority.HIGH)
    b.set_due_date(T)
    store.save_note(b)

    assert store.get_note(b.id) == b
    assert [n.id for n in store.get_all_notes()] == [a.id, b.id, c.id]
    assert store.get_all_notes()[1].title == "b2"


def test_task_roundtrip(store: FileStore) -> None:
    task = _future_task("Pay rent")
    task.add_tag("money")
    task.link_note("some-note")
    store.save_task(task)

    got = store.get_task(task.id)
    assert got == task
    assert got is not task


def test_returned_records_are_copies(store: FileStore) -> None:
    note = Note.new("a", "1")
    store.save_note(note)

    got = store.get_note(note.id)
    got.title = "mutated but not saved"
    assert store.get_note(note.id).title == "a"


def test_get_and_delete_missing_raise_not_found(store: FileStore) -> None:
    with pytest.raises(NotFoundError):
        store.get_note("nope")
    with pytest.raises(NotFoundError):
        store.get_task("nope")
    with pytest.raises(NotFoundError):
        store.delete_note("nope")
    with pytest.raises(NotFoundError):
        store.delete_task("nope")


def test_delete_removes_from_all(store: FileStore) -> None:
    keep, drop = _future_task("keep"), _future_task("drop")
    store.save_task(keep)
    store.save_task(drop)

    store.delete_task(drop.id)
    assert [t.id for t in store.get_all_tasks()] == [keep.id]
    with pytest.raises(NotFoundError):
        store.delete_task(drop.id)


def test_deleting_note_does_not_cascade_to_linked_task(store: FileStore) -> None:
    note = Note.new("context", "")
    store.save_note(note)
    task = _future_task("linked")
    task.link_note(note.id)
    store.save_task(task)

    store.delete_note(note.id)
    assert store.get_task(task.id).note_id == note.id


def test_due_before_never_includes_completed(tmp_path: Path) -> None:
    clock = FakeClock(T)
    store = FileStore(tmp_path, clock=clock)

    late = Task.new("late", "", T - timedelta(hours=2))
    done = Task.new("done", "", T - timedelta(hours=2))
    done.complete()
    future = Task.new("future", "", T + timedelta(hours=2))
    for t in (late, done, future):
        store.save_task(t)

    for cutoff in (T - timedelta(days=1), T, T + timedelta(days=1)):
        assert all(t.status != TaskStatus.COMPLETED for t in store.query_tasks_due_before(cutoff))

    assert [t.id for t in store.query_tasks_due_before(T)] == [late.id]
    assert {t.id for t in store.query_tasks_due_before(T + timedelta(days=1))} == {late.id, future.id}
    # Strictly before.
    assert store.query_tasks_due_before(T - timedelta(hours=2)) == []


def test_reminder_query_is_inclusive_and_skips_completed(tmp_path: Path) -> None:
    store = FileStore(tmp_path, clock=FakeClock(T))
    task = Task.new("remind", "", T + timedelta(hours=1))  # reminder_at == T
    done = Task.new("done", "", T + timedelta(hours=1))
    done.complete()
    store.save_task(task)
    store.save_task(done)

    assert [t.id for t in store.query_tasks_with_reminder_by(T)] == [task.id]
    assert store.query_tasks_with_reminder_by(T - timedelta(seconds=1)) == []


def test_save_and_read_apply_lazy_overdue(tmp_path: Path) -> None:
    clock = FakeClock(T)
    store = FileStore(tmp_path, clock=clock)
    task = Task.new("soon", "", T + timedelta(minutes=5))
    store.save_task(task)
    assert store.get_task(task.id).status == TaskStatus.PENDING

    clock.advance(timedelta(minutes=10))
    assert store.get_task(task.id).status == TaskStatus.OVERDUE
    # Reads do not persist the promotion.
    raw = json.loads(store.tasks_path.read_text("utf-8"))
    assert raw["tasks"][0]["status"] == int(TaskStatus.PENDING)

    store.save_task(store.get_task(task.id))
    raw = json.loads(store.tasks_path.read_text("utf-8"))
    assert raw["tasks"][0]["status"] == int(TaskStatus.OVERDUE)


def test_query_by_tag(store: FileStore) -> None:
    n1, n2 = Note.new("n1"), Note.new("n2")
    n1.add_tag("home")
    t1, t2 = _future_task("t1"), _future_task("t2")
    t2.add_tag("home")
    t2.add_tag("urgent")
    for n in (n1, n2):
        store.save_note(n)
    for t in (t1, t2):
        store.save_task(t)

    notes, tasks = store.query_by_tag("home")
    assert [n.id for n in notes] == [n1.id]
    assert [t.id for t in tasks] == [t2.id]
    assert store.query_by_tag("nothing") == ([], [])


def test_failed_write_leaves_previous_state(store: FileStore, monkeypatch) -> None:
    first = Note.new("first")
    store.save_note(first)
    before = store.notes_path.read_text("utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(PersistenceError):
        store.save_note(Note.new("second"))

    monkeypatch.undo()
    assert store.notes_path.read_text("utf-8") == before
    assert not store.notes_path.with_suffix(".tmp").exists()
    assert [n.id for n in store.get_all_notes()] == [first.id]


def test_update_task_mutates_the_stored_record(tmp_path: Path) -> None:
    clock = FakeClock(T)
    store = FileStore(tmp_path / "data", clock=clock)
    task = Task.new("x", "", T + timedelta(hours=1))
    store.save_task(task)

    store.update_task(task.id, lambda t: t.add_tag("home"))
    clock.advance(timedelta(hours=2))
    updated = store.update_task(task.id, lambda t: t.set_priority(Priority.HIGH))
    assert updated.tags == ["home"]
    assert updated.priority == Priority.HIGH
    assert updated.title == "x"

    raw = json.loads(store.tasks_path.read_text("utf-8"))["tasks"][0]
    assert raw["status"] == int(TaskStatus.OVERDUE)


def test_update_returning_false_or_raising_writes_nothing(store: FileStore) -> None:
    note = Note.new("keep", "")
    store.save_note(note)
    before = store.notes_path.read_text("utf-8")

    def rename_then_refuse(n: Note) -> bool:
        n.title = "changed"
        return False

    def rename_then_fail(n: Note) -> None:
        n.title = "changed"
        raise ValueError("nope")

    store.update_note(note.id, rename_then_refuse)
    with pytest.raises(ValueError):
        store.update_note(note.id, rename_then_fail)

    assert store.notes_path.read_text("utf-8") == before
    with pytest.raises(NotFoundError):
        store.update_task("missing", lambda t: None)


def test_concurrent_updates_do_not_lose_writes(store: FileStore) -> None:
    note = Note.new("tags", "")
    store.save_note(note)

    def tagger(i: int) -> None:
        store.update_note(note.id, lambda n: n.add_tag(f"t{i}"))

    threads = [threading.Thread(target=tagger, args=(i,)) for i in range(16)]
    for th in threads:
        th.start()
    for th in threads:
        th.join(timeout=10.0)

    assert sorted(store.get_note(note.id).tags) == sorted(f"t{i}" for i in range(16))


def test_corrupt_document_raises_persistence_error(store: FileStore) -> None:
    store.get_all_tasks()
    store.tasks_path.write_text("{not json", "utf-8")
    with pytest.raises(PersistenceError):
        store.get_all_tasks()

    store.tasks_path.write_text(json.dumps({"tasks": [{"id": "x"}]}), "utf-8")
    with pytest.raises(PersistenceError):
        store.get_all_tasks()


def test_concurrent_saves_are_all_kept(store: FileStore) -> None:
    tasks = [_future_task(f"t{i}") for i in range(20)]
    errors: list[BaseException] = []

    def save(task: Task) -> None:
        try:
            store.save_task(task)
        except BaseException as e:  # surfaced by the assert below
            errors.append(e)

    threads = [threading.Thread(target=save, args=(t,)) for t in tasks]
    for th in threads:
        th.start()
    for th in threads:
        th.join(timeout=10)

    assert errors == []
    assert {t.id for t in store.get_all_tasks()} == {t.id for t in tasks}
    assert store.count_tasks() == 20


def test_note_lock_does_not_block_tasks(store: FileStore) -> None:
    store.save_task(_future_task("t"))
    done = threading.Event()

    def read_tasks() -> None:
        store.get_all_tasks()
        done.set()

    store._notes.lock.acquire_write()
    try:
        th = threading.Thread(target=read_tasks)
        th.start()
        assert done.wait(timeout=5.0)
        th.join(timeout=5.0)
    finally:
        store._notes.lock.release_write()
