# storage/file_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from ..core.errors import NotFoundError, PersistenceError
from .models import Note, Task, TaskStatus, as_utc, derive_status, utc_now
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

NOTES_FILENAME = "notes.json"
TASKS_FILENAME = "tasks.json"


class _Record(Protocol):
    id: str

    def to_dict(self) -> dict[str, Any]: ...


R = TypeVar("R", bound=_Record)


class _JsonCollection(Generic[R]):
    """
    One JSON document holding an ordered list of records under `key`:

        {"<key>": [ {...}, {...} ]}

    Every public method takes the collection's own ReadWriteLock; helpers
    prefixed with an underscore assume the caller already holds it.
    """

    def __init__(
        self,
        path: Path,
        *,
        key: str,
        kind: str,
        decode: Callable[[dict[str, Any]], R],
    ) -> None:
        self.path = path
        self.key = key
        self.kind = kind
        self._decode = decode
        self.lock = ReadWriteLock()
        self._init_lock = threading.Lock()

    # ---- low-level helpers ----

    def _ensure_exists(self) -> None:
        # Readers share the rw lock, so first-time creation has its own guard.
        if self.path.exists():
            return
        with self._init_lock:
            if self.path.exists():
                return
            self._write([])
            logger.info("Initialized empty %s document at %s", self.kind, self.path)

    def _read(self) -> list[R]:
        self._ensure_exists()
        try:
            raw = self.path.read_text("utf-8")
        except OSError as exc:
            raise PersistenceError(f"failed to read {self.kind} file {self.path}: {exc}") from exc

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")
            items = data.get(self.key) or []
            if not isinstance(items, list):
                raise ValueError(f"{self.key!r} is not a list")
            return [self._decode(item) for item in items]
        except (ValueError, KeyError, TypeError) as exc:
            raise PersistenceError(f"failed to parse {self.kind} file {self.path}: {exc}") from exc

    def _write(self, records: list[R]) -> None:
        """Serialize to <name>.tmp and atomically replace the document."""
        try:
            payload = json.dumps(
                {self.key: [r.to_dict() for r in records]},
                ensure_ascii=False,
                indent=2,
            )
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"failed to serialize {self.kind} data: {exc}") from exc

        tmp = self.path.with_suffix(".tmp")
        try:
            tmp.write_text(payload, "utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise PersistenceError(f"failed to write {self.kind} file {self.path}: {exc}") from exc

    # ---- public API ----

    def all(self) -> list[R]:
        with self.lock.read_locked():
            return self._read()

    def get(self, record_id: str) -> R:
        with self.lock.read_locked():
            for record in self._read():
                if record.id == record_id:
                    return record
        raise NotFoundError(self.kind, record_id)

    def filter(self, predicate: Callable[[R], bool]) -> list[R]:
        with self.lock.read_locked():
            return [r for r in self._read() if predicate(r)]

    def count(self) -> int:
        with self.lock.read_locked():
            return len(self._read())

    def upsert(self, record: R) -> None:
        with self.lock.write_locked():
            records = self._read()
            for i, existing in enumerate(records):
                if existing.id == record.id:
                    records[i] = record
                    break
            else:
                records.append(record)
            self._write(records)

    def update(self, record_id: str, mutate: Callable[[R], bool | None]) -> R:
        """
        Read, mutate and write one record under a single write lock.

        `mutate` returning False leaves the document untouched; an exception
        from `mutate` propagates and nothing is written.
        """
        with self.lock.write_locked():
            records = self._read()
            for record in records:
                if record.id == record_id:
                    if mutate(record) is not False:
                        self._write(records)
                    return record
        raise NotFoundError(self.kind, record_id)

    def delete(self, record_id: str) -> None:
        with self.lock.write_locked():
            records = self._read()
            for i, existing in enumerate(records):
                if existing.id == record_id:
                    del records[i]
                    self._write(records)
                    return
        raise NotFoundError(self.kind, record_id)


class FileStore:
    """
    JSON file store for notes and tasks.

    Layout (inside data_dir):
    - notes.json: {"notes": [...]}
    - tasks.json: {"tasks": [...]}

    Thread-safety:
    - notes and tasks each have their own shared/exclusive lock,
      so a note operation never blocks a task operation
    - saves write a temp file and os.replace() it over the document,
      a failed save leaves the previous document untouched

    Single-process only: nothing coordinates two processes sharing data_dir.
    """

    def __init__(
        self,
        data_dir: str | Path,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._data_dir = Path(data_dir).expanduser()
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"failed to create data directory {self._data_dir}: {exc}") from exc

        self._clock = clock
        self._notes: _JsonCollection[Note] = _JsonCollection(
            self._data_dir / NOTES_FILENAME, key="notes", kind="note", decode=Note.from_dict
        )
        self._tasks: _JsonCollection[Task] = _JsonCollection(
            self._data_dir / TASKS_FILENAME, key="tasks", kind="task", decode=Task.from_dict
        )
        logger.info("FileStore ready dir=%s", self._data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def notes_path(self) -> Path:
        return self._notes.path

    @property
    def tasks_path(self) -> Path:
        return self._tasks.path

    def _with_derived_status(self, tasks: list[Task]) -> list[Task]:
        now = self._clock()
        for task in tasks:
            task.status = derive_status(task, now)
        return tasks

    # ---- notes ----

    def save_note(self, note: Note) -> None:
        self._notes.upsert(note)
        logger.debug("Note saved id=%s", note.id)

    def update_note(self, note_id: str, mutate: Callable[[Note], bool | None]) -> Note:
        """Atomic load-mutate-save of one note; see _JsonCollection.update."""
        note = self._notes.update(note_id, mutate)
        logger.debug("Note updated id=%s", note_id)
        return note

    def get_note(self, note_id: str) -> Note:
        return self._notes.get(note_id)

    def get_all_notes(self) -> list[Note]:
        return self._notes.all()

    def delete_note(self, note_id: str) -> None:
        # Tasks keep their note_id: the link is a relation, not ownership.
        self._notes.delete(note_id)
        logger.debug("Note deleted id=%s", note_id)

    def get_notes_by_tag(self, tag: str) -> list[Note]:
        return self._notes.filter(lambda n: n.has_tag(tag))

    def count_notes(self) -> int:
        return self._notes.count()

    # ---- tasks ----

    def save_task(self, task: Task) -> None:
        task.status = derive_status(task, self._clock())
        self._tasks.upsert(task)
        logger.debug("Task saved id=%s status=%s", task.id, task.status.name)

    def update_task(self, task_id: str, mutate: Callable[[Task], bool | None]) -> Task:
        """
        Atomic load-mutate-save of one task.

        `mutate` sees the current stored record, not a caller's snapshot, so a
        concurrent writer's changes (e.g. a completion) are never overwritten.
        The status is re-derived before writing, as in save_task().
        """

        def apply(task: Task) -> bool:
            if mutate(task) is False:
                return False
            task.status = derive_status(task, self._clock())
            return True

        task = self._tasks.update(task_id, apply)
        logger.debug("Task updated id=%s status=%s", task.id, task.status.name)
        return self._with_derived_status([task])[0]

    def get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        return self._with_derived_status([task])[0]

    def get_all_tasks(self) -> list[Task]:
        return self._with_derived_status(self._tasks.all())

    def delete_task(self, task_id: str) -> None:
        self._tasks.delete(task_id)
        logger.debug("Task deleted id=%s", task_id)

    def get_tasks_by_tag(self, tag: str) -> list[Task]:
        return self._with_derived_status(self._tasks.filter(lambda t: t.has_tag(tag)))

    def count_tasks(self) -> int:
        return self._tasks.count()

    # ---- queries ----

    def query_tasks_due_before(self, ts: datetime) -> list[Task]:
        """Incomplete tasks whose due date is strictly before `ts`."""
        cutoff = as_utc(ts)
        return self._with_derived_status(
            self._tasks.filter(
                lambda t: t.due_date < cutoff and t.status != TaskStatus.COMPLETED
            )
        )

    def query_tasks_with_reminder_by(self, ts: datetime) -> list[Task]:
        """Incomplete tasks whose reminder time is at or before `ts`."""
        cutoff = as_utc(ts)
        return self._with_derived_status(
            self._tasks.filter(
                lambda t: t.reminder_at <= cutoff and t.status != TaskStatus.COMPLETED
            )
        )

    def query_by_tag(self, tag: str) -> tuple[list[Note], list[Task]]:
        return self.get_notes_by_tag(tag), self.get_tasks_by_tag(tag)
