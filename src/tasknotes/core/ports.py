# src/tasknotes/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reminder engine and the console client depend on Protocols instead of
FileStore / concrete notifiers. This keeps notification channels swappable
and lets tests plug in-memory recorders.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from ..storage.models import Note, Task


class Notifier(Protocol):
    """
    Receives a due task and performs an externally visible action.

    Synchronous from the scheduler's point of view. Raising signals failure;
    the scheduler logs it and keeps running.
    """

    def notify(self, task: Task) -> None: ...


class NoteRepo(Protocol):
    def save_note(self, note: Note) -> None: ...
    def update_note(self, note_id: str, mutate: Callable[[Note], bool | None]) -> Note: ...
    def get_note(self, note_id: str) -> Note: ...
    def get_all_notes(self) -> list[Note]: ...
    def delete_note(self, note_id: str) -> None: ...
    def get_notes_by_tag(self, tag: str) -> list[Note]: ...


class TaskRepo(Protocol):
    # Client API
    def save_task(self, task: Task) -> None: ...
    def get_task(self, task_id: str) -> Task: ...
    def get_all_tasks(self) -> list[Task]: ...
    def delete_task(self, task_id: str) -> None: ...
    def get_tasks_by_tag(self, tag: str) -> list[Task]: ...
    def query_tasks_due_before(self, ts: datetime) -> list[Task]: ...

    # Scheduler API
    def query_tasks_with_reminder_by(self, ts: datetime) -> list[Task]: ...
    def update_task(self, task_id: str, mutate: Callable[[Task], bool | None]) -> Task: ...
