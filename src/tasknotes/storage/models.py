# storage/models.py

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any

DEFAULT_REMINDER_LEAD = timedelta(hours=1)

_ID_ALPHABET = string.ascii_letters + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_unique_id() -> str:
    """Timestamp prefix (sortable by creation second) + 8 random characters."""
    prefix = utc_now().strftime("%Y%m%d%H%M%S")
    return prefix + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


def as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _dt_to_str(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()


def _str_to_dt(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise ValueError(f"timestamp must be a string, got {type(raw).__name__}")
    return as_utc(datetime.fromisoformat(raw))


def _required_dt(raw: Any, name: str) -> datetime:
    value = _str_to_dt(raw)
    if value is None:
        raise ValueError(f"missing timestamp field {name!r}")
    return value


def _clean_tags(raw: Any) -> list[str]:
    if not raw:
        return []
    if not isinstance(raw, list):
        raise ValueError("tags must be a list")
    # Unique, first occurrence wins.
    return list(dict.fromkeys(str(t) for t in raw))


class Priority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_raw(cls, raw: Any) -> Priority:
        if raw is None:
            return cls.MEDIUM
        if isinstance(raw, str) and not raw.strip().isdigit():
            try:
                return cls[raw.strip().upper()]
            except KeyError:
                raise ValueError(f"unknown priority {raw!r}") from None
        return cls(int(raw))


class TaskStatus(IntEnum):
    """
    Task lifecycle status.

    PENDING -> OVERDUE happens lazily (see derive_status).
    COMPLETED is absorbing for the automatic check; only an explicit
    uncomplete() moves it back to PENDING.
    """

    PENDING = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    OVERDUE = 3

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(slots=True)
class Note:
    id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    tags: list[str] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    is_completed: bool = False
    due_date: datetime | None = None

    @classmethod
    def new(cls, title: str, content: str = "") -> Note:
        now = utc_now()
        return cls(
            id=generate_unique_id(),
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
        )

    def _touch(self) -> None:
        self.updated_at = utc_now()

    def update(self, title: str, content: str) -> None:
        self.title = title
        self.content = content
        self._touch()

    def complete(self) -> None:
        self.set_completed(True)

    def set_completed(self, completed: bool) -> None:
        self.is_completed = bool(completed)
        self._touch()

    def set_due_date(self, due_date: datetime | None) -> None:
        self.due_date = as_utc(due_date) if due_date is not None else None
        self._touch()

    def set_priority(self, priority: Priority) -> None:
        self.priority = Priority(priority)
        self._touch()

    def add_tag(self, tag: str) -> None:
        if tag in self.tags:
            return
        self.tags.append(tag)
        self._touch()

    def remove_tag(self, tag: str) -> None:
        if tag not in self.tags:
            return
        self.tags.remove(tag)
        self._touch()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
        }
        if self.tags:
            out["tags"] = list(self.tags)
        out["priority"] = int(self.priority)
        out["is_completed"] = self.is_completed
        out["due_date"] = _dt_to_str(self.due_date)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Note:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            created_at=_required_dt(data.get("created_at"), "created_at"),
            updated_at=_required_dt(data.get("updated_at"), "updated_at"),
            tags=_clean_tags(data.get("tags")),
            priority=Priority.from_raw(data.get("priority")),
            is_completed=bool(data.get("is_completed", False)),
            due_date=_str_to_dt(data.get("due_date")),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    created_at: datetime
    updated_at: datetime
    due_date: datetime
    reminder_at: datetime
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    tags: list[str] = field(default_factory=list)
    note_id: str | None = None

    @classmethod
    def new(cls, title: str, description: str, due_date: datetime) -> Task:
        now = utc_now()
        due = as_utc(due_date)
        return cls(
            id=generate_unique_id(),
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
            due_date=due,
            reminder_at=due - DEFAULT_REMINDER_LEAD,
        )

    def _touch(self) -> None:
        self.updated_at = utc_now()

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def update(self, title: str, description: str, due_date: datetime) -> None:
        """Change the due date while keeping the current reminder lead period."""
        lead = self.due_date - self.reminder_at
        self.title = title
        self.description = description
        self.due_date = as_utc(due_date)
        self.reminder_at = self.due_date - lead
        self._touch()

    def set_reminder_time(self, reminder_at: datetime) -> None:
        self.reminder_at = as_utc(reminder_at)
        self._touch()

    def set_reminder_period(self, period: timedelta) -> None:
        self.reminder_at = self.due_date - period
        self._touch()

    def set_priority(self, priority: Priority) -> None:
        self.priority = Priority(priority)
        self._touch()

    def add_tag(self, tag: str) -> None:
        if tag in self.tags:
            return
        self.tags.append(tag)
        self._touch()

    def remove_tag(self, tag: str) -> None:
        if tag not in self.tags:
            return
        self.tags.remove(tag)
        self._touch()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def link_note(self, note_id: str | None) -> None:
        self.note_id = note_id or None
        self._touch()

    def start(self) -> None:
        if self.status == TaskStatus.COMPLETED:
            return
        self.status = TaskStatus.IN_PROGRESS
        self._touch()

    def complete(self) -> None:
        self.status = TaskStatus.COMPLETED
        self._touch()

    def uncomplete(self) -> None:
        if self.status != TaskStatus.COMPLETED:
            return
        self.status = TaskStatus.PENDING
        self._touch()

    def refresh_status(self, now: datetime | None = None) -> bool:
        """Apply derive_status in place. Returns True if the status changed."""
        new_status = derive_status(self, now if now is not None else utc_now())
        if new_status == self.status:
            return False
        self.status = new_status
        self._touch()
        return True

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
            "due_date": _dt_to_str(self.due_date),
            "reminder_at": _dt_to_str(self.reminder_at),
            "priority": int(self.priority),
            "status": int(self.status),
        }
        if self.tags:
            out["tags"] = list(self.tags)
        out["note_id"] = self.note_id
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        due_date = _required_dt(data.get("due_date"), "due_date")
        reminder_at = _str_to_dt(data.get("reminder_at"))
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            created_at=_required_dt(data.get("created_at"), "created_at"),
            updated_at=_required_dt(data.get("updated_at"), "updated_at"),
            due_date=due_date,
            reminder_at=reminder_at if reminder_at is not None else due_date - DEFAULT_REMINDER_LEAD,
            priority=Priority.from_raw(data.get("priority")),
            status=TaskStatus(int(data.get("status", TaskStatus.PENDING))),
            tags=_clean_tags(data.get("tags")),
            note_id=(str(data["note_id"]) if data.get("note_id") else None),
        )


def derive_status(task: Task, now: datetime) -> TaskStatus:
    """
    Lazily computed status for `task` at `now`.

    Pure: never mutates the task. COMPLETED is returned unchanged, a PENDING
    task whose due date has passed becomes OVERDUE, anything else is kept.
    """
    if task.status == TaskStatus.COMPLETED:
        return TaskStatus.COMPLETED
    if task.status == TaskStatus.PENDING and task.due_date < as_utc(now):
        return TaskStatus.OVERDUE
    return task.status
