# src/tasknotes/reminders/reminder_api.py

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from ..core.errors import ValidationError
from ..core.ports import TaskRepo
from ..storage.models import Priority, Task, as_utc

logger = logging.getLogger(__name__)

DEFAULT_LEAD_PERIOD = timedelta(hours=1)
DEFAULT_DUE_OFFSET = timedelta(hours=24)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)([dhms])")
_UNIT_SECONDS = {"d": 86400, "h": 3600, "m": 60, "s": 1}


def create_reminder_task(
    store: TaskRepo,
    title: str,
    description: str,
    due_date: datetime,
    lead_period: timedelta,
    *,
    priority: Priority = Priority.MEDIUM,
    tags: list[str] | None = None,
    note_id: str | None = None,
) -> Task:
    """
    Convenience helper: build a task reminding `lead_period` before `due_date`
    and persist it. Store errors propagate to the caller.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")

    task = Task.new(title, (description or "").strip(), due_date)
    task.set_reminder_period(lead_period)
    task.priority = Priority(priority)
    for tag in tags or []:
        task.add_tag(tag)
    task.note_id = note_id or None

    store.save_task(task)
    logger.debug(
        "Reminder task created id=%s due=%s reminder_at=%s",
        task.id,
        task.due_date.isoformat(),
        task.reminder_at.isoformat(),
    )
    return task


def default_due_date(now: datetime) -> datetime:
    return as_utc(now) + DEFAULT_DUE_OFFSET


def parse_due_date(raw: str) -> datetime:
    """
    Parse a user-entered due date.

    - "2025-03-01"            -> midnight UTC of that day
    - "2025-03-01T18:30"      -> naive ISO time, taken as UTC
    - "2025-03-01T18:30+02:00"
    """
    text = (raw or "").strip()
    if not text:
        raise ValidationError("empty due date")
    try:
        if len(text) == 10:
            day = datetime.strptime(text, "%Y-%m-%d")
            return day.replace(tzinfo=timezone.utc)
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValidationError(f"invalid due date {raw!r}: expected YYYY-MM-DD") from exc


def parse_lead_period(raw: str) -> timedelta:
    """
    Parse a lead period like "30m", "1h", "1h30m", "2d" or "45s".
    A bare number means minutes.
    """
    text = (raw or "").strip().lower()
    if not text:
        raise ValidationError("empty lead period")

    if text.isdigit():
        return timedelta(minutes=int(text))

    pos = 0
    total = 0.0
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()

    if pos == 0 or pos != len(text):
        raise ValidationError(f"invalid lead period {raw!r}: use e.g. 30m, 1h, 2d")
    return timedelta(seconds=total)
