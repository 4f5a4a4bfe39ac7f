# src/tasknotes/notifications/notifiers.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, Sequence
from typing import TextIO

from ..core.ports import Notifier
from ..storage.models import Task, TaskStatus

logger = logging.getLogger(__name__)


def format_due(task: Task) -> str:
    """'Jan 2, 2006 at 3:04 PM' in local time."""
    due = task.due_date.astimezone()
    hour = due.hour % 12 or 12
    return f"{due:%b} {due.day}, {due.year} at {hour}:{due:%M} {due:%p}"


def reminder_text(task: Task) -> str:
    if task.status == TaskStatus.OVERDUE:
        return f"[REMINDER] Task: {task.title} is overdue (was due {format_due(task)})"
    return f"[REMINDER] Task: {task.title} is due on {format_due(task)}"


class ConsoleNotifier:
    """Prints the reminder to the terminal (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def notify(self, task: Task) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        print(f"\n{reminder_text(task)}", file=stream, flush=True)


class LogNotifier:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def notify(self, task: Task) -> None:
        level = logging.WARNING if task.status == TaskStatus.OVERDUE else logging.INFO
        self._log.log(level, "%s (task_id=%s)", reminder_text(task), task.id)


class FanoutNotifier:
    """
    Delivers to every channel. A failing channel does not stop the others;
    the first failure is re-raised after all channels ran.
    """

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self._notifiers = list(notifiers)

    def __len__(self) -> int:
        return len(self._notifiers)

    def notify(self, task: Task) -> None:
        first_error: Exception | None = None
        for n in self._notifiers:
            try:
                n.notify(task)
            except Exception as exc:
                logger.warning("Notifier %s failed task_id=%s: %r", type(n).__name__, task.id, exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


_FACTORIES = {
    "console": ConsoleNotifier,
    "terminal": ConsoleNotifier,
    "log": LogNotifier,
}


def build_notifier(methods: Iterable[str]) -> Notifier:
    """
    Build the notifier for the configured methods (console, log).
    Unknown methods are skipped; nothing usable falls back to console.
    """
    chosen: list[Notifier] = []
    seen: set[type] = set()
    for raw in methods:
        name = raw.strip().lower()
        if not name:
            continue
        factory = _FACTORIES.get(name)
        if factory is None:
            logger.warning("Unknown notification method %r ignored", raw)
            continue
        if factory in seen:
            continue
        seen.add(factory)
        chosen.append(factory())

    if not chosen:
        return ConsoleNotifier()
    if len(chosen) == 1:
        return chosen[0]
    return FanoutNotifier(chosen)
