# src/tasknotes/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..reminders.reminder_scheduler import ReminderScheduler
    from ..storage.file_store import FileStore


@dataclass
class AppState:
    # Settings are kept on the state so command handlers can read them.
    settings: object

    store: FileStore
    scheduler: ReminderScheduler
