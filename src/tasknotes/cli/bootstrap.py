# src/tasknotes/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once (unless injected),
- opens the file store in the data directory,
- builds the notifier from the configured methods,
- wires the reminder scheduler (not started) into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..notifications.notifiers import build_notifier
from ..reminders.reminder_scheduler import ReminderScheduler
from ..storage.file_store import FileStore

logger = logging.getLogger(__name__)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    store = FileStore(settings.data_dir)
    notifier = build_notifier(settings.notification_methods)
    scheduler = ReminderScheduler(
        store,
        notifier,
        interval_seconds=float(settings.check_interval_seconds),
    )
    logger.info(
        "State ready data_dir=%s interval=%ss notify=%s",
        settings.data_dir,
        settings.check_interval_seconds,
        ",".join(settings.notification_methods),
    )
    return AppState(settings=settings, store=store, scheduler=scheduler)
