# tests/conftest.py

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasknotes.core.state import AppState
from tasknotes.notifications.notifiers import LogNotifier
from tasknotes.reminders.reminder_scheduler import ReminderScheduler
from tasknotes.storage.file_store import FileStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the command handlers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment / .env.
    """
    return SimpleNamespace(
        app_name="tasknotes-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        check_interval_seconds=60,
        default_lead_minutes=60,
        notification_methods=["log"],
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> FileStore:
    return FileStore(settings.data_dir)


@pytest.fixture()
def state(settings: SimpleNamespace, store: FileStore) -> AppState:
    """
    AppState wired with the real FileStore (its correctness is part of what we test)
    and a scheduler that is never started.
    """
    return AppState(
        settings=settings,
        store=store,
        scheduler=ReminderScheduler(store, LogNotifier(), interval_seconds=60),
    )


@pytest.fixture()
def restore_root_logging():
    """Undo setup_logging(): it replaces the root handlers process-wide."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)
