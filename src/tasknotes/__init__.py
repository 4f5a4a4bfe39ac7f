"""
tasknotes: personal notes and tasks with due-date reminders.

Components:
- storage/: Note/Task models and the JSON file store
- reminders/: reminder scheduler (polling loop + ledger) and helpers
- notifications/: notifier implementations (console, log)
- cli/ + connectors/: composition root, entrypoint and console client
"""

__version__ = "0.1.0"
