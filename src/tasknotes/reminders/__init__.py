"""
Reminder subsystem.

- reminder_scheduler.py: polling scheduler with the in-memory re-notify ledger
- reminder_api.py: task creation helper and due date / lead period parsing
"""
