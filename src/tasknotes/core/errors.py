# src/tasknotes/core/errors.py

from __future__ import annotations

"""
Error taxonomy shared by the store, the reminder engine and the console client.

- NotFoundError: identifier absent (recoverable, surfaced to the caller)
- PersistenceError: I/O or (de)serialization failure of a durable document
- ValidationError: malformed user input (the client applies a default)
"""


class TaskNotesError(Exception):
    """Base class for all tasknotes errors."""


class NotFoundError(TaskNotesError, KeyError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} with ID {record_id} not found")
        self.kind = kind
        self.record_id = record_id

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable in console output.
        return str(self.args[0])


class PersistenceError(TaskNotesError):
    pass


class ValidationError(TaskNotesError, ValueError):
    pass
