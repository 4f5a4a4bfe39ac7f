"""
Storage subsystem.

- models.py: data structures (Note, Task, Priority, TaskStatus, derive_status)
- rwlock.py: shared/exclusive lock used per document
- file_store.py: JSON-file backed store + queries
"""
