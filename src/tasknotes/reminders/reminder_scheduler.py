# src/tasknotes/reminders/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that:
- asks the store for tasks whose reminder time has passed,
- skips tasks reminded recently (in-memory ledger),
- re-reads each task under the store's write lock and persists its derived
  status (a task completed meanwhile is left alone),
- hands the task to an injected Notifier.

Delivery (console, log, ...) belongs to the notifier, not the scheduler.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from ..core.errors import NotFoundError
from ..core.ports import Notifier, TaskRepo
from ..storage.models import Task, TaskStatus, derive_status, utc_now

logger = logging.getLogger(__name__)

RENOTIFY_AFTER = timedelta(hours=6)
LEDGER_TTL = timedelta(hours=24)


def _refresh(task: Task, now: datetime) -> bool:
    # Runs on the stored record under the task write lock.
    if task.status == TaskStatus.COMPLETED:
        return False
    task.status = derive_status(task, now)
    return True


class ReminderLedger:
    """
    task_id -> last time a reminder fired.

    Owned by one scheduler and never persisted: a restart forgets it and
    due tasks are reminded again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sent: dict[str, datetime] = {}

    def claim(self, task_id: str, now: datetime, renotify_after: timedelta) -> bool:
        """
        Record `now` for `task_id` and return True if the task may fire:
        never reminded, or last reminded more than `renotify_after` ago.
        """
        with self._lock:
            last_sent = self._sent.get(task_id)
            if last_sent is not None and now - last_sent <= renotify_after:
                return False
            self._sent[task_id] = now
            return True

    def sweep(self, now: datetime, ttl: timedelta) -> int:
        with self._lock:
            expired = [tid for tid, sent in self._sent.items() if now - sent > ttl]
            for tid in expired:
                del self._sent[tid]
            return len(expired)

    def last_sent(self, task_id: str) -> datetime | None:
        with self._lock:
            return self._sent.get(task_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sent)


class ReminderScheduler:
    """
    Stopped -> Running -> Stopped.

    start() runs the loop on a dedicated thread with its own event loop, so
    the blocking console client keeps the main thread. stop() wakes the loop,
    then joins the thread: once it returns no check is running and none will
    start.
    """

    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
        renotify_after: timedelta = RENOTIFY_AFTER,
        ledger_ttl: timedelta = LEDGER_TTL,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._interval = max(0.01, float(interval_seconds))
        self._clock = clock
        self._renotify_after = renotify_after
        self._ledger_ttl = ledger_ttl
        self.ledger = ReminderLedger()

        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._thread is not None

    # ---- one tick ----

    def check_reminders(self, now: datetime | None = None) -> int:
        """
        Run one reminder check. Returns how many notifications were attempted.

        Never raises for store or notifier failures: they are logged and the
        next tick tries again (subject to the re-notify window).
        """
        if now is None:
            now = self._clock()

        try:
            tasks = self._store.query_tasks_with_reminder_by(now)
        except Exception:
            logger.exception("query_tasks_with_reminder_by failed")
            return 0

        fired = 0
        for task in tasks:
            if not self.ledger.claim(task.id, now, self._renotify_after):
                continue

            try:
                task = self._store.update_task(task.id, lambda current: _refresh(current, now))
            except NotFoundError:
                logger.debug("Task deleted before its reminder task_id=%s", task.id)
                continue
            except Exception:
                logger.exception("update_task failed task_id=%s", task.id)
                task.status = derive_status(task, now)

            if task.status == TaskStatus.COMPLETED:
                # Completed by the client after the query ran.
                continue

            fired += 1
            try:
                self._notifier.notify(task)
                logger.info("Reminder sent task_id=%s status=%s", task.id, task.status.name)
            except Exception:
                # Not retried now; the next eligible tick surfaces the task again.
                logger.exception("notify failed task_id=%s", task.id)

        dropped = self.ledger.sweep(now, self._ledger_ttl)
        if dropped:
            logger.debug("Reminder ledger swept: %d expired entries", dropped)
        return fired

    # ---- loop ----

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Every interval (first check after one interval):
        - run check_reminders()
        Exits as soon as stop_event is set; the wait is interrupted, a check
        already in progress is not.
        """
        logger.info("Reminder loop started (interval=%.1fs)", self._interval)
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break

            try:
                self.check_reminders()
            except Exception:
                logger.exception("reminder check crashed")
        logger.info("Reminder loop stopped")

    # ---- lifecycle ----

    def start(self) -> None:
        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError("ReminderScheduler is already running")

            ready = threading.Event()
            holder: dict[str, Any] = {}

            def runner() -> None:
                try:
                    loop = asyncio.new_event_loop()
                    asyncio.set_event_loop(loop)
                    holder["loop"] = loop
                    holder["stop_event"] = asyncio.Event()
                except Exception as exc:
                    holder["error"] = exc
                    return
                finally:
                    ready.set()

                try:
                    loop.run_until_complete(self.run(holder["stop_event"]))
                finally:
                    with contextlib.suppress(Exception):
                        loop.close()

            t = threading.Thread(target=runner, name="reminder-scheduler", daemon=True)
            t.start()
            ready.wait()

            error = holder.get("error")
            if error is not None:
                t.join()
                raise RuntimeError("Reminder loop failed to start") from error

            self._thread = t
            self._loop = holder["loop"]
            self._stop_event = holder["stop_event"]
        logger.info("Reminder scheduler thread started.")

    def stop(self) -> None:
        with self._state_lock:
            thread, loop, stop_event = self._thread, self._loop, self._stop_event
            if thread is None or loop is None or stop_event is None:
                raise RuntimeError("ReminderScheduler is not running")

            try:
                loop.call_soon_threadsafe(stop_event.set)
            except RuntimeError:
                # Loop already closed: the thread is exiting on its own.
                logger.debug("Reminder loop already closed.", exc_info=True)

            thread.join()
            self._thread = None
            self._loop = None
            self._stop_event = None
        logger.info("Reminder scheduler stopped.")
