# src/tasknotes/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import cast

from ..core.errors import NotFoundError, PersistenceError, ValidationError
from ..core.state import AppState
from ..reminders.reminder_api import (
    DEFAULT_LEAD_PERIOD,
    create_reminder_task,
    default_due_date,
    parse_due_date,
    parse_lead_period,
)
from ..storage.models import Note, Priority, Task, TaskStatus, utc_now

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console client (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Store and input errors become inline messages; the client keeps running.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except NotFoundError as e:
            return f"Not found: {e}"
        except ValidationError as e:
            return f"Invalid input: {e}"
        except PersistenceError as e:
            logger.warning("Command /%s failed on storage: %s", name, e)
            return f"Storage error (nothing changed): {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_local(dt) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _format_note(n: Note) -> str:
    mark = "x" if n.is_completed else " "
    tags = f" [tags: {', '.join(n.tags)}]" if n.tags else ""
    due = f" (due {_fmt_local(n.due_date)})" if n.due_date else ""
    return f"[{mark}] {n.id}  {n.title}{due} <{n.priority.name.lower()}>{tags}"


def _format_task(t: Task) -> str:
    tags = f" [tags: {', '.join(t.tags)}]" if t.tags else ""
    link = f" -> note {t.note_id}" if t.note_id else ""
    return (
        f"{t.id}  {t.status.label:<11} {t.title} "
        f"(due {_fmt_local(t.due_date)}, remind {_fmt_local(t.reminder_at)}) "
        f"<{t.priority.name.lower()}>{tags}{link}"
    )


def _split_fields(args: list[str]) -> list[str]:
    return [p.strip() for p in " ".join(args).split("|")]


def _kind_and_id(args: list[str], usage: str) -> tuple[str, str, list[str]]:
    if len(args) < 2 or args[0].lower() not in ("note", "task"):
        raise ValidationError(usage)
    return args[0].lower(), args[1], args[2:]


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    return (
        "Status:\n"
        f"  Data dir: {state.store.data_dir}\n"
        f"  Notes: {state.store.count_notes()}  Tasks: {state.store.count_tasks()}\n"
        f"  Reminders: {'running' if state.scheduler.is_running else 'stopped'}"
        f" (every {getattr(settings, 'check_interval_seconds', '?')}s)"
    )


def cmd_notes(state: AppState, args: list[str]) -> str:
    """
    /notes        -> all notes
    /notes <tag>  -> notes with that tag
    """
    notes = state.store.get_notes_by_tag(args[0]) if args else state.store.get_all_notes()
    if not notes:
        return "No notes."
    return "\n".join(_format_note(n) for n in notes)


def cmd_note(state: AppState, args: list[str]) -> str:
    """/note <title> | <content>"""
    fields = _split_fields(args)
    title = fields[0]
    if not title:
        raise ValidationError("usage: /note <title> | <content>")
    content = fields[1] if len(fields) > 1 else ""
    note = Note.new(title, content)
    state.store.save_note(note)
    return f"Note created: {note.id}"


def cmd_check(state: AppState, args: list[str]) -> str:
    """/check <note-id> toggles the note's completion flag."""
    if not args:
        raise ValidationError("usage: /check <note-id>")
    note = state.store.update_note(args[0], lambda n: n.set_completed(not n.is_completed))
    return f"Note {note.id} {'completed' if note.is_completed else 'reopened'}."


def cmd_notedue(state: AppState, args: list[str]) -> str:
    """/notedue <note-id> <YYYY-MM-DD|->"""
    if len(args) < 2:
        raise ValidationError("usage: /notedue <note-id> <YYYY-MM-DD|->")
    due = None if args[1] == "-" else parse_due_date(args[1])
    note = state.store.update_note(args[0], lambda n: n.set_due_date(due))
    return f"Note {note.id} due: {_fmt_local(note.due_date) if note.due_date else '(none)'}"


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = state.store.get_tasks_by_tag(args[0]) if args else state.store.get_all_tasks()
    if not tasks:
        return "No tasks."
    return "\n".join(_format_task(t) for t in tasks)


def cmd_task(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /task <title> | <description> | <due YYYY-MM-DD> | <lead e.g. 30m, 1h, 2d>

    Unparseable due date -> tomorrow; unparseable lead -> configured default.
    """
    fields = _split_fields(args) + ["", "", ""]
    title, description, due_raw, lead_raw = fields[:4]
    if not title:
        raise ValidationError("usage: /task <title> | <description> | <due> | <lead>")

    now = utc_now()
    notes: list[str] = []

    try:
        due = parse_due_date(due_raw)
    except ValidationError:
        due = default_due_date(now)
        if due_raw:
            notes.append(f"due date {due_raw!r} not understood, using tomorrow")

    default_minutes = getattr(state.settings, "default_lead_minutes", None)
    default_lead = (
        timedelta(minutes=int(default_minutes)) if default_minutes is not None else DEFAULT_LEAD_PERIOD
    )
    try:
        lead = parse_lead_period(lead_raw)
    except ValidationError:
        lead = default_lead
        if lead_raw:
            notes.append(f"lead {lead_raw!r} not understood, using {default_lead}")

    if emit:
        for msg in notes:
            with contextlib.suppress(Exception):
                emit(f"[TASK] {msg}")

    task = create_reminder_task(state.store, title, description, due, lead)
    return f"Task created: {task.id} (remind {_fmt_local(task.reminder_at)})"


def cmd_done(state: AppState, args: list[str]) -> str:
    """/done <task-id> toggles Completed <-> Pending."""
    if not args:
        raise ValidationError("usage: /done <task-id>")

    def toggle(t: Task) -> None:
        if t.status == TaskStatus.COMPLETED:
            t.uncomplete()
        else:
            t.complete()

    task = state.store.update_task(args[0], toggle)
    return f"Task {task.id} -> {task.status.label}"


def cmd_start(state: AppState, args: list[str]) -> str:
    if not args:
        raise ValidationError("usage: /start <task-id>")
    task = state.store.update_task(args[0], lambda t: t.start())
    return f"Task {task.id} -> {task.status.label}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    kind, record_id, _ = _kind_and_id(args, "usage: /rm note|task <id>")
    if kind == "note":
        state.store.delete_note(record_id)
    else:
        state.store.delete_task(record_id)
    return f"Deleted {kind} {record_id}."


def _retag(state: AppState, args: list[str], *, add: bool) -> str:
    verb = "tag" if add else "untag"
    kind, record_id, rest = _kind_and_id(args, f"usage: /{verb} note|task <id> <tag>")
    if not rest:
        raise ValidationError(f"usage: /{verb} note|task <id> <tag>")
    tag = rest[0]

    def retag(record: Note | Task) -> None:
        if add:
            record.add_tag(tag)
        else:
            record.remove_tag(tag)

    record: Note | Task
    if kind == "note":
        record = state.store.update_note(record_id, retag)
    else:
        record = state.store.update_task(record_id, retag)
    return f"{kind.title()} {record_id} tags: {', '.join(record.tags) or '(none)'}"


def cmd_tag(state: AppState, args: list[str]) -> str:
    return _retag(state, args, add=True)


def cmd_untag(state: AppState, args: list[str]) -> str:
    return _retag(state, args, add=False)


def cmd_priority(state: AppState, args: list[str]) -> str:
    usage = "usage: /priority note|task <id> low|medium|high"
    kind, record_id, rest = _kind_and_id(args, usage)
    if not rest:
        raise ValidationError(usage)
    try:
        priority = Priority.from_raw(rest[0])
    except ValueError:
        raise ValidationError(usage) from None

    if kind == "note":
        state.store.update_note(record_id, lambda n: n.set_priority(priority))
    else:
        state.store.update_task(record_id, lambda t: t.set_priority(priority))
    return f"{kind.title()} {record_id} priority: {priority.name.lower()}"


def cmd_link(state: AppState, args: list[str]) -> str:
    """/link <task-id> <note-id>   or   /link <task-id> -   (unlink)"""
    if len(args) < 2:
        raise ValidationError("usage: /link <task-id> <note-id|->")
    note_id = None if args[1] == "-" else state.store.get_note(args[1]).id
    task = state.store.update_task(args[0], lambda t: t.link_note(note_id))
    return f"Task {task.id} linked note: {task.note_id or '(none)'}"


def _edit_note(state: AppState, note_id: str, fields: list[str]) -> str:
    title = fields[0]
    content = fields[1] if len(fields) > 1 else ""

    def edit(n: Note) -> None:
        n.update(title or n.title, content or n.content)

    note = state.store.update_note(note_id, edit)
    return f"Note {note.id} updated."


def _edit_task(state: AppState, task_id: str, fields: list[str]) -> str:
    fields = fields + ["", "", ""]
    title, description, due_raw, lead_raw = fields[:4]
    due = parse_due_date(due_raw) if due_raw else None
    lead = parse_lead_period(lead_raw) if lead_raw else None
    now = utc_now()

    def edit(t: Task) -> None:
        t.update(title or t.title, description or t.description, due or t.due_date)
        if lead is not None:
            t.set_reminder_period(lead)
        if t.status == TaskStatus.OVERDUE:
            # Re-derived against the new due date just below.
            t.status = TaskStatus.PENDING
        t.refresh_status(now)

    task = state.store.update_task(task_id, edit)
    return f"Task {task.id} updated: {_format_task(task)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit note <id> <title> | <content>
    /edit task <id> <title> | <description> | <due> | <lead>

    Empty fields keep the current value. Unlike /task, a bad due date or lead
    is rejected instead of defaulted.
    """
    usage = (
        "usage: /edit note <id> <title> | <content>  or  "
        "/edit task <id> <title> | <desc> | <due> | <lead>"
    )
    kind, record_id, rest = _kind_and_id(args, usage)
    fields = _split_fields(rest)
    if kind == "note":
        return _edit_note(state, record_id, fields)
    return _edit_task(state, record_id, fields)


def cmd_remind(state: AppState, args: list[str]) -> str:
    """/remind <task-id> <YYYY-MM-DD[THH:MM]> sets an absolute reminder time."""
    if len(args) < 2:
        raise ValidationError("usage: /remind <task-id> <YYYY-MM-DD[THH:MM]>")
    when = parse_due_date(args[1])
    task = state.store.update_task(args[0], lambda t: t.set_reminder_time(when))
    return f"Task {task.id} remind {_fmt_local(task.reminder_at)}"


def cmd_due(state: AppState, args: list[str]) -> str:
    tasks = state.store.query_tasks_due_before(utc_now())
    if not tasks:
        return "Nothing overdue."
    return "Overdue:\n" + "\n".join(_format_task(t) for t in tasks)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show data dir, counts and reminder state.")
registry.register("notes", cmd_notes, help_text="List notes: /notes [tag].")
registry.register("note", cmd_note, help_text="Create a note: /note <title> | <content>.")
registry.register("check", cmd_check, help_text="Toggle note completion: /check <note-id>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [tag].")
registry.register(
    "task",
    cmd_task,
    help_text="Create a task: /task <title> | <description> | <YYYY-MM-DD> | <lead: 30m, 1h, 2d>.",
)
registry.register("done", cmd_done, help_text="Toggle task completion: /done <task-id>.")
registry.register("start", cmd_start, help_text="Mark a task in progress: /start <task-id>.")
registry.register("rm", cmd_rm, help_text="Delete: /rm note|task <id>.", aliases=["delete"])
registry.register("tag", cmd_tag, help_text="Add a tag: /tag note|task <id> <tag>.")
registry.register("untag", cmd_untag, help_text="Remove a tag: /untag note|task <id> <tag>.")
registry.register(
    "priority", cmd_priority, help_text="Set priority: /priority note|task <id> low|medium|high."
)
registry.register("link", cmd_link, help_text="Link a task to a note: /link <task-id> <note-id|->.")
registry.register("due", cmd_due, help_text="List overdue tasks.")
registry.register(
    "edit",
    cmd_edit,
    help_text=(
        "Edit: /edit note <id> <title> | <content>  or  "
        "/edit task <id> <title> | <desc> | <due> | <lead> (empty field keeps the value)."
    ),
)
registry.register(
    "notedue", cmd_notedue, help_text="Set a note's due date: /notedue <note-id> <YYYY-MM-DD|->."
)
registry.register(
    "remind", cmd_remind, help_text="Set a task's reminder time: /remind <task-id> <YYYY-MM-DD[THH:MM]>."
)
