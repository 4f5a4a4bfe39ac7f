# src/tasknotes/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Background components: their routine INFO/DEBUG lines would interleave with
# the console prompt every tick, so stderr only shows their problems.
_BACKGROUND_PREFIXES = ("tasknotes.reminders.", "tasknotes.storage.")

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    stderr policy while the REPL owns the terminal.

    Reminders reach the user through the console notifier, not through logs,
    so the scheduler and the store stay at WARNING+. Client-side tasknotes
    loggers (cli, connectors, notifications) pass at the handler level.
    Anything else, captured warnings included, needs ERROR+.
    The log file is unfiltered.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_BACKGROUND_PREFIXES):
            return record.levelno >= logging.WARNING
        if name.startswith("tasknotes."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = "~/.tasknotes/logs",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route all records to stderr (filtered, see _ConsoleNoiseFilter) and to
    <log_dir>/tasknotes.log (everything from `file_level` up).

    Replaces existing root handlers; call once from main() before the store
    and the scheduler are created. Returns the log file path.
    """
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasknotes.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn() lands under 'py.warnings' and follows the ERROR+ rule above.
    logging.captureWarnings(True)
    return log_file
