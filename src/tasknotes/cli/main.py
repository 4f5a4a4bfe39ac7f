# src/tasknotes/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- starts the reminder scheduler (background thread),
- runs the console client in the main thread (optional),
- stops the scheduler exactly once on the way out.
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import PersistenceError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tasknotes", description="Notes and tasks with reminders.")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory to store notes and tasks data (default: TASKNOTES_DATA_DIR or ~/.tasknotes).",
    )
    parser.add_argument(
        "--no-console",
        action="store_true",
        help="Run reminders only, until SIGINT/SIGTERM.",
    )
    return parser.parse_args(argv)


def _make_signal_handler(stop_main: threading.Event, *, interrupt: bool):
    """
    SIGINT/SIGTERM handler for the main thread.

    With the console running, main is blocked in input(): the handler raises
    KeyboardInterrupt there so the console loop ends and the scheduler is
    stopped on the normal path.
    """

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()
        if interrupt:
            raise KeyboardInterrupt

    return _handle_signal


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = get_settings()
    if args.data_dir is not None:
        settings = settings.with_data_dir(args.data_dir.expanduser())

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except PersistenceError as e:
        logger.error("Cannot open data directory: %s", e)
        return 1

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()
    console_enabled = settings.console_enabled and not args.no_console

    handler = _make_signal_handler(stop_main, interrupt=console_enabled)
    if not console_enabled:
        # In console mode input() gets Ctrl+C as KeyboardInterrupt already.
        signal.signal(signal.SIGINT, handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handler)

    state.scheduler.start()
    try:
        if console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Running reminders only. Press Ctrl+C to stop.")
            stop_main.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        state.scheduler.stop()
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
