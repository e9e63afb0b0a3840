# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- HTTP request surface in a background thread (optional),
- console session in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..connectors.http_connector import HttpBackgroundRunner, start_http_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(settings)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    http_runner: HttpBackgroundRunner | None = None
    if settings.http_enabled:
        try:
            http_runner = start_http_in_background(state)
        except OSError:
            logger.exception(
                "Failed to bind HTTP connector on %s:%s", settings.http_host, settings.http_port
            )

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            run_console_loop(state, settings.console_token)
            stop_main.set()
        elif http_runner is not None:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    signal.signal(sig, _handle_signal)
                except (ValueError, OSError):
                    logger.debug("Cannot install handler for signal %s", sig)
            logger.info("Console disabled. Serving HTTP only. Press Ctrl+C to stop.")
            stop_main.wait()
        else:
            logger.error("Nothing to run: enable TASKSYNC_HTTP_ENABLED or TASKSYNC_CONSOLE_ENABLED.")

    finally:
        if http_runner is not None:
            http_runner.stop()
            http_runner.join(timeout=10.0)

        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
