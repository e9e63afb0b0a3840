# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from ..cli.commands import ConsoleSession
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..realtime.client_sync import ClientSync
from ..tasks.task_models import Task, task_stats

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


@dataclass
class SyncBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    sync: ClientSync

    def stop(self, timeout: float = 5.0) -> None:
        try:
            fut = asyncio.run_coroutine_threadsafe(self.sync.stop(), self.loop)
            fut.result(timeout=timeout)
        except Exception:
            logger.debug("ClientSync stop failed.", exc_info=True)
        with contextlib.suppress(RuntimeError):
            self.loop.call_soon_threadsafe(self.loop.stop)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_sync_in_background(
    state: AppState,
    credential: str | None,
    *,
    on_change=None,
    timeout: float = 10.0,
) -> SyncBackgroundRunner:
    """
    Run a ClientSync on its own event loop thread (the REPL blocks on input()).

    Raises whatever the initial load raised (AuthError, StoreError, ...); in that
    case the loop thread is shut down before returning.
    """
    loop = asyncio.new_event_loop()

    def runner() -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="client-sync", daemon=True)
    t.start()

    sync = ClientSync(state.gateway, state.task_store, state.bus, on_change=on_change)
    try:
        asyncio.run_coroutine_threadsafe(sync.start(credential), loop).result(timeout=timeout)
    except BaseException:
        loop.call_soon_threadsafe(loop.stop)
        t.join(timeout=timeout)
        raise

    return SyncBackgroundRunner(thread=t, loop=loop, sync=sync)


def run_console_loop(state: AppState, credential: str | None) -> None:
    """
    Interactive session for one identity.

    The local view is a ClientSync: changes made from any other session of the
    same account (HTTP clients, another console) show up without a refresh.
    """
    seen = {"total": -1, "done": -1}

    def on_change(tasks: list[Task]) -> None:
        stats = task_stats(tasks)
        if (stats.total, stats.completed) == (seen["total"], seen["done"]):
            return
        if seen["total"] >= 0:
            _print_ts(f"[SYNC] {stats.summary()}")
        seen["total"], seen["done"] = stats.total, stats.completed

    try:
        runner = start_sync_in_background(state, credential, on_change=on_change)
    except Exception as e:
        message = getattr(e, "message", None) or str(e) or e.__class__.__name__
        logger.error("Console sign-in failed: %s", message)
        _print_ts(f"[AUTH] Cannot start session: {message}")
        return

    identity = runner.sync.identity
    if identity is None:
        runner.stop()
        return
    session = ConsoleSession(identity=identity, sync=runner.sync)

    logger.info("Console connector started (user=%s).", identity.id)
    _print_ts(f"[CONSOLE] Signed in as {identity.email or identity.id}. Use /help for commands, /exit to quit.")
    _print_ts(task_stats(runner.sync.tasks).summary())

    def emit(text: str) -> None:
        _print_ts(text)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit", "/signout"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                # Bare text is a shortcut for /add.
                user_input = "/add " + user_input

            try:
                reply = command_registry.handle(state, user_input, session, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is not None:
                print(f"[{_ts_local()}] {reply}")
    finally:
        runner.stop()
        runner.join(timeout=5.0)
        logger.info("Console connector finished.")
