# src/tasksync/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import cast

from ..auth.identity import Identity
from ..core.errors import TaskSyncError, ValidationError
from ..core.state import AppState
from ..realtime.client_sync import ClientSync
from ..tasks import task_api
from ..tasks.task_models import Task, TaskFilter, TaskUpdate, filter_tasks, task_stats

CommandEmitter = Callable[[str], None]


@dataclass
class ConsoleSession:
    """One signed-in console session. `sync` is None when realtime is not running."""

    identity: Identity
    sync: ClientSync | None = None

    def cached_tasks(self, state: AppState) -> list[Task]:
        if self.sync is not None:
            return self.sync.tasks
        return task_api.list_tasks(state, self.identity)


CommandHandler3 = Callable[[AppState, list[str], ConsoleSession], str]
CommandHandler4 = Callable[[AppState, list[str], ConsoleSession, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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
        session: ConsoleSession,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Task errors are turned into a readable reply.
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
            nparams = 4

        try:
            if nparams >= 4:
                h4 = cast(CommandHandler4, handler)
                return h4(state, args, session, emit)

            h3 = cast(CommandHandler3, handler)
            return h3(state, args, session)
        except ValidationError as e:
            return f"Invalid {e.field}: {e.reason}"
        except TaskSyncError as e:
            return f"Error: {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(task_id: str) -> str:
    return task_id[:8]


def _fmt_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    line = f"[{mark}] {_short(task.id)}  {task.title}  ({_fmt_ts(task.created_at)})"
    if task.description:
        line += f"\n      {task.description}"
    return line


def _resolve_task_id(state: AppState, session: ConsoleSession, token: str) -> str:
    """Accept a full id or a unique prefix of a cached task id."""
    matches = [t.id for t in session.cached_tasks(state) if t.id.startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError("id", f"prefix '{token}' matches {len(matches)} tasks")
    return token


def cmd_help(state: AppState, args: list[str], session: ConsoleSession) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], session: ConsoleSession) -> str:
    sync = session.sync
    sync_line = f"{sync.state.value} (revision {sync.revision})" if sync is not None else "off"
    subs = state.bus.subscriber_count(session.identity)
    return (
        "Status:\n"
        f"  Signed in as: {session.identity.email or session.identity.id}\n"
        f"  Realtime sync: {sync_line}\n"
        f"  Active sessions for this account: {subs}"
    )


def cmd_list(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """
    /list                     -> all tasks
    /list active|completed    -> filtered
    /list all milk            -> search in title/description
    """
    status = TaskFilter.ALL
    rest = args
    if args and args[0].lower() in {f.value for f in TaskFilter}:
        status = TaskFilter.parse(args[0])
        rest = args[1:]
    search = " ".join(rest)

    tasks = filter_tasks(session.cached_tasks(state), status=status, search=search)
    if not tasks:
        return "No tasks match." if (search or status != TaskFilter.ALL) else "No tasks yet."
    return "\n".join(format_task(t) for t in tasks)


def cmd_add(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/add <title> [| description]"""
    raw = " ".join(args)
    title, sep, description = raw.partition("|")
    task = task_api.create_task(
        state,
        session.identity,
        title=title,
        description=description if sep else None,
    )
    return f"Task created: {_short(task.id)} {task.title}"


def _set_done(state: AppState, args: list[str], session: ConsoleSession, completed: bool) -> str:
    if not args:
        return "Usage: /done <id>" if completed else "Usage: /undo <id>"
    task_id = _resolve_task_id(state, session, args[0])
    task = task_api.set_completed(state, session.identity, task_id, completed)
    return f"{'Completed' if completed else 'Reopened'}: {task.title}"


def cmd_done(state: AppState, args: list[str], session: ConsoleSession) -> str:
    return _set_done(state, args, session, True)


def cmd_undo(state: AppState, args: list[str], session: ConsoleSession) -> str:
    return _set_done(state, args, session, False)


def cmd_edit(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/edit <id> title <text> | /edit <id> desc <text> (empty desc clears it)"""
    if len(args) < 2 or args[1].lower() not in ("title", "desc", "description"):
        return "Usage: /edit <id> title <text> | /edit <id> desc [text]"

    task_id = _resolve_task_id(state, session, args[0])
    text = " ".join(args[2:])
    if args[1].lower() == "title":
        update = TaskUpdate(title=text)
    elif text.strip():
        update = TaskUpdate(description=text)
    else:
        update = TaskUpdate(clear_description=True)

    task = task_api.update_task(state, session.identity, task_id, update)
    return f"Task updated: {_short(task.id)} {task.title}"


def cmd_rm(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if not args:
        return "Usage: /rm <id>"
    task_id = _resolve_task_id(state, session, args[0])
    task_api.delete_task(state, session.identity, task_id)
    return "Task deleted."


def cmd_alldone(
    state: AppState,
    args: list[str],
    session: ConsoleSession,
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        emit("Marking all tasks as completed...")
    n = task_api.complete_all(state, session.identity)
    return f"All tasks marked complete ({n} updated)." if n else "Nothing to complete."


def cmd_cleardone(
    state: AppState,
    args: list[str],
    session: ConsoleSession,
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        emit("Deleting completed tasks (this cannot be undone)...")
    n = task_api.clear_completed(state, session.identity)
    return f"Completed tasks cleared ({n} deleted)." if n else "No completed tasks."


def cmd_stats(state: AppState, args: list[str], session: ConsoleSession) -> str:
    return task_stats(session.cached_tasks(state)).summary()


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session and sync status.")
registry.register(
    "list", cmd_list, help_text="List tasks: /list [all|active|completed] [search]", aliases=["ls"]
)
registry.register("add", cmd_add, help_text="Create a task: /add <title> [| description]")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>")
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <id>")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> title|desc <text>")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>", aliases=["del"])
registry.register("alldone", cmd_alldone, help_text="Mark all tasks completed.")
registry.register("cleardone", cmd_cleardone, help_text="Delete all completed tasks.")
registry.register("stats", cmd_stats, help_text="Show completion progress.")
