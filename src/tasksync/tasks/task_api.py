# src/tasksync/tasks/task_api.py

"""
Task operations as seen by connectors.

Each call receives an already-resolved Identity and runs:
  guard (writes only) -> store -> bus.

Notifications are published only after the store call succeeded. A failing
publish is logged and never turns a successful write into an error.
"""

from __future__ import annotations

import logging

from ..auth.identity import Identity
from ..core.state import AppState
from ..realtime.change_bus import ChangeType
from .task_models import Task, TaskFilter, TaskStats, TaskUpdate, filter_tasks, task_stats

logger = logging.getLogger(__name__)


def _notify(state: AppState, identity: Identity, change_type: ChangeType) -> None:
    try:
        state.bus.publish(identity, change_type)
    except Exception:
        logger.exception("Change publish failed owner=%s type=%s", identity.id, change_type.value)


def list_tasks(
    state: AppState,
    identity: Identity,
    *,
    status: TaskFilter = TaskFilter.ALL,
    search: str = "",
) -> list[Task]:
    tasks = state.task_store.list_tasks(identity)
    if status == TaskFilter.ALL and not search:
        return tasks
    return filter_tasks(tasks, status=status, search=search)


def create_task(
    state: AppState,
    identity: Identity,
    *,
    title: str,
    description: str | None = None,
) -> Task:
    task = state.task_store.create_task(identity, title, description)
    logger.info("Task created id=%s owner=%s", task.id, identity.id)
    _notify(state, identity, ChangeType.CREATED)
    return task


def update_task(state: AppState, identity: Identity, task_id: str, update: TaskUpdate) -> Task:
    state.guard.check(task_id, identity)
    task = state.task_store.update_task(task_id, identity, update)
    if not update.is_empty():
        logger.info("Task updated id=%s owner=%s fields=%s", task_id, identity.id, update.changed_fields())
        _notify(state, identity, ChangeType.UPDATED)
    return task


def set_completed(state: AppState, identity: Identity, task_id: str, completed: bool) -> Task:
    return update_task(state, identity, task_id, TaskUpdate(completed=completed))


def delete_task(state: AppState, identity: Identity, task_id: str) -> None:
    state.guard.check(task_id, identity)
    state.task_store.delete_task(task_id, identity)
    logger.info("Task deleted id=%s owner=%s", task_id, identity.id)
    _notify(state, identity, ChangeType.DELETED)


def complete_all(state: AppState, identity: Identity) -> int:
    """Mark all of the owner's open tasks completed."""
    n = state.task_store.complete_all(identity)
    logger.info("Marked %d task(s) complete owner=%s", n, identity.id)
    if n:
        _notify(state, identity, ChangeType.BULK_UPDATED)
    return n


def clear_completed(state: AppState, identity: Identity) -> int:
    """Delete all of the owner's completed tasks."""
    n = state.task_store.delete_completed(identity)
    logger.info("Cleared %d completed task(s) owner=%s", n, identity.id)
    if n:
        _notify(state, identity, ChangeType.BULK_DELETED)
    return n


def get_stats(state: AppState, identity: Identity) -> TaskStats:
    return task_stats(state.task_store.list_tasks(identity))
