# src/tasksync/tasks/guard.py

"""
Ownership guard for writes.

Two steps, not one atomic operation:
  (a) read the current owner of the target id,
  (b) compare it with the requester and reject before any mutation.

A concurrent delete between (a) and the write can surface as a NotFoundError
from the store instead of the guard, and two racing callers may see each
other's outcome. The store's writes are conditional on id + owner, so the race
can only change which error is reported; it never lets a write reach a task
owned by someone else.
"""

from __future__ import annotations

import logging

from ..auth.identity import Identity
from ..core.errors import ForbiddenError, NotFoundError
from ..core.ports import TaskRepo

logger = logging.getLogger(__name__)


class AuthorizationGuard:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store

    def check(self, task_id: str, identity: Identity) -> None:
        """Raise NotFoundError / ForbiddenError unless `identity` owns `task_id`."""
        if not task_id or not str(task_id).strip():
            raise NotFoundError()

        owner_id = self._store.get_owner(task_id)
        if owner_id is None:
            raise NotFoundError()

        if owner_id != identity.id:
            # Never log the actual owner.
            logger.info("Ownership check denied task_id=%s requester=%s", task_id, identity.id)
            raise ForbiddenError()
