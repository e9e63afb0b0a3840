# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the identity provider and storage swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..auth.identity import Identity
    from ..tasks.task_models import Task, TaskUpdate


class IdentityProvider(Protocol):
    """
    External "verify credential -> identity" contract.

    Implementations raise InvalidCredential when the provider rejects the token
    and ProviderUnavailable when the provider cannot be reached.
    """

    def fetch_identity(self, token: str) -> Identity: ...


class TaskRepo(Protocol):
    # Reads (always owner-scoped)
    def list_tasks(self, owner: Identity) -> list[Task]: ...
    def get_owner(self, task_id: str) -> str | None: ...

    # Writes
    def create_task(
            self,
            owner: Identity,
            title: str,
            description: str | None = None,
    ) -> Task: ...
    def update_task(self, task_id: str, owner: Identity, update: TaskUpdate) -> Task: ...
    def delete_task(self, task_id: str, owner: Identity) -> None: ...

    # Bulk (owner-scoped)
    def complete_all(self, owner: Identity) -> int: ...
    def delete_completed(self, owner: Identity) -> int: ...
