# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..auth.gateway import AuthGateway
    from ..realtime.change_bus import ChangeBus
    from ..tasks.guard import AuthorizationGuard
    from .ports import TaskRepo


@dataclass
class AppState:
    """
    Wired application components (built once in cli/bootstrap.py).

    Holds no identity: callers pass an Identity into every task operation.
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    gateway: AuthGateway
    task_store: TaskRepo
    guard: AuthorizationGuard
    bus: ChangeBus
