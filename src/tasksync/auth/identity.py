# src/tasksync/auth/identity.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Resolved caller identity.

    Only identity providers (through AuthGateway) build these. Everything
    downstream receives an Identity as an explicit argument; nothing reads a
    "current user" from shared state.
    """

    id: str
    email: str | None = None

    def __str__(self) -> str:
        return self.id
