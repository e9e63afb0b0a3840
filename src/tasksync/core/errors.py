# src/tasksync/core/errors.py

"""
Error taxonomy shared by every layer.

Each error carries the HTTP status a connector should answer with, so the
request surface can map failures without knowing which layer raised them.
Messages are safe to show to the caller: they never mention another owner's data.
"""

from __future__ import annotations


class TaskSyncError(Exception):
    http_status: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


# ---- authentication ----


class AuthError(TaskSyncError):
    http_status = 401


class MissingCredential(AuthError):
    def __init__(self, message: str = "Missing Authorization header") -> None:
        super().__init__(message)


class InvalidCredential(AuthError):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class ProviderUnavailable(AuthError):
    def __init__(self, message: str = "Identity provider unavailable") -> None:
        super().__init__(message)


# ---- task operations ----


class ValidationError(TaskSyncError):
    http_status = 400

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "field": self.field}


class ForbiddenError(TaskSyncError):
    http_status = 403

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class NotFoundError(TaskSyncError):
    http_status = 404

    def __init__(self, message: str = "Task not found") -> None:
        super().__init__(message)


class StoreError(TaskSyncError):
    """Backing persistence failure. Never retried automatically."""

    http_status = 500
