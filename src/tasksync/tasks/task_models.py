# src/tasksync/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

TITLE_MAX_LEN = 200
DESCRIPTION_MAX_LEN = 1000


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str | None
    completed: bool
    owner_id: str
    created_at: float
    updated_at: float

    def to_dict(self) -> dict[str, Any]:
        """JSON shape used by the HTTP connector (owner exposed as user_id)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "user_id": self.owner_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# ---- validation ----


def clean_title(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("title", "must be a string")
    title = raw.strip()
    if not title:
        raise ValidationError("title", "Title is required")
    if len(title) > TITLE_MAX_LEN:
        raise ValidationError("title", f"Title must be at most {TITLE_MAX_LEN} characters")
    return title


def clean_description(raw: Any) -> str | None:
    """Blank descriptions are stored as None."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("description", "must be a string")
    description = raw.strip()
    if len(description) > DESCRIPTION_MAX_LEN:
        raise ValidationError(
            "description", f"Description must be at most {DESCRIPTION_MAX_LEN} characters"
        )
    return description or None


@dataclass(frozen=True, slots=True)
class TaskUpdate:
    """
    Whitelisted partial update.

    A field left as None is not touched, except `description`, where
    `clear_description=True` sets it back to None.
    """

    title: str | None = None
    description: str | None = None
    completed: bool | None = None
    clear_description: bool = False

    def is_empty(self) -> bool:
        return (
            self.title is None
            and self.description is None
            and self.completed is None
            and not self.clear_description
        )

    def changed_fields(self) -> list[str]:
        out: list[str] = []
        if self.title is not None:
            out.append("title")
        if self.description is not None or self.clear_description:
            out.append("description")
        if self.completed is not None:
            out.append("completed")
        return out


# ---- list views (filter / search / stats) ----


class TaskFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: str | None) -> TaskFilter:
        if not raw:
            return cls.ALL
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValidationError("status", "must be one of: all, active, completed") from None


def filter_tasks(
    tasks: Iterable[Task],
    *,
    status: TaskFilter = TaskFilter.ALL,
    search: str = "",
) -> list[Task]:
    """Keep order; search matches title + description, case-insensitive."""
    needle = (search or "").strip().lower()
    out: list[Task] = []
    for t in tasks:
        if status == TaskFilter.ACTIVE and t.completed:
            continue
        if status == TaskFilter.COMPLETED and not t.completed:
            continue
        if needle and needle not in f"{t.title} {t.description or ''}".lower():
            continue
        out.append(t)
    return out


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    completed: int
    active: int
    percent: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "active": self.active,
            "percent": self.percent,
        }

    def summary(self) -> str:
        if self.total == 0:
            return "No tasks yet. Start by creating your first task."
        return f"{self.completed} of {self.total} tasks completed ({self.percent}%)"


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    items = list(tasks)
    total = len(items)
    done = sum(1 for t in items if t.completed)
    percent = 0 if total == 0 else round(done / total * 100)
    return TaskStats(total=total, completed=done, active=total - done, percent=percent)


def completion_ratio(tasks: Iterable[Task]) -> int:
    """round(completed / total); 0 for an empty list."""
    items = list(tasks)
    if not items:
        return 0
    return round(sum(1 for t in items if t.completed) / len(items))
