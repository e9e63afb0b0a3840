# src/tasksync/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import Any, NoReturn

from ..auth.identity import Identity
from ..core.errors import ForbiddenError, NotFoundError, StoreError
from .task_models import Task, TaskUpdate, clean_description, clean_title

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    Every read and write is scoped to an owner: rows of other owners are never
    returned, and writes use `WHERE id = ? AND owner_id = ?` so a write can only
    land on the caller's own row.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StoreError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Short-lived connection; any sqlite3.Error becomes StoreError."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            logger.exception("TaskStore: cannot open db=%s", self._db_path)
            raise StoreError(f"Task storage unavailable: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("TaskStore: query failed db=%s", self._db_path)
            raise StoreError(f"Task storage error: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_owner_created ON tasks(owner_id, created_at)"
            )

            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        created_at = float(row["created_at"] or 0.0)
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            completed=bool(row["completed"]),
            owner_id=str(row["owner_id"]),
            created_at=created_at,
            updated_at=float(row["updated_at"] or created_at),
        )

    @staticmethod
    def _raise_missing_or_forbidden(cur: sqlite3.Cursor, task_id: str) -> NoReturn:
        """A conditional write touched nothing: tell absent from foreign rows."""
        cur.execute("SELECT owner_id FROM tasks WHERE id = ?", (task_id,))
        if cur.fetchone() is None:
            raise NotFoundError()
        raise ForbiddenError()

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def list_tasks(self, owner: Identity) -> list[Task]:
        """Owner's tasks, newest first (created_at DESC, insertion order breaks ties)."""
        with self._connect() as conn:
            cur = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE owner_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (owner.id,),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]

    def get_owner(self, task_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT owner_id FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return str(row["owner_id"]) if row is not None else None

    def create_task(
        self,
        owner: Identity,
        title: str,
        description: str | None = None,
    ) -> Task:
        clean = clean_title(title)
        desc = clean_description(description)

        now = time.time()
        task = Task(
            id=uuid.uuid4().hex,
            title=clean,
            description=desc,
            completed=False,
            owner_id=owner.id,
            created_at=now,
            updated_at=now,
        )

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks(id, owner_id, title, description, completed, created_at, updated_at)
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (task.id, task.owner_id, task.title, task.description, now, now),
            )
            conn.commit()

        logger.debug("Task created id=%s owner=%s", task.id, owner.id)
        return task

    def update_task(self, task_id: str, owner: Identity, update: TaskUpdate) -> Task:
        """
        Apply only the supplied fields.

        Raises NotFoundError if the id does not exist and ForbiddenError if it
        belongs to another owner. An empty update just returns the current task.
        """
        fields: list[str] = []
        params: list[Any] = []

        if update.title is not None:
            fields.append("title = ?")
            params.append(clean_title(update.title))

        if update.description is not None:
            fields.append("description = ?")
            params.append(clean_description(update.description))
        elif update.clear_description:
            fields.append("description = NULL")

        if update.completed is not None:
            fields.append("completed = ?")
            params.append(1 if update.completed else 0)

        with self._connect() as conn:
            cur = conn.cursor()
            if fields:
                fields.append("updated_at = ?")
                params.append(time.time())
                cur.execute(
                    f"UPDATE tasks SET {', '.join(fields)} WHERE id = ? AND owner_id = ?",
                    (*params, task_id, owner.id),
                )
                if cur.rowcount != 1:
                    self._raise_missing_or_forbidden(cur, task_id)
                conn.commit()

            cur.execute("SELECT * FROM tasks WHERE id = ? AND owner_id = ?", (task_id, owner.id))
            row = cur.fetchone()
            if row is None:
                self._raise_missing_or_forbidden(cur, task_id)

        logger.debug("Task updated id=%s owner=%s fields=%s", task_id, owner.id, update.changed_fields())
        return self._row_to_task(row)

    def delete_task(self, task_id: str, owner: Identity) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ? AND owner_id = ?", (task_id, owner.id))
            if cur.rowcount != 1:
                self._raise_missing_or_forbidden(cur, task_id)
            conn.commit()

        logger.debug("Task deleted id=%s owner=%s", task_id, owner.id)

    def complete_all(self, owner: Identity) -> int:
        """Mark every open task of the owner as completed. Returns rows changed."""
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE tasks SET completed = 1, updated_at = ? WHERE owner_id = ? AND completed = 0",
                (time.time(), owner.id),
            )
            conn.commit()
            return int(cur.rowcount)

    def delete_completed(self, owner: Identity) -> int:
        """Physically remove the owner's completed tasks. Returns rows removed."""
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM tasks WHERE owner_id = ? AND completed = 1",
                (owner.id,),
            )
            conn.commit()
            return int(cur.rowcount)
