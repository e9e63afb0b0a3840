# src/tasksync/realtime/client_sync.py

"""
Session-side synchronized view of one owner's task list.

Lifecycle:
  UNINITIALIZED -> LOADING -> READY <-> RECONCILING

- start(credential): resolve identity, subscribe, initial full load;
- each notification: full re-read that replaces the cache (never a delta);
- stop(): cancel the consumer and unsubscribe.

The bus subscription is a scoped resource: it is released on every exit path,
including a failed initial load. A failed reconciliation keeps the last good
cache and returns to READY.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from enum import StrEnum

from ..auth.gateway import AuthGateway
from ..auth.identity import Identity
from ..core.errors import TaskSyncError
from ..core.ports import TaskRepo
from ..tasks.task_models import Task, TaskFilter, TaskStats, filter_tasks, task_stats
from .change_bus import ChangeBus, Subscription

logger = logging.getLogger(__name__)

OnChange = Callable[[list[Task]], None]


class SyncState(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    RECONCILING = "reconciling"


class ClientSync:
    def __init__(
        self,
        gateway: AuthGateway,
        store: TaskRepo,
        bus: ChangeBus,
        *,
        on_change: OnChange | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._bus = bus
        self._on_change = on_change

        self._state = SyncState.UNINITIALIZED
        self._identity: Identity | None = None
        self._tasks: list[Task] = []
        self._revision = 0
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._changed: asyncio.Condition | None = None
        self._read_seq = 0
        self._applied_seq = 0
        self._reads_in_flight = 0

    # ---- read-only view ----

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def revision(self) -> int:
        """Incremented on every successful (re)load."""
        return self._revision

    def view(self, *, status: TaskFilter = TaskFilter.ALL, search: str = "") -> list[Task]:
        return filter_tasks(self._tasks, status=status, search=search)

    def stats(self) -> TaskStats:
        return task_stats(self._tasks)

    # ---- lifecycle ----

    async def start(self, credential: str | None) -> None:
        if self._state != SyncState.UNINITIALIZED:
            raise RuntimeError(f"ClientSync already started (state={self._state.value})")

        self._changed = asyncio.Condition()
        self._reads_in_flight = 0
        self._state = SyncState.LOADING

        try:
            identity = await asyncio.to_thread(self._gateway.verify, credential)
            self._identity = identity
            # Subscribe before the first read so no change can slip in between.
            self._subscription = self._bus.subscribe(identity)
            tasks = await asyncio.to_thread(self._store.list_tasks, identity)
        except BaseException:
            self._release()
            self._identity = None
            self._state = SyncState.UNINITIALIZED
            raise

        await self._replace_cache(tasks)
        self._state = SyncState.READY
        self._consumer = asyncio.create_task(self._consume(), name=f"client-sync:{identity.id}")
        logger.info("ClientSync ready owner=%s tasks=%d", identity.id, len(tasks))

    async def stop(self) -> None:
        consumer, self._consumer = self._consumer, None
        try:
            if consumer is not None:
                consumer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await consumer
        finally:
            self._release()
            if self._identity is not None:
                logger.info("ClientSync stopped owner=%s", self._identity.id)
            self._identity = None
            self._state = SyncState.UNINITIALIZED

    async def switch_identity(self, credential: str | None) -> None:
        """Drop the current session binding and start over with another credential."""
        await self.stop()
        self._tasks = []
        await self.start(credential)

    @contextlib.asynccontextmanager
    async def session(self, credential: str | None) -> AsyncIterator[ClientSync]:
        await self.start(credential)
        try:
            yield self
        finally:
            await self.stop()

    async def wait_for_revision(self, revision: int, timeout: float | None = None) -> list[Task]:
        """Wait until the cache has been (re)loaded at least up to `revision`."""
        if self._changed is None:
            raise RuntimeError("ClientSync is not started")
        cond = self._changed

        async def _wait() -> None:
            async with cond:
                await cond.wait_for(lambda: self._revision >= revision)

        await asyncio.wait_for(_wait(), timeout)
        return self.tasks

    # ---- internals ----

    def _release(self) -> None:
        sub, self._subscription = self._subscription, None
        if sub is not None:
            self._bus.unsubscribe(sub)

    async def _consume(self) -> None:
        sub = self._subscription
        if sub is None:
            return
        async for note in sub:
            dropped = sub.drain()
            logger.debug(
                "ClientSync notification %s owner=%s (coalesced=%d)",
                note.change_type.value,
                note.owner_id,
                dropped,
            )
            await self.reconcile()

    async def reconcile(self) -> None:
        """
        Full re-read of the owner's list. Keeps the old cache on failure.

        Reads may overlap (the consumer and a manual call); each one is stamped
        when it starts, and a result older than the one already applied is
        dropped, so a slow read can never roll the cache back.
        """
        identity = self._identity
        if identity is None or self._state not in (SyncState.READY, SyncState.RECONCILING):
            return

        self._read_seq += 1
        seq = self._read_seq
        self._reads_in_flight += 1
        self._state = SyncState.RECONCILING
        try:
            tasks = await asyncio.to_thread(self._store.list_tasks, identity)
        except TaskSyncError as e:
            logger.warning(
                "ClientSync reconcile failed owner=%s (%s); keeping %d cached task(s)",
                identity.id,
                e.message,
                len(self._tasks),
            )
            return
        except Exception:
            logger.exception("ClientSync reconcile crashed owner=%s", identity.id)
            return
        finally:
            if self._identity is identity:
                self._reads_in_flight -= 1
                if self._reads_in_flight == 0:
                    self._state = SyncState.READY

        if self._identity is not identity:
            return
        if seq <= self._applied_seq:
            logger.debug(
                "ClientSync dropped stale read owner=%s seq=%d applied=%d",
                identity.id,
                seq,
                self._applied_seq,
            )
            return

        self._applied_seq = seq
        await self._replace_cache(tasks)

    async def _replace_cache(self, tasks: list[Task]) -> None:
        self._tasks = list(tasks)
        self._revision += 1

        if self._changed is not None:
            async with self._changed:
                self._changed.notify_all()

        if self._on_change is not None:
            try:
                self._on_change(self.tasks)
            except Exception:
                logger.exception("ClientSync on_change callback failed.")
