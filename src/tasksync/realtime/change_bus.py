# src/tasksync/realtime/change_bus.py

"""
Per-owner change notifications.

After a successful write the task API publishes "something changed for owner X".
Subscribers never receive a delta: they react by re-reading the owner's list,
so duplicate, late or reordered notifications are harmless.

Threading model:
- publish() may be called from any thread (HTTP handler threads, the console,
  an event loop);
- each Subscription is bound to the event loop that created it, and delivery is
  scheduled onto that loop with call_soon_threadsafe, so a write returns to its
  caller before subscribers have reconciled;
- the registry is guarded by a lock, so subscribe / unsubscribe / publish are
  safe to call concurrently.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from enum import StrEnum

from ..auth.identity import Identity

logger = logging.getLogger(__name__)


class ChangeType(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    BULK_UPDATED = "bulk_updated"
    BULK_DELETED = "bulk_deleted"


@dataclass(frozen=True, slots=True)
class ChangeNotification:
    change_type: ChangeType
    owner_id: str


@dataclass(eq=False, slots=True)
class Subscription:
    """
    Notification stream for one owner, consumed on one event loop.

    Iterate with `async for note in sub` or call `await sub.get()`.
    The stream ends after the subscription is removed from the bus.
    """

    id: int
    owner_id: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue[ChangeNotification | None]
    closed: bool = field(default=False)

    async def get(self) -> ChangeNotification | None:
        """Next notification, or None once the subscription is closed."""
        if self.closed and self.queue.empty():
            return None
        note = await self.queue.get()
        if note is None:
            self.closed = True
        return note

    def drain(self) -> int:
        """Drop already-queued notifications (one re-read covers them all)."""
        dropped = 0
        while True:
            try:
                note = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            if note is None:
                self.closed = True
                return dropped
            dropped += 1

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeNotification:
        note = await self.get()
        if note is None:
            raise StopAsyncIteration
        return note


def _offer(sub: Subscription, note: ChangeNotification | None) -> None:
    # Runs on the subscriber's loop.
    if note is None:
        # Close marker must get through even when the queue is full.
        sub.drain()
        sub.queue.put_nowait(None)
        return
    if sub.closed:
        return
    try:
        sub.queue.put_nowait(note)
    except asyncio.QueueFull:
        # A pending notification already triggers a full re-read.
        logger.debug("Subscription %s queue full; notification coalesced.", sub.id)


class ChangeBus:
    def __init__(self, *, max_pending: int = 64) -> None:
        self._max_pending = max(1, int(max_pending))
        self._lock = threading.Lock()
        self._subs: dict[str, dict[int, Subscription]] = {}
        self._ids = itertools.count(1)

    def subscribe(self, owner: Identity) -> Subscription:
        """Register a subscriber for `owner`. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        sub = Subscription(
            id=next(self._ids),
            owner_id=owner.id,
            loop=loop,
            queue=asyncio.Queue(maxsize=self._max_pending),
        )
        with self._lock:
            self._subs.setdefault(owner.id, {})[sub.id] = sub
            n = len(self._subs[owner.id])
        logger.debug("Subscribed sub=%s owner=%s (owner subscribers=%d)", sub.id, owner.id, n)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Remove the subscription and end its stream. Idempotent."""
        with self._lock:
            owner_subs = self._subs.get(sub.owner_id)
            removed = owner_subs.pop(sub.id, None) if owner_subs else None
            if owner_subs is not None and not owner_subs:
                del self._subs[sub.owner_id]

        if removed is None:
            return

        self._deliver(sub, None)
        logger.debug("Unsubscribed sub=%s owner=%s", sub.id, sub.owner_id)

    def publish(self, owner: Identity, change_type: ChangeType) -> int:
        """
        Offer a notification to every subscriber of `owner`.

        Returns the number of subscribers it was scheduled for.
        """
        note = ChangeNotification(change_type=ChangeType(change_type), owner_id=owner.id)
        with self._lock:
            targets = list(self._subs.get(owner.id, {}).values())

        delivered = 0
        for sub in targets:
            if self._deliver(sub, note):
                delivered += 1
            else:
                # Loop is gone: the subscriber can never consume again.
                self.unsubscribe(sub)

        logger.debug(
            "Published %s owner=%s to %d subscriber(s)", note.change_type.value, owner.id, delivered
        )
        return delivered

    def subscriber_count(self, owner: Identity | None = None) -> int:
        with self._lock:
            if owner is not None:
                return len(self._subs.get(owner.id, {}))
            return sum(len(s) for s in self._subs.values())

    def close(self) -> None:
        """Unsubscribe everyone (shutdown)."""
        with self._lock:
            everyone = [sub for owner_subs in self._subs.values() for sub in owner_subs.values()]
        for sub in everyone:
            self.unsubscribe(sub)

    @staticmethod
    def _deliver(sub: Subscription, note: ChangeNotification | None) -> bool:
        if sub.loop.is_closed():
            return False
        try:
            sub.loop.call_soon_threadsafe(_offer, sub, note)
        except RuntimeError:
            return False
        return True
