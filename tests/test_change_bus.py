# tests/test_change_bus.py

from __future__ import annotations

import asyncio
import threading

import pytest

from tasksync.auth.identity import Identity
from tasksync.realtime.change_bus import ChangeBus, ChangeType

ALICE = Identity(id="alice")
BOB = Identity(id="bob")


@pytest.mark.asyncio
async def test_notifications_are_per_owner() -> None:
    bus = ChangeBus()
    a1 = bus.subscribe(ALICE)
    a2 = bus.subscribe(ALICE)
    b = bus.subscribe(BOB)

    assert bus.publish(ALICE, ChangeType.CREATED) == 2

    n1 = await asyncio.wait_for(a1.get(), 1.0)
    n2 = await asyncio.wait_for(a2.get(), 1.0)
    assert n1 is not None and n1.owner_id == "alice" and n1.change_type is ChangeType.CREATED
    assert n2 == n1
    await asyncio.sleep(0)
    assert b.queue.empty()


@pytest.mark.asyncio
async def test_unsubscribe_ends_stream_and_is_idempotent() -> None:
    bus = ChangeBus()
    sub = bus.subscribe(ALICE)
    bus.publish(ALICE, ChangeType.UPDATED)
    bus.unsubscribe(sub)
    bus.unsubscribe(sub)

    received = [note.change_type async for note in sub]
    # The close marker replaces whatever was still pending.
    assert received == []
    assert bus.subscriber_count(ALICE) == 0
    assert bus.publish(ALICE, ChangeType.UPDATED) == 0


@pytest.mark.asyncio
async def test_full_queue_coalesces_instead_of_blocking() -> None:
    bus = ChangeBus(max_pending=2)
    sub = bus.subscribe(ALICE)
    for _ in range(10):
        bus.publish(ALICE, ChangeType.UPDATED)
    await asyncio.sleep(0)

    assert sub.queue.qsize() == 2
    first = await sub.get()
    assert first is not None
    assert sub.drain() == 1


@pytest.mark.asyncio
async def test_publish_from_other_threads() -> None:
    bus = ChangeBus()
    sub = bus.subscribe(ALICE)

    threads = [
        threading.Thread(target=bus.publish, args=(ALICE, ChangeType.CREATED)) for _ in range(5)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for _ in range(5):
        note = await asyncio.wait_for(sub.get(), 1.0)
        assert note is not None and note.owner_id == "alice"


@pytest.mark.asyncio
async def test_concurrent_subscribe_and_publish() -> None:
    bus = ChangeBus()
    stop = threading.Event()

    def spam() -> None:
        while not stop.is_set():
            bus.publish(ALICE, ChangeType.UPDATED)

    publisher = threading.Thread(target=spam)
    publisher.start()
    try:
        for _ in range(50):
            sub = bus.subscribe(ALICE)
            await asyncio.sleep(0)
            bus.unsubscribe(sub)
    finally:
        stop.set()
        publisher.join()

    assert bus.subscriber_count() == 0


def test_subscribers_on_closed_loops_are_dropped() -> None:
    bus = ChangeBus()

    async def register():
        return bus.subscribe(ALICE)

    loop = asyncio.new_event_loop()
    loop.run_until_complete(register())
    loop.close()

    assert bus.subscriber_count(ALICE) == 1
    assert bus.publish(ALICE, ChangeType.DELETED) == 0
    assert bus.subscriber_count(ALICE) == 0


@pytest.mark.asyncio
async def test_close_unsubscribes_everyone() -> None:
    bus = ChangeBus()
    bus.subscribe(ALICE)
    bus.subscribe(BOB)
    bus.close()
    assert bus.subscriber_count() == 0
