# tests/test_client_sync.py

from __future__ import annotations

import asyncio

import pytest

from tasksync.auth.gateway import AuthGateway
from tasksync.auth.providers import StaticIdentityProvider
from tasksync.core.errors import InvalidCredential, StoreError
from tasksync.core.state import AppState
from tasksync.realtime.change_bus import ChangeBus, ChangeType
from tasksync.realtime.client_sync import ClientSync, SyncState
from tasksync.tasks import task_api
from tasksync.tasks.task_models import TaskFilter, TaskUpdate
from tasksync.tasks.task_store import TaskStore

from .fakes import FlakyTaskRepo


def _sync(state: AppState, **kwargs) -> ClientSync:
    return ClientSync(state.gateway, state.task_store, state.bus, **kwargs)


@pytest.mark.asyncio
async def test_initial_load_and_state_machine(state: AppState) -> None:
    alice = state.gateway.verify("tok-alice")
    task_api.create_task(state, alice, title="existing")

    sync = _sync(state)
    assert sync.state is SyncState.UNINITIALIZED

    await sync.start("tok-alice")
    try:
        assert sync.state is SyncState.READY
        assert sync.identity == alice
        assert [t.title for t in sync.tasks] == ["existing"]
        assert sync.revision == 1
        assert state.bus.subscriber_count(alice) == 1
    finally:
        await sync.stop()

    assert sync.state is SyncState.UNINITIALIZED
    assert state.bus.subscriber_count(alice) == 0


@pytest.mark.asyncio
async def test_second_session_sees_first_sessions_create(state: AppState) -> None:
    s1 = _sync(state)
    s2 = _sync(state)

    async with s1.session("tok-alice"), s2.session("tok-alice"):
        assert s2.tasks == []
        rev = s2.revision

        # Session 1 writes; session 2 never calls anything explicitly.
        created = await asyncio.to_thread(
            task_api.create_task, state, s1.identity, title="Buy milk"
        )

        tasks = await s2.wait_for_revision(rev + 1, timeout=2.0)
        assert [t.id for t in tasks] == [created.id]
        assert s2.state is SyncState.READY

        await s1.wait_for_revision(rev + 1, timeout=2.0)
        assert [t.id for t in s1.tasks] == [created.id]


@pytest.mark.asyncio
async def test_other_owner_changes_do_not_reach_session(state: AppState) -> None:
    bob = state.gateway.verify("tok-bob")
    sync = _sync(state)

    async with sync.session("tok-alice"):
        rev = sync.revision
        task_api.create_task(state, bob, title="bob only")
        with pytest.raises(asyncio.TimeoutError):
            await sync.wait_for_revision(rev + 1, timeout=0.2)
        assert sync.tasks == []


@pytest.mark.asyncio
async def test_duplicate_notifications_are_idempotent(state: AppState) -> None:
    sync = _sync(state)
    async with sync.session("tok-alice"):
        alice = sync.identity
        task_api.create_task(state, alice, title="one")

        for _ in range(5):
            state.bus.publish(alice, ChangeType.UPDATED)

        await sync.wait_for_revision(2, timeout=2.0)
        await asyncio.sleep(0.05)
        assert [t.title for t in sync.tasks] == ["one"]
        assert sync.state is SyncState.READY


@pytest.mark.asyncio
async def test_failed_reconcile_keeps_last_good_cache(state: AppState, store: TaskStore) -> None:
    flaky = FlakyTaskRepo(store)
    alice = state.gateway.verify("tok-alice")
    store.create_task(alice, "cached")

    sync = ClientSync(state.gateway, flaky, state.bus)
    async with sync.session("tok-alice"):
        assert [t.title for t in sync.tasks] == ["cached"]

        flaky.fail_list = True
        await sync.reconcile()
        assert sync.state is SyncState.READY
        assert [t.title for t in sync.tasks] == ["cached"]
        assert sync.revision == 1

        flaky.fail_list = False
        store.create_task(alice, "fresh")
        await sync.reconcile()
        assert [t.title for t in sync.tasks] == ["fresh", "cached"]
        assert sync.revision == 2


@pytest.mark.asyncio
async def test_failed_initial_load_releases_subscription(state: AppState, store: TaskStore) -> None:
    flaky = FlakyTaskRepo(store)
    flaky.fail_list = True
    sync = ClientSync(state.gateway, flaky, state.bus)

    with pytest.raises(StoreError):
        await sync.start("tok-alice")

    assert state.bus.subscriber_count() == 0
    assert sync.state is SyncState.UNINITIALIZED
    assert sync.identity is None


@pytest.mark.asyncio
async def test_bad_credential_never_subscribes(state: AppState) -> None:
    sync = _sync(state)
    with pytest.raises(InvalidCredential):
        await sync.start("tok-mallory")
    assert state.bus.subscriber_count() == 0


@pytest.mark.asyncio
async def test_switch_identity_rebinds_session(state: AppState) -> None:
    alice = state.gateway.verify("tok-alice")
    bob = state.gateway.verify("tok-bob")
    task_api.create_task(state, alice, title="alice task")
    task_api.create_task(state, bob, title="bob task")

    sync = _sync(state)
    async with sync.session("tok-alice"):
        assert [t.title for t in sync.tasks] == ["alice task"]

        await sync.switch_identity("tok-bob")
        assert sync.identity == bob
        assert [t.title for t in sync.tasks] == ["bob task"]
        assert state.bus.subscriber_count(alice) == 0
        assert state.bus.subscriber_count(bob) == 1

    assert state.bus.subscriber_count() == 0


@pytest.mark.asyncio
async def test_on_change_callback_and_views(tmp_path) -> None:
    store = TaskStore(tmp_path / "t.sqlite3")
    bus = ChangeBus()

    gateway = AuthGateway(StaticIdentityProvider({"t": "u"}))
    seen: list[int] = []

    sync = ClientSync(gateway, store, bus, on_change=lambda tasks: seen.append(len(tasks)))
    async with sync.session("t"):
        u = sync.identity
        store.create_task(u, "Walk dog")
        done = store.create_task(u, "Buy milk")

        store.update_task(done.id, u, TaskUpdate(completed=True))
        await sync.reconcile()

        assert seen == [0, 2]
        assert [t.title for t in sync.view(status=TaskFilter.ACTIVE)] == ["Walk dog"]
        assert [t.title for t in sync.view(search="milk")] == ["Buy milk"]
        assert sync.stats().percent == 50


@pytest.mark.asyncio
async def test_slow_read_does_not_roll_back_newer_cache(state: AppState, store: TaskStore) -> None:
    repo = FlakyTaskRepo(store)
    sync = ClientSync(state.gateway, repo, state.bus)

    async with sync.session("tok-alice"):
        assert sync.tasks == []

        # A manual reconcile snapshots the empty list and stalls.
        release = repo.hold_next_list()
        slow = asyncio.create_task(sync.reconcile())
        assert await asyncio.to_thread(repo.holding.wait, 2.0)

        # Meanwhile another session writes; the notification-driven read lands first.
        await asyncio.to_thread(task_api.create_task, state, sync.identity, title="new")
        await sync.wait_for_revision(2, timeout=2.0)
        assert [t.title for t in sync.tasks] == ["new"]

        release.set()
        await slow

        assert [t.title for t in sync.tasks] == ["new"]
        assert sync.revision == 2
        assert sync.state is SyncState.READY
