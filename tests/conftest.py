# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.auth.gateway import AuthGateway
from tasksync.auth.identity import Identity
from tasksync.auth.providers import StaticIdentityProvider
from tasksync.core.state import AppState
from tasksync.realtime.change_bus import ChangeBus
from tasksync.tasks.guard import AuthorizationGuard
from tasksync.tasks.task_store import TaskStore

TOKENS = {"tok-alice": "alice", "tok-bob": "bob"}


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the connectors.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        http_host="127.0.0.1",
        http_port=0,
        cors_origin="*",
        auth_provider="static",
        static_tokens=[f"{k}={v}" for k, v in TOKENS.items()],
        bus_queue_size=8,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def gateway() -> AuthGateway:
    return AuthGateway(StaticIdentityProvider(TOKENS))


@pytest.fixture()
def alice() -> Identity:
    return Identity(id="alice")


@pytest.fixture()
def bob() -> Identity:
    return Identity(id="bob")


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, gateway: AuthGateway) -> AppState:
    """
    AppState wired with a real SQLite store (its correctness is part of what we
    test) and the static identity provider.
    """
    return AppState(
        settings=settings,
        gateway=gateway,
        task_store=store,
        guard=AuthorizationGuard(store),
        bus=ChangeBus(max_pending=settings.bus_queue_size),
    )
