# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (identity provider, store, guard, bus).
"""

from __future__ import annotations

import logging

from ..auth.gateway import AuthGateway
from ..auth.providers import StaticIdentityProvider, SupabaseIdentityProvider, parse_static_tokens
from ..config import get_settings
from ..core.ports import IdentityProvider
from ..core.state import AppState
from ..realtime.change_bus import ChangeBus
from ..tasks.guard import AuthorizationGuard
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_identity_provider(settings) -> IdentityProvider:
    kind = str(getattr(settings, "auth_provider", "static") or "static").lower()

    if kind == "supabase":
        return SupabaseIdentityProvider(
            settings.supabase_url,
            settings.supabase_service_role_key or "",
            timeout_seconds=float(getattr(settings, "auth_timeout_seconds", 5.0)),
        )

    if kind == "static":
        tokens = parse_static_tokens(list(getattr(settings, "static_tokens", []) or []))
        if not tokens:
            logger.warning(
                "Static identity provider has no tokens; every request will be rejected. "
                "Set TASKSYNC_STATIC_TOKENS=token=user_id,..."
            )
        return StaticIdentityProvider(tokens)

    raise RuntimeError(f"Unknown identity provider: {kind!r} (expected 'supabase' or 'static').")


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path)
    return AppState(
        settings=settings,
        gateway=AuthGateway(create_identity_provider(settings)),
        task_store=store,
        guard=AuthorizationGuard(store),
        bus=ChangeBus(max_pending=int(getattr(settings, "bus_queue_size", 64))),
    )


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.bus.close()
    except Exception:
        logger.debug("ChangeBus close failed.", exc_info=True)

    try:
        state.gateway.close()
    except Exception:
        logger.debug("Identity provider close failed.", exc_info=True)
