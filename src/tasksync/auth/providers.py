# src/tasksync/auth/providers.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.errors import InvalidCredential, ProviderUnavailable
from .identity import Identity

logger = logging.getLogger(__name__)


class SupabaseIdentityProvider:
    """
    Resolve a bearer token through a Supabase-compatible auth endpoint.

    GET {base_url}/auth/v1/user
      Authorization: Bearer <token>
      apikey: <service key>

    Outcome mapping:
    - 200 with a user id       -> Identity
    - 401 / 403 / 200 w/o user -> InvalidCredential
    - anything else, transport errors and timeouts -> ProviderUnavailable

    No retries: a provider failure is terminal for the request.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise RuntimeError("Identity provider URL is not set. Set TASKSYNC_SUPABASE_URL in your .env.")
        if not api_key or not api_key.strip():
            raise RuntimeError(
                "Identity provider key is not set. Set TASKSYNC_SUPABASE_SERVICE_ROLE_KEY in your .env."
            )

        self._user_url = base_url.rstrip("/") + "/auth/v1/user"
        self._client = httpx.Client(
            headers={"apikey": api_key},
            timeout=httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 5.0)),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def fetch_identity(self, token: str) -> Identity:
        try:
            resp = self._client.get(self._user_url, headers={"Authorization": f"Bearer {token}"})
        except httpx.TimeoutException as e:
            logger.warning("Identity provider timed out: %s", e.__class__.__name__)
            raise ProviderUnavailable("Identity provider timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Identity provider request failed: %s", e.__class__.__name__)
            raise ProviderUnavailable() from e

        if resp.status_code in (401, 403):
            raise InvalidCredential()

        if resp.status_code != 200:
            logger.warning("Identity provider answered status=%s", resp.status_code)
            raise ProviderUnavailable(f"Identity provider error (status {resp.status_code})")

        try:
            data: Any = resp.json()
        except ValueError as e:
            raise ProviderUnavailable("Identity provider returned malformed JSON") from e

        # Some deployments wrap the user object: {"user": {...}}.
        if isinstance(data, Mapping) and isinstance(data.get("user"), Mapping):
            data = data["user"]

        user_id = data.get("id") if isinstance(data, Mapping) else None
        if not user_id:
            raise InvalidCredential()

        email = data.get("email")
        return Identity(id=str(user_id), email=str(email) if email else None)


class StaticIdentityProvider:
    """
    Fixed token -> user id table.

    Used for local demos and tests when no external provider is configured.
    """

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = {str(k): str(v) for k, v in tokens.items() if k and v}

    def fetch_identity(self, token: str) -> Identity:
        user_id = self._tokens.get(token)
        if user_id is None:
            raise InvalidCredential()
        return Identity(id=user_id)


def parse_static_tokens(items: list[str]) -> dict[str, str]:
    """Parse ["token=user", ...] (invalid entries are skipped)."""
    out: dict[str, str] = {}
    for item in items:
        token, sep, user_id = item.partition("=")
        if not sep or not token.strip() or not user_id.strip():
            logger.warning("Ignoring malformed static token entry (expected token=user_id).")
            continue
        out[token.strip()] = user_id.strip()
    return out
