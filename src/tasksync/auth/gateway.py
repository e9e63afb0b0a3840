# src/tasksync/auth/gateway.py

from __future__ import annotations

import logging

from ..core.errors import AuthError, MissingCredential, ProviderUnavailable
from ..core.ports import IdentityProvider
from .identity import Identity

logger = logging.getLogger(__name__)


def bearer_token(header: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class AuthGateway:
    """
    Stateless "credential -> Identity" front door.

    Every other component receives an already-resolved Identity, never a raw
    credential.
    """

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    def close(self) -> None:
        """Release provider resources (HTTP connection pool), if any."""
        close = getattr(self._provider, "close", None)
        if callable(close):
            close()

    def verify(self, credential: str | None) -> Identity:
        if credential is None or not credential.strip():
            raise MissingCredential()

        try:
            identity = self._provider.fetch_identity(credential.strip())
        except AuthError:
            raise
        except Exception as e:
            # Provider bugs count as an unavailable provider, not a bad token.
            logger.exception("Identity provider crashed.")
            raise ProviderUnavailable() from e

        logger.debug("Credential verified user=%s", identity.id)
        return identity

    def verify_header(self, authorization: str | None) -> Identity:
        if not authorization or not authorization.strip():
            raise MissingCredential()
        token = bearer_token(authorization)
        if token is None:
            raise MissingCredential("Authorization header must be 'Bearer <token>'")
        return self.verify(token)
