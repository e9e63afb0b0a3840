# tests/test_auth.py

from __future__ import annotations

import httpx
import pytest

from tasksync.auth.gateway import AuthGateway, bearer_token
from tasksync.auth.providers import StaticIdentityProvider, SupabaseIdentityProvider, parse_static_tokens
from tasksync.core.errors import InvalidCredential, MissingCredential, ProviderUnavailable

from .fakes import RecordingProvider


def test_bearer_token_parsing() -> None:
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer   abc  ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer") is None
    assert bearer_token(None) is None


def test_gateway_missing_and_invalid_credentials() -> None:
    provider = RecordingProvider(users={"good": "alice"})
    gw = AuthGateway(provider)

    with pytest.raises(MissingCredential):
        gw.verify(None)
    with pytest.raises(MissingCredential):
        gw.verify("   ")
    with pytest.raises(MissingCredential):
        gw.verify_header(None)
    with pytest.raises(MissingCredential):
        gw.verify_header("Token good")
    with pytest.raises(InvalidCredential):
        gw.verify_header("Bearer bad")

    assert gw.verify_header("Bearer good").id == "alice"
    # Blank credentials never reach the provider.
    assert provider.seen == ["bad", "good"]


def test_gateway_maps_provider_crash_to_unavailable() -> None:
    gw = AuthGateway(RecordingProvider(users={}, error=KeyError("boom")))
    with pytest.raises(ProviderUnavailable):
        gw.verify("anything")

    gw2 = AuthGateway(RecordingProvider(users={}, error=ProviderUnavailable()))
    with pytest.raises(ProviderUnavailable):
        gw2.verify("anything")


def test_static_provider_and_token_parsing() -> None:
    tokens = parse_static_tokens(["t1=alice", "broken", "=nobody", "t2 = bob"])
    assert tokens == {"t1": "alice", "t2": "bob"}

    provider = StaticIdentityProvider(tokens)
    assert provider.fetch_identity("t1").id == "alice"
    with pytest.raises(InvalidCredential):
        provider.fetch_identity("t3")


def _provider(handler) -> SupabaseIdentityProvider:
    return SupabaseIdentityProvider(
        "https://auth.example.test/",
        "service-key",
        transport=httpx.MockTransport(handler),
    )


def test_supabase_provider_resolves_user() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"id": "user-1", "email": "u@example.test"})

    identity = _provider(handler).fetch_identity("jwt-token")

    assert identity.id == "user-1"
    assert identity.email == "u@example.test"
    assert seen == {
        "url": "https://auth.example.test/auth/v1/user",
        "auth": "Bearer jwt-token",
        "apikey": "service-key",
    }


@pytest.mark.parametrize("status", [401, 403])
def test_supabase_provider_rejects_bad_token(status: int) -> None:
    provider = _provider(lambda request: httpx.Response(status, json={"msg": "invalid JWT"}))
    with pytest.raises(InvalidCredential):
        provider.fetch_identity("expired")


def test_supabase_provider_without_user_is_invalid() -> None:
    provider = _provider(lambda request: httpx.Response(200, json={"user": None}))
    with pytest.raises(InvalidCredential):
        provider.fetch_identity("t")


def test_supabase_provider_unavailable_on_server_or_transport_error() -> None:
    with pytest.raises(ProviderUnavailable):
        _provider(lambda request: httpx.Response(502, text="bad gateway")).fetch_identity("t")

    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderUnavailable):
        _provider(timeout).fetch_identity("t")

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderUnavailable):
        _provider(refused).fetch_identity("t")


def test_supabase_provider_requires_configuration() -> None:
    with pytest.raises(RuntimeError):
        SupabaseIdentityProvider("", "key")
    with pytest.raises(RuntimeError):
        SupabaseIdentityProvider("https://auth.example.test", "")
