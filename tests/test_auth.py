"""Tests for the client-credentials token manager."""

import asyncio

import pytest
from fakes import CLIENT_ID, CLIENT_SECRET, FakeServices

from tunefetch.api.auth import Credential, TokenManager
from tunefetch.api.client import CatalogClient
from tunefetch.exceptions import AuthError


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
async def client(services: FakeServices):
    """Catalog client pointed at the fake services."""
    catalog = CatalogClient(
        CLIENT_ID, CLIENT_SECRET, api_base=services.api_base, token_url=services.token_url
    )
    yield catalog
    await catalog.close()


def make_manager(
    client: CatalogClient,
    services: FakeServices,
    clock: FakeClock,
    client_id: str = CLIENT_ID,
    client_secret: str = CLIENT_SECRET,
) -> TokenManager:
    return TokenManager(
        client, client_id, client_secret, token_url=services.token_url, clock=clock
    )


class TestCredential:
    """Test Credential helpers."""

    def test_validity_window(self) -> None:
        """Test a credential is valid strictly before its expiry."""
        credential = Credential("abc", "Bearer", expires_at_ms=2000)
        assert credential.is_valid(1999)
        assert not credential.is_valid(2000)
        assert credential.authorization_header == "Bearer abc"


class TestTokenManager:
    """Test token acquisition, caching and refresh."""

    async def test_token_is_reused_while_valid(
        self, client: CatalogClient, services: FakeServices
    ) -> None:
        """Test consecutive acquisitions before expiry share one exchange."""
        clock = FakeClock()
        manager = make_manager(client, services, clock)

        first = await manager.acquire_token()
        clock.now_ms += 60_000
        second = await manager.acquire_token()

        assert first is second
        assert first.access_token == "token-1"
        assert first.expires_at_ms == 1_000_000 + 3600 * 1000
        assert services.token_requests == 1
        assert manager.refresh_count == 1

    async def test_refresh_after_expiry(
        self, client: CatalogClient, services: FakeServices
    ) -> None:
        """Test exactly one new exchange happens once the token expired."""
        clock = FakeClock()
        manager = make_manager(client, services, clock)

        await manager.acquire_token()
        clock.now_ms += 3600 * 1000
        refreshed = await manager.acquire_token()
        again = await manager.acquire_token()

        assert refreshed.access_token == "token-2"
        assert again is refreshed
        assert services.token_requests == 2

    async def test_concurrent_callers_share_one_refresh(
        self, client: CatalogClient, services: FakeServices
    ) -> None:
        """Test simultaneous callers wait for a single exchange."""
        services.token_delay = 0.05
        manager = make_manager(client, services, FakeClock())

        credentials = await asyncio.gather(
            *(manager.acquire_token() for _ in range(10))
        )

        assert services.token_requests == 1
        assert len({c.access_token for c in credentials}) == 1

    async def test_rejected_credentials(
        self, client: CatalogClient, services: FakeServices
    ) -> None:
        """Test a non-200 answer raises AuthError."""
        manager = make_manager(client, services, FakeClock(), client_secret="wrong")

        with pytest.raises(AuthError, match="HTTP 401"):
            await manager.acquire_token()

    async def test_missing_credentials_make_no_request(
        self, client: CatalogClient, services: FakeServices
    ) -> None:
        """Test empty credentials fail before contacting the endpoint."""
        manager = make_manager(client, services, FakeClock(), client_id="")

        with pytest.raises(AuthError, match="missing"):
            await manager.acquire_token()
        assert services.token_requests == 0

    async def test_unreachable_endpoint(self) -> None:
        """Test transport failures surface as AuthError."""
        catalog = CatalogClient(
            CLIENT_ID, CLIENT_SECRET, token_url="http://127.0.0.1:1/api/token"
        )
        try:
            with pytest.raises(AuthError):
                await catalog.token_manager.acquire_token()
        finally:
            await catalog.close()
