"""
Handles authentication with the Spotify Web API using the client-credentials flow,
including caching and refreshing the bearer credential.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import aiohttp

from tunefetch.exceptions import AuthError

if TYPE_CHECKING:
    from .client import CatalogClient

log = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credential:
    """A bearer credential issued by the catalog's token endpoint."""

    access_token: str
    token_type: str
    expires_at_ms: int

    def is_valid(self, now_ms: int) -> bool:
        return now_ms < self.expires_at_ms

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


class TokenManager:
    """
    Owns the single cached credential for the catalog client.

    `acquire_token` is safe to call from many tasks at once: only one refresh
    runs at a time and callers queued behind it reuse the fresh credential.
    """

    def __init__(
        self,
        api_client: "CatalogClient",
        client_id: str,
        client_secret: str,
        token_url: str = TOKEN_URL,
        timeout: float = 5.0,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Initializes the token manager.

        Args:
            api_client: The catalog client whose HTTP session is used.
            client_id: Spotify application client id.
            client_secret: Spotify application client secret.
            token_url: Token endpoint URL.
            timeout: Total timeout of the exchange, in seconds.
            clock: Returns the current time in epoch milliseconds.
        """
        self._api_client = api_client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def refresh_count(self) -> int:
        """Number of token exchanges performed so far."""
        return self._refresh_count

    async def acquire_token(self) -> Credential:
        """
        Returns a valid credential, exchanging client credentials when the cache
        is empty or expired.

        Raises:
            AuthError: If credentials are missing or the exchange fails.
        """
        credential = self._credential
        if credential and credential.is_valid(self._clock()):
            return credential

        async with self._refresh_lock:
            # Another task may have refreshed while we waited for the lock
            credential = self._credential
            if credential and credential.is_valid(self._clock()):
                return credential

            credential = await self._exchange()
            self._credential = credential
            return credential

    async def _exchange(self) -> Credential:
        if not self._client_id or not self._client_secret:
            raise AuthError("Invalid client credentials: client id or secret missing.")

        basic = base64.b64encode(
            f"{self._client_id}:{self._client_secret}".encode("utf-8")
        ).decode("ascii")
        headers = {
            "Authorization": f"Basic {basic}",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        log.debug("Requesting a new catalog access token...")
        session = await self._api_client.get_session()
        requested_at = self._clock()
        try:
            async with session.post(
                self._token_url,
                data={"grant_type": "client_credentials"},
                headers=headers,
                timeout=self._timeout,
            ) as r:
                if r.status != 200:
                    raise AuthError(f"Token exchange failed with HTTP {r.status}.")
                payload = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise AuthError(f"Token exchange failed: {str(e) or type(e).__name__}") from e

        try:
            credential = Credential(
                access_token=payload["access_token"],
                token_type=payload.get("token_type", "Bearer"),
                expires_at_ms=requested_at + int(payload["expires_in"]) * 1000,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise AuthError("Token endpoint returned an unexpected payload.") from e

        self._refresh_count += 1
        log.debug(
            f"Obtained catalog token (expires in {payload['expires_in']}s, "
            f"refresh #{self._refresh_count})."
        )
        return credential
