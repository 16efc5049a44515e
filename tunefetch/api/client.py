"""
Async client for the Spotify Web API playlist endpoints.
"""

import asyncio
import logging
import time
from typing import Any, AsyncGenerator, Dict, List, Optional

import aiohttp

from tunefetch.exceptions import MalformedResponseError
from tunefetch.models.stats import DownloadStats
from tunefetch.models.track import TrackDescriptor
from tunefetch.utils.path import extract_playlist_id

from .auth import TOKEN_URL, TokenManager
from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)


def parse_track_item(item: Any) -> Optional[TrackDescriptor]:
    """
    Builds a TrackDescriptor from one playlist item, or returns None when the
    item lacks a usable name or artist list (local files, removed tracks, ...).
    """
    if not isinstance(item, dict):
        return None
    track = item.get("track")
    if not isinstance(track, dict):
        return None

    name = track.get("name")
    artists = track.get("artists")
    if not isinstance(name, str) or not name.strip() or not isinstance(artists, list):
        return None

    artist_names = [
        a["name"]
        for a in artists
        if isinstance(a, dict) and isinstance(a.get("name"), str) and a["name"].strip()
    ]
    if not artist_names:
        return None
    return TrackDescriptor(title=name, artists=tuple(artist_names))


class CatalogClient:
    """
    Resolves playlist URLs into ordered track lists.

    Features:
    - Client-credentials authentication with a cached, lock-guarded token
    - Cursor-based pagination following the `next` link
    - Rate limiting with Retry-After support
    """

    API_BASE = "https://api.spotify.com/v1"
    MAX_RATE_LIMIT_RETRIES = 3

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        request_timeout: float = 5.0,
        api_base: str = API_BASE,
        token_url: str = TOKEN_URL,
        token_manager: Optional[TokenManager] = None,
    ):
        """
        Initializes the API client.

        Args:
            client_id: Spotify application client id.
            client_secret: Spotify application client secret.
            request_timeout: Total timeout of each metadata request, in seconds.
            api_base: Base URL of the Web API.
            token_url: Token endpoint URL.
            token_manager: Overrides the token manager built from the credentials.
        """
        self.api_base = api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = AdaptiveRateLimiter()
        self._token_manager = token_manager or TokenManager(
            self, client_id, client_secret, token_url=token_url, timeout=request_timeout
        )

    @property
    def token_manager(self) -> TokenManager:
        """Provides access to the credential cache."""
        return self._token_manager

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def api_call(self, url: str) -> Dict[str, Any]:
        """
        Makes an authenticated GET request and returns the decoded JSON object.

        Raises:
            MalformedResponseError: On error statuses, undecodable bodies, or
            repeated rate limiting.
        """
        session = await self.get_session()

        for attempt in range(1, self.MAX_RATE_LIMIT_RETRIES + 2):
            credential = await self._token_manager.acquire_token()
            await self._rate_limiter.acquire()

            start_time = time.monotonic()
            try:
                async with session.get(
                    url,
                    headers={"Authorization": credential.authorization_header},
                    timeout=self._timeout,
                ) as r:
                    duration_ms = (time.monotonic() - start_time) * 1000
                    log.debug(f"GET {url} -> {r.status} ({duration_ms:.0f} ms)")

                    if r.status == 429:
                        if attempt > self.MAX_RATE_LIMIT_RETRIES:
                            break
                        await self._rate_limiter.on_429(r.headers.get("Retry-After"))
                        continue

                    try:
                        body = await r.json(content_type=None)
                    except ValueError as e:
                        raise MalformedResponseError(
                            f"Catalog returned a non-JSON body (HTTP {r.status})."
                        ) from e

                    if r.status >= 400:
                        message = _error_message(body) or r.reason
                        raise MalformedResponseError(
                            f"Catalog request failed with HTTP {r.status}: {message}"
                        )
                    if not isinstance(body, dict):
                        raise MalformedResponseError(
                            "Catalog returned an unexpected JSON document."
                        )
                    return body
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.debug(f"Catalog call to {url} failed: {e!r}")
                raise MalformedResponseError(
                    f"Catalog request failed: {str(e) or type(e).__name__}"
                ) from e

        raise MalformedResponseError("Catalog kept rate limiting the request.")

    async def iter_playlist_pages(
        self, playlist_id: str
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Yields each page of a playlist's tracks, following the `next` cursor
        until it is empty.
        """
        next_url: Optional[str] = f"{self.api_base}/playlists/{playlist_id}/tracks"
        page_number = 0

        while next_url:
            page = await self.api_call(next_url)
            page_number += 1

            if not isinstance(page.get("items"), list):
                raise MalformedResponseError(
                    f"Page {page_number} of playlist {playlist_id} has no items list."
                )

            yield page
            next_url = page.get("next") or None

    async def resolve_playlist(
        self, url: str, stats: Optional[DownloadStats] = None
    ) -> List[TrackDescriptor]:
        """
        Resolves a playlist URL into its tracks, in catalog order.

        Items without a usable title or artists are skipped and counted.
        """
        playlist_id = extract_playlist_id(url)
        log.info(f"Resolving playlist [cyan]{playlist_id}[/cyan]...")

        tracks: List[TrackDescriptor] = []
        skipped = 0
        async for page in self.iter_playlist_pages(playlist_id):
            for item in page["items"]:
                track = parse_track_item(item)
                if track is None:
                    skipped += 1
                    continue
                tracks.append(track)

        if skipped:
            log.warning(
                f"[yellow]Skipped {skipped} playlist item(s) without a usable "
                "title or artist.[/yellow]"
            )
        if stats is not None:
            stats.tracks_resolved += len(tracks)
            stats.catalog_items_skipped += skipped

        log.info(f"Resolved {len(tracks)} track(s).")
        return tracks


def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return body.get("error_description") or error
    return None
