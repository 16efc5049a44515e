"""
Matches catalog tracks to YouTube videos using the Data API v3 search endpoint.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
from rich.markup import escape

from tunefetch.exceptions import MatchServiceError, NoMatchFoundError, TrackError
from tunefetch.models.track import MatchedTrack, TrackDescriptor

log = logging.getLogger(__name__)

MUSIC_CATEGORY_ID = "10"


class MatchResolver:
    """
    Finds one video per track. The search service's own ranking is trusted:
    the first result is the match.
    """

    SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"

    def __init__(
        self,
        api_key: str,
        request_timeout: float = 5.0,
        search_url: str = SEARCH_URL,
        max_concurrent: int = 5,
    ):
        """
        Args:
            api_key: YouTube Data API key.
            request_timeout: Total timeout of each search request, in seconds.
            search_url: Search endpoint URL.
            max_concurrent: Maximum number of searches in flight in `match_all`.
        """
        self.api_key = api_key
        self.search_url = search_url
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def _initialize_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _build_params(self, query: str) -> Dict[str, str]:
        return {
            "part": "snippet",
            "q": query,
            "type": "video",
            "maxResults": "1",
            "videoCategoryId": MUSIC_CATEGORY_ID,
            "key": self.api_key,
        }

    async def resolve_match(self, track: TrackDescriptor) -> MatchedTrack:
        """
        Searches for `track` and returns it paired with the first video found.

        Raises:
            NoMatchFoundError: If the search returns no videos.
            MatchServiceError: If the service reports an error or cannot be reached.
        """
        session = await self._initialize_session()
        query = track.search_query

        try:
            async with session.get(
                self.search_url, params=self._build_params(query), timeout=self._timeout
            ) as r:
                try:
                    data: Any = await r.json(content_type=None)
                except ValueError:
                    data = None

                if r.status >= 400:
                    raise MatchServiceError(
                        _service_message(data) or f"Search failed with HTTP {r.status}."
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MatchServiceError(
                f"Search request failed: {str(e) or type(e).__name__}"
            ) from e

        if not isinstance(data, dict):
            raise MatchServiceError("Search returned an unexpected response.")

        items = data.get("items") or []
        if not items:
            raise NoMatchFoundError(f"No videos found for '{query}'.")

        video_id = _video_id(items[0])
        if not video_id:
            raise MatchServiceError("Search result carries no video id.")

        log.debug(f"Matched '{query}' to video {video_id}")
        return MatchedTrack(track=track, external_video_id=video_id)

    async def match_all(self, tracks: Sequence[TrackDescriptor]) -> List[MatchedTrack]:
        """
        Matches every track with bounded concurrency. Failed matches are kept in
        place, carrying their error, so the result lines up with `tracks`.
        """
        if not tracks:
            return []

        log.info(f"Searching videos for {len(tracks)} track(s)...")

        async def match_single(track: TrackDescriptor) -> MatchedTrack:
            async with self.semaphore:
                try:
                    return await self.resolve_match(track)
                except TrackError as e:
                    if isinstance(e, NoMatchFoundError):
                        log.warning(
                            f"[yellow]○ No match:[/] {escape(track.display_name)}"
                        )
                    else:
                        log.error(
                            f"[red]✗ Search failed:[/] {escape(track.display_name)} ({e})"
                        )
                    return MatchedTrack(track=track, match_error=e)

        matched = await asyncio.gather(*(match_single(t) for t in tracks))

        found = sum(1 for m in matched if m.is_matched)
        log.info(
            f"Found {found}/{len(tracks)} matching videos "
            f"({found / len(tracks) * 100:.0f}%)."
        )
        return list(matched)


def _service_message(data: Any) -> Optional[str]:
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"].get("message")
    return None


def _video_id(item: Any) -> Optional[str]:
    if isinstance(item, dict) and isinstance(item.get("id"), dict):
        return item["id"].get("videoId")
    return None
