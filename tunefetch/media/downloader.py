"""
Handles the low-level downloading of converted audio files over HTTP.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import aiohttp
from rich.markup import escape

from tunefetch.exceptions import DownloadError
from tunefetch.models.track import MatchedTrack
from tunefetch.utils.path import build_track_filename, create_dir

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_connections: int = 8) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections,
            ttl_dns_cache=600,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug(f"Created download pool with limit={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class Downloader:
    """
    Saves converted tracks as `<title> - <artists>.mp3` in the output directory.

    Data is streamed into a private `.part` file that replaces the final file
    only once complete, so an interrupted download never leaves a truncated song.
    Saves sharing a target path, such as a song listed twice in a playlist, run
    one at a time.
    """

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        output_dir: Path,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_connections: int = 8,
    ):
        self.output_dir = Path(output_dir)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_connections = max_connections
        self._path_locks: Dict[Path, asyncio.Lock] = {}

    def target_path(self, track: MatchedTrack) -> Path:
        return self.output_dir / build_track_filename(
            track.title, track.track.artist_string
        )

    async def save(self, track: MatchedTrack) -> Path:
        """
        Downloads the track's converted file and returns its path.

        Raises:
            DownloadError: On a non-success status, or when every attempt failed
            at the network level.
        """
        if not track.download_url:
            raise DownloadError(f"'{track.display_name}' has no download URL.")

        create_dir(self.output_dir)
        final_path = self.target_path(track)
        temp_path = final_path.with_name(
            f"{final_path.name}.{uuid.uuid4().hex[:8]}.part"
        )
        lock = self._path_locks.setdefault(final_path, asyncio.Lock())

        async with lock:
            try:
                size = await self._download_with_retries(track.download_url, temp_path)
                os.replace(temp_path, final_path)
            finally:
                if temp_path.exists():
                    try:
                        os.remove(temp_path)
                    except OSError:
                        pass

        log.info(
            f"  [green]✓ Saved:[/] [dim]{escape(final_path.name)}[/dim] "
            f"({size // 1024} KB)"
        )
        return final_path

    async def _download_with_retries(self, url: str, destination: Path) -> int:
        last_exception: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._stream(url, destination)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{destination.name}' failed: {e!r}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise DownloadError(
            f"Download failed after {self.max_attempts} attempts: "
            f"{str(last_exception) or type(last_exception).__name__}"
        ) from last_exception

    async def _stream(self, url: str, destination: Path) -> int:
        session = await get_connection_pool(self.max_connections)
        async with session.get(url, allow_redirects=True) as response:
            if response.status >= 400:
                raise DownloadError(
                    f"Download server answered HTTP {response.status}."
                )

            bytes_downloaded = 0
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
            return bytes_downloaded
