"""
The main orchestrator for a playlist run: resolves the playlist, matches its
tracks to videos and hands them to the acquisition stage.
"""

import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional

from tunefetch.api.client import CatalogClient
from tunefetch.api.search import MatchResolver
from tunefetch.media.downloader import Downloader
from tunefetch.models.config import DownloadConfig
from tunefetch.models.stats import DownloadStats
from tunefetch.models.track import AcquisitionResult, MatchedTrack
from tunefetch.storage.snapshot import write_snapshot
from tunefetch.web.browser import ConversionBrowser
from tunefetch.web.converter import ConversionSession

from .acquisition import AcquisitionOrchestrator

if TYPE_CHECKING:
    from tunefetch.cli.progress_manager import ProgressManager

log = logging.getLogger(__name__)


class DownloadManager:
    """Orchestrates the entire download process for one playlist."""

    def __init__(
        self,
        config: DownloadConfig,
        catalog: CatalogClient,
        matcher: MatchResolver,
        downloader: Optional[Downloader] = None,
        progress_manager: Optional["ProgressManager"] = None,
        browser_factory: Optional[Callable[[], ConversionBrowser]] = None,
        session_factory: Callable = ConversionSession,
    ):
        self.config = config
        self.catalog = catalog
        self.matcher = matcher
        self.downloader = downloader or Downloader(Path(config.output_dir))
        self.progress_manager = progress_manager
        self.browser_factory = browser_factory or (
            lambda: ConversionBrowser(headless=config.headless)
        )
        self.session_factory = session_factory
        self.stats = DownloadStats()
        self.start_time = time.monotonic()

    def save_session_stats(self) -> None:
        """Appends the current run's stats to a history file next to the config."""
        if not self.config.config_path:
            return
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            stats_file.parent.mkdir(parents=True, exist_ok=True)
            with open(stats_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "tracks_resolved": self.stats.tracks_resolved,
                    "tracks_downloaded": self.stats.tracks_downloaded,
                    "tracks_not_found": self.stats.tracks_not_found,
                    "tracks_failed": self.stats.tracks_failed,
                    "conversion_retries": self.stats.conversion_retries,
                    "total_size_downloaded": self.stats.total_size_downloaded,
                    "duration_seconds": round(time.monotonic() - self.start_time, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")

    async def resolve_only(self, url: str, match: bool = True) -> List[MatchedTrack]:
        """Resolves (and optionally matches) a playlist without converting it."""
        tracks = await self.catalog.resolve_playlist(url, self.stats)
        if match:
            matched = await self.matcher.match_all(tracks)
        else:
            matched = [MatchedTrack(track=t) for t in tracks]
        self._write_snapshot(matched)
        return matched

    async def execute(self, url: str) -> List[AcquisitionResult]:
        """
        Runs the full pipeline for a playlist URL and returns one result per
        resolved track.

        Fatal errors (invalid URL, authentication, malformed catalog responses)
        propagate. Per-track failures are reported in the results.
        """
        tracks = await self.catalog.resolve_playlist(url, self.stats)
        if not tracks:
            log.warning("[yellow]The playlist has no downloadable tracks.[/yellow]")
            return []

        matched = await self.matcher.match_all(tracks)
        self._write_snapshot(matched)

        if self.progress_manager:
            self.progress_manager.initialize_session(total_tracks=len(matched))

        if not any(m.is_matched for m in matched):
            log.warning("[yellow]No track could be matched to a video.[/yellow]")
            results = [AcquisitionResult.unmatched(m) for m in matched]
            for result in results:
                self.stats.record(result)
            return results

        async with self.browser_factory() as browser:
            orchestrator = AcquisitionOrchestrator(
                browser,
                self.downloader,
                self.config.converter,
                concurrency=self.config.concurrency,
                max_attempts=self.config.max_attempts,
                stats=self.stats,
                progress=self.progress_manager,
                session_factory=self.session_factory,
            )
            return await orchestrator.run(matched)

    def _write_snapshot(self, matched: List[MatchedTrack]) -> None:
        if not self.config.snapshot_path:
            return
        try:
            write_snapshot(Path(self.config.snapshot_path), matched)
        except OSError as e:
            log.warning(f"[yellow]Could not write snapshot:[/] {e}")
