"""
Runs matched tracks through the conversion site in fixed-size batches and
hands every produced link to the downloader.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from rich.markup import escape

from tunefetch.exceptions import (
    ConversionFailure,
    ConversionTimeoutError,
    DownloadError,
    TuneFetchError,
)
from tunefetch.media.downloader import Downloader
from tunefetch.models.config import ConverterProfile
from tunefetch.models.stats import DownloadStats
from tunefetch.models.track import AcquisitionResult, MatchedTrack, Outcome
from tunefetch.web.browser import ConversionBrowser
from tunefetch.web.converter import ConversionSession

if TYPE_CHECKING:
    from tunefetch.cli.progress_manager import ProgressManager

log = logging.getLogger(__name__)

MAX_ATTEMPTS_REASON = "max attempts exceeded"


class AcquisitionOrchestrator:
    """
    Converts and downloads a list of matched tracks.

    Tracks are taken `concurrency` at a time. A batch converts concurrently and
    the next batch only starts once every conversion in it has settled. Downloads
    start as soon as their link is ready and are all awaited before `run` returns.
    """

    def __init__(
        self,
        browser: ConversionBrowser,
        downloader: Downloader,
        profile: ConverterProfile,
        concurrency: int = 3,
        max_attempts: int = 3,
        stats: Optional[DownloadStats] = None,
        progress: Optional["ProgressManager"] = None,
        session_factory: Callable[[Page, ConverterProfile], ConversionSession] = ConversionSession,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.browser = browser
        self.downloader = downloader
        self.profile = profile
        self.concurrency = concurrency
        self.max_attempts = max_attempts
        self.stats = stats if stats is not None else DownloadStats()
        self.progress = progress
        self.session_factory = session_factory
        self._download_tasks: Dict[int, asyncio.Task] = {}

    async def run(self, matched_tracks: Sequence[MatchedTrack]) -> List[AcquisitionResult]:
        """Returns one result per input track, in input order."""
        results: List[Optional[AcquisitionResult]] = [None] * len(matched_tracks)
        self._download_tasks = {}

        pending = []
        for index, track in enumerate(matched_tracks):
            if track.is_matched:
                pending.append((index, track))
            else:
                results[index] = AcquisitionResult.unmatched(track)
        if self.progress and len(pending) < len(matched_tracks):
            self.progress.increment_skipped(len(matched_tracks) - len(pending))

        batches = [
            pending[i : i + self.concurrency]
            for i in range(0, len(pending), self.concurrency)
        ]
        for number, batch in enumerate(batches, start=1):
            log.debug(f"Starting batch {number}/{len(batches)} ({len(batch)} tracks)")
            outcomes = await asyncio.gather(
                *(self._process_track(index, track) for index, track in batch)
            )
            for (index, _), result in zip(batch, outcomes):
                if result is not None:
                    results[index] = result

        if self._download_tasks:
            log.info(f"Waiting for {len(self._download_tasks)} download(s) to finish...")
            await asyncio.gather(*self._download_tasks.values())
            for index, task in self._download_tasks.items():
                results[index] = task.result()
        self._download_tasks = {}

        for result in results:
            self.stats.record(result)
        return results

    async def _process_track(
        self, index: int, track: MatchedTrack
    ) -> Optional[AcquisitionResult]:
        """
        Converts one track. Returns its final result on failure, or None once a
        download task has been scheduled for it.
        """
        task_id = self.progress.add_track_task(track.display_name) if self.progress else None

        try:
            async with self.browser.page() as page:
                self.stats.session_opened()
                try:
                    download_url = await self._convert_with_retries(page, track, task_id)
                finally:
                    self.stats.session_closed()
        except (TuneFetchError, PlaywrightError) as e:
            reason = str(e) or type(e).__name__
            log.error(
                f"[red]✗ Conversion failed:[/] {escape(track.display_name)} "
                f"({escape(reason)})"
            )
            if self.progress:
                self.progress.remove_task(task_id, success=False)
            return AcquisitionResult.failure(track, Outcome.CONVERSION_FAILED, reason)

        track.download_url = download_url
        log.debug(f"Download link ready for '{track.display_name}': {download_url}")
        self._download_tasks[index] = asyncio.create_task(
            self._download(track, task_id)
        )
        return None

    async def _convert_with_retries(self, page: Page, track: MatchedTrack, task_id) -> str:
        for attempt in range(1, self.max_attempts + 1):
            if self.progress:
                self.progress.update_task_status(
                    task_id, f"converting ({attempt}/{self.max_attempts})"
                )
            session = self.session_factory(page, self.profile)
            try:
                return await session.run(track)
            except ConversionTimeoutError as e:
                if not e.recoverable:
                    raise
                if attempt == self.max_attempts:
                    raise ConversionFailure(MAX_ATTEMPTS_REASON, state=e.state) from e
                self.stats.conversion_retries += 1
                log.warning(
                    f"[yellow]↻ Retrying[/] {escape(track.display_name)} "
                    f"(attempt {attempt}/{self.max_attempts}): {escape(str(e))}"
                )
        # max_attempts >= 1 is enforced in __init__
        raise ConversionFailure(MAX_ATTEMPTS_REASON)

    async def _download(self, track: MatchedTrack, task_id) -> AcquisitionResult:
        if self.progress:
            self.progress.update_task_status(task_id, "downloading")
        try:
            path = await self.downloader.save(track)
        except (DownloadError, OSError) as e:
            reason = str(e) or type(e).__name__
            log.error(
                f"[red]✗ Download failed:[/] {escape(track.display_name)} "
                f"({escape(reason)})"
            )
            if self.progress:
                self.progress.remove_task(task_id, success=False)
            return AcquisitionResult.failure(track, Outcome.DOWNLOAD_FAILED, reason)

        if self.progress:
            self.progress.remove_task(task_id, success=True)
        return AcquisitionResult.success(track, path)
