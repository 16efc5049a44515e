"""
Dataclass for tracking run statistics.
"""

from dataclasses import dataclass, field

from .track import AcquisitionResult, Outcome


@dataclass
class DownloadStats:
    """Tracks counters for one playlist run."""

    tracks_resolved: int = 0
    catalog_items_skipped: int = 0
    tracks_downloaded: int = 0
    tracks_not_found: int = 0
    tracks_match_failed: int = 0
    tracks_conversion_failed: int = 0
    tracks_download_failed: int = 0
    conversion_retries: int = 0
    total_size_downloaded: int = 0
    peak_concurrent_sessions: int = 0
    _active_sessions: int = field(default=0, repr=False)

    _OUTCOME_COUNTERS = {
        Outcome.SUCCESS: "tracks_downloaded",
        Outcome.NOT_FOUND: "tracks_not_found",
        Outcome.MATCH_FAILED: "tracks_match_failed",
        Outcome.CONVERSION_FAILED: "tracks_conversion_failed",
        Outcome.DOWNLOAD_FAILED: "tracks_download_failed",
    }

    @property
    def tracks_failed(self) -> int:
        return (
            self.tracks_match_failed
            + self.tracks_conversion_failed
            + self.tracks_download_failed
        )

    def record(self, result: AcquisitionResult) -> None:
        """Counts a terminal per-track result."""
        counter = self._OUTCOME_COUNTERS[result.outcome]
        setattr(self, counter, getattr(self, counter) + 1)
        if result.succeeded and result.file_path and result.file_path.exists():
            self.total_size_downloaded += result.file_path.stat().st_size

    def session_opened(self) -> None:
        self._active_sessions += 1
        self.peak_concurrent_sessions = max(
            self.peak_concurrent_sessions, self._active_sessions
        )

    def session_closed(self) -> None:
        self._active_sessions = max(0, self._active_sessions - 1)
