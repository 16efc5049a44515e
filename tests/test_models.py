"""Tests for track models, results and run statistics."""

from pathlib import Path

import pytest
from fakes import matched

from tunefetch.exceptions import MatchServiceError, NoMatchFoundError
from tunefetch.models.stats import DownloadStats
from tunefetch.models.track import (
    AcquisitionResult,
    MatchedTrack,
    Outcome,
    TrackDescriptor,
)


class TestTrackDescriptor:
    """Test TrackDescriptor validation and derived strings."""

    def test_artists_are_stored_as_tuple(self) -> None:
        """Test that any artist sequence is frozen into a tuple."""
        track = TrackDescriptor(title="Song B", artists=["Artist Y", "Artist Z"])
        assert track.artists == ("Artist Y", "Artist Z")
        assert track.artist_string == "Artist Y Artist Z"
        assert track.search_query == "Song B Artist Y Artist Z"
        assert track.display_name == "Song B - Artist Y, Artist Z"

    @pytest.mark.parametrize(
        ("title", "artists"),
        [("", ("A",)), ("   ", ("A",)), ("Song", ()), ("Song", ("",))],
    )
    def test_invalid_descriptors(self, title: str, artists: tuple) -> None:
        """Test that empty titles and artist lists are rejected."""
        with pytest.raises(ValueError):
            TrackDescriptor(title=title, artists=artists)


class TestMatchedTrack:
    """Test MatchedTrack derived values."""

    def test_video_url(self) -> None:
        """Test the watch URL is built from the video id."""
        track = matched("Song A", "Artist X", video_id="abc123")
        assert track.is_matched
        assert track.video_url == "https://www.youtube.com/watch?v=abc123"

    def test_unmatched_has_no_video_url(self) -> None:
        """Test an unmatched track exposes no URL."""
        track = matched("Song A", "Artist X", video_id=None)
        assert not track.is_matched
        assert track.video_url is None

    def test_to_dict(self) -> None:
        """Test the snapshot representation."""
        track = MatchedTrack(
            track=TrackDescriptor("Song A", ("Artist X",)),
            match_error=NoMatchFoundError("nothing"),
        )
        assert track.to_dict() == {
            "title": "Song A",
            "artists": ["Artist X"],
            "external_video_id": None,
            "video_url": None,
            "match_error": "nothing",
        }


class TestAcquisitionResult:
    """Test result construction helpers."""

    def test_unmatched_not_found(self) -> None:
        """Test a zero-result search maps to NOT_FOUND."""
        track = MatchedTrack(
            track=TrackDescriptor("Song", ("A",)), match_error=NoMatchFoundError("none")
        )
        result = AcquisitionResult.unmatched(track)
        assert result.outcome is Outcome.NOT_FOUND
        assert result.reason == "none"
        assert not result.succeeded

    def test_unmatched_service_error(self) -> None:
        """Test a search service failure maps to MATCH_FAILED."""
        track = MatchedTrack(
            track=TrackDescriptor("Song", ("A",)), match_error=MatchServiceError("quota")
        )
        assert AcquisitionResult.unmatched(track).outcome is Outcome.MATCH_FAILED


class TestDownloadStats:
    """Test statistics bookkeeping."""

    def test_record_counts_outcomes(self, tmp_path: Path) -> None:
        """Test each outcome increments its own counter."""
        song = tmp_path / "song.mp3"
        song.write_bytes(b"x" * 10)
        track = matched("Song", "A")
        stats = DownloadStats()

        stats.record(AcquisitionResult.success(track, song))
        stats.record(AcquisitionResult.failure(track, Outcome.NOT_FOUND, "none"))
        stats.record(AcquisitionResult.failure(track, Outcome.CONVERSION_FAILED, "x"))
        stats.record(AcquisitionResult.failure(track, Outcome.DOWNLOAD_FAILED, "y"))

        assert stats.tracks_downloaded == 1
        assert stats.tracks_not_found == 1
        assert stats.tracks_conversion_failed == 1
        assert stats.tracks_download_failed == 1
        assert stats.tracks_failed == 2
        assert stats.total_size_downloaded == 10

    def test_peak_sessions(self) -> None:
        """Test the peak survives sessions closing."""
        stats = DownloadStats()
        stats.session_opened()
        stats.session_opened()
        stats.session_closed()
        stats.session_opened()
        stats.session_closed()
        stats.session_closed()
        assert stats.peak_concurrent_sessions == 2
