"""Tests for saving converted files to disk."""

import asyncio
from pathlib import Path

import pytest
from fakes import FakeServices, matched

from tunefetch.exceptions import DownloadError
from tunefetch.media.downloader import Downloader

pytestmark = pytest.mark.usefixtures("download_pool")


@pytest.fixture
def downloader(tmp_path: Path) -> Downloader:
    """Downloader writing into a fresh directory, without retry delays."""
    return Downloader(tmp_path / "Downloaded Songs", base_delay=0)


class TestDownloader:
    """Test the file materializer."""

    async def test_saves_named_file(
        self, downloader: Downloader, services: FakeServices
    ) -> None:
        """Test the file lands under `<title> - <artists>.mp3`."""
        services.files["b.mp3"] = b"ID3-song-b"
        track = matched("Song B", "Artist Y", "Artist Z")
        track.download_url = services.file_url("b.mp3")

        path = await downloader.save(track)

        assert path == downloader.output_dir / "Song B - Artist Y Artist Z.mp3"
        assert path.read_bytes() == b"ID3-song-b"
        assert list(downloader.output_dir.iterdir()) == [path]

    async def test_error_status_keeps_existing_file(
        self, downloader: Downloader, services: FakeServices
    ) -> None:
        """Test a failed download neither corrupts nor removes a previous file."""
        track = matched("Song A", "Artist X")
        track.download_url = services.file_url("missing.mp3")
        downloader.output_dir.mkdir(parents=True)
        existing = downloader.target_path(track)
        existing.write_bytes(b"old")

        with pytest.raises(DownloadError, match="HTTP 404"):
            await downloader.save(track)

        assert existing.read_bytes() == b"old"
        assert list(downloader.output_dir.glob("*.part")) == []

    async def test_overwrites_previous_file(
        self, downloader: Downloader, services: FakeServices
    ) -> None:
        """Test a successful download replaces an older copy."""
        services.files["a.mp3"] = b"new"
        track = matched("Song A", "Artist X")
        track.download_url = services.file_url("a.mp3")
        downloader.output_dir.mkdir(parents=True)
        downloader.target_path(track).write_bytes(b"old")

        path = await downloader.save(track)

        assert path.read_bytes() == b"new"

    async def test_transport_errors_are_retried(self, downloader: Downloader) -> None:
        """Test an unreachable host fails after every attempt."""
        track = matched("Song A", "Artist X")
        track.download_url = "http://127.0.0.1:1/file.mp3"

        with pytest.raises(DownloadError, match="after 3 attempts"):
            await downloader.save(track)

    async def test_missing_url(self, downloader: Downloader) -> None:
        """Test a track without a link cannot be downloaded."""
        with pytest.raises(DownloadError, match="no download URL"):
            await downloader.save(matched("Song A", "Artist X"))

    async def test_same_target_saved_concurrently(
        self, downloader: Downloader, services: FakeServices
    ) -> None:
        """Test two simultaneous saves of one song never mix their bytes."""
        services.files["first.mp3"] = b"A" * 3_000_000
        services.files["second.mp3"] = b"B" * 1_000_000
        first = matched("Song A", "Artist X")
        first.download_url = services.file_url("first.mp3")
        second = matched("Song A", "Artist X")
        second.download_url = services.file_url("second.mp3")

        paths = await asyncio.gather(downloader.save(first), downloader.save(second))

        assert paths[0] == paths[1] == downloader.target_path(first)
        content = paths[0].read_bytes()
        assert content in (b"A" * 3_000_000, b"B" * 1_000_000)
        assert list(downloader.output_dir.iterdir()) == [paths[0]]

    async def test_long_track_name_is_saved(
        self, downloader: Downloader, services: FakeServices
    ) -> None:
        """Test a track whose full name exceeds the filesystem limit still saves."""
        services.files["long.mp3"] = b"ID3-long"
        track = matched("Movement " * 30, *[f"Performer Number {i}" for i in range(12)])
        track.download_url = services.file_url("long.mp3")

        path = await downloader.save(track)

        assert path.read_bytes() == b"ID3-long"
        assert path.name.startswith("Movement Movement")
