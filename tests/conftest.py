"""Shared fixtures: local HTTP services and test configuration."""

from pathlib import Path

import pytest
from aiohttp.test_utils import TestServer
from fakes import API_KEY, CLIENT_ID, CLIENT_SECRET, FakeServices

from tunefetch.media.downloader import close_connection_pool
from tunefetch.models.config import ConverterProfile, DownloadConfig


@pytest.fixture
async def services():
    """Starts the fake HTTP services on a local port."""
    fake = FakeServices()
    server = TestServer(fake.app())
    await server.start_server()
    fake.base_url = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
async def download_pool():
    """The download pool is process-wide; never let it outlive a test's loop."""
    yield
    await close_connection_pool()


@pytest.fixture
def converter_profile() -> ConverterProfile:
    """Profile pointing at a fake conversion site."""
    return ConverterProfile(
        url_template="https://convert.example/?url={url}",
        navigation_timeout=1,
        format_timeout=1,
        link_timeout=1,
        probe_timeout=0.1,
    )


@pytest.fixture
def download_config(tmp_path: Path, converter_profile: ConverterProfile) -> DownloadConfig:
    """A complete configuration writing into a temporary directory."""
    return DownloadConfig(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        youtube_api_key=API_KEY,
        output_dir=str(tmp_path / "Downloaded Songs"),
        converter=converter_profile,
    )
