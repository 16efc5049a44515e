"""
Utilities for handling file paths and playlist URL parsing.
"""

from pathlib import Path
from urllib.parse import urlsplit

from pathvalidate import sanitize_filename

from tunefetch.exceptions import InvalidReferenceError

PLAYLIST_MARKER = "playlist"
AUDIO_EXTENSION = "mp3"
# Leaves room for the extension and a download temp suffix within 255 bytes.
MAX_STEM_BYTES = 200


def extract_playlist_id(url: str) -> str:
    """
    Returns the playlist identifier from a URL such as
    `https://open.spotify.com/playlist/<id>?si=...`.

    Raises:
        InvalidReferenceError: If the input is not a well-formed URL or has no
        `playlist/<id>` path segment pair.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidReferenceError("Playlist reference is empty.")

    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        raise InvalidReferenceError(f"Malformed playlist URL: {url}") from e

    if not parts.scheme or not parts.netloc:
        raise InvalidReferenceError(f"Not an absolute URL: {url}")

    segments = [s for s in parts.path.split("/") if s]
    try:
        marker_index = segments.index(PLAYLIST_MARKER)
    except ValueError:
        raise InvalidReferenceError(f"No playlist segment in URL: {url}") from None

    if marker_index + 1 >= len(segments):
        raise InvalidReferenceError(f"Playlist URL has no identifier: {url}")
    return segments[marker_index + 1]


def sanitize_component(value: str) -> str:
    """Replaces characters that are unsafe in file names with an underscore."""
    return sanitize_filename(value, replacement_text="_").strip()


def build_track_filename(title: str, artists: str) -> str:
    """
    Formats the `<title> - <artists>.mp3` file name for a track, truncating
    long names so they stay within filesystem limits.
    """
    stem = f"{sanitize_component(title)} - {sanitize_component(artists)}"
    stem = sanitize_filename(
        stem, replacement_text="_", max_len=MAX_STEM_BYTES, fs_encoding="utf-8"
    ).strip()
    return f"{stem}.{AUDIO_EXTENSION}"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
