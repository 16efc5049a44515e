"""
Domain objects flowing through the acquisition pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from tunefetch.exceptions import NoMatchFoundError, TrackError

VIDEO_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


@dataclass(frozen=True)
class TrackDescriptor:
    """A playlist entry as resolved from the catalog."""

    title: str
    artists: tuple[str, ...]

    def __post_init__(self):
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValueError("Track title must be a non-empty string.")
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, "artists", tuple(self.artists))
        if not self.artists:
            raise ValueError(f"Track '{self.title}' has no artists.")
        if not all(isinstance(a, str) and a.strip() for a in self.artists):
            raise ValueError(f"Track '{self.title}' has an empty artist name.")

    @property
    def artist_string(self) -> str:
        return " ".join(self.artists)

    @property
    def search_query(self) -> str:
        return f"{self.title} {self.artist_string}"

    @property
    def display_name(self) -> str:
        return f"{self.title} - {', '.join(self.artists)}"


@dataclass
class MatchedTrack:
    """
    A track paired with its video search result.

    A failed match keeps its place in the list: `external_video_id` is None and
    `match_error` holds the reason. `download_url` is only set once a conversion
    session succeeded.
    """

    track: TrackDescriptor
    external_video_id: Optional[str] = None
    download_url: Optional[str] = None
    match_error: Optional[TrackError] = field(default=None, repr=False)

    @property
    def title(self) -> str:
        return self.track.title

    @property
    def artists(self) -> tuple[str, ...]:
        return self.track.artists

    @property
    def display_name(self) -> str:
        return self.track.display_name

    @property
    def is_matched(self) -> bool:
        return self.external_video_id is not None

    @property
    def video_url(self) -> Optional[str]:
        if self.external_video_id is None:
            return None
        return VIDEO_URL_TEMPLATE.format(video_id=self.external_video_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artists": list(self.artists),
            "external_video_id": self.external_video_id,
            "video_url": self.video_url,
            "match_error": str(self.match_error) if self.match_error else None,
        }


class Outcome(Enum):
    """Terminal outcome of one track in a run."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    MATCH_FAILED = "match_failed"
    CONVERSION_FAILED = "conversion_failed"
    DOWNLOAD_FAILED = "download_failed"


@dataclass(frozen=True)
class AcquisitionResult:
    """The single, final result produced for a track during a run."""

    track: MatchedTrack
    outcome: Outcome
    file_path: Optional[Path] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls, track: MatchedTrack, file_path: Path) -> "AcquisitionResult":
        return cls(track=track, outcome=Outcome.SUCCESS, file_path=file_path)

    @classmethod
    def failure(
        cls, track: MatchedTrack, outcome: Outcome, reason: str
    ) -> "AcquisitionResult":
        return cls(track=track, outcome=outcome, reason=reason)

    @classmethod
    def unmatched(cls, track: MatchedTrack) -> "AcquisitionResult":
        """Builds the result for a track whose search step already failed."""
        outcome = (
            Outcome.NOT_FOUND
            if isinstance(track.match_error, NoMatchFoundError)
            else Outcome.MATCH_FAILED
        )
        return cls(
            track=track,
            outcome=outcome,
            reason=str(track.match_error) if track.match_error else "not matched",
        )
