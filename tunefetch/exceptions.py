"""
Defines custom exceptions for the application to allow for more specific error handling.

Errors deriving directly from `TuneFetchError` are fatal for a run. Errors deriving
from `TrackError` concern a single track and are recorded in that track's result.
"""


class TuneFetchError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(TuneFetchError):
    """Raised for issues related to configuration loading or validation."""


class AuthError(TuneFetchError):
    """Raised when the client-credentials exchange with the catalog fails."""


class InvalidReferenceError(TuneFetchError):
    """Raised when a playlist reference is not a usable playlist URL."""


class MalformedResponseError(TuneFetchError):
    """Raised when a catalog response violates the expected contract."""


class TrackError(TuneFetchError):
    """Base class for failures that only affect a single track."""


class NoMatchFoundError(TrackError):
    """Raised when the search service returns no result for a track."""


class MatchServiceError(TrackError):
    """Raised when the search service reports an error or cannot be reached."""


class ConversionTimeoutError(TrackError):
    """
    Raised when a wait on the conversion page expires.

    `recoverable` tells the caller whether retrying the session is worthwhile.
    """

    def __init__(self, message: str, state=None, recoverable: bool = True):
        super().__init__(message)
        self.state = state
        self.recoverable = recoverable


class ConversionFailure(TrackError):
    """Raised when the conversion site definitively failed to convert a track."""

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.state = state


class DownloadError(TrackError):
    """Raised when the converted audio file cannot be fetched."""
