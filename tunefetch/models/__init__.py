"""
Data Models Layer.

This package contains the Pydantic configuration models and the dataclasses
that flow through the acquisition pipeline.
"""

from .config import ConverterProfile, DownloadConfig
from .stats import DownloadStats
from .track import AcquisitionResult, MatchedTrack, Outcome, TrackDescriptor

__all__ = [
    "AcquisitionResult",
    "ConverterProfile",
    "DownloadConfig",
    "DownloadStats",
    "MatchedTrack",
    "Outcome",
    "TrackDescriptor",
]
