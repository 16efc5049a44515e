"""
Remote API Layer.

This package handles all communication with the Spotify Web API (catalog)
and the YouTube Data API (video search).
"""

from .auth import Credential, TokenManager
from .client import CatalogClient
from .rate_limiter import AdaptiveRateLimiter
from .search import MatchResolver

__all__ = [
    "AdaptiveRateLimiter",
    "CatalogClient",
    "Credential",
    "MatchResolver",
    "TokenManager",
]
