"""
Media Layer.

This package is responsible for writing converted audio files to disk.
"""

from .downloader import Downloader, close_connection_pool

__all__ = ["Downloader", "close_connection_pool"]
