"""
Storage Layer.

This package handles data persistence: the configuration file and the
optional snapshot of matched tracks.
"""

from .config_manager import ConfigManager
from .snapshot import write_snapshot

__all__ = ["ConfigManager", "write_snapshot"]
