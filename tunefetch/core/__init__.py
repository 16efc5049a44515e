"""
Core Logic Layer.

This package contains the main business logic: the run-level download manager
and the batched conversion and download orchestrator.
"""

from .acquisition import AcquisitionOrchestrator
from .download_manager import DownloadManager

__all__ = ["AcquisitionOrchestrator", "DownloadManager"]
