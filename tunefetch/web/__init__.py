"""
Browser Automation Layer.

This package drives the third-party conversion website through Playwright.
"""

from .browser import ConversionBrowser
from .converter import ConversionSession, ConversionState

__all__ = ["ConversionBrowser", "ConversionSession", "ConversionState"]
