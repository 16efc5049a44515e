"""
Owns the Playwright browser shared by all conversion sessions of a run.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


class ConversionBrowser:
    """
    Launches one Chromium instance and hands out an isolated page per track.

    Usage:
        async with ConversionBrowser(headless=True) as browser:
            async with browser.page() as page:
                ...
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "ConversionBrowser":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--disable-blink-features=AutomationControlled"],
            )
        except PlaywrightError:
            await self._playwright.stop()
            self._playwright = None
            raise
        log.debug(f"Launched Chromium (headless={self.headless}).")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                log.debug(f"Browser did not close cleanly: {e}")
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """
        Yields a fresh page in its own browser context. The context, and with it
        the page, is closed however the caller exits.
        """
        if self._browser is None:
            raise RuntimeError("ConversionBrowser must be entered before use.")

        context = await self._browser.new_context(user_agent=USER_AGENT)
        try:
            page = await context.new_page()
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                log.debug(f"Browser context did not close cleanly: {e}")
