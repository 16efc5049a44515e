"""
Drives the conversion website through its multi-step flow for one track.

The flow is a small state machine:

    NAVIGATING -> FORMAT_SELECTING -> CONVERTING -> AWAITING_LINK -> LINK_READY

Any state may end in FAILED. Wait timeouts are classified as recoverable
(worth another attempt) or not, by probing for the site's result panel: a
visible panel after a timeout means the site finished and reported a failure,
while its absence means the page is most likely still loading.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tunefetch.exceptions import ConversionFailure, ConversionTimeoutError
from tunefetch.models.config import ConverterProfile
from tunefetch.models.track import MatchedTrack

log = logging.getLogger(__name__)

_BITRATE_REGEX = re.compile(r"(\d{2,4})\s*k(?:bps|b/s|bit)?\b", re.IGNORECASE)

_OPTIONS_SCRIPT = (
    "els => els.map(e => ({value: e.value, label: (e.textContent || '').trim()}))"
)


class ConversionState(Enum):
    """States of a conversion session."""

    NAVIGATING = "navigating"
    FORMAT_SELECTING = "format_selecting"
    CONVERTING = "converting"
    AWAITING_LINK = "awaiting_link"
    LINK_READY = "link_ready"
    FAILED = "failed"


def _bitrate(option: Dict[str, Any]) -> Optional[int]:
    for text in (option.get("label"), option.get("value")):
        if text and (match := _BITRATE_REGEX.search(str(text))):
            return int(match.group(1))
    return None


def choose_audio_format(options: List[Dict[str, Any]]) -> Optional[str]:
    """
    Picks the value of the highest-bitrate option. When no option advertises a
    bitrate, the first option with a value is used.
    """
    candidates = [o for o in options if o.get("value")]
    if not candidates:
        return None

    rated = [(rate, o) for o in candidates if (rate := _bitrate(o)) is not None]
    if not rated:
        return candidates[0]["value"]
    # max() keeps the first of equal bitrates
    return max(rated, key=lambda pair: pair[0])[1]["value"]


class ConversionSession:
    """
    Operates a single page through one conversion attempt.

    The page belongs to the caller, which may hand the same page to a new
    session when retrying, and closes it when the track is done.
    """

    def __init__(self, page: Page, profile: ConverterProfile):
        self.page = page
        self.profile = profile
        self.state: Optional[ConversionState] = None
        self.history: List[ConversionState] = []

    def _enter(self, state: ConversionState) -> None:
        self.state = state
        self.history.append(state)
        log.debug(f"Conversion session -> {state.value}")

    @staticmethod
    def _ms(seconds: float) -> float:
        return seconds * 1000

    async def run(self, track: MatchedTrack) -> str:
        """
        Runs the flow for `track` and returns the absolute URL of the audio file.

        Raises:
            ConversionTimeoutError: A wait expired; `recoverable` says whether to retry.
            ConversionFailure: The site failed the conversion or broke its contract.
        """
        if not track.video_url:
            raise ConversionFailure("Track has no matched video.")

        try:
            await self._navigate(track.video_url)
            await self._select_format()
            await self._convert()
            await self._await_link()
            self._enter(ConversionState.LINK_READY)
            return await self._read_link()
        except (ConversionTimeoutError, ConversionFailure):
            self._enter(ConversionState.FAILED)
            raise
        except PlaywrightError as e:
            failed_in = self.state
            self._enter(ConversionState.FAILED)
            raise ConversionFailure(
                f"Browser error while {failed_in.value if failed_in else 'starting'}: "
                f"{_first_line(e)}",
                state=failed_in,
            ) from e

    async def _navigate(self, video_url: str) -> None:
        self._enter(ConversionState.NAVIGATING)
        target = self.profile.build_url(video_url)
        try:
            await self.page.goto(
                target,
                wait_until="networkidle",
                timeout=self._ms(self.profile.navigation_timeout),
            )
        except PlaywrightTimeoutError as e:
            raise ConversionTimeoutError(
                "Conversion page did not finish loading within "
                f"{self.profile.navigation_timeout:.0f}s.",
                state=ConversionState.NAVIGATING,
                recoverable=True,
            ) from e

    async def _select_format(self) -> None:
        self._enter(ConversionState.FORMAT_SELECTING)
        selector = self.profile.format_selector
        try:
            await self.page.wait_for_selector(
                selector,
                state="visible",
                timeout=self._ms(self.profile.format_timeout),
            )
        except PlaywrightTimeoutError as e:
            raise await self._classify_timeout(
                f"Format selector did not appear within {self.profile.format_timeout:.0f}s."
            ) from e

        options = await self.page.eval_on_selector_all(
            f"{selector} option", _OPTIONS_SCRIPT
        )
        choice = choose_audio_format(options or [])
        if choice is None:
            raise ConversionFailure(
                "Conversion page offers no audio formats.",
                state=ConversionState.FORMAT_SELECTING,
            )
        await self.page.select_option(selector, value=choice)
        log.debug(f"Selected format '{choice}'")

    async def _convert(self) -> None:
        self._enter(ConversionState.CONVERTING)
        try:
            await self.page.click(
                self.profile.convert_selector,
                timeout=self._ms(self.profile.format_timeout),
            )
        except PlaywrightTimeoutError as e:
            raise await self._classify_timeout("Convert control could not be clicked.") from e

    async def _await_link(self) -> None:
        self._enter(ConversionState.AWAITING_LINK)
        try:
            await self.page.wait_for_selector(
                self.profile.download_selector,
                state="visible",
                timeout=self._ms(self.profile.link_timeout),
            )
        except PlaywrightTimeoutError as e:
            raise await self._classify_timeout(
                f"Download link did not appear within {self.profile.link_timeout:.0f}s."
            ) from e

    async def _read_link(self) -> str:
        href = await self.page.get_attribute(self.profile.download_selector, "href")
        if not href or href.strip().lower().startswith(("javascript:", "#")):
            raise ConversionFailure(
                "Download control carries no usable link.",
                state=ConversionState.LINK_READY,
            )
        return urljoin(self.page.url, href.strip())

    async def _failure_panel_visible(self) -> bool:
        selector = self.profile.failure_panel_selector
        if not selector:
            return False
        try:
            element = await self.page.wait_for_selector(
                selector,
                state="visible",
                timeout=self._ms(self.profile.probe_timeout),
            )
        except PlaywrightTimeoutError:
            return False
        return element is not None

    async def _classify_timeout(self, message: str) -> Exception:
        """
        Builds the error for a timeout in the current state, consulting the
        failure panel probe.
        """
        state = self.state
        if await self._failure_panel_visible():
            log.debug(f"Result panel visible after timeout in {state.value}")
            return ConversionFailure(
                f"{message} The site reported a failed conversion.", state=state
            )
        return ConversionTimeoutError(message, state=state, recoverable=True)


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
