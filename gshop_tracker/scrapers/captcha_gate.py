# gshop_tracker/scrapers/captcha_gate.py

"""Detection of anti-bot challenge pages and the manual-resolution pause."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from rich.console import Console

from gshop_tracker.config.settings import Settings
from gshop_tracker.storage.file_manager import CAPTCHA, FileManager

logger = logging.getLogger("gshop_tracker.captcha")

HumanConfirmation = Callable[[], Awaitable[None]]

# Runs in the page; returns the structural-marker flag and the phrases found
_TEXT_PROBE_JS = """
(phrases) => {
    const text = document.body ? document.body.innerText : "";
    const structural = Boolean(
        document.querySelector('#recaptcha, .recaptcha, [action*="sorry/index"]')
        || (document.querySelector('form[action*="sorry/index"]')
            && document.querySelector('input[name="captcha"]'))
    );
    const found = phrases.filter((p) => text.includes(p));
    return {structural: structural, found: found};
}
"""


def console_confirmation(console: Console | None = None) -> HumanConfirmation:
    """Build a confirmation channel that waits for ENTER on the terminal."""
    con = console or Console(stderr=True)

    async def _wait() -> None:
        con.print(
            "[bold yellow]CAPTCHA detected.[/bold yellow] "
            "Solve it in the browser window."
        )
        await asyncio.to_thread(
            con.input, "Press ENTER once the CAPTCHA is solved... "
        )

    return _wait


class CaptchaGate:
    """Detects challenge interstitials and hands them to a human.

    ``confirm`` is awaited while the pipeline is suspended; it resolves
    once someone has solved the challenge. There is no timeout.
    """

    def __init__(
        self,
        confirm: HumanConfirmation | None = None,
        file_manager: FileManager | None = None,
        settle_delay: float | None = None,
    ) -> None:
        self.confirm: HumanConfirmation = confirm or console_confirmation()
        self.files = file_manager or FileManager()
        self.settle_delay = (
            Settings.CAPTCHA_SETTLE_DELAY
            if settle_delay is None
            else settle_delay
        )

    # ── Detection ────────────────────────────────────────

    @staticmethod
    def url_matches(url: str) -> bool:
        """Whether *url* points at a known verification path."""
        lowered = url.lower()
        return any(p in lowered for p in Settings.CAPTCHA_URL_PATTERNS)

    @staticmethod
    def text_indicates_challenge(
        structural: bool, found_phrases: list[str],
    ) -> bool:
        """A structural marker alone, or enough distinct phrases."""
        return (
            structural
            or len(set(found_phrases)) >= Settings.CAPTCHA_PHRASE_THRESHOLD
        )

    async def detect(self, page: Page) -> bool:
        """Three-tier check: URL, challenge selectors, page text.

        Returns False when the page cannot be inspected.
        """
        try:
            url = page.url
            if self.url_matches(url):
                logger.warning("CAPTCHA detected from URL: %s", url)
                return True

            for selector in Settings.CAPTCHA_SELECTORS:
                if await page.query_selector(selector):
                    logger.warning(
                        "CAPTCHA detected via selector %s", selector
                    )
                    return True

            probe: dict[str, Any] = await page.evaluate(
                _TEXT_PROBE_JS, Settings.CAPTCHA_PHRASES
            )
        except PlaywrightError as exc:
            logger.error("CAPTCHA detection failed: %s", exc)
            return False

        found: list[str] = list(probe.get("found") or [])
        structural = bool(probe.get("structural"))
        if self.text_indicates_challenge(structural, found):
            logger.warning(
                "CAPTCHA detected from page content "
                "(structural=%s, phrases=%d)",
                structural,
                len(set(found)),
            )
            return True
        if found:
            logger.debug(
                "Single challenge phrase on page, not treated as CAPTCHA"
            )
        return False

    # ── Resolution ───────────────────────────────────────

    async def resolve(self, page: Page) -> bool:
        """Screenshot the challenge, wait for a human, then settle."""
        await self.files.save_screenshot(page, CAPTCHA, "captcha")
        logger.warning("Waiting for manual CAPTCHA resolution")
        await self.confirm()
        logger.info("CAPTCHA marked as solved, continuing")
        await asyncio.sleep(self.settle_delay)
        return True

    async def check_and_resolve(self, page: Page) -> bool:
        """Resolve a challenge if one is showing; True when handled."""
        if await self.detect(page):
            return await self.resolve(page)
        return False
