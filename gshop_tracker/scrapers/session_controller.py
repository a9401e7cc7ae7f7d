# gshop_tracker/scrapers/session_controller.py

"""Browser lifecycle: headless launch, CAPTCHA escalation, cookie reuse.

A run starts in a headless persistent-profile browser. When the first
page load lands on a challenge, the headless browser is closed and the
same profile is reopened in a visible window so a person can solve it.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any, cast
from urllib.parse import urlparse

from playwright.async_api import (
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from gshop_tracker.config.settings import Settings
from gshop_tracker.errors import NavigationError
from gshop_tracker.scrapers.captcha_gate import CaptchaGate
from gshop_tracker.scrapers.pacing import human_pause
from gshop_tracker.storage.file_manager import (
    CAPTCHA,
    DEBUG,
    FileManager,
)
from gshop_tracker.storage.session_store import (
    FileSessionStore,
    SessionStore,
)

logger = logging.getLogger("gshop_tracker.session")

# Installed before any page script runs
_FINGERPRINT_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
window.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };
Object.defineProperty(navigator, 'languages', { get: () => %s });
const _query = window.navigator.permissions
    ? window.navigator.permissions.query.bind(window.navigator.permissions)
    : null;
if (_query) {
    window.navigator.permissions.query = (parameters) => (
        parameters && parameters.name === 'notifications'
            ? Promise.resolve({ state: 'granted' })
            : _query(parameters)
    );
}
"""

Launcher = Callable[[bool], Awaitable[BrowserContext]]


class SessionState(Enum):
    IDLE = "idle"
    HEADLESS = "headless"
    ESCALATING = "escalating"
    VISIBLE = "visible"
    DEGRADED = "degraded"       # Visible launch failed; page not navigated
    FAILED = "failed"
    CLOSED = "closed"


class SessionController:
    """Owns one browser context and hands out a page ready for scraping.

    Args:
        captcha: Detects and resolves challenge pages.
        session_store: Where cookies are read from and written to.
        file_manager: Destination for diagnostic screenshots.
        launcher: Opens a browser context given ``headless``; defaults
            to a persistent Chromium profile.
    """

    def __init__(
        self,
        captcha: CaptchaGate | None = None,
        session_store: SessionStore | None = None,
        file_manager: FileManager | None = None,
        launcher: Launcher | None = None,
        headless: bool | None = None,
        profile_dir: Path | None = None,
        post_captcha_settle: float | None = None,
    ) -> None:
        self.files = file_manager or FileManager()
        self.captcha = captcha or CaptchaGate(file_manager=self.files)
        self.session_store: SessionStore = (
            session_store or FileSessionStore()
        )
        self.headless = Settings.HEADLESS if headless is None else headless
        self.profile_dir: Path = profile_dir or Settings.BROWSER_PROFILE_DIR
        self.post_captcha_settle = (
            Settings.POST_CAPTCHA_SETTLE
            if post_captcha_settle is None
            else post_captcha_settle
        )
        self._launcher: Launcher = launcher or self._launch_chromium
        self._playwright: Playwright | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self.state = SessionState.IDLE
        self.captcha_handled = False

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Browser lifecycle ────────────────────────────────

    async def _launch_chromium(self, headless: bool) -> BrowserContext:
        """Open the persistent Chromium profile."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        self.profile_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Launching browser with persistent profile (headless=%s)",
            headless,
        )
        return await self._playwright.chromium.launch_persistent_context(
            user_data_dir=str(self.profile_dir),
            headless=headless,
            viewport=Settings.VIEWPORT,
            user_agent=Settings.USER_AGENT,
            locale=Settings.LOCALE,
            extra_http_headers=Settings.DEFAULT_HEADERS,
            args=Settings.BROWSER_ARGS,
        )

    async def _start(self, headless: bool) -> Page:
        """Launch a context, apply the profile and restore cookies."""
        context = await self._launcher(headless)
        self.context = context
        languages = "[%s]" % ", ".join(
            f"'{lang}'" for lang in Settings.BROWSER_LANGUAGES
        )
        await context.add_init_script(_FINGERPRINT_JS % languages)
        page = context.pages[0] if context.pages else await context.new_page()
        self.page = page
        await self.restore_cookies(context)
        return page

    async def _close_context(self) -> None:
        if self.context is None:
            return
        try:
            await self.context.close()
        except PlaywrightError as exc:
            logger.warning("Error while closing browser: %s", exc)
        self.context = None
        self.page = None

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        await self._close_context()
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        if self.state is not SessionState.FAILED:
            self.state = SessionState.CLOSED

    async def _goto(self, page: Page, url: str, timeout: float) -> None:
        logger.info("Navigating to %s", url)
        await page.goto(
            url, wait_until="domcontentloaded", timeout=timeout * 1000
        )

    async def _fail(self, page: Page | None, label: str, url: str) -> None:
        """Screenshot the failing page and shut the browser down."""
        if page is not None:
            await self.files.save_screenshot(page, DEBUG, label)
        await self.close()
        self.state = SessionState.FAILED
        logger.error("Could not load %s", url, exc_info=True)

    # ── Session cookies ──────────────────────────────────

    async def restore_cookies(self, context: BrowserContext) -> int:
        """Add the stored cookies to *context*; returns how many."""
        snapshot = self.session_store.load()
        if snapshot is None or not snapshot.cookies:
            return 0
        try:
            await context.add_cookies(cast(Any, snapshot.cookies))
        except PlaywrightError as exc:
            logger.warning("Could not restore saved cookies: %s", exc)
            return 0
        return len(snapshot.cookies)

    async def persist_session(self, page: Page) -> bool:
        """Save the page's cookies and session metadata.

        Does nothing when the browser holds no cookies.
        """
        try:
            cookies = await page.context.cookies()
        except PlaywrightError as exc:
            logger.error("Could not read browser cookies: %s", exc)
            return False
        if not cookies:
            logger.warning("No cookies found to save")
            return False

        domain = urlparse(page.url).hostname or Settings.DEFAULT_DOMAIN
        try:
            self.session_store.save(
                [dict(c) for c in cookies], domain
            )
        except OSError as exc:
            logger.error("Could not save session: %s", exc)
            return False
        return True

    # ── Entry point ──────────────────────────────────────

    async def open(self, url: str) -> Page:
        """Return a page showing *url*, escalating past a CAPTCHA.

        In degraded mode the returned page has not navigated anywhere;
        ``state`` is :attr:`SessionState.DEGRADED` and the caller loads
        the URL itself.

        Raises:
            NavigationError: The browser could not be launched or the
                URL could not be loaded.
        """
        self.state = SessionState.HEADLESS
        self.captcha_handled = False
        try:
            page = await self._start(self.headless)
        except PlaywrightError as exc:
            await self._fail(None, "launch_error", url)
            raise NavigationError(f"Browser launch failed: {exc}") from exc

        try:
            await self._goto(page, url, Settings.NAVIGATION_TIMEOUT)
        except PlaywrightError as exc:
            await self._fail(page, "launcher_error", url)
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

        if not await self.captcha.detect(page):
            logger.info("No CAPTCHA detected, continuing")
            return page

        return await self._escalate(page, url)

    async def _escalate(self, page: Page, url: str) -> Page:
        """Reopen the profile visibly and hand the challenge to a human."""
        self.state = SessionState.ESCALATING
        logger.warning("CAPTCHA in headless browser; switching to visible")
        await self.files.save_screenshot(page, CAPTCHA, "captcha_detected")
        await self._close_context()

        try:
            page = await self._start(False)
        except PlaywrightError as exc:
            logger.error("Visible browser launch failed: %s", exc)
            return await self._degrade(url)

        try:
            await self._goto(page, url, Settings.NAVIGATION_TIMEOUT)
        except PlaywrightError as exc:
            await self._fail(page, "visible_navigation_error", url)
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

        await self.captcha.resolve(page)
        self.captcha_handled = True
        await self.persist_session(page)
        await self.files.save_screenshot(page, CAPTCHA, "after_captcha")
        await self.files.save_html(page, DEBUG, "after_captcha")
        await human_pause(self.post_captcha_settle, jitter=0)

        self.state = SessionState.VISIBLE
        logger.info("Current URL after CAPTCHA: %s", page.url)
        return page

    async def _degrade(self, url: str) -> Page:
        """Fresh headless browser, left for the caller to navigate."""
        await self._close_context()
        try:
            page = await self._start(True)
        except PlaywrightError as exc:
            await self._fail(None, "launch_error", url)
            raise NavigationError(f"Browser launch failed: {exc}") from exc
        self.state = SessionState.DEGRADED
        logger.warning("Running degraded: headless page not navigated")
        return page
