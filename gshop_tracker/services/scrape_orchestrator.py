# gshop_tracker/services/scrape_orchestrator.py

"""Runs one product scrape from URL to stored record."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gshop_tracker.config.logging_config import set_log_target
from gshop_tracker.config.settings import Settings, load_selectors
from gshop_tracker.errors import (
    ContentTimeoutError,
    NavigationError,
    PersistenceError,
    ScrapeError,
    ValidationError,
)
from gshop_tracker.models.product import ProductRecord
from gshop_tracker.scrapers.captcha_gate import CaptchaGate
from gshop_tracker.scrapers.pacing import human_pause, smooth_scroll
from gshop_tracker.scrapers.page_parser import GoogleShoppingParser
from gshop_tracker.scrapers.section_expander import (
    SectionExpander,
    SectionSpec,
)
from gshop_tracker.scrapers.session_controller import (
    SessionController,
    SessionState,
)
from gshop_tracker.storage.file_manager import DEBUG, ERROR, FileManager
from gshop_tracker.storage.product_store import ProductStore

logger = logging.getLogger("gshop_tracker.orchestrator")

_PRODUCT_PAGE_JS = """
(hints) => {
    if (hints.markers.some((s) => document.querySelector(s))) return true;
    const url = window.location.href;
    if (hints.urlHints.some((h) => url.includes(h))) return true;
    const text = document.body ? document.body.innerText : "";
    return hints.storeTexts.some((t) => text.includes(t))
        && hints.reviewTexts.some((t) => text.includes(t));
}
"""

_REVIEW_SECTION_JS = """
(hints) => {
    for (const selector of hints.selectors) {
        const el = document.querySelector(selector);
        if (el) {
            el.scrollIntoView({ behavior: "smooth", block: "center" });
            return true;
        }
    }
    for (const text of hints.texts) {
        const el = Array.from(document.querySelectorAll("*")).find(
            (e) => (e.textContent || "").includes(text)
                && window.getComputedStyle(e).display !== "none"
        );
        if (el) {
            el.scrollIntoView({ behavior: "smooth", block: "center" });
            return true;
        }
    }
    return false;
}
"""

# Product result URLs carry this query parameter
_PRODUCT_URL_MARKER = "oshopproduct="


@dataclass
class ScrapeOptions:
    """Per-scrape overrides; ``None`` falls back to Settings."""

    category: str | None = None
    brand: str | None = None
    max_clicks_stores: int | None = None
    max_clicks_reviews: int | None = None
    click_delay: float | None = None


class ScrapeOrchestrator:
    """Session, expansion, parsing and persistence for one URL at a time.

    Scrapes run strictly one after another: each call opens its own
    browser session and closes it before returning.
    """

    def __init__(
        self,
        store: ProductStore | None = None,
        session_factory: Callable[[], SessionController] | None = None,
        captcha: CaptchaGate | None = None,
        expander: SectionExpander | None = None,
        parser: GoogleShoppingParser | None = None,
        file_manager: FileManager | None = None,
        selectors: dict[str, Any] | None = None,
        section_pause: float = 2.0,
    ) -> None:
        self.selectors = (
            selectors if selectors is not None else load_selectors()
        )
        self.files = file_manager or FileManager()
        self.store = store or ProductStore()
        self.captcha = captcha or CaptchaGate(file_manager=self.files)
        self.expander = expander or SectionExpander(captcha=self.captcha)
        self.parser = parser or GoogleShoppingParser(self.selectors)
        self._session_factory = session_factory or self._default_session
        self.section_pause = section_pause
        self.stores_spec = SectionSpec.from_selectors(
            "stores", self.selectors
        )
        self.reviews_spec = SectionSpec.from_selectors(
            "reviews", self.selectors
        )

    def _default_session(self) -> SessionController:
        return SessionController(
            captcha=self.captcha, file_manager=self.files
        )

    # ── Page checks ──────────────────────────────────────

    async def is_product_page(self, page: Page) -> bool:
        """Heuristic check that *page* looks like a product page."""
        hints: dict[str, Any] = self.selectors.get(
            "product_page_text_hints", {}
        )
        try:
            result: bool = await page.evaluate(
                _PRODUCT_PAGE_JS,
                {
                    "markers": self.selectors.get(
                        "product_page_markers", []
                    ),
                    "urlHints": self.selectors.get(
                        "product_page_url_hints", []
                    ),
                    "storeTexts": hints.get("stores", []),
                    "reviewTexts": hints.get("reviews", []),
                },
            )
        except PlaywrightError as exc:
            logger.warning("Product page check failed: %s", exc)
            return False
        return bool(result)

    async def find_review_section(self, page: Page) -> bool:
        """Scroll the review section into view; False when absent."""
        try:
            found: bool = await page.evaluate(
                _REVIEW_SECTION_JS,
                {
                    "selectors": self.selectors.get("review_section", []),
                    "texts": self.selectors.get(
                        "review_section_texts", []
                    ),
                },
            )
        except PlaywrightError as exc:
            logger.warning("Review section lookup failed: %s", exc)
            return False
        return bool(found)

    # ── Pipeline steps ───────────────────────────────────

    async def _ensure_on_target(
        self, page: Page, url: str, session: SessionController,
    ) -> None:
        """Navigate when degraded, or when a redirect left the product."""
        if session.state is SessionState.DEGRADED:
            reason = "degraded session has not loaded the page"
        elif _PRODUCT_URL_MARKER in url and _PRODUCT_URL_MARKER not in page.url:
            reason = "URL changed after CAPTCHA"
        else:
            return
        logger.warning("Re-navigating to product page: %s", reason)
        await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=Settings.RENAVIGATION_TIMEOUT * 1000,
        )

    async def _wait_for_content(self, page: Page) -> None:
        """Wait for the main container, with one retry after a CAPTCHA pass."""
        selector: str = self.selectors.get("main_container", "")
        timeout_ms = Settings.SELECTOR_TIMEOUT * 1000
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return
        except PlaywrightTimeoutError:
            logger.warning(
                "Main container %s not found, checking for CAPTCHA",
                selector,
            )

        if await self.captcha.check_and_resolve(page):
            logger.info("CAPTCHA handled, retrying container wait")
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise ContentTimeoutError(
                f"Main container {selector} did not appear"
            ) from exc

    async def _expand_sections(
        self, page: Page, options: ScrapeOptions,
    ) -> None:
        delay = (
            Settings.DEFAULT_CLICK_DELAY
            if options.click_delay is None
            else options.click_delay
        )
        await self.expander.expand(
            page,
            self.stores_spec,
            (
                Settings.MAX_CLICK_ATTEMPTS_STORES
                if options.max_clicks_stores is None
                else options.max_clicks_stores
            ),
            delay,
        )
        await human_pause(self.section_pause)

        if not await self.find_review_section(page):
            logger.info("No review section found")
            return
        logger.info("Review section found")
        await self.expander.expand(
            page,
            self.reviews_spec,
            (
                Settings.MAX_CLICK_ATTEMPTS_REVIEWS
                if options.max_clicks_reviews is None
                else options.max_clicks_reviews
            ),
            delay,
        )

    async def _run(
        self,
        page: Page,
        url: str,
        options: ScrapeOptions,
        session: SessionController,
    ) -> ProductRecord:
        await self._ensure_on_target(page, url, session)

        if await self.is_product_page(page):
            logger.info("Page looks like a Google Shopping product page")
        else:
            logger.warning(
                "Page does not look like a product page; continuing"
            )
            await self.files.save_screenshot(page, DEBUG, "not_product_page")
            await self.files.save_html(page, DEBUG, "page_content")

        await self.captcha.check_and_resolve(page)
        await self._wait_for_content(page)
        await smooth_scroll(page)
        await self._expand_sections(page, options)
        await self.captcha.check_and_resolve(page)

        html = await page.content()
        record = self.parser.parse(
            BeautifulSoup(html, "lxml"),
            url,
            category=options.category,
            brand=options.brand,
        )
        logger.info(
            "Product %r: category=%s brand=%s",
            record.product_name,
            record.category,
            record.brand,
        )

        stored = self.store.save(record)
        await session.persist_session(page)
        logger.info(
            "Saved %s: %s-%s %s, %d history entries",
            stored.product_id,
            stored.lowest_price,
            stored.highest_price,
            Settings.CURRENCY,
            len(stored.price_history),
        )
        return stored

    # ── Entry point ──────────────────────────────────────

    async def scrape(
        self, url: str, options: ScrapeOptions | None = None,
    ) -> ProductRecord:
        """Scrape *url* and return the stored record.

        Raises:
            ValidationError: No URL was given.
            NavigationError: The page could not be loaded or driven.
            ContentTimeoutError: The product content never appeared.
            PersistenceError: The record could not be stored.
        """
        if not url or not url.strip():
            raise ValidationError("A product URL is required")
        url = url.strip()
        opts = options or ScrapeOptions()
        set_log_target(url)

        session = self._session_factory()
        page: Page | None = None
        try:
            page = await session.open(url)
            return await self._run(page, url, opts, session)
        except PlaywrightError as exc:
            logger.error("Browser error while scraping %s", url, exc_info=True)
            await self._error_artifacts(page, "navigation_error")
            raise NavigationError(f"Scrape of {url} failed: {exc}") from exc
        except ContentTimeoutError:
            logger.error("Timed out waiting for %s", url, exc_info=True)
            await self._error_artifacts(page, "timeout_error")
            raise
        except PersistenceError:
            logger.error("Could not store %s", url, exc_info=True)
            await self._error_artifacts(page, "persistence_error")
            raise
        except ScrapeError:
            await self._error_artifacts(page, "scraper_error")
            raise
        finally:
            await session.close()
            set_log_target(None)

    async def _error_artifacts(self, page: Page | None, label: str) -> None:
        if page is None:
            return
        await self.files.save_screenshot(page, ERROR, label)
        await self.files.save_html(page, ERROR, label)
