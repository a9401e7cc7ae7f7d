# gshop_tracker/scrapers/section_expander.py

"""Reveals paginated offers or reviews by clicking their "show more" control.

Policy and side effects are kept apart: :func:`next_action` decides
from an :class:`ExpansionState` whether to keep going, while
:class:`SectionExpander` does the browser work. Locating and clicking
each walk an ordered list of strategies until one succeeds.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from gshop_tracker.config.settings import Settings, load_selectors
from gshop_tracker.scrapers.captcha_gate import CaptchaGate
from gshop_tracker.scrapers.pacing import human_pause

logger = logging.getLogger("gshop_tracker.expander")


# ── Policy ───────────────────────────────────────────────


class Action(Enum):
    CONTINUE = "continue"
    STOP = "stop"
    GIVE_UP = "give_up"


@dataclass
class ExpansionState:
    """Counters threaded through one expansion run."""

    max_clicks: int
    max_attempts: int
    attempts: int = 0
    clicks: int = 0
    misses: int = 0             # Consecutive failed locates
    exhausted: bool = False     # Control vanished after a click
    sufficient: bool = False    # Enough items already visible
    click_failed: bool = False  # Every click strategy failed


def next_action(
    state: ExpansionState,
    max_misses: int = Settings.MAX_LOCATE_MISSES,
) -> Action:
    """Decide whether to attempt another click."""
    if state.exhausted or state.sufficient:
        return Action.STOP
    if state.clicks >= state.max_clicks:
        return Action.STOP
    if state.click_failed:
        return Action.GIVE_UP
    if state.misses >= max_misses:
        return Action.GIVE_UP
    if state.attempts >= state.max_attempts:
        return Action.GIVE_UP
    return Action.CONTINUE


# ── Section description ──────────────────────────────────


@dataclass
class SectionSpec:
    """What to click and what to count for one expandable section."""

    name: str
    primary_selector: str
    alternate_selectors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    button_texts: list[str] = field(
        default_factory=lambda: list[str]()
    )
    item_selector: str = ""
    sufficient_items: int = 0
    clickable_roles: str = 'div[role="button"], button'

    @classmethod
    def from_selectors(
        cls, name: str, selectors: dict[str, Any] | None = None,
    ) -> "SectionSpec":
        """Describe the ``"stores"`` or ``"reviews"`` section."""
        sel = selectors if selectors is not None else load_selectors()
        buttons: dict[str, Any] = sel.get("buttons", {})
        items = {
            "stores": sel.get("stores", {}).get("container", ""),
            "reviews": sel.get("reviews", {}).get("container", ""),
        }
        return cls(
            name=name,
            primary_selector=buttons.get(name, ""),
            alternate_selectors=list(
                buttons.get(f"{name}_alternate", [])
            ),
            button_texts=list(sel.get("button_texts", {}).get(name, [])),
            item_selector=items.get(name, ""),
            sufficient_items=Settings.SUFFICIENT_ITEMS.get(name, 0),
            clickable_roles=sel.get(
                "clickable_roles", 'div[role="button"], button'
            ),
        )


# ── Location strategies ──────────────────────────────────

LocateStrategy = Callable[[Page, SectionSpec], Awaitable[ElementHandle | None]]
ClickStrategy = Callable[[Page, ElementHandle], Awaitable[bool]]

_FIND_BY_TEXT_JS = """
([roles, texts]) => {
    const candidates = Array.from(document.querySelectorAll(roles));
    for (const text of texts) {
        const match = candidates.find(
            (el) => (el.textContent || "").includes(text)
                && window.getComputedStyle(el).display !== "none"
        );
        if (match) return match;
    }
    return null;
}
"""


async def by_primary_selector(
    page: Page, spec: SectionSpec,
) -> ElementHandle | None:
    if not spec.primary_selector:
        return None
    return await page.query_selector(spec.primary_selector)


async def by_alternate_selectors(
    page: Page, spec: SectionSpec,
) -> ElementHandle | None:
    for selector in spec.alternate_selectors:
        handle = await page.query_selector(selector)
        if handle:
            return handle
    return None


async def by_clickable_text(
    page: Page, spec: SectionSpec,
) -> ElementHandle | None:
    """First visible clickable-role element containing a known phrase."""
    if not spec.button_texts:
        return None
    js_handle = await page.evaluate_handle(
        _FIND_BY_TEXT_JS, [spec.clickable_roles, spec.button_texts]
    )
    return js_handle.as_element()


async def by_xpath_text(
    page: Page, spec: SectionSpec,
) -> ElementHandle | None:
    """Any element whose own text contains a known phrase."""
    for text in spec.button_texts:
        if '"' in text:
            continue
        handle = await page.query_selector(
            f'xpath=//*[contains(text(), "{text}")]'
        )
        if handle:
            return handle
    return None


LOCATE_STRATEGIES: list[tuple[str, LocateStrategy]] = [
    ("primary selector", by_primary_selector),
    ("alternate selector", by_alternate_selectors),
    ("button text", by_clickable_text),
    ("xpath text", by_xpath_text),
]


# ── Click strategies ─────────────────────────────────────


async def native_click(page: Page, handle: ElementHandle) -> bool:
    await handle.click(delay=100, timeout=Settings.CLICK_TIMEOUT * 1000)
    return True


async def scripted_click(page: Page, handle: ElementHandle) -> bool:
    await page.evaluate("(el) => el.click()", handle)
    return True


async def pointer_click(page: Page, handle: ElementHandle) -> bool:
    """Press and release the mouse at the centre of the element."""
    box = await handle.bounding_box()
    if not box:
        return False
    await page.mouse.move(
        box["x"] + box["width"] / 2,
        box["y"] + box["height"] / 2,
    )
    await page.mouse.down()
    await human_pause(0.1)
    await page.mouse.up()
    return True


CLICK_STRATEGIES: list[tuple[str, ClickStrategy]] = [
    ("native click", native_click),
    ("scripted click", scripted_click),
    ("pointer events", pointer_click),
]


# ── Expander ─────────────────────────────────────────────


class SectionExpander:
    """Clicks a section's "show more" control up to a click budget.

    :meth:`expand` never raises: whatever goes wrong, it returns the
    number of clicks that landed, possibly 0.
    """

    def __init__(
        self,
        captcha: CaptchaGate | None = None,
        settle_delay: float | None = None,
        scroll_delay: float | None = None,
        missing_delay: float | None = None,
        max_misses: int | None = None,
    ) -> None:
        self.captcha = captcha
        self.settle_delay = (
            Settings.EXPANSION_SETTLE_DELAY
            if settle_delay is None
            else settle_delay
        )
        self.scroll_delay = (
            Settings.SCROLL_SETTLE_DELAY
            if scroll_delay is None
            else scroll_delay
        )
        self.missing_delay = (
            Settings.MISSING_CONTROL_DELAY
            if missing_delay is None
            else missing_delay
        )
        self.max_misses = (
            Settings.MAX_LOCATE_MISSES if max_misses is None else max_misses
        )
        self.last_state: ExpansionState | None = None

    async def locate(
        self, page: Page, spec: SectionSpec,
    ) -> tuple[ElementHandle | None, int | None]:
        """Walk the location strategies; returns (handle, strategy index)."""
        for index, (label, strategy) in enumerate(LOCATE_STRATEGIES):
            try:
                handle = await strategy(page, spec)
            except PlaywrightError as exc:
                logger.debug(
                    "%s lookup via %s failed: %s", spec.name, label, exc
                )
                continue
            if handle:
                logger.debug("Found %s control via %s", spec.name, label)
                return handle, index
        return None, None

    async def click(self, page: Page, handle: ElementHandle) -> bool:
        """Walk the click strategies until one reports success."""
        for label, strategy in CLICK_STRATEGIES:
            try:
                if await strategy(page, handle):
                    logger.debug("Clicked via %s", label)
                    return True
            except PlaywrightError as exc:
                logger.debug("Click via %s failed: %s", label, exc)
        return False

    async def count_items(self, page: Page, spec: SectionSpec) -> int:
        """Number of section items currently in the page."""
        if not spec.item_selector:
            return 0
        try:
            count: int = await page.eval_on_selector_all(
                spec.item_selector, "(els) => els.length"
            )
        except PlaywrightError:
            return 0
        return count

    async def _still_present(
        self, page: Page, spec: SectionSpec, strategy_index: int,
    ) -> bool:
        """Re-run the strategy that found the control last time."""
        label, strategy = LOCATE_STRATEGIES[strategy_index]
        try:
            return bool(await strategy(page, spec))
        except PlaywrightError as exc:
            logger.debug("Presence check via %s failed: %s", label, exc)
            return False

    async def _scroll_into_view(
        self, page: Page, handle: ElementHandle,
    ) -> None:
        try:
            await page.evaluate(
                "(el) => el.scrollIntoView("
                "{behavior: 'smooth', block: 'center'})",
                handle,
            )
        except PlaywrightError as exc:
            logger.debug("Scroll into view failed: %s", exc)
        await human_pause(self.scroll_delay)

    async def expand(
        self,
        page: Page,
        spec: SectionSpec,
        max_clicks: int,
        click_delay: float | None = None,
    ) -> int:
        """Click the section's control up to *max_clicks* times.

        Returns:
            The number of successful clicks.
        """
        delay = (
            Settings.DEFAULT_CLICK_DELAY if click_delay is None else click_delay
        )
        state = ExpansionState(
            max_clicks=max_clicks,
            max_attempts=max_clicks + Settings.EXTRA_ATTEMPTS,
        )
        self.last_state = state
        logger.info(
            "Expanding %s section (up to %d clicks)", spec.name, max_clicks
        )

        try:
            if self.captcha is not None:
                await self.captcha.check_and_resolve(page)
            await self._run(page, spec, state, delay)
        except Exception:
            logger.error(
                "Expansion of %s stopped after %d clicks",
                spec.name,
                state.clicks,
                exc_info=True,
            )
            return state.clicks

        logger.info(
            "Finished %s expansion: %d clicks in %d attempts (%s)",
            spec.name,
            state.clicks,
            state.attempts,
            next_action(state, self.max_misses).value,
        )
        return state.clicks

    async def _run(
        self,
        page: Page,
        spec: SectionSpec,
        state: ExpansionState,
        delay: float,
    ) -> None:
        while next_action(state, self.max_misses) is Action.CONTINUE:
            state.attempts += 1
            await human_pause(self.settle_delay)

            handle, strategy_index = await self.locate(page, spec)
            if handle is None or strategy_index is None:
                visible = await self.count_items(page, spec)
                if visible > spec.sufficient_items:
                    logger.info(
                        "No %s control, but %d items already visible",
                        spec.name,
                        visible,
                    )
                    state.sufficient = True
                    continue
                state.misses += 1
                logger.info(
                    "No %s control on attempt %d (%d visible)",
                    spec.name,
                    state.attempts,
                    visible,
                )
                await human_pause(self.missing_delay)
                continue

            state.misses = 0
            await self._scroll_into_view(page, handle)

            if not await self.click(page, handle):
                logger.warning(
                    "All click methods failed for %s control", spec.name
                )
                state.click_failed = True
                continue

            state.clicks += 1
            logger.info(
                "Click %d/%d on %s control",
                state.clicks,
                state.max_clicks,
                spec.name,
            )
            await human_pause(delay)
            logger.debug(
                "%d %s visible after click %d",
                await self.count_items(page, spec),
                spec.name,
                state.clicks,
            )

            if not await self._still_present(page, spec, strategy_index):
                logger.info("%s control gone; all items shown", spec.name)
                state.exhausted = True
