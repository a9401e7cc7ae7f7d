# gshop_tracker/scrapers/pacing.py

"""Randomised waits and scrolling so page interaction looks less scripted."""

import asyncio
import logging
import random

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

logger = logging.getLogger("gshop_tracker.pacing")

JITTER = 0.2        # ± fraction applied to every pause
MAX_SCROLL_STEPS = 5


async def human_pause(seconds: float, jitter: float = JITTER) -> None:
    """Sleep around *seconds*; zero or negative returns immediately."""
    if seconds <= 0:
        return
    await asyncio.sleep(seconds * random.uniform(1 - jitter, 1 + jitter))


async def smooth_scroll(
    page: Page,
    max_steps: int = MAX_SCROLL_STEPS,
    step_delay: float = 0.4,
) -> int:
    """Scroll down by viewport-sized steps, at most *max_steps*.

    Stops early once the bottom of the page is reached. Returns the
    number of steps taken; scrolling errors end the walk quietly.
    """
    steps = 0
    try:
        for _ in range(max_steps):
            at_bottom: bool = await page.evaluate(
                "() => { window.scrollBy(0, window.innerHeight * 0.8); "
                "return window.innerHeight + window.scrollY "
                ">= document.body.scrollHeight - 2; }"
            )
            steps += 1
            await human_pause(step_delay)
            if at_bottom:
                break
        await page.evaluate("() => window.scrollTo(0, 0)")
    except PlaywrightError as exc:
        logger.debug("Scrolling stopped after %d steps: %s", steps, exc)
    return steps
