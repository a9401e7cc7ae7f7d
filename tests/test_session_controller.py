# tests/test_session_controller.py

"""Tests for the browser session lifecycle and CAPTCHA escalation."""

import unittest
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import Error as PlaywrightError

from gshop_tracker.errors import NavigationError
from gshop_tracker.scrapers.session_controller import (
    SessionController,
    SessionState,
)
from gshop_tracker.storage.session_store import (
    MemorySessionStore,
    SessionSnapshot,
)

URL = "https://www.google.com/search?ibp=oshop&q=s24&oshopproduct=gid:1"


def _context(
    cookies: list[dict[str, Any]] | None = None,
) -> tuple[MagicMock, MagicMock]:
    """A fake browser context holding one page."""
    page = MagicMock()
    page.url = URL
    page.goto = AsyncMock()
    page.context.cookies = AsyncMock(return_value=cookies or [])
    ctx = MagicMock()
    ctx.pages = [page]
    ctx.add_init_script = AsyncMock()
    ctx.add_cookies = AsyncMock()
    ctx.close = AsyncMock()
    ctx.new_page = AsyncMock(return_value=page)
    return ctx, page


def _captcha(detected: bool) -> MagicMock:
    captcha = MagicMock()
    captcha.detect = AsyncMock(return_value=detected)
    captcha.resolve = AsyncMock(return_value=True)
    return captcha


def _files() -> MagicMock:
    files = MagicMock()
    files.save_screenshot = AsyncMock(return_value=None)
    files.save_html = AsyncMock(return_value=None)
    return files


def _controller(
    launcher: AsyncMock,
    captcha: MagicMock,
    store: MemorySessionStore | None = None,
    files: MagicMock | None = None,
) -> SessionController:
    return SessionController(
        captcha=captcha,
        session_store=store or MemorySessionStore(),
        file_manager=files or _files(),
        launcher=launcher,
        headless=True,
        post_captcha_settle=0,
    )


class TestSessionOpen(unittest.IsolatedAsyncioTestCase):
    """Opening a product page."""

    async def test_clean_headless_path(self) -> None:
        """No CAPTCHA: one headless launch, page navigated."""
        ctx, page = _context()
        launcher = AsyncMock(return_value=ctx)
        controller = _controller(launcher, _captcha(False))

        result = await controller.open(URL)

        self.assertIs(result, page)
        self.assertIs(controller.state, SessionState.HEADLESS)
        self.assertFalse(controller.captcha_handled)
        launcher.assert_awaited_once_with(True)
        page.goto.assert_awaited_once()
        self.assertEqual(page.goto.await_args.args[0], URL)
        self.assertEqual(
            page.goto.await_args.kwargs["wait_until"], "domcontentloaded"
        )
        ctx.add_init_script.assert_awaited_once()

    async def test_new_page_when_context_empty(self) -> None:
        """A context without pages gets a new one."""
        ctx, page = _context()
        ctx.pages = []
        controller = _controller(AsyncMock(return_value=ctx), _captcha(False))

        self.assertIs(await controller.open(URL), page)
        ctx.new_page.assert_awaited_once()

    async def test_escalates_to_visible(self) -> None:
        """A headless CAPTCHA reopens the profile visibly."""
        cookies = [{"name": "NID", "value": "abc", "domain": ".google.com"}]
        headless_ctx, _ = _context()
        visible_ctx, visible_page = _context(cookies)
        launcher = AsyncMock(side_effect=[headless_ctx, visible_ctx])
        captcha = _captcha(True)
        store = MemorySessionStore()
        files = _files()
        controller = _controller(launcher, captcha, store, files)

        result = await controller.open(URL)

        self.assertIs(result, visible_page)
        self.assertIs(controller.state, SessionState.VISIBLE)
        self.assertTrue(controller.captcha_handled)
        self.assertEqual(
            [c.args for c in launcher.await_args_list], [(True,), (False,)]
        )
        headless_ctx.close.assert_awaited_once()
        visible_page.goto.assert_awaited_once()
        captcha.resolve.assert_awaited_once_with(visible_page)
        assert store.snapshot is not None
        self.assertEqual(store.snapshot.cookies, cookies)
        self.assertEqual(store.snapshot.domain, "www.google.com")
        files.save_html.assert_awaited_once()

    async def test_degraded_when_visible_launch_fails(self) -> None:
        """Failed visible launch falls back to an un-navigated page."""
        headless_ctx, _ = _context()
        fresh_ctx, fresh_page = _context()
        launcher = AsyncMock(
            side_effect=[
                headless_ctx,
                PlaywrightError("no display"),
                fresh_ctx,
            ]
        )
        captcha = _captcha(True)
        controller = _controller(launcher, captcha)

        result = await controller.open(URL)

        self.assertIs(result, fresh_page)
        self.assertIs(controller.state, SessionState.DEGRADED)
        fresh_page.goto.assert_not_awaited()
        captcha.resolve.assert_not_awaited()
        self.assertEqual(launcher.await_args_list[2].args, (True,))

    async def test_navigation_failure(self) -> None:
        """A failed first navigation raises NavigationError."""
        ctx, page = _context()
        page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR"))
        files = _files()
        controller = _controller(
            AsyncMock(return_value=ctx), _captcha(False), files=files
        )

        with self.assertRaises(NavigationError):
            await controller.open(URL)

        self.assertIs(controller.state, SessionState.FAILED)
        files.save_screenshot.assert_awaited_once()
        ctx.close.assert_awaited_once()

    async def test_launch_failure(self) -> None:
        """A browser that cannot start raises NavigationError."""
        launcher = AsyncMock(side_effect=PlaywrightError("no browser"))
        controller = _controller(launcher, _captcha(False))

        with self.assertRaises(NavigationError):
            await controller.open(URL)
        self.assertIs(controller.state, SessionState.FAILED)

    async def test_context_manager_closes(self) -> None:
        """Leaving the async block closes the browser."""
        ctx, _ = _context()
        controller = _controller(AsyncMock(return_value=ctx), _captcha(False))

        async with controller:
            await controller.open(URL)

        ctx.close.assert_awaited_once()
        self.assertIs(controller.state, SessionState.CLOSED)


class TestSessionCookies(unittest.IsolatedAsyncioTestCase):
    """Cookie restore and persist."""

    async def test_restores_saved_cookies(self) -> None:
        """Stored cookies are added to a new context."""
        cookies = [{"name": "NID", "value": "abc", "domain": ".google.com"}]
        store = MemorySessionStore(SessionSnapshot(cookies=cookies))
        ctx, _ = _context()
        controller = _controller(
            AsyncMock(return_value=ctx), _captcha(False), store
        )

        await controller.open(URL)

        ctx.add_cookies.assert_awaited_once_with(cookies)

    async def test_no_saved_cookies(self) -> None:
        """Nothing to restore leaves the context alone."""
        ctx, _ = _context()
        controller = _controller(AsyncMock(return_value=ctx), _captcha(False))
        self.assertEqual(await controller.restore_cookies(ctx), 0)
        ctx.add_cookies.assert_not_awaited()

    async def test_persist_without_cookies(self) -> None:
        """An empty jar is not written."""
        store = MemorySessionStore()
        _, page = _context()
        controller = _controller(AsyncMock(), _captcha(False), store)

        self.assertFalse(await controller.persist_session(page))
        self.assertIsNone(store.snapshot)

    async def test_persist_with_cookies(self) -> None:
        """Cookies and the page host are stored."""
        cookies = [{"name": "SID", "value": "x", "domain": ".google.com"}]
        store = MemorySessionStore()
        _, page = _context(cookies)
        controller = _controller(AsyncMock(), _captcha(False), store)

        self.assertTrue(await controller.persist_session(page))
        assert store.snapshot is not None
        self.assertEqual(store.snapshot.cookies, cookies)
        self.assertEqual(store.snapshot.domain, "www.google.com")
        self.assertIsNotNone(store.snapshot.last_used)

    async def test_persist_default_domain(self) -> None:
        """A page without a host falls back to the default domain."""
        store = MemorySessionStore()
        _, page = _context([{"name": "a", "value": "b"}])
        page.url = "about:blank"
        controller = _controller(AsyncMock(), _captcha(False), store)

        await controller.persist_session(page)
        assert store.snapshot is not None
        self.assertEqual(store.snapshot.domain, "google.com")


if __name__ == "__main__":
    unittest.main()
