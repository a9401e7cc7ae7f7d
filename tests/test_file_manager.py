# tests/test_file_manager.py

"""Tests for the FileManager storage module."""

import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import Error as PlaywrightError

from gshop_tracker.models.price_snapshot import PriceHistoryEntry
from gshop_tracker.models.product import ProductRecord, StoreOffer
from gshop_tracker.storage.file_manager import (
    CAPTCHA,
    DEBUG,
    ERROR,
    FileManager,
)


def _record() -> ProductRecord:
    return ProductRecord(
        product_name="جوال سامسونج S24",
        source_url="https://www.google.com/search?q=s24",
        product_id="جوالسامسونجS24-1a2b3c4d",
        stores=[StoreOffer(store="Jarir", current_price=4599.0)],
        lowest_price=4599.0,
        highest_price=4599.0,
        average_price=4599.0,
        price_history=[
            PriceHistoryEntry(
                date=datetime(2026, 3, 1, 10, 0),
                lowest_price=4599.0,
                highest_price=4599.0,
                average_price=4599.0,
            )
        ],
        created_at=datetime(2026, 3, 1, 10, 0),
        updated_at=datetime(2026, 3, 1, 10, 0),
    )


class TestFileManagerResults(unittest.TestCase):
    """JSON export."""

    def setUp(self) -> None:
        """Set up temp directories for artifacts and results."""
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.fm = FileManager(
            screenshots_dir=self.tmp_dir / "screenshots",
            results_dir=self.tmp_dir / "results",
        )

    def test_save_results_creates_json(self) -> None:
        """save_results writes the record as UTF-8 JSON."""
        path = self.fm.save_results(_record())

        self.assertTrue(path.exists())
        self.assertTrue(path.name.endswith(".json"))
        data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(data["product_name"], "جوال سامسونج S24")
        self.assertEqual(data["lowestPrice"], 4599.0)
        self.assertEqual(len(data["priceHistory"]), 1)

    def test_save_results_keeps_arabic(self) -> None:
        """Arabic text is written unescaped."""
        path = self.fm.save_results(_record())
        self.assertIn("سامسونج", path.read_text(encoding="utf-8"))

    def test_save_results_filename_format(self) -> None:
        """Filename starts with the product identifier."""
        path = self.fm.save_results(_record())
        self.assertTrue(path.name.startswith("جوالسامسونجS24-1a2b3c4d_"))
        self.assertEqual(path.parent, self.tmp_dir / "results")

    def test_artifact_path_layout(self) -> None:
        """Artifacts go under <screenshots>/<kind>/ with a safe label."""
        path = self.fm.artifact_path(DEBUG, "after captcha/1", "png")
        self.assertEqual(path.parent, self.tmp_dir / "screenshots" / DEBUG)
        self.assertTrue(path.name.startswith("after_captcha_1_"))
        self.assertTrue(path.parent.is_dir())


class TestFileManagerArtifacts(unittest.IsolatedAsyncioTestCase):
    """Best-effort screenshots and HTML dumps."""

    def setUp(self) -> None:
        """Set up a temp directory for artifacts."""
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.fm = FileManager(screenshots_dir=self.tmp_dir)

    async def test_save_screenshot(self) -> None:
        """The page is asked for a full-page screenshot."""
        page = MagicMock()
        page.screenshot = AsyncMock()

        path = await self.fm.save_screenshot(page, CAPTCHA, "captcha")

        assert path is not None
        self.assertEqual(path.parent.name, CAPTCHA)
        page.screenshot.assert_awaited_once_with(
            path=str(path), full_page=True
        )

    async def test_screenshot_failure_returns_none(self) -> None:
        """A closed page does not raise."""
        page = MagicMock()
        page.screenshot = AsyncMock(side_effect=PlaywrightError("closed"))
        self.assertIsNone(
            await self.fm.save_screenshot(page, DEBUG, "launcher_error")
        )

    async def test_save_html(self) -> None:
        """The page HTML is written to disk."""
        page = MagicMock()
        page.content = AsyncMock(return_value="<html>ok</html>")

        path = await self.fm.save_html(page, DEBUG, "after_captcha")

        assert path is not None
        self.assertEqual(path.read_text(encoding="utf-8"), "<html>ok</html>")

    async def test_html_failure_returns_none(self) -> None:
        """A page that cannot be read does not raise."""
        page = MagicMock()
        page.content = AsyncMock(side_effect=PlaywrightError("closed"))
        self.assertIsNone(await self.fm.save_html(page, DEBUG, "x"))

    async def test_unwritable_directory_returns_none(self) -> None:
        """A directory that cannot be created does not raise."""
        blocker = self.tmp_dir / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        fm = FileManager(screenshots_dir=blocker / "shots")
        page = MagicMock()
        page.screenshot = AsyncMock()
        page.content = AsyncMock(return_value="<html></html>")

        self.assertIsNone(await fm.save_screenshot(page, ERROR, "timeout"))
        self.assertIsNone(await fm.save_html(page, ERROR, "timeout"))
        page.screenshot.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
