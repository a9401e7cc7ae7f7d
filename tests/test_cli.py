# tests/test_cli.py

"""Tests for the command runners and the argparse entry point."""

import io
import json
import logging
import unittest
from contextlib import redirect_stdout
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import main
from gshop_tracker.cli import runner
from gshop_tracker.config.settings import Settings
from gshop_tracker.errors import NavigationError
from gshop_tracker.models.product import ProductRecord, StoreOffer
from gshop_tracker.services.health_checker import HealthResult
from gshop_tracker.services.updater import UpdateSummary
from gshop_tracker.storage.product_store import ProductStore

URL = "https://www.google.com/search?ibp=oshop&q=s24&oshopproduct=gid:1"


def _stored_record() -> ProductRecord:
    when = datetime(2026, 3, 1, 10, 0)
    return ProductRecord(
        product_name="Galaxy S24",
        source_url=URL,
        product_id="GalaxyS24-1a2b3c4d",
        category="phones",
        brand="Samsung",
        stores=[
            StoreOffer(store="Jarir", current_price=4599.0),
            StoreOffer(store="noon", current_price=None),
        ],
        lowest_price=4599.0,
        highest_price=4599.0,
        average_price=4599.0,
        created_at=when,
        updated_at=when,
    )


class TestCliScrape(unittest.IsolatedAsyncioTestCase):
    """The scrape command."""

    @patch("gshop_tracker.cli.runner.ScrapeOrchestrator")
    async def test_json_output(self, mock_cls: MagicMock) -> None:
        """A successful scrape prints the stored record as JSON."""
        mock_cls.return_value.scrape = AsyncMock(return_value=_stored_record())
        out = io.StringIO()

        with redirect_stdout(out):
            code = await runner.cli_scrape(URL, stores_clicks=3)

        self.assertEqual(code, 0)
        data = json.loads(out.getvalue())
        self.assertEqual(data["productId"], "GalaxyS24-1a2b3c4d")
        options = mock_cls.return_value.scrape.await_args.args[1]
        self.assertEqual(options.max_clicks_stores, 3)
        self.assertIsNone(options.max_clicks_reviews)

    @patch("gshop_tracker.cli.runner.ScrapeOrchestrator")
    async def test_failure_exit_code(self, mock_cls: MagicMock) -> None:
        """A scrape error maps to exit code 1."""
        mock_cls.return_value.scrape = AsyncMock(
            side_effect=NavigationError("unreachable")
        )
        self.assertEqual(await runner.cli_scrape(URL), 1)

    @patch("gshop_tracker.cli.runner.ScrapeOrchestrator")
    async def test_export(self, mock_cls: MagicMock) -> None:
        """--export writes the record under results/."""
        mock_cls.return_value.scrape = AsyncMock(return_value=_stored_record())

        with redirect_stdout(io.StringIO()):
            code = await runner.cli_scrape(URL, export=True)

        self.assertEqual(code, 0)
        exported = list(Settings.RESULTS_DIR.glob("GalaxyS24-1a2b3c4d_*.json"))
        self.assertEqual(len(exported), 1)

    @patch("gshop_tracker.cli.runner.ScrapeOrchestrator")
    async def test_table_output(self, mock_cls: MagicMock) -> None:
        """Table format renders without JSON on stdout."""
        mock_cls.return_value.scrape = AsyncMock(return_value=_stored_record())
        out = io.StringIO()

        with redirect_stdout(out):
            code = await runner.cli_scrape(URL, output_format="table")

        self.assertEqual(code, 0)
        self.assertIn("Jarir", out.getvalue())
        self.assertNotIn('"productId"', out.getvalue())


class TestCliUpdate(unittest.IsolatedAsyncioTestCase):
    """The update command."""

    async def test_empty_store(self) -> None:
        """Nothing stored means exit code 1."""
        self.assertEqual(await runner.cli_update(), 1)

    @patch("gshop_tracker.cli.runner.ProductUpdater")
    async def test_all_updated(self, mock_cls: MagicMock) -> None:
        """A clean batch exits 0."""
        mock_cls.return_value.run = AsyncMock(
            return_value=UpdateSummary(total=2, updated=2)
        )
        self.assertEqual(await runner.cli_update(limit=2), 0)
        mock_cls.return_value.run.assert_awaited_once_with(
            limit=2, offset=0, category=None, brand=None
        )

    @patch("gshop_tracker.cli.runner.ProductUpdater")
    async def test_partial_failure(self, mock_cls: MagicMock) -> None:
        """Any failed product exits 1."""
        mock_cls.return_value.run = AsyncMock(
            return_value=UpdateSummary(
                total=2, updated=1, failed=1, errors=["x: boom"]
            )
        )
        self.assertEqual(await runner.cli_update(), 1)


class TestListProducts(unittest.TestCase):
    """The list command."""

    def test_empty(self) -> None:
        """An empty database is not an error."""
        self.assertEqual(runner.list_products(), 0)

    def test_lists_stored(self) -> None:
        """Stored products are rendered in a table."""
        store = ProductStore()
        store.save(_stored_record())
        store.close()
        out = io.StringIO()

        with redirect_stdout(out):
            code = runner.list_products(category="phones")

        self.assertEqual(code, 0)
        self.assertIn("Stored Products", out.getvalue())


class TestHealthCommand(unittest.IsolatedAsyncioTestCase):
    """The health command."""

    @patch("gshop_tracker.services.health_checker.HealthChecker")
    async def test_ok(self, mock_cls: MagicMock) -> None:
        """An ok probe exits 0."""
        mock_cls.return_value.check = AsyncMock(
            return_value=HealthResult(URL, "ok", 120.0, "")
        )
        with redirect_stdout(io.StringIO()):
            self.assertEqual(await runner.run_health_check(), 0)

    @patch("gshop_tracker.services.health_checker.HealthChecker")
    async def test_blocked(self, mock_cls: MagicMock) -> None:
        """A blocked probe exits 1."""
        mock_cls.return_value.check = AsyncMock(
            return_value=HealthResult(URL, "blocked", 80.0, "HTTP 429")
        )
        with redirect_stdout(io.StringIO()):
            self.assertEqual(await runner.run_health_check(), 1)


class TestMain(unittest.TestCase):
    """argparse entry point."""

    def setUp(self) -> None:
        """Drop handlers added by setup_logging after each test."""
        root_logger = logging.getLogger("gshop_tracker")

        def _clear() -> None:
            for handler in list(root_logger.handlers):
                handler.close()
            root_logger.handlers.clear()

        self.addCleanup(_clear)

    def test_scrape_arguments(self) -> None:
        """Scrape flags parse into the expected namespace."""
        args = main._build_parser().parse_args([
            "scrape", URL,
            "--stores-clicks", "3",
            "--reviews-clicks", "1",
            "--click-delay", "0.5",
            "-c", "phones",
            "-f", "table",
        ])
        self.assertEqual(args.url, URL)
        self.assertEqual(args.stores_clicks, 3)
        self.assertEqual(args.reviews_clicks, 1)
        self.assertEqual(args.click_delay, 0.5)
        self.assertEqual(args.category, "phones")
        self.assertEqual(args.output_format, "table")
        self.assertFalse(args.export)

    def test_command_required(self) -> None:
        """Running without a command is a usage error."""
        with self.assertRaises(SystemExit):
            main._build_parser().parse_args([])

    def test_list_exit_code(self) -> None:
        """main exits with the command's code."""
        with self.assertRaises(SystemExit) as ctx:
            main.main(["list"])
        self.assertEqual(ctx.exception.code, 0)

    @patch("main._run", side_effect=RuntimeError("boom"))
    def test_fatal_error_exit_code(self, _run: MagicMock) -> None:
        """Unexpected errors are logged and exit 1."""
        with self.assertRaises(SystemExit) as ctx:
            main.main(["health"])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
