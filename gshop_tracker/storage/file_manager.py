# gshop_tracker/storage/file_manager.py

"""Handles diagnostic artifacts and JSON exports on disk."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from playwright.async_api import Error as PlaywrightError

from gshop_tracker.config.settings import Settings
from gshop_tracker.models.product import ProductRecord

logger = logging.getLogger("gshop_tracker.storage")

# Artifact namespaces under SCREENSHOTS_DIR
CAPTCHA = "captcha"
DEBUG = "debug"
ERROR = "error"


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S_%f")


class FileManager:
    """Writes screenshots, HTML dumps and JSON exports.

    Artifact writes are best effort: a failure is logged and ``None``
    returned so a broken page never masks the error being diagnosed.
    """

    def __init__(
        self,
        screenshots_dir: Path | None = None,
        results_dir: Path | None = None,
    ) -> None:
        self.screenshots_dir: Path = (
            screenshots_dir or Settings.SCREENSHOTS_DIR
        )
        self.results_dir: Path = results_dir or Settings.RESULTS_DIR
        logger.debug(
            "FileManager initialised: screenshots_dir=%s results_dir=%s",
            self.screenshots_dir,
            self.results_dir,
        )

    def artifact_path(self, kind: str, label: str, ext: str) -> Path:
        """Build ``<screenshots>/<kind>/<label>_<timestamp>.<ext>``."""
        directory = self.screenshots_dir / kind
        directory.mkdir(parents=True, exist_ok=True)
        safe_label = label.replace(" ", "_").replace("/", "_")
        return directory / f"{safe_label}_{_timestamp()}.{ext}"

    async def save_screenshot(
        self, page: Any, kind: str, label: str,
    ) -> Path | None:
        """Capture a full-page screenshot of *page*."""
        try:
            path = self.artifact_path(kind, label, "png")
            await page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as exc:
            logger.warning("Could not save %s screenshot: %s", kind, exc)
            return None
        logger.info("Saved %s screenshot to %s", kind, path)
        return path

    async def save_html(
        self, page: Any, kind: str, label: str,
    ) -> Path | None:
        """Dump the current page HTML next to the screenshots."""
        try:
            path = self.artifact_path(kind, label, "html")
            html = await page.content()
            path.write_text(html, encoding="utf-8")
        except (PlaywrightError, OSError) as exc:
            logger.warning("Could not save %s HTML dump: %s", kind, exc)
            return None
        logger.info("Saved %s HTML dump to %s", kind, path)
        return path

    def save_results(self, record: ProductRecord) -> Path:
        """Save a stored record to a timestamped JSON file."""
        self.results_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{record.product_id or 'product'}_{timestamp}.json"
        filepath = self.results_dir / filename

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)

        logger.info(
            "Exported %r (%d stores, %d reviews) to %s",
            record.product_name,
            len(record.stores),
            len(record.reviews),
            filepath,
        )
        return filepath
