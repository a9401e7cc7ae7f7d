# gshop_tracker/config/logging_config.py

"""Per-run timestamped logging configuration for gshop_tracker.

Each launch writes ``logs/<prefix>_<timestamp>.log`` (``run`` for
single scrapes, ``update`` for batch re-scrapes). Every line in the
file carries the product URL being scraped at the time, so an update
run covering dozens of products can be grepped per product.

Scrapes are long and interactive (a CAPTCHA can park the run for
minutes), so the console only shows warnings and errors while the file
keeps the full DEBUG trail of every attempt and click.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from gshop_tracker.config.settings import Settings

_NO_TARGET = "-"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(target)s | %(name)s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ScrapeTargetFilter(logging.Filter):
    """Stamps records with the URL currently being scraped."""

    def __init__(self) -> None:
        super().__init__()
        self.target = _NO_TARGET

    def filter(self, record: logging.LogRecord) -> bool:
        record.target = self.target
        return True


_target_filter = ScrapeTargetFilter()


def set_log_target(target: str | None) -> None:
    """Tag subsequent file log lines with *target*; ``None`` clears it."""
    _target_filter.target = target or _NO_TARGET


def setup_logging(prefix: str = "run") -> Path:
    """Initialise the root ``gshop_tracker`` logger for the current run.

    Args:
        prefix: File name prefix, ``run`` or ``update``.

    Returns:
        The path of the log file created for this run.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"{prefix}_{timestamp}.log"

    root_logger = logging.getLogger("gshop_tracker")
    root_logger.setLevel(logging.DEBUG)

    # Already configured (repeated calls in tests)
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(_target_filter)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    # Console stays quiet while a CAPTCHA prompt may be on screen
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging to %s (%s run)", log_file, prefix)
    return log_file
