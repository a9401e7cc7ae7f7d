# gshop_tracker/config/settings.py

"""Central configuration for the gshop_tracker engine."""

import json
import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    """Read a float override from the environment."""
    raw = os.getenv(name)
    return float(raw) if raw else default


class Settings:
    """Central configuration for the gshop_tracker engine."""

    # --- Section expansion ---
    MAX_CLICK_ATTEMPTS_STORES: int = _env_int(
        "MAX_CLICK_ATTEMPTS_STORES", 7
    )
    MAX_CLICK_ATTEMPTS_REVIEWS: int = _env_int(
        "MAX_CLICK_ATTEMPTS_REVIEWS", 5
    )
    DEFAULT_CLICK_DELAY: float = _env_float(
        "DEFAULT_CLICK_DELAY", 1.5
    )                                   # Seconds after each click
    CLICK_TIMEOUT: float = 3.0          # Seconds before a native click gives up
    EXPANSION_SETTLE_DELAY: float = 0.3  # Before every attempt
    SCROLL_SETTLE_DELAY: float = 0.7    # After scrolling to the control
    MISSING_CONTROL_DELAY: float = 1.0  # After a failed locate
    MAX_LOCATE_MISSES: int = 3          # Consecutive misses before giving up
    EXTRA_ATTEMPTS: int = 3             # Attempt budget = clicks + this
    SUFFICIENT_ITEMS: dict[str, int] = {
        "stores": 3,                    # > 3 offers visible counts as done
        "reviews": 2,                   # > 2 reviews visible counts as done
    }

    # --- CAPTCHA detection ---
    CAPTCHA_URL_PATTERNS: list[str] = [
        "google.com/sorry/",
        "/recaptcha/",
        "captcha",
    ]
    CAPTCHA_SELECTORS: list[str] = [
        'iframe[src*="recaptcha"]',
        'iframe[src*="captcha"]',
        ".g-recaptcha",
        "#captcha",
        'form[action*="captcha"]',
        ".captcha-container",
    ]
    CAPTCHA_PHRASES: list[str] = [
        "Our systems have detected unusual traffic from your computer network",
        "حركة مرور غير عادية",
        "أنظمتنا اكتشفت حركة مرور غير عادية",
        "This page appears when Google automatically detects requests "
        "coming from your computer network",
        "About this page",
    ]
    CAPTCHA_PHRASE_THRESHOLD: int = 2   # Distinct phrases needed
    CAPTCHA_SETTLE_DELAY: float = 2.0   # After manual resolution

    # --- Browser profile ---
    HEADLESS: bool = os.getenv("HEADLESS", "1") != "0"
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    VIEWPORT: dict[str, int] = {"width": 1366, "height": 768}
    LOCALE: str = "en-US"
    BROWSER_LANGUAGES: list[str] = ["en-US", "en", "ar"]
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9,ar;q=0.8",
        "Cache-Control": "max-age=0",
        "sec-ch-ua": (
            '"Chromium";v="120", '
            '"Google Chrome";v="120"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "Upgrade-Insecure-Requests": "1",
    }
    BROWSER_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-infobars",
        "--window-position=0,0",
        "--window-size=1366,768",
        "--ignore-certificate-errors",
        "--disable-features=IsolateOrigins,site-per-process",
        "--disable-blink-features=AutomationControlled",
    ]
    NAVIGATION_TIMEOUT: int = 60        # Seconds, first navigation
    RENAVIGATION_TIMEOUT: int = 45      # Seconds, later navigations
    SELECTOR_TIMEOUT: int = 15          # Seconds, content marker wait
    POST_CAPTCHA_SETTLE: float = 3.0    # After escalation resolves

    # --- Health check ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome120"
    HEALTH_URL: str = "https://www.google.com/shopping"
    HEALTH_TIMEOUT: int = 10
    HEALTH_SLOW_MS: float = 5000.0

    # --- Session persistence ---
    SESSION_MAX_AGE_HOURS: float = 12.0
    DEFAULT_DOMAIN: str = "google.com"

    # --- Updater ---
    UPDATE_DELAY: float = _env_float("UPDATE_DELAY", 30.0)
    UPDATE_MAX_CLICKS_STORES: int = 2
    UPDATE_MAX_CLICKS_REVIEWS: int = 5

    # --- Persistence ---
    MAX_REVIEWS: int = 1000
    MAX_PHOTOS: int = 4
    CURRENCY: str = "SAR"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "gshop_tracker" / "config" / "selectors.json"
    )
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = DATA_DIR / "products.db"
    COOKIES_PATH: Path = DATA_DIR / "cookies.json"
    SESSION_INFO_PATH: Path = DATA_DIR / "session-info.json"
    BROWSER_PROFILE_DIR: Path = BASE_DIR / "browser-data"
    SCREENSHOTS_DIR: Path = BASE_DIR / "screenshots"
    RESULTS_DIR: Path = BASE_DIR / "results"
    LOGS_DIR: Path = BASE_DIR / "logs"


def load_selectors(path: Path | None = None) -> dict[str, Any]:
    """Load the page selector configuration from selectors.json."""
    with open(path or Settings.SELECTORS_PATH, encoding="utf-8") as f:
        selectors: dict[str, Any] = json.load(f)
    return selectors
