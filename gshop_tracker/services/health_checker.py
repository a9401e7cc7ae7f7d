# gshop_tracker/services/health_checker.py

"""Connectivity check against Google Shopping."""

import asyncio
import logging
import time
from dataclasses import dataclass

from curl_cffi import requests as curl_requests

from gshop_tracker.config.settings import Settings
from gshop_tracker.scrapers.captcha_gate import CaptchaGate

logger = logging.getLogger("gshop_tracker.health")


@dataclass
class HealthResult:
    """Result of one health probe."""

    url: str
    status: str  # "ok", "slow", "blocked", "down"
    latency_ms: float
    message: str

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def _challenge_marker(final_url: str, body: str) -> str | None:
    """Name the challenge indicator in a response, if any."""
    if CaptchaGate.url_matches(final_url):
        return f"redirected to {final_url}"
    found = [p for p in Settings.CAPTCHA_PHRASES if p in body]
    if CaptchaGate.text_indicates_challenge(False, found):
        return "challenge text in page"
    lower = body.lower()
    if 'action="/sorry/index"' in lower or "g-recaptcha" in lower:
        return "challenge form in page"
    return None


def probe(url: str | None = None) -> HealthResult:
    """Fetch *url* with a browser-impersonating client and grade it."""
    target = url or Settings.HEALTH_URL
    session = curl_requests.Session(
        impersonate=Settings.IMPERSONATE_BROWSER
    )
    start = time.monotonic()
    try:
        resp = session.get(
            target,
            headers=Settings.DEFAULT_HEADERS,
            timeout=Settings.HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code == 429:
            return HealthResult(
                url=target,
                status="blocked",
                latency_ms=elapsed_ms,
                message="HTTP 429",
            )

        marker = _challenge_marker(str(resp.url), resp.text)
        if marker:
            return HealthResult(
                url=target,
                status="blocked",
                latency_ms=elapsed_ms,
                message=marker,
            )

        if resp.status_code != 200:
            return HealthResult(
                url=target,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )

        if elapsed_ms > Settings.HEALTH_SLOW_MS:
            return HealthResult(
                url=target,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )

        return HealthResult(
            url=target,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            url=target,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )
    finally:
        session.close()


class HealthChecker:
    """Runs the probe off the event loop and logs the outcome."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url or Settings.HEALTH_URL

    async def check(self) -> HealthResult:
        """Probe the configured URL."""
        result = await asyncio.to_thread(probe, self.url)
        logger.info(
            "Health check %s: %s (%.0fms) %s",
            result.url,
            result.status,
            result.latency_ms,
            result.message,
        )
        return result
