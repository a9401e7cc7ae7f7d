# gshop_tracker/storage/session_store.py

"""File-backed cookie snapshot shared between browser runs."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from gshop_tracker.config.settings import Settings

logger = logging.getLogger("gshop_tracker.session")


@dataclass
class SessionSnapshot:
    """Cookies from a previous run plus when and where they were used."""

    cookies: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )
    domain: str | None = None
    last_used: datetime | None = None

    def age(self, now: datetime | None = None) -> timedelta | None:
        """Time since the session was last persisted."""
        if self.last_used is None:
            return None
        return (now or datetime.now()) - self.last_used


class SessionStore(Protocol):
    """Read/write access to the persisted browser session."""

    def load(self) -> SessionSnapshot | None: ...

    def save(
        self, cookies: list[dict[str, Any]], domain: str,
    ) -> None: ...


class FileSessionStore:
    """Keeps ``cookies.json`` and ``session-info.json`` on disk.

    Runs must be serialised against these files: each run reads them
    at start and rewrites them after a successful scrape.
    """

    def __init__(
        self,
        cookies_path: Path | None = None,
        info_path: Path | None = None,
        max_age_hours: float | None = None,
    ) -> None:
        self.cookies_path: Path = cookies_path or Settings.COOKIES_PATH
        self.info_path: Path = info_path or Settings.SESSION_INFO_PATH
        self.max_age = timedelta(
            hours=(
                max_age_hours
                if max_age_hours is not None
                else Settings.SESSION_MAX_AGE_HOURS
            )
        )

    def load(self) -> SessionSnapshot | None:
        """Read the stored session; ``None`` when absent or unreadable."""
        if not self.cookies_path.exists():
            logger.debug("No saved cookies at %s", self.cookies_path)
            return None

        try:
            with open(self.cookies_path, encoding="utf-8") as f:
                cookies = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(
                "Could not read cookies from %s: %s",
                self.cookies_path,
                exc,
            )
            return None

        if not isinstance(cookies, list):
            logger.warning("Ignoring malformed cookie file %s", self.cookies_path)
            return None

        snapshot = SessionSnapshot(cookies=cookies)
        self._load_info(snapshot)

        age = snapshot.age()
        if age is not None and age > self.max_age:
            logger.warning(
                "Saved session is %.1f hours old; it may be expired",
                age.total_seconds() / 3600,
            )
        logger.info("Loaded %d saved cookies", len(cookies))
        return snapshot

    def _load_info(self, snapshot: SessionSnapshot) -> None:
        if not self.info_path.exists():
            return
        try:
            with open(self.info_path, encoding="utf-8") as f:
                info = json.load(f)
            snapshot.domain = info.get("domain")
            last_used = info.get("lastUsed")
            if last_used:
                snapshot.last_used = datetime.fromisoformat(last_used)
        except (json.JSONDecodeError, OSError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring unreadable session info: %s", exc)

    def save(
        self, cookies: list[dict[str, Any]], domain: str,
    ) -> None:
        """Write the cookie snapshot and its metadata."""
        self.cookies_path.parent.mkdir(parents=True, exist_ok=True)
        self.info_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.cookies_path, "w", encoding="utf-8") as f:
            json.dump(cookies, f, ensure_ascii=False, indent=2)
        with open(self.info_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "domain": domain,
                    "lastUsed": datetime.now().isoformat(),
                },
                f,
                indent=2,
            )
        logger.info(
            "Saved %d cookies for %s to %s",
            len(cookies),
            domain,
            self.cookies_path,
        )


class MemorySessionStore:
    """In-process session store for one-off runs and tests."""

    def __init__(self, snapshot: SessionSnapshot | None = None) -> None:
        self.snapshot = snapshot

    def load(self) -> SessionSnapshot | None:
        return self.snapshot

    def save(
        self, cookies: list[dict[str, Any]], domain: str,
    ) -> None:
        self.snapshot = SessionSnapshot(
            cookies=list(cookies),
            domain=domain,
            last_used=datetime.now(),
        )
