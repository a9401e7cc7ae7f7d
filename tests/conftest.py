# tests/conftest.py

"""Shared pytest fixtures for all tracker tests."""

from pathlib import Path

import pytest

from gshop_tracker.config.settings import Settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def isolated_dirs(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
) -> Path:
    """Point every on-disk artifact location at a temp directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setattr(Settings, "DATA_DIR", data_dir)
    monkeypatch.setattr(Settings, "DB_PATH", data_dir / "products.db")
    monkeypatch.setattr(Settings, "COOKIES_PATH", data_dir / "cookies.json")
    monkeypatch.setattr(
        Settings, "SESSION_INFO_PATH", data_dir / "session-info.json"
    )
    monkeypatch.setattr(
        Settings, "BROWSER_PROFILE_DIR", tmp_path / "browser-data"
    )
    monkeypatch.setattr(Settings, "SCREENSHOTS_DIR", tmp_path / "screenshots")
    monkeypatch.setattr(Settings, "RESULTS_DIR", tmp_path / "results")
    monkeypatch.setattr(Settings, "LOGS_DIR", tmp_path / "logs")
    return tmp_path
