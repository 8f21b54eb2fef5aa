"""Pytest configuration for fetchhar tests."""

import sys
from pathlib import Path

import pytest
import structlog

# Add src directory to sys.path for test imports
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate each test from FETCHHAR_* environment variables and cached settings."""
    import os

    for name in list(os.environ):
        if name.startswith("FETCHHAR_"):
            monkeypatch.delenv(name, raising=False)

    from fetchhar.config import reset_settings

    reset_settings()


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Reset structlog after each test.

    CliRunner captures stderr with a temporary file. When configure_logging()
    runs inside CliRunner, structlog binds loggers to that file, which is
    closed after the test.
    """
    yield
    structlog.reset_defaults()
