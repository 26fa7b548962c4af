"""Pytest collection helpers for backend test runs.

This file sits at the backend/ root so pytest picks it up early during
collection and skips runtime artifact directories (such as `uploads`)
that may contain test-like filenames but are not test code.
"""
import os
from pathlib import Path

# Must be set before formdesk.core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest

from formdesk.core.config import settings


@pytest.fixture(scope="session", autouse=True)
def force_testing_mode():
    """Force TESTING=True early in the test session so imports can read it."""
    settings.TESTING = True


def pytest_ignore_collect(collection_path: Path, config):
    """Ignore anything inside an `uploads` directory."""
    if "uploads" in collection_path.parts:
        return True
    return None
