"""Pytest fixtures for pacekit tests."""

from collections.abc import Callable
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Start every test with fresh settings so env overrides take effect."""
    from pacekit.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def recorder() -> tuple[list[Any], Callable[[Any], None]]:
    """A list plus a worker that appends each item it receives."""
    calls: list[Any] = []

    def worker(item: Any) -> None:
        calls.append(item)

    return calls, worker
