"""
Shared pytest fixtures and configuration for buildspine tests.

This module provides:
- Settings and logging-context isolation
- A site directory with helpers for writing assets at fixed mtimes
- Cache path fixtures

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_first_check(cache, make_asset):
        make_asset("img/a.png", size=1000)
        assert cache.check("img/a.png") is True
"""

import os
import sys
from pathlib import Path
from typing import Callable, Generator

import pytest
import structlog

# Ensure buildspine and the test support package are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from buildspine.core.cache import StaleCache
from buildspine.core.logging import clear_context
from buildspine.core.settings import reset_settings

from _support import write_asset


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Run every test in a temp cwd with no BUILDSPINE_* variables leaking in."""
    for var in list(os.environ):
        if var.startswith("BUILDSPINE_"):
            monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()
    clear_context()
    structlog.reset_defaults()


# =============================================================================
# Site / Cache Fixtures
# =============================================================================


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """Directory cache keys are resolved against."""
    path = tmp_path / "site"
    path.mkdir()
    return path


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    """Location of the persisted cache document (parent does not exist yet)."""
    return tmp_path / "state" / "cache.json"


@pytest.fixture
def make_asset(site_dir: Path) -> Callable[..., Path]:
    """Write ``site_dir / key`` with ``size`` bytes and an optional mtime (ns)."""

    def _make(key: str, size: int = 100, mtime_ns: int | None = None) -> Path:
        return write_asset(site_dir / key, size=size, mtime_ns=mtime_ns)

    return _make


@pytest.fixture
def cache(cache_path: Path, site_dir: Path) -> StaleCache:
    """Empty StaleCache rooted at ``site_dir``."""
    return StaleCache(cache_path, base_path=site_dir)
