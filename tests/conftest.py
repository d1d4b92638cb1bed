"""
Shared fixtures for the SodaLab test suite.

The catalog fixtures read the real JSON files under data/ so the tests
exercise the same records the service ships with.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from sodalab.catalog import CatalogLoader


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    """Default settings with the classifier disabled."""
    return Settings(enable_classifier=False)


@pytest.fixture(scope="session")
def catalog():
    """Catalog loaded once from data/."""
    loader = CatalogLoader(Settings(enable_classifier=False))
    assert loader.initialize()
    return loader


@pytest.fixture
def clock():
    return FakeClock()
