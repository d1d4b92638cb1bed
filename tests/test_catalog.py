"""
Tests for the catalog loader.

Tests:
1. Loading the shipped catalog
2. Lookups by id
3. Missing and malformed data files
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from sodalab.catalog import CatalogLoader


# =============================================================================
# TEST: LOADING
# =============================================================================

class TestCatalogLoading:
    """Tests against the data/ directory."""

    def test_summary_counts(self, catalog):
        """All collections should be populated."""
        assert catalog.summary() == {
            "flavors": 11,
            "bases": 2,
            "ingredients": 18,
            "suppliers": 3,
            "regions": 8,
        }

    def test_flavors_sorted_by_id(self, catalog):
        ids = catalog.flavor_ids()
        assert ids == sorted(ids)
        assert ids[0] == "berry-blast"

    def test_lazy_initialization(self):
        """Touching a collection loads the catalog."""
        loader = CatalogLoader(Settings(enable_classifier=False))
        assert len(loader.bases) == 2
        assert loader.is_available


# =============================================================================
# TEST: LOOKUPS
# =============================================================================

class TestLookups:
    """Tests for id lookups."""

    def test_get_flavor(self, catalog):
        assert catalog.get_flavor("root-beer")["name"] == "Old Fashioned Root Beer"

    def test_get_unknown_flavor(self, catalog):
        assert catalog.get_flavor("does-not-exist") is None

    def test_get_base(self, catalog):
        assert catalog.get_base("zero-base")["yield"] == {"syrup": 500, "drink": 4000}

    def test_ingredient_name(self, catalog):
        assert catalog.get_ingredient_name("caffeine-anhydrous") == "Caffeine Anhydrous"

    def test_ingredient_name_fallback(self, catalog):
        """Unknown ingredient ids fall back to the id itself."""
        assert catalog.get_ingredient_name("unobtainium") == "unobtainium"


# =============================================================================
# TEST: FAILURES
# =============================================================================

class TestLoadFailures:
    """A broken data directory leaves the catalog unavailable."""

    def test_missing_directory(self, tmp_path):
        loader = CatalogLoader(Settings(data_dir=tmp_path, enable_classifier=False))
        assert loader.initialize() is False
        assert not loader.is_available
        assert loader.flavors == []

    def test_invalid_json(self, tmp_path):
        (tmp_path / "bases").mkdir()
        (tmp_path / "bases" / "broken.json").write_text("{not json", encoding="utf-8")
        loader = CatalogLoader(Settings(data_dir=tmp_path, enable_classifier=False))
        assert loader.initialize() is False

    def test_failure_is_remembered(self, tmp_path):
        """A failed load is not retried on every access."""
        loader = CatalogLoader(Settings(data_dir=tmp_path, enable_classifier=False))
        loader.initialize()
        (tmp_path / "bases").mkdir()
        assert loader.initialize() is False


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
