"""
Test Suite for Amazon URLs and availability.

Tests:
1. Product and search URL generation per region
2. Availability aggregation, urgency and summaries
3. Restock predictions, alerts and recommendations
4. Stock alert configuration
"""

import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sodalab.amazon import AmazonURLGenerator, AvailabilityChecker
from sodalab.exceptions import InvalidRegionError
from sodalab.services import StaticAvailabilityService


@pytest.fixture
def generator(catalog):
    return AmazonURLGenerator(catalog.regions)


@pytest.fixture
def checker(generator):
    return AvailabilityChecker(generator, today=lambda: date(2025, 1, 1))


# =============================================================================
# TEST: URLS
# =============================================================================

class TestProductURL:
    """Tests for product detail URLs."""

    def test_default_parameters(self, generator):
        url = generator.product_url("B08N5WRWNW", "uk")
        assert url == "https://amazon.co.uk/dp/B08N5WRWNW?tag=sodalab-21&locale=en_GB&ref=sr_1_1"

    def test_currency_and_custom_parameters(self, generator):
        url = generator.product_url(
            "B08N5WRWNW", "DE", include_affiliate=False, include_tracking=False,
            include_currency=True, custom_parameters={"th": "1"},
        )
        assert url == "https://amazon.de/dp/B08N5WRWNW?locale=de_DE&currency=EUR&th=1"

    def test_bare_url(self, generator):
        url = generator.product_url(
            "B08N5WRWNW", "US", include_affiliate=False, include_tracking=False, include_locale=False,
        )
        assert url == "https://amazon.com/dp/B08N5WRWNW"

    def test_cached(self, generator):
        assert generator.product_url("X1", "US") is generator.product_url("X1", "us")

    def test_invalid_region(self, generator):
        with pytest.raises(InvalidRegionError):
            generator.product_url("B08N5WRWNW", "XX")


class TestSearchURL:
    """Tests for marketplace search URLs."""

    def test_all_parameters(self, generator):
        url = generator.search_url(
            "NL", query="cola syrup", category="grocery", brand="SodaCraft",
            price_range={"min": 5, "max": 19.99}, sort_by="price-low",
        )
        assert url == (
            "https://amazon.nl/s?k=cola+syrup&i=levensmiddelen&brand=SodaCraft"
            "&rh=p_36%3A500-1999&s=price-asc-rank&tag=sodalab0n-21"
        )

    def test_fallbacks(self, generator):
        """Unknown categories pass through; unknown sorts use relevance."""
        url = generator.search_url("US", category="mixers", sort_by="cheapest", affiliate_tag="custom-20")
        assert url == "https://amazon.com/s?i=mixers&s=relevancerank&tag=custom-20"

    def test_list_regions(self, generator):
        codes = [r["code"] for r in generator.list_regions()]
        assert codes == ["AU", "CA", "DE", "FR", "JP", "NL", "UK", "US"]


# =============================================================================
# TEST: AVAILABILITY
# =============================================================================

class TestAvailability:
    """Tests for AvailabilityChecker.check."""

    def test_limited_uk_stock(self, checker):
        report = checker.check(["B08N5WRWNW"], regions=["US", "UK"])
        product = report["availability"][0]
        assert product["totalStock"] == 50
        assert product["urgencyLevel"] == "low"
        assert product["availabilityByRegion"]["UK"]["status"] == "limited"
        assert product["restockPredictions"] == [
            {"region": "UK", "predictedDate": "2025-01-15", "confidence": 0.6},
        ]
        assert [a["asin"] for a in product["alternatives"]] == ["B08N5WRWNW-alt1", "B08N5WRWNW-alt2"]

        assert report["alerts"] == [{
            "type": "limited-stock", "severity": "medium",
            "message": "B08N5WRWNW has only 3 units left in UK",
            "asin": "B08N5WRWNW", "region": "UK",
        }]
        recommendation = report["recommendations"][0]
        assert recommendation["recommendation"] == "available-now"
        assert recommendation["region"] == "US"
        assert recommendation["url"] == "https://amazon.com/dp/B08N5WRWNW?tag=sodalab-20&locale=en_US&ref=sr_1_1"

    def test_default_regions(self, checker):
        product = checker.check(["B09X4R5TEST"])["availability"][0]
        assert len(product["availabilityByRegion"]) == 8
        assert product["availabilityByRegion"]["JP"]["status"] == "unknown"
        assert product["totalStock"] == 30
        assert product["urgencyLevel"] == "medium"
        assert product["restockPredictions"] == [
            {"region": "US", "predictedDate": "2024-03-15", "confidence": 0.85},
        ]

    def test_summary(self, checker):
        summary = checker.check(["B09X4R5TEST"])["summary"]
        assert summary == {
            "totalProducts": 1, "inStock": 1, "outOfStock": 1,
            "limited": 0, "preOrder": 1, "totalStock": 30,
        }

    def test_unknown_product(self, checker):
        report = checker.check(["B000UNKNOWN"], regions=["US"])
        product = report["availability"][0]
        assert product["availabilityByRegion"]["US"]["sellerCount"] == 0
        assert product["urgencyLevel"] == "critical"
        assert report["alerts"][0]["type"] == "out-of-stock"
        assert report["recommendations"][0]["recommendation"] == "alternative"
        assert report["recommendations"][0]["alternative"] == "B08N5WRWNW-alt1"

    def test_alternatives_disabled(self, checker):
        report = checker.check(["B000UNKNOWN"], regions=["US"], check_alternatives=False)
        assert report["availability"][0]["alternatives"] == []
        assert report["recommendations"] == []

    def test_alternatives_filtered_by_region(self, checker):
        product = checker.check(["B000UNKNOWN"], regions=["UK"])["availability"][0]
        assert [a["region"] for a in product["alternatives"]] == ["UK"]

    def test_invalid_region(self, checker):
        with pytest.raises(InvalidRegionError):
            checker.check(["B08N5WRWNW"], regions=["US", "XX"])

    def test_injected_service(self, generator):
        service = StaticAvailabilityService(
            table={"A1": {"US": {"status": "in-stock", "stockLevel": 4}}},
            alternatives_table=[],
        )
        report = AvailabilityChecker(generator, service=service).check(["A1"], regions=["US"])
        assert report["availability"][0]["urgencyLevel"] == "high"
        assert report["alerts"][0]["message"] == "A1 has very limited stock (4 units)"

    @pytest.mark.parametrize("stock,level", [
        (0, "critical"), (9, "high"), (10, "medium"), (49, "medium"), (50, "low"),
    ])
    def test_urgency_level(self, stock, level):
        assert AvailabilityChecker.urgency_level(stock) == level


# =============================================================================
# TEST: STOCK ALERTS
# =============================================================================

class TestStockAlerts:
    """Tests for alert configuration."""

    def test_configure(self, checker):
        alert = checker.configure_alert("B08N5WRWNW", "US", threshold=3, email="me@example.com")
        assert alert["active"] is True
        assert alert["threshold"] == 3
        assert "createdAt" in alert
        assert checker.configured_alerts == [alert]

    def test_invalid_region(self, checker):
        with pytest.raises(InvalidRegionError):
            checker.configure_alert("B08N5WRWNW", "XX")
        assert checker.configured_alerts == []


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
