"""
Test Suite for the SodaLab Flask API.

Tests:
1. Health and catalog endpoints
2. Quick and enhanced search
3. Autocomplete and interactions
4. Filters, filter values and saved sets
5. Amazon availability, stock alerts and regions
6. Affiliate click and conversion tracking
7. Calculator and recommendations
8. Error responses
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from sodalab_api.app import create_app


@pytest.fixture
def app(catalog):
    app = create_app(Settings(enable_classifier=False), catalog=catalog)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    with app.test_client() as client:
        yield client


# =============================================================================
# TEST: HEALTH & CATALOG
# =============================================================================

class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["catalog"]["flavors"] == 11

    def test_liveness(self, client):
        assert client.get("/health/live").get_json()["status"] == "alive"

    def test_engines_registered(self, app):
        engines = app.extensions["sodalab"]
        assert {"filters", "search", "autocomplete", "recommender", "attribution"} <= set(engines)

    def test_import_builds_no_app(self):
        """Importing the module exposes the factory only."""
        import sodalab_api
        import sodalab_api.app as module
        assert not hasattr(module, "app")
        assert sodalab_api.__all__ == ["create_app", "main"]

    def test_factory_returns_independent_apps(self, catalog):
        first = create_app(Settings(enable_classifier=False), catalog=catalog)
        second = create_app(Settings(enable_classifier=False), catalog=catalog)
        assert first.extensions["sodalab"]["search"] is not second.extensions["sodalab"]["search"]


class TestCatalog:
    def test_flavors(self, client):
        data = client.get("/api/flavors").get_json()
        assert data["count"] == 11

    def test_flavors_by_category(self, client):
        data = client.get("/api/flavors?category=energy").get_json()
        assert data["count"] == 3

    def test_flavor_detail(self, client):
        data = client.get("/api/flavors/classic-cola").get_json()
        assert data["data"]["name"] == "Classic Cola"

    def test_flavor_missing(self, client):
        assert client.get("/api/flavors/nope").status_code == 404

    def test_bases(self, client):
        assert client.get("/api/bases").get_json()["count"] == 2


# =============================================================================
# TEST: SEARCH
# =============================================================================

class TestSearchEndpoints:
    def test_quick_search(self, client):
        response = client.get("/api/search?q=cola&types=flavors")
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["totalResults"] == 3
        assert data["query"] == "cola"

    def test_quick_search_requires_query(self, client):
        assert client.get("/api/search").status_code == 400

    def test_quick_search_invalid_types(self, client):
        assert client.get("/api/search?q=cola&types=bogus").status_code == 400

    def test_quick_search_invalid_limit(self, client):
        assert client.get("/api/search?q=cola&limit=ten").status_code == 400

    def test_enhanced_search(self, client):
        response = client.post("/api/enhanced-search", json={
            "query": "berry", "filters": {"categories": ["energy"]},
        })
        assert response.status_code == 200
        recipes = response.get_json()["data"]["recipes"]
        assert [r["id"] for r in recipes] == ["berry-blast"]

    def test_enhanced_search_suggestions(self, client):
        response = client.post("/api/enhanced-search", json={"query": "gin", "searchType": "suggestions"})
        assert response.get_json()["data"]["suggestions"][0] == "Spicy Ginger Ale"

    def test_enhanced_search_recommendations(self, client):
        response = client.post("/api/enhanced-search", json={
            "query": "cola", "searchType": "recommendations",
            "options": {"limit": 2, "preferences": {"favoriteRecipes": ["classic-cola"]}},
        })
        assert len(response.get_json()["data"]["recommendations"]) == 2

    def test_enhanced_search_blank_query(self, client):
        response = client.post("/api/enhanced-search", json={"query": "  "})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation failed"

    @pytest.mark.parametrize("body", [
        {"query": "cola", "filters": {"maxPrepTime": "thirty"}},
        {"query": "cola", "filters": {"categories": "classic"}},
        {"query": "cola", "filters": {"costRange": {"max": "cheap"}}},
        {"query": "cola", "options": {"limit": "ten"}},
        {"query": "cola", "options": {"offset": -1}},
        {"query": "cola", "filters": ["classic"]},
    ])
    def test_enhanced_search_malformed_body(self, client, body):
        response = client.post("/api/enhanced-search", json=body)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation failed"

    def test_enhanced_search_typed_filters(self, client):
        response = client.post("/api/enhanced-search", json={
            "query": "cola",
            "filters": {"categories": ["classic"], "maxPrepTime": "30", "costRange": {"max": 10}},
            "options": {"sortBy": "name", "sortOrder": "asc", "limit": 1},
        })
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert len(data["recipes"]) == 1
        assert data["totalResults"] == 2

    def test_enhanced_search_get(self, client):
        response = client.get("/api/enhanced-search?q=cola&category=classic")
        assert response.get_json()["data"]["totalResults"] == 2

    def test_no_json(self, client):
        response = client.post("/api/enhanced-search", data="not json", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["error"] == "No JSON data provided"


# =============================================================================
# TEST: AUTOCOMPLETE
# =============================================================================

class TestAutocompleteEndpoints:
    def test_get(self, client):
        data = client.get("/api/autocomplete?q=ginger").get_json()["data"]
        assert data["suggestions"][0]["id"] == "recipe-ginger-ale"

    def test_post(self, client):
        response = client.post("/api/autocomplete", json={"query": "coke", "options": {"maxSuggestions": 1}})
        assert len(response.get_json()["data"]["suggestions"]) == 1

    def test_multilingual(self, client):
        response = client.post("/api/autocomplete", json={"query": "ginger", "languages": ["en", "nl"]})
        assert set(response.get_json()["data"]["languages"]) == {"en", "nl"}

    def test_interaction(self, client):
        response = client.post("/api/autocomplete/interactions", json={
            "userId": "u1", "query": "berry", "success": True, "clickedResult": "recipe-berry-blast",
        })
        data = response.get_json()["data"]
        assert data["favoriteCategories"] == ["energy"]
        assert data["historySize"] == 1

    def test_interaction_requires_user(self, client):
        assert client.post("/api/autocomplete/interactions", json={"query": "x"}).status_code == 400


# =============================================================================
# TEST: FILTERS
# =============================================================================

class TestFilterEndpoints:
    def test_apply(self, client):
        response = client.post("/api/filters", json={
            "filters": [{"field": "category", "value": ["energy"]}],
            "includeStatistics": True,
        })
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["filteredCount"] == 3
        assert data["totalCount"] == 11
        assert "filterStatistics" in data

    def test_unknown_field(self, client):
        response = client.post("/api/filters", json={"filters": [{"field": "colour", "value": "red"}]})
        assert response.status_code == 400

    def test_unknown_operator(self, client):
        response = client.post("/api/filters", json={
            "filters": [{"field": "category", "operator": "like", "value": "energy"}],
        })
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation failed"

    def test_definitions(self, client):
        data = client.get("/api/filters/definitions").get_json()["data"]
        assert any(d["id"] == "category" for d in data["definitions"])

    def test_values(self, client):
        data = client.get("/api/filters/category/values").get_json()["data"]
        assert {v["value"] for v in data["values"]} == {"classic", "energy", "hybrid"}

    def test_values_unknown_filter(self, client):
        assert client.get("/api/filters/colour/values").status_code == 404

    def test_suggestions(self, client):
        response = client.post("/api/filters/suggestions", json={"query": "energy"})
        assert response.status_code == 200
        assert "suggestions" in response.get_json()["data"]

    def test_saved_set_round_trip(self, client):
        response = client.post("/api/filters/sets", json={
            "name": "Energy", "filters": [{"field": "category", "value": ["energy"]}], "isPublic": True,
        })
        assert response.status_code == 201
        set_id = response.get_json()["data"]["id"]

        sets = client.get("/api/filters/sets?public=true").get_json()
        assert sets["count"] == 1

        applied = client.post(f"/api/filters/sets/{set_id}/apply").get_json()["data"]
        assert applied["filteredCount"] == 3

    def test_saved_set_missing(self, client):
        assert client.post("/api/filters/sets/nope/apply").status_code == 404


# =============================================================================
# TEST: AMAZON
# =============================================================================

class TestAmazonEndpoints:
    def test_availability(self, client):
        response = client.post("/api/amazon/availability", json={
            "asins": ["B08N5WRWNW"], "regions": ["US", "UK"],
        })
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["availability"][0]["totalStock"] == 50
        assert data["summary"]["totalProducts"] == 1

    def test_availability_unknown_region(self, client):
        response = client.post("/api/amazon/availability", json={"asins": ["B08N5WRWNW"], "regions": ["XX"]})
        assert response.status_code == 400

    def test_availability_requires_asins(self, client):
        assert client.post("/api/amazon/availability", json={"asins": []}).status_code == 400

    def test_stock_alert(self, client):
        response = client.put("/api/amazon/availability", json={
            "asin": "B08N5WRWNW", "region": "US", "email": "me@example.com",
        })
        assert response.status_code == 200
        assert response.get_json()["data"]["threshold"] == 5

    def test_stock_alert_bad_email(self, client):
        response = client.put("/api/amazon/availability", json={
            "asin": "B08N5WRWNW", "region": "US", "email": "nope",
        })
        assert response.status_code == 400

    def test_regions_user_first(self, client):
        data = client.get("/api/amazon/regions?countryCode=nl").get_json()["data"]
        assert data["userRegion"] == "NL"
        assert data["regions"][0]["code"] == "NL"
        assert data["regions"][0]["searchUrl"].startswith("https://amazon.nl/s?k=soda+syrup")


# =============================================================================
# TEST: AFFILIATE
# =============================================================================

class TestAffiliateEndpoints:
    def test_click_then_conversion(self, client):
        click = client.post("/api/affiliate/track-click", json={
            "affiliate": "amazon", "productId": "B08N5WRWNW",
        }).get_json()
        assert click["success"] is True
        assert click["attributionId"].startswith("attr_")

        conversion = client.post("/api/affiliate/track-conversion", json={
            "affiliate": "amazon", "attributionId": click["attributionId"], "value": 12.5,
        })
        assert conversion.status_code == 200
        assert conversion.get_json()["data"]["productId"] == "B08N5WRWNW"

        again = client.post("/api/affiliate/track-conversion", json={
            "affiliate": "amazon", "attributionId": click["attributionId"],
        })
        assert again.status_code == 400

    def test_click_requires_affiliate(self, client):
        response = client.post("/api/affiliate/track-click", json={"productId": "B08N5WRWNW"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Affiliate name is required"

    def test_empty_body(self, client):
        response = client.post("/api/affiliate/track-click", data="")
        assert response.get_json()["error"] == "Request body is empty"

    def test_invalid_json(self, client):
        response = client.post("/api/affiliate/track-click", data="{oops", content_type="application/json")
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid JSON in request body"

    def test_conversion_requires_ids(self, client):
        response = client.post("/api/affiliate/track-conversion", json={"affiliate": "amazon"})
        assert response.status_code == 400

    def test_status_endpoints(self, client):
        assert client.get("/api/affiliate/track-click").get_json()["status"] == "operational"
        assert client.get("/api/affiliate/track-conversion").get_json()["status"] == "operational"

    def test_stats(self, client):
        client.post("/api/affiliate/track-click", json={"affiliate": "amazon"})
        assert client.get("/api/affiliate/stats").get_json()["data"]["totalActive"] == 1


# =============================================================================
# TEST: CALCULATOR & RECOMMENDATIONS
# =============================================================================

class TestCalculatorEndpoint:
    def test_calculate(self, client):
        response = client.post("/api/calculator", json={
            "baseId": "classic-base", "flavorId": "classic-cola", "volume": 5000,
        })
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["syrupVolume"] == 1000
        assert data["caffeinePerServing"] == 25

    def test_unknown_base(self, client):
        response = client.post("/api/calculator", json={"baseId": "nope", "flavorId": "classic-cola", "volume": 1000})
        assert response.status_code == 404

    def test_invalid_volume(self, client):
        response = client.post("/api/calculator", json={
            "baseId": "classic-base", "flavorId": "classic-cola", "volume": 0,
        })
        assert response.status_code == 400


class TestRecommendationEndpoints:
    def test_similar(self, client):
        data = client.get("/api/recommendations/similar/cola-zero?k=2").get_json()
        assert [r["id"] for r in data["data"]] == ["classic-cola", "cola-energy"]

    def test_similar_unknown(self, client):
        response = client.get("/api/recommendations/similar/nope")
        assert response.status_code == 404
        assert response.get_json()["count"] == 0

    def test_recommend(self, client):
        response = client.post("/api/recommendations", json={"favoriteRecipes": ["classic-cola"], "k": 3})
        data = response.get_json()
        assert data["count"] == 3
        assert data["data"][0]["id"] == "cola-zero"

    def test_recommend_invalid_k(self, client):
        assert client.post("/api/recommendations", json={"k": 0}).status_code == 400


# =============================================================================
# TEST: ERRORS
# =============================================================================

class TestErrors:
    def test_not_found(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Not Found"

    def test_method_not_allowed(self, client):
        response = client.delete("/api/flavors")
        assert response.status_code == 405
        assert response.get_json()["success"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
