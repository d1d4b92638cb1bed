"""
Test Suite for the recipe recommender.

Tests:
1. Feature vectors
2. Similar recipes
3. Personalized recommendations and signals
4. Hard constraints and caffeine preference
5. Diversity cap
"""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import MIN_SIMILARITY_SCORE, Settings
from sodalab.exceptions import RecipeNotFoundError
from sodalab.recommender import RecipeRecommender


def ids(results):
    return [r["id"] for r in results]


@pytest.fixture
def recommender(settings, catalog):
    return RecipeRecommender(settings, catalog)


# =============================================================================
# TEST: FEATURE VECTORS
# =============================================================================

class TestVectors:
    """Tests for the recipe feature matrix."""

    def test_vectors_are_normalized(self, recommender, catalog):
        for recipe_id in catalog.flavor_ids():
            assert np.linalg.norm(recommender.recipe_vector(recipe_id)) == pytest.approx(1.0, abs=1e-5)

    def test_unknown_recipe(self, recommender):
        with pytest.raises(RecipeNotFoundError):
            recommender.recipe_vector("nope")


# =============================================================================
# TEST: SIMILAR RECIPES
# =============================================================================

class TestFindSimilar:
    """Tests for "more like this"."""

    def test_closest_cola(self, recommender):
        similar = recommender.find_similar("cola-zero", k=2)
        assert ids(similar) == ["classic-cola", "cola-energy"]
        assert similar[0]["score"] == pytest.approx(0.8944, abs=1e-3)
        assert similar[0]["reason"] == "Another cola recipe"

    def test_excludes_source(self, recommender):
        assert "ginger-ale" not in ids(recommender.find_similar("ginger-ale", k=20))

    def test_scores_descending_above_minimum(self, recommender):
        scores = [r["score"] for r in recommender.find_similar("berry-blast", k=20)]
        assert scores == sorted(scores, reverse=True)
        assert all(score >= MIN_SIMILARITY_SCORE for score in scores)

    def test_shared_ingredient_reason(self, recommender):
        similar = {r["id"]: r for r in recommender.find_similar("berry-blast", k=20)}
        assert similar["berry-citrus-fusion"]["reason"].startswith("Shares 3 ingredients with Berry Blast Energy")

    def test_k_clamped(self, recommender):
        assert len(recommender.find_similar("classic-cola", k=0)) == 1

    def test_unknown_recipe(self, recommender):
        with pytest.raises(RecipeNotFoundError):
            recommender.find_similar("nope")


# =============================================================================
# TEST: PERSONALIZED
# =============================================================================

class TestRecommend:
    """Tests for preference-based recommendations."""

    def test_favorite_drives_results(self, recommender):
        results = recommender.recommend({"favoriteRecipes": ["classic-cola"]}, k=3)
        assert results[0]["id"] == "cola-zero"
        assert results[0]["reason"] == "Because you like Classic Cola"
        assert "classic-cola" not in ids(results)

    def test_favorite_category(self, recommender):
        results = recommender.recommend({"favoriteCategories": ["energy"]}, k=3)
        assert {r["category"] for r in results} == {"energy"}
        assert results[0]["reason"] == "Matches your favourite category (energy)"

    def test_no_signals_uses_popularity(self, recommender):
        results = recommender.recommend({}, k=5)
        assert len(results) == 5
        assert all(r["reason"] == "Popular with other makers" for r in results)

    def test_unknown_ids_ignored(self, recommender):
        results = recommender.recommend({"favoriteRecipes": ["nope"]}, k=3)
        assert results[0]["reason"] == "Popular with other makers"

    def test_caffeine_preference_bonus(self, recommender):
        results = recommender.recommend({"caffeinePreference": "high"}, k=3)
        assert ids(results) == ["berry-blast", "citrus-energy", "cola-energy"]
        assert results[0]["score"] == pytest.approx(0.6)


class TestConstraints:
    """Hard exclusions."""

    def test_disliked_ingredient(self, recommender, catalog):
        results = recommender.recommend({"dislikedIngredients": ["caffeine-anhydrous"]}, k=20)
        for result in results:
            recipe = catalog.get_flavor(result["id"])
            assert "caffeine-anhydrous" not in [i["ingredientId"] for i in recipe["ingredients"]]

    def test_allergens(self, recommender):
        results = recommender.recommend({"allergens": ["milk"]}, k=20)
        assert "orange-cream" not in ids(results)

    def test_dietary_restrictions(self, recommender):
        assert ids(recommender.recommend({"dietaryRestrictions": ["sugar-free"]})) == ["cola-zero"]

    def test_max_cost(self, recommender, catalog):
        results = recommender.recommend({"maxCost": 0.3}, k=20)
        assert results
        assert all(catalog.get_flavor(r["id"])["estimatedCost"] <= 0.3 for r in results)


class TestDiversity:
    """Per-category cap."""

    def test_default_cap(self, recommender):
        results = recommender.recommend({}, k=20)
        categories = [r["category"] for r in results]
        assert all(categories.count(c) <= 3 for c in set(categories))
        assert len(results) == 8

    def test_custom_cap(self, catalog):
        recommender = RecipeRecommender(Settings(enable_classifier=False, max_per_category=1), catalog)
        results = recommender.recommend({}, k=20)
        assert sorted(r["category"] for r in results) == ["classic", "energy", "hybrid"]


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
