"""
Recipe Recommender for SodaLab.

Content-based recommendations over the recipe catalog:

1. Feature Vectors
   - One-hot category, soda type and caffeine level
   - Bag of ingredient ids and compatible bases
   - L2-normalized so a dot product is cosine similarity

2. Recommendation Generation
   - "More like this": cosine neighbours of a single recipe
   - Personalized: weighted query vector from favourites (0.6),
     viewed recipes (0.2) and favourite categories (0.2)
   - Hard exclusions (disliked ingredients, dietary needs, budget),
     caffeine preference bonus and a per-category diversity cap
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from config import (
    CAFFEINE_LEVELS,
    CAFFEINE_PREFERENCE_BONUS,
    DEFAULT_K,
    MAX_K,
    MIN_SIMILARITY_SCORE,
    RECIPE_CATEGORIES,
    SIGNAL_WEIGHTS,
    SODA_TYPES,
    Settings,
)
from sodalab.exceptions import RecipeNotFoundError
from sodalab.filters import get_field_value
from sodalab.services import PopularityService, UniformPopularityService

logger = logging.getLogger(__name__)


class RecipeRecommender:
    """
    Recommendation engine over catalog flavors.

    Usage:
        recommender = RecipeRecommender(settings, catalog)
        similar = recommender.find_similar("classic-cola", k=5)
        recs = recommender.recommend({"favoriteRecipes": ["berry-blast"]}, k=5)
    """

    def __init__(self, settings: Settings, catalog, popularity: Optional[PopularityService] = None):
        self.settings = settings
        self.catalog = catalog
        self.popularity = popularity or UniformPopularityService()

        self._features: List[str] = []
        self._feature_index: Dict[str, int] = {}
        self._matrix: Optional[np.ndarray] = None
        self._recipe_ids: List[str] = []
        self._row: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Feature matrix
    # ------------------------------------------------------------------

    def _ensure_matrix(self) -> None:
        if self._matrix is not None:
            return

        flavors = self.catalog.flavors
        ingredient_ids = sorted({i["ingredientId"] for f in flavors for i in f.get("ingredients", [])})
        base_ids = sorted({b for f in flavors for b in f.get("compatibleBases", [])})

        self._features = (
            [f"category:{c}" for c in RECIPE_CATEGORIES]
            + [f"soda_type:{t}" for t in SODA_TYPES]
            + [f"caffeine:{level}" for level in CAFFEINE_LEVELS]
            + [f"ingredient:{i}" for i in ingredient_ids]
            + [f"base:{b}" for b in base_ids]
        )
        self._feature_index = {name: idx for idx, name in enumerate(self._features)}

        self._recipe_ids = [f["id"] for f in flavors]
        self._row = {recipe_id: idx for idx, recipe_id in enumerate(self._recipe_ids)}

        matrix = np.zeros((len(flavors), len(self._features)), dtype=np.float32)
        for row, flavor in enumerate(flavors):
            for name in self._recipe_features(flavor):
                col = self._feature_index.get(name)
                if col is not None:
                    matrix[row, col] = 1.0

        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        self._matrix = matrix / norms

        logger.info(
            f"Recommender matrix built: {len(flavors)} recipes x {len(self._features)} features"
        )

    @staticmethod
    def _recipe_features(recipe: Dict[str, Any]) -> List[str]:
        names = [
            f"category:{recipe.get('category')}",
            f"soda_type:{recipe.get('sodaType')}",
            f"caffeine:{recipe.get('caffeineCategory')}",
        ]
        names.extend(f"ingredient:{i}" for i in get_field_value(recipe, "ingredients_include"))
        names.extend(f"base:{b}" for b in recipe.get("compatibleBases", []))
        return names

    def _category_vector(self, category: str) -> Optional[np.ndarray]:
        col = self._feature_index.get(f"category:{category}")
        if col is None:
            return None
        vector = np.zeros(len(self._features), dtype=np.float32)
        vector[col] = 1.0
        return vector

    def recipe_vector(self, recipe_id: str) -> np.ndarray:
        self._ensure_matrix()
        if recipe_id not in self._row:
            raise RecipeNotFoundError(recipe_id)
        return self._matrix[self._row[recipe_id]]

    # ------------------------------------------------------------------
    # Similar recipes
    # ------------------------------------------------------------------

    def find_similar(self, recipe_id: str, k: int = DEFAULT_K) -> List[Dict[str, Any]]:
        """
        Recipes most similar to ``recipe_id`` by cosine similarity.

        Args:
            recipe_id: Flavor id
            k: Number of results (clamped to 1..MAX_K)

        Returns:
            List of ``{id, name, category, sodaType, score, reason}``

        Raises:
            RecipeNotFoundError: If the recipe id is unknown
        """
        k = min(max(1, k), MAX_K)
        source_vector = self.recipe_vector(recipe_id)
        source = self.catalog.get_flavor(recipe_id)

        scores = self._matrix @ source_vector
        ranked = []
        for idx in np.argsort(-scores, kind="stable"):
            candidate_id = self._recipe_ids[idx]
            if candidate_id == recipe_id:
                continue
            score = float(scores[idx])
            if score < MIN_SIMILARITY_SCORE:
                break
            candidate = self.catalog.get_flavor(candidate_id)
            ranked.append(self._result(candidate, score, self._similarity_reason(source, candidate)))
            if len(ranked) >= k:
                break

        logger.info(f"Found {len(ranked)} recipes similar to {recipe_id}")
        return ranked

    @staticmethod
    def _similarity_reason(source: Dict[str, Any], candidate: Dict[str, Any]) -> str:
        if source.get("sodaType") == candidate.get("sodaType"):
            return f"Another {candidate.get('sodaType', '').replace('-', ' ')} recipe"

        shared = set(get_field_value(source, "ingredients_include")) & set(
            get_field_value(candidate, "ingredients_include")
        )
        if shared:
            return f"Shares {len(shared)} ingredient{'s' if len(shared) != 1 else ''} with {source['name']}"
        if source.get("category") == candidate.get("category"):
            return f"Same category ({candidate.get('category')})"
        return f"Similar profile to {source['name']}"

    # ------------------------------------------------------------------
    # Personalized recommendations
    # ------------------------------------------------------------------

    def _build_query_vector(self, preferences: Dict[str, Any]) -> Tuple[Optional[np.ndarray], List[str]]:
        """
        Weighted average of the signal vectors.

        Each signal's weight is split evenly across its vectors so that
        ten viewed recipes never outweigh one favourite.

        Returns:
            ``(query_vector, signals_used)``; the vector is None when no
            signal resolved to a known recipe or category
        """
        self._ensure_matrix()

        signal_vectors: Dict[str, List[np.ndarray]] = defaultdict(list)
        for recipe_id in preferences.get("favoriteRecipes") or []:
            if recipe_id in self._row:
                signal_vectors["favorites"].append(self._matrix[self._row[recipe_id]])
        for recipe_id in preferences.get("viewedRecipes") or []:
            if recipe_id in self._row:
                signal_vectors["viewed"].append(self._matrix[self._row[recipe_id]])
        for category in preferences.get("favoriteCategories") or []:
            vector = self._category_vector(category)
            if vector is not None:
                signal_vectors["categories"].append(vector)

        vectors: List[np.ndarray] = []
        weights: List[float] = []
        for signal, signal_list in signal_vectors.items():
            per_vector_weight = SIGNAL_WEIGHTS[signal] / len(signal_list)
            vectors.extend(signal_list)
            weights.extend([per_vector_weight] * len(signal_list))

        if not vectors:
            return None, []

        query_vector = np.average(np.array(vectors), axis=0, weights=np.array(weights, dtype=float))
        norm = np.linalg.norm(query_vector)
        if norm > 0:
            query_vector = query_vector / norm

        logger.debug(f"Built query vector from {len(vectors)} signal vectors")
        return query_vector, list(signal_vectors.keys())

    @staticmethod
    def _passes_constraints(recipe: Dict[str, Any], preferences: Dict[str, Any]) -> bool:
        disliked = set(preferences.get("dislikedIngredients") or [])
        if disliked & set(get_field_value(recipe, "ingredients_include")):
            return False

        required = set(preferences.get("dietaryRestrictions") or [])
        if required and not required <= set(recipe.get("dietaryRestrictions") or []):
            return False

        avoid = set(preferences.get("allergens") or [])
        if avoid & set(recipe.get("allergens") or []):
            return False

        max_cost = preferences.get("maxCost")
        if max_cost is not None and (recipe.get("estimatedCost") or 0) > float(max_cost):
            return False

        return True

    def recommend(self, preferences: Dict[str, Any], k: int = DEFAULT_K) -> List[Dict[str, Any]]:
        """
        Personalized recommendations.

        Args:
            preferences: Dict with optional keys favoriteRecipes,
                viewedRecipes, favoriteCategories, dislikedIngredients,
                dietaryRestrictions, allergens, caffeinePreference, maxCost
            k: Number of results (clamped to 1..MAX_K)

        Returns:
            List of ``{id, name, category, sodaType, score, reason}``.
            Favourite recipes themselves are never recommended back.

        Example:
            >>> recommender.recommend({"favoriteRecipes": ["classic-cola"],
            ...                        "caffeinePreference": "none"}, k=3)
        """
        k = min(max(1, k), MAX_K)
        query_vector, signals = self._build_query_vector(preferences)

        favorites = set(preferences.get("favoriteRecipes") or [])
        caffeine_preference = preferences.get("caffeinePreference")

        candidates = [
            recipe for recipe in self.catalog.flavors
            if recipe["id"] not in favorites and self._passes_constraints(recipe, preferences)
        ]

        scored = []
        for recipe in candidates:
            if query_vector is not None:
                score = float(self._matrix[self._row[recipe["id"]]] @ query_vector)
            else:
                score = self.popularity.popularity("recipe", recipe["id"])
            if caffeine_preference and recipe.get("caffeineCategory") == caffeine_preference:
                score += CAFFEINE_PREFERENCE_BONUS
            scored.append((score, recipe))

        scored.sort(key=lambda pair: pair[0], reverse=True)

        per_category: Dict[str, int] = defaultdict(int)
        results = []
        for score, recipe in scored:
            if query_vector is not None and score < MIN_SIMILARITY_SCORE:
                continue
            category = recipe.get("category", "unknown")
            if per_category[category] >= self.settings.max_per_category:
                continue
            per_category[category] += 1
            results.append(self._result(
                recipe, score, self._recommendation_reason(recipe, preferences, signals),
            ))
            if len(results) >= k:
                break

        logger.info(f"Generated {len(results)} recommendations from signals {signals or ['popularity']}")
        return results

    def _recommendation_reason(self, recipe: Dict[str, Any], preferences: Dict[str, Any], signals: List[str]) -> str:
        if not signals:
            return "Popular with other makers"

        for favorite_id in preferences.get("favoriteRecipes") or []:
            favorite = self.catalog.get_flavor(favorite_id)
            if favorite and favorite.get("sodaType") == recipe.get("sodaType"):
                return f"Because you like {favorite['name']}"

        if recipe.get("category") in (preferences.get("favoriteCategories") or []):
            return f"Matches your favourite category ({recipe['category']})"

        caffeine = preferences.get("caffeinePreference")
        if caffeine and recipe.get("caffeineCategory") == caffeine:
            return f"Fits your {caffeine} caffeine preference"

        return "Similar to recipes you have enjoyed"

    @staticmethod
    def _result(recipe: Dict[str, Any], score: float, reason: str) -> Dict[str, Any]:
        return {
            "id": recipe["id"],
            "name": recipe.get("name"),
            "category": recipe.get("category"),
            "sodaType": recipe.get("sodaType"),
            "caffeineCategory": recipe.get("caffeineCategory"),
            "score": round(score, 4),
            "reason": reason,
        }
