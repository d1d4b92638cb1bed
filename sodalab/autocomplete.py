"""
Intelligent Autocomplete for SodaLab search boxes.

Builds an in-memory index over recipes, ingredients, suppliers and
recipe categories, then answers partial queries with:
1. Text suggestions (name, synonym or fuzzy match per item type)
2. Historical and personalized suggestions for known users
3. Typo, alternative-spelling and localization corrections
4. Trending queries for the caller's region

Ranking:
    rank = 0.4 * relevance + 0.2 * popularity
         + 0.2 * (suggestion category is a user favourite)
         + 0.2 * success rate

Popularity and translation come from injected services so the engine
has no hidden randomness.
"""

import logging
import re
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from config import (
    AUTOCOMPLETE_ALTERNATIVES,
    AUTOCOMPLETE_RELEVANCE,
    AUTOCOMPLETE_SUCCESS_RATE,
    AUTOCOMPLETE_TYPOS,
    CAFFEINE_QUERY_WORDS,
    CATEGORY_COLORS,
    DEFAULT_CATEGORY_COLOR,
    LOCALIZATION_TABLE,
    LOCALIZED_CATEGORY_NAMES,
    MAX_HISTORY_SUGGESTIONS,
    MAX_TRENDING,
    RANKING_WEIGHTS,
    SYNONYMS,
    TRENDING_QUERIES,
    Settings,
)
from sodalab.cache import TTLCache, make_cache_key
from sodalab.fuzzy import normalize_text, preprocess_query, similarity
from sodalab.services import (
    IdentityTranslationService,
    PopularityService,
    TranslationService,
    UniformPopularityService,
)

logger = logging.getLogger(__name__)

INGREDIENT_COLOR = "#4ECDC4"
SUPPLIER_COLOR = "#45B7D1"
HISTORY_COLOR = "#96CEB4"
FAVORITE_COLOR = "#FF6B6B"
FUZZY_COLOR = "#FFE66D"

CATEGORY_INDEX = [
    {"id": "classic", "name": "Classic Sodas", "description": "Traditional soda flavors and recipes",
     "icon": "soda", "synonyms": ["classic", "traditional", "vintage"]},
    {"id": "energy", "name": "Energy Drinks", "description": "High-energy beverage recipes",
     "icon": "energy", "synonyms": ["energy", "stimulant", "power"]},
    {"id": "hybrid", "name": "Hybrid Recipes",
     "description": "Combination of classic and energy drink recipes",
     "icon": "blend", "synonyms": ["hybrid", "combination", "fusion"]},
]

_RESULT_PREFIXES = ("recipe-", "fuzzy-recipe-", "ingredient-", "supplier-")


@dataclass
class AutocompleteOptions:
    max_suggestions: int = 10
    include_recipes: bool = True
    include_ingredients: bool = True
    include_suppliers: bool = True
    include_categories: bool = True
    include_historical: bool = True
    include_personalized: bool = True
    include_trending: bool = True
    fuzzy_matching: bool = True
    typo_correction: bool = True
    synonym_matching: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], max_suggestions: int) -> "AutocompleteOptions":
        data = data or {}
        return cls(
            max_suggestions=min(int(data.get("maxSuggestions") or max_suggestions), max_suggestions),
            include_recipes=data.get("includeRecipes", True),
            include_ingredients=data.get("includeIngredients", True),
            include_suppliers=data.get("includeSuppliers", True),
            include_categories=data.get("includeCategories", True),
            include_historical=data.get("includeHistorical", True),
            include_personalized=data.get("includePersonalized", True),
            include_trending=data.get("includeTrending", True),
            fuzzy_matching=data.get("fuzzyMatching", True),
            typo_correction=data.get("typoCorrection", True),
            synonym_matching=data.get("synonymMatching", True),
        )


@dataclass
class AutocompleteContext:
    user_id: Optional[str] = None
    session_id: str = ""
    language: str = "en"
    region: str = "US"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], settings: Settings) -> "AutocompleteContext":
        data = data or {}
        return cls(
            user_id=data.get("userId"),
            session_id=data.get("sessionId", ""),
            language=data.get("language") or settings.default_language,
            region=data.get("region") or settings.default_region,
        )


@dataclass
class UserPreferences:
    favorite_categories: List[str] = field(default_factory=list)
    search_history: Deque[Dict[str, Any]] = field(default_factory=deque)
    primary_language: str = "en"
    secondary_languages: List[str] = field(default_factory=list)


def detect_language(query: str) -> str:
    """Guess the script of a query: ru, ja, ko, zh, unknown (other non-ASCII) or en."""
    if re.search(r"[а-яё]", query, re.IGNORECASE):
        return "ru"
    if re.search(r"[あ-ん]|[ア-ン]", query):
        return "ja"
    if re.search(r"[가-힣]", query):
        return "ko"
    if re.search(r"[一-鿿]", query):
        return "zh"
    if re.search(r"[^\x00-\x7F]", query):
        return "unknown"
    return "en"


class AutocompleteEngine:
    """
    Autocomplete service.

    Usage:
        engine = AutocompleteEngine(settings, catalog)
        result = engine.suggest("ber", {"userId": "u1", "region": "US"})
        engine.record_interaction("u1", {"query": "berry", "success": True,
                                         "clickedResult": "recipe-berry-blast"})
    """

    def __init__(
        self,
        settings: Settings,
        catalog,
        popularity: Optional[PopularityService] = None,
        translator: Optional[TranslationService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.catalog = catalog
        self.popularity = popularity or UniformPopularityService()
        self.translator = translator or IdentityTranslationService()
        self._clock = clock

        self._cache = TTLCache(settings.autocomplete_cache_ttl, clock=clock)
        self._index: Optional[Dict[str, List[Dict[str, Any]]]] = None
        self._preferences: Dict[str, UserPreferences] = {}
        self._analytics: Deque[Dict[str, Any]] = deque(maxlen=settings.max_analytics_events)

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    @property
    def index(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def _build_index(self) -> Dict[str, List[Dict[str, Any]]]:
        flavors = self.catalog.flavors
        usage: Dict[str, int] = {}
        for flavor in flavors:
            for item in flavor.get("ingredients", []):
                usage[item["ingredientId"]] = usage.get(item["ingredientId"], 0) + 1

        recipes = []
        for recipe in flavors:
            profile_words = recipe.get("profile", "").lower().split()
            synonyms = []
            if recipe.get("nameNl"):
                synonyms.append(recipe["nameNl"].lower())
            synonyms.extend(profile_words[:5])

            tags = [recipe.get("category", "unknown")]
            if recipe.get("sodaType"):
                tags.append(recipe["sodaType"])
            if recipe.get("caffeineCategory"):
                tags.append(f"caffeine-{recipe['caffeineCategory']}")

            recipes.append({
                "id": recipe["id"],
                "name": recipe["name"],
                "nameNormalized": normalize_text(recipe["name"]),
                "category": recipe.get("category", "unknown"),
                "synonyms": synonyms,
                "tags": tags,
                "searchTerms": [recipe["name"].lower()] + profile_words[:10],
                "localizedNames": {"nl": recipe["nameNl"]} if recipe.get("nameNl") else {},
            })

        ingredients = [
            {
                "id": ingredient["id"],
                "name": ingredient["name"],
                "nameNormalized": normalize_text(ingredient["name"]),
                "category": ingredient.get("category", "ingredient"),
                "synonyms": [ingredient["nameNl"].lower()] if ingredient.get("nameNl") else [],
                "localizedNames": {"nl": ingredient["nameNl"]} if ingredient.get("nameNl") else {},
                "usageCount": usage.get(ingredient["id"], 0),
            }
            for ingredient in self.catalog.ingredients
        ]

        suppliers = [
            {
                "id": supplier["id"],
                "name": supplier["name"],
                "nameNormalized": normalize_text(supplier["name"]),
                "region": supplier.get("location") or "Netherlands",
                "synonyms": [],
                "localizedNames": {},
                "rating": float(supplier.get("rating", 4.0)),
            }
            for supplier in self.catalog.suppliers
        ]

        categories = [
            {
                **category,
                "nameNormalized": category["name"].lower(),
                "color": CATEGORY_COLORS.get(category["id"], DEFAULT_CATEGORY_COLOR),
                "recipeCount": sum(1 for r in recipes if r["category"] == category["id"]),
                "localizedNames": LOCALIZED_CATEGORY_NAMES.get(category["id"], {}),
            }
            for category in CATEGORY_INDEX
        ]

        logger.info(
            f"Autocomplete index built with {len(recipes)} recipes, {len(ingredients)} ingredients, "
            f"{len(categories)} categories, {len(suppliers)} suppliers"
        )
        return {
            "recipes": recipes,
            "ingredients": ingredients,
            "suppliers": suppliers,
            "categories": categories,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def suggest(
        self,
        query: str,
        context: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Autocomplete a partial query.

        Args:
            query: Raw text typed by the user
            context: userId, sessionId, language, region
            options: maxSuggestions and include*/feature toggles

        Returns:
            Dict with keys: suggestions, categories, filters, corrections,
            relatedQueries, trending, confidence, processingTime
        """
        ctx = AutocompleteContext.from_dict(context, self.settings)
        opts = AutocompleteOptions.from_dict(options, self.settings.max_suggestions)
        return self._suggest(query, ctx, opts)

    def _suggest(self, query: str, ctx: AutocompleteContext, opts: AutocompleteOptions) -> Dict[str, Any]:
        start = time.perf_counter()
        processed = preprocess_query(query)

        cache_key = make_cache_key("autocomplete", {
            "query": processed,
            "language": ctx.language,
            "region": ctx.region,
            "user": ctx.user_id,
            "options": asdict(opts),
        })
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        trending = self.trending(ctx.region) if opts.include_trending else []

        if len(processed) < self.settings.min_query_length:
            return {
                "suggestions": [],
                "categories": [],
                "filters": [],
                "corrections": [],
                "relatedQueries": [],
                "trending": trending,
                "confidence": 0.0,
                "processingTime": round((time.perf_counter() - start) * 1000, 2),
            }

        text_suggestions = self._text_suggestions(processed, ctx, opts)
        corrections = self.corrections(processed, ctx.language) if opts.typo_correction else []
        ranked = self._rank(text_suggestions, ctx)[:opts.max_suggestions]

        result = {
            "suggestions": ranked,
            "categories": self._category_suggestions(processed) if opts.include_categories else [],
            "filters": self._filter_suggestions(processed),
            "corrections": corrections,
            "relatedQueries": self._related_queries(processed),
            "trending": trending,
            "confidence": self._confidence(ranked, corrections),
            "processingTime": round((time.perf_counter() - start) * 1000, 2),
        }

        self._cache.set(cache_key, result)
        self._analytics.append({
            "query": query,
            "suggestionCount": len(ranked),
            "correctionCount": len(corrections),
            "confidence": result["confidence"],
            "processingTime": result["processingTime"],
            "language": ctx.language,
            "region": ctx.region,
            "timestamp": self._clock(),
        })
        return result

    def multilingual_suggestions(
        self,
        query: str,
        languages: List[str],
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Suggestions for the same query in several languages.

        The query is translated from the context language into each target
        language; history and personalization are switched off.
        """
        ctx = AutocompleteContext.from_dict(context, self.settings)
        results = {}
        for language in languages:
            localized = AutocompleteContext(
                user_id=ctx.user_id, session_id=ctx.session_id, language=language, region=ctx.region,
            )
            opts = AutocompleteOptions(
                max_suggestions=min(5, self.settings.max_suggestions),
                include_historical=False,
                include_personalized=False,
                typo_correction=False,
            )
            try:
                translated = self.translator.translate(query, ctx.language, language)
                results[language] = self._suggest(translated, localized, opts)
            except Exception as e:
                logger.warning(f"Failed to generate suggestions for language {language}: {e}")
        return results

    def record_interaction(self, user_id: str, interaction: Dict[str, Any]) -> UserPreferences:
        """
        Update a user's search history, favourite categories and languages.

        Args:
            user_id: User identifier
            interaction: query, resultCount, clickedResult, success, context

        Returns:
            The updated preferences
        """
        preferences = self._preferences.setdefault(user_id, UserPreferences(
            primary_language=self.settings.default_language,
            search_history=deque(maxlen=self.settings.max_user_history),
        ))
        query = interaction.get("query", "")
        clicked = interaction.get("clickedResult")
        success = bool(interaction.get("success", False))

        preferences.search_history.append({
            "query": query,
            "timestamp": self._clock(),
            "resultCount": int(interaction.get("resultCount", 0)),
            "clickedResult": clicked,
            "success": success,
            "context": interaction.get("context", ""),
        })

        if success and clicked:
            category = self._category_from_result(clicked)
            if category and category not in preferences.favorite_categories:
                preferences.favorite_categories.append(category)

        if re.search(r"[^\x00-\x7F]", query):
            language = detect_language(query)
            if language not in preferences.secondary_languages:
                preferences.secondary_languages.append(language)

        # personalised results are cached per user
        self._cache.clear()
        logger.info(f"Autocomplete preferences updated for user {user_id}")
        return preferences

    def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        return self._preferences.get(user_id)

    def detect_language(self, query: str) -> str:
        return detect_language(query)

    def trending(self, region: str) -> List[Dict[str, Any]]:
        return [dict(t) for t in TRENDING_QUERIES if t["region"] == region][:MAX_TRENDING]

    # ------------------------------------------------------------------
    # Text suggestions
    # ------------------------------------------------------------------

    def _query_variants(self, query: str, language: str, enabled: bool) -> List[str]:
        """Canonical words whose synonym list contains the query ("coke" -> "cola")."""
        if not enabled:
            return []
        table = SYNONYMS.get(language.split("-")[0], {})
        return [word for word, synonyms in table.items() if query in synonyms and word != query]

    def _tier(self, item: Dict[str, Any], query: str, variants: List[str], fuzzy: bool) -> Optional[str]:
        name = item["nameNormalized"]
        if query in name:
            return "name"
        if any(query in s for s in item["synonyms"]) or any(v in name for v in variants):
            return "synonym"
        if fuzzy and similarity(query, name) > self.settings.fuzzy_threshold:
            return "fuzzy"
        return None

    def _text_suggestions(
        self,
        query: str,
        ctx: AutocompleteContext,
        opts: AutocompleteOptions,
    ) -> List[Dict[str, Any]]:
        normalized = normalize_text(query)
        variants = self._query_variants(normalized, ctx.language, opts.synonym_matching)
        suggestions: List[Dict[str, Any]] = []

        if opts.include_recipes:
            for recipe in self.index["recipes"]:
                tier = self._tier(recipe, normalized, variants, opts.fuzzy_matching)
                if tier:
                    suggestions.append(self._recipe_suggestion(recipe, tier))

        if opts.include_ingredients:
            for ingredient in self.index["ingredients"]:
                tier = self._tier(ingredient, normalized, variants, opts.fuzzy_matching)
                if tier:
                    suggestions.append(self._ingredient_suggestion(ingredient, tier))

        if opts.include_suppliers:
            for supplier in self.index["suppliers"]:
                tier = self._tier(supplier, normalized, variants, opts.fuzzy_matching)
                if tier:
                    suggestions.append(self._supplier_suggestion(supplier, tier))

        if opts.include_historical and ctx.user_id:
            suggestions.extend(self._history_suggestions(query, ctx.user_id))

        if opts.include_personalized and ctx.user_id:
            suggestions.extend(self._personalized_suggestions(query, ctx.user_id))

        if not suggestions and opts.fuzzy_matching:
            suggestions.extend(self._fuzzy_fallback(normalized))

        return suggestions

    @staticmethod
    def _suggestion(
        suggestion_id: str,
        text: str,
        suggestion_type: str,
        category: str,
        relevance: float,
        popularity: float,
        metadata: Dict[str, Any],
        display: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "id": suggestion_id,
            "text": text,
            "type": suggestion_type,
            "category": category,
            "relevanceScore": relevance,
            "popularity": popularity,
            "metadata": metadata,
            "displayInfo": display,
        }

    def _recipe_suggestion(self, recipe: Dict[str, Any], tier: str) -> Dict[str, Any]:
        popularity = self.popularity.popularity("recipe", recipe["id"])
        return self._suggestion(
            f"recipe-{recipe['id']}", recipe["name"], "recipe", recipe["category"],
            AUTOCOMPLETE_RELEVANCE["recipe"][tier], popularity,
            {
                "recipeId": recipe["id"],
                "category": recipe["category"],
                "tags": recipe["tags"],
                "synonyms": recipe["synonyms"],
                "localizedNames": recipe["localizedNames"],
                "usageCount": int(popularity * 100),
                "successRate": AUTOCOMPLETE_SUCCESS_RATE["recipe"],
                "matchType": tier,
            },
            {
                "primaryText": recipe["name"],
                "secondaryText": recipe["category"],
                "icon": "recipe",
                "color": CATEGORY_COLORS.get(recipe["category"], DEFAULT_CATEGORY_COLOR),
            },
        )

    def _ingredient_suggestion(self, ingredient: Dict[str, Any], tier: str) -> Dict[str, Any]:
        return self._suggestion(
            f"ingredient-{ingredient['id']}", ingredient["name"], "ingredient", ingredient["category"],
            AUTOCOMPLETE_RELEVANCE["ingredient"][tier],
            self.popularity.popularity("ingredient", ingredient["id"]),
            {
                "ingredientId": ingredient["id"],
                "category": ingredient["category"],
                "tags": [ingredient["category"]],
                "synonyms": ingredient["synonyms"],
                "localizedNames": ingredient["localizedNames"],
                "usageCount": ingredient["usageCount"],
                "successRate": AUTOCOMPLETE_SUCCESS_RATE["ingredient"],
                "matchType": tier,
            },
            {
                "primaryText": ingredient["name"],
                "secondaryText": ingredient["category"],
                "icon": "ingredient",
                "color": INGREDIENT_COLOR,
            },
        )

    def _supplier_suggestion(self, supplier: Dict[str, Any], tier: str) -> Dict[str, Any]:
        return self._suggestion(
            f"supplier-{supplier['id']}", supplier["name"], "supplier", "supplier",
            AUTOCOMPLETE_RELEVANCE["supplier"][tier], supplier["rating"] / 5,
            {
                "supplierId": supplier["id"],
                "category": "supplier",
                "tags": [supplier["region"]],
                "synonyms": supplier["synonyms"],
                "localizedNames": supplier["localizedNames"],
                "usageCount": int(supplier["rating"] * 20),
                "successRate": AUTOCOMPLETE_SUCCESS_RATE["supplier"],
                "matchType": tier,
            },
            {
                "primaryText": supplier["name"],
                "secondaryText": supplier["region"],
                "icon": "supplier",
                "color": SUPPLIER_COLOR,
            },
        )

    def _history_suggestions(self, query: str, user_id: str) -> List[Dict[str, Any]]:
        preferences = self._preferences.get(user_id)
        if preferences is None:
            return []

        matching = [h for h in preferences.search_history if query.lower() in h["query"].lower()]
        matching.sort(key=lambda h: h["timestamp"], reverse=True)

        return [
            self._suggestion(
                f"history-{item['query']}", item["query"], "trending", "history",
                0.7, 0.8 if item["success"] else 0.4,
                {
                    "category": "history",
                    "tags": ["recent", "personal"],
                    "synonyms": [],
                    "localizedNames": {},
                    "usageCount": 1,
                    "successRate": 0.9 if item["success"] else 0.3,
                },
                {
                    "primaryText": item["query"],
                    "secondaryText": "Recent search",
                    "icon": "history",
                    "color": HISTORY_COLOR,
                },
            )
            for item in matching[:MAX_HISTORY_SUGGESTIONS]
        ]

    def _personalized_suggestions(self, query: str, user_id: str) -> List[Dict[str, Any]]:
        preferences = self._preferences.get(user_id)
        if preferences is None:
            return []

        return [
            self._suggestion(
                f"favorite-{category}", category, "category", "favorites", 0.9, 0.8,
                {
                    "category": "favorites",
                    "tags": ["personal", "favorite"],
                    "synonyms": [],
                    "localizedNames": {},
                    "usageCount": 5,
                    "successRate": 0.95,
                },
                {
                    "primaryText": category,
                    "secondaryText": "Your favorite",
                    "icon": "heart",
                    "color": FAVORITE_COLOR,
                },
            )
            for category in preferences.favorite_categories[:2]
            if query.lower() in category.lower()
        ]

    def _fuzzy_fallback(self, query: str) -> List[Dict[str, Any]]:
        matches = []
        for recipe in self.index["recipes"]:
            score = similarity(query, recipe["nameNormalized"])
            if score > self.settings.fuzzy_threshold:
                matches.append(self._suggestion(
                    f"fuzzy-recipe-{recipe['id']}", recipe["name"], "recipe", recipe["category"],
                    score * 0.8, self.popularity.popularity("recipe", recipe["id"]) * 0.7,
                    {
                        "recipeId": recipe["id"],
                        "category": recipe["category"],
                        "tags": ["fuzzy-match"],
                        "synonyms": recipe["synonyms"],
                        "localizedNames": recipe["localizedNames"],
                        "usageCount": 0,
                        "successRate": 0.6,
                        "matchType": "fuzzy",
                    },
                    {
                        "primaryText": recipe["name"],
                        "secondaryText": "Did you mean?",
                        "icon": "fuzzy",
                        "color": FUZZY_COLOR,
                    },
                ))
        return matches

    def _rank(self, suggestions: List[Dict[str, Any]], ctx: AutocompleteContext) -> List[Dict[str, Any]]:
        favorites: List[str] = []
        if ctx.user_id and ctx.user_id in self._preferences:
            favorites = self._preferences[ctx.user_id].favorite_categories

        ranked = []
        for suggestion in suggestions:
            score = suggestion["relevanceScore"] * RANKING_WEIGHTS["relevance"]
            score += suggestion["popularity"] * RANKING_WEIGHTS["popularity"]
            if suggestion["category"] in favorites:
                score += RANKING_WEIGHTS["favorite_category"]
            score += suggestion["metadata"]["successRate"] * RANKING_WEIGHTS["success_rate"]
            ranked.append({**suggestion, "relevanceScore": round(score, 4)})

        ranked.sort(key=lambda s: s["relevanceScore"], reverse=True)
        return ranked

    # ------------------------------------------------------------------
    # Corrections, categories, filters
    # ------------------------------------------------------------------

    def corrections(self, query: str, language: str) -> List[Dict[str, Any]]:
        """Typo (0.9), alternative spelling (0.7) and localization (0.8) corrections."""
        corrections = []

        for typo, corrected in AUTOCOMPLETE_TYPOS.items():
            if typo in query:
                corrections.append({
                    "original": typo, "corrected": corrected, "confidence": 0.9,
                    "reason": "Common typo correction", "type": "typo",
                })

        for word, alternatives in AUTOCOMPLETE_ALTERNATIVES.items():
            if word in query:
                for alternative in alternatives:
                    corrections.append({
                        "original": word, "corrected": alternative, "confidence": 0.7,
                        "reason": "Alternative spelling", "type": "spelling",
                    })

        for english, localized in LOCALIZATION_TABLE.get(language, {}).items():
            if english in query:
                corrections.append({
                    "original": english, "corrected": localized, "confidence": 0.8,
                    "reason": f"Localization for {language}", "type": "localization",
                })

        return corrections

    def _category_suggestions(self, query: str) -> List[Dict[str, Any]]:
        results = []
        for category in self.index["categories"]:
            if query in category["nameNormalized"]:
                relevance = 1.0
            elif any(query in s for s in category["synonyms"]):
                relevance = 0.8
            else:
                continue
            results.append({
                "id": category["id"],
                "name": category["name"],
                "description": category["description"],
                "icon": category["icon"],
                "color": category["color"],
                "recipeCount": category["recipeCount"],
                "relevanceScore": relevance,
            })
        return results

    def _filter_suggestions(self, query: str) -> List[Dict[str, Any]]:
        words = query.split()
        results = []
        for word, levels in CAFFEINE_QUERY_WORDS.items():
            if word in words:
                results.append({
                    "id": f"caffeine_level-{word}",
                    "filterType": "caffeine_level",
                    "label": f"Caffeine: {', '.join(levels)}",
                    "value": list(levels),
                    "description": f"Show recipes with {' or '.join(levels)} caffeine",
                    "icon": "filter",
                    "relevanceScore": 0.75,
                    "active": False,
                })
        return results

    @staticmethod
    def _related_queries(query: str) -> List[str]:
        return [
            t["query"] for t in TRENDING_QUERIES
            if t["query"] != query and any(word in t["query"] for word in query.split())
        ][:MAX_TRENDING]

    @staticmethod
    def _confidence(suggestions: List[Dict[str, Any]], corrections: List[Dict[str, Any]]) -> float:
        if not suggestions and not corrections:
            return 0.0
        avg_suggestion = (
            sum(s["relevanceScore"] for s in suggestions) / len(suggestions) if suggestions else 0.0
        )
        avg_correction = (
            sum(c["confidence"] for c in corrections) / len(corrections) if corrections else 0.0
        )
        return round(avg_suggestion * 0.7 + avg_correction * 0.3, 4)

    def _category_from_result(self, result_id: str) -> Optional[str]:
        """Category to favour after a click: the recipe's category, else the result type."""
        for prefix in _RESULT_PREFIXES:
            if result_id.startswith(prefix):
                item_id = result_id[len(prefix):]
                if prefix.endswith("recipe-"):
                    recipe = self.catalog.get_flavor(item_id)
                    if recipe and recipe.get("category"):
                        return recipe["category"]
                    return "recipe"
                return prefix.rstrip("-")
        return None

    def analytics(self) -> Dict[str, Any]:
        return {
            "totalRequests": len(self._analytics),
            "recent": list(self._analytics)[-10:],
            "cache": self._cache.stats(),
        }
