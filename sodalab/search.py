"""
Full-text Recipe Search for SodaLab.

Powers /api/enhanced-search and /api/search:
1. Option normalization (limits, sort defaults)
2. Advanced filters (category, soda type, caffeine, ingredients, ...)
3. Tokenized full-text scoring with per-field relevance weights
4. Sorting, pagination and facet counts
5. Ingredient, supplier and premade-product side results
6. Query suggestions and related queries

Scores are additive per matched term, so "berry energy" ranks a recipe
matching both words above one matching only "berry".
"""

import logging
import math
import re
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from config import (
    DIFFICULTY_ORDER,
    FIELD_RELEVANCE,
    POPULAR_SEARCHES,
    QUICK_SEARCH_MAX_SCORE,
    QUICK_SEARCH_TYPES,
    QUICK_SEARCH_WEIGHTS,
    SEARCH_SORT_FIELDS,
    SEARCH_TYPO_MAP,
    SUGGESTION_MIX,
    Settings,
)
from sodalab.cache import TTLCache, make_cache_key
from sodalab.filters import get_field_value
from sodalab.services import PopularityService, UniformPopularityService

logger = logging.getLogger(__name__)

MAX_RELATED_QUERIES = 5
MAX_SIDE_RESULTS = 10


def _as_list(value) -> List[str]:
    # A lone string is one value, not a sequence of characters
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass
class SearchFilters:
    """Structured filters applied before full-text scoring."""
    categories: List[str] = field(default_factory=list)
    soda_types: List[str] = field(default_factory=list)
    caffeine_levels: List[str] = field(default_factory=list)
    ingredients: List[str] = field(default_factory=list)
    premade_available: Optional[bool] = None
    max_prep_time: Optional[float] = None
    min_cost: Optional[float] = None
    max_cost: Optional[float] = None
    exclude_allergens: List[str] = field(default_factory=list)
    dietary_restrictions: List[str] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SearchFilters":
        data = data or {}
        cost = data.get("costRange") or {}
        return cls(
            categories=_as_list(data.get("categories")),
            soda_types=_as_list(data.get("sodaTypes")),
            caffeine_levels=_as_list(data.get("caffeineLevels")),
            ingredients=_as_list(data.get("ingredients")),
            premade_available=data.get("premadeAvailable"),
            max_prep_time=data.get("maxPrepTime"),
            min_cost=cost.get("min"),
            max_cost=cost.get("max"),
            exclude_allergens=_as_list(data.get("excludeAllergens")),
            dietary_restrictions=_as_list(data.get("dietaryRestrictions")),
            regions=_as_list(data.get("regions")),
        )


@dataclass
class SearchOptions:
    query: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: str = "relevance"
    sort_order: str = "desc"
    limit: int = 20
    offset: int = 0


class SearchEngine:
    """
    Recipe search over the catalog.

    Usage:
        engine = SearchEngine(settings, catalog)
        results = engine.search({"query": "berry energy", "limit": 10})
    """

    def __init__(
        self,
        settings: Settings,
        catalog,
        classifier=None,
        popularity: Optional[PopularityService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.catalog = catalog
        self.classifier = classifier
        self.popularity = popularity or UniformPopularityService()
        self._clock = clock
        self._cache = TTLCache(settings.search_cache_ttl, clock=clock)
        self._history: Deque[Dict[str, Any]] = deque(maxlen=settings.max_analytics_events)

    # ------------------------------------------------------------------
    # Option handling
    # ------------------------------------------------------------------

    def normalize_options(self, options: Dict[str, Any]) -> SearchOptions:
        """Apply defaults and caps: limit <= max_search_results, relevance/desc sort."""
        limit = options.get("limit") or self.settings.default_search_limit
        sort_by = options.get("sortBy") or "relevance"
        if sort_by not in SEARCH_SORT_FIELDS:
            logger.debug(f"Unknown sort field '{sort_by}', falling back to relevance")
            sort_by = "relevance"
        sort_order = options.get("sortOrder") or "desc"
        filters = options.get("filters")
        if not isinstance(filters, SearchFilters):
            filters = SearchFilters.from_dict(filters)

        return SearchOptions(
            query=str(options.get("query") or "").strip(),
            filters=filters,
            sort_by=sort_by,
            sort_order="asc" if sort_order == "asc" else "desc",
            limit=max(1, min(int(limit), self.settings.max_search_results)),
            offset=max(0, int(options.get("offset") or 0)),
        )

    @staticmethod
    def tokenize(query: str) -> List[str]:
        """Lowercase, split on whitespace, drop 1-char terms, fix common typos."""
        terms = []
        for term in re.split(r"\s+", (query or "").lower()):
            if len(term) < 2:
                continue
            terms.append(SEARCH_TYPO_MAP.get(term, term))
        return terms

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a full search.

        Args:
            options: Dict with query, filters, sortBy, sortOrder, limit, offset

        Returns:
            Dict with keys: recipes, ingredients, suppliers, products,
            totalResults, searchTime, suggestions, facets, relatedQueries
            (plus queryUnderstanding when a classifier is configured)
        """
        start = time.perf_counter()
        opts = self.normalize_options(options)

        cache_key = make_cache_key("search", {
            **asdict(opts),
            "filters": asdict(opts.filters),
        })
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._record_search(opts.query, cached["totalResults"])
            return cached

        recipes = self.apply_advanced_filters(self.catalog.flavors, opts.filters)
        terms = self.tokenize(opts.query)

        scored = []
        for recipe in recipes:
            if not terms:
                scored.append((recipe, 0, []))
                continue
            score, reasons = self.score_recipe(recipe, terms)
            if score > 0:
                scored.append((recipe, score, reasons))

        scored = self._sort(scored, opts.sort_by, opts.sort_order)
        page = scored[opts.offset:opts.offset + opts.limit]

        result = {
            "recipes": [
                {**recipe, "relevanceScore": score, "matchReasons": reasons}
                for recipe, score, reasons in page
            ],
            "ingredients": self.search_ingredients(terms),
            "suppliers": self.search_suppliers(terms),
            "products": self._products([recipe for recipe, _, _ in scored]),
            "totalResults": len(scored),
            "suggestions": self.generate_suggestions(opts.query, 5),
            "facets": self.build_facets([recipe for recipe, _, _ in scored]),
            "relatedQueries": self.related_queries(opts.query, [r for r, _, _ in scored]),
        }

        if self.classifier is not None and opts.query:
            soda_type, confidence = self.classifier.predict(opts.query)
            result["queryUnderstanding"] = {"sodaType": soda_type, "confidence": round(confidence, 3)}

        result["searchTime"] = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"Search '{opts.query}' matched {len(scored)} recipes in {result['searchTime']:.2f}ms"
        )

        self._cache.set(cache_key, result)
        self._record_search(opts.query, len(scored))
        return result

    def apply_advanced_filters(
        self,
        recipes: List[Dict[str, Any]],
        filters: SearchFilters,
    ) -> List[Dict[str, Any]]:
        """Keep recipes satisfying every populated filter."""
        results = list(recipes)

        if filters.categories:
            results = [r for r in results if r.get("category") in filters.categories]
        if filters.soda_types:
            results = [r for r in results if r.get("sodaType") in filters.soda_types]
        if filters.caffeine_levels:
            results = [r for r in results if r.get("caffeineCategory") in filters.caffeine_levels]
        if filters.ingredients:
            wanted = [i.lower() for i in filters.ingredients]
            results = [
                r for r in results
                if any(w in name for name in self._ingredient_names(r) for w in wanted)
            ]
        if filters.premade_available is not None:
            results = [r for r in results if bool(r.get("premadeProducts")) == filters.premade_available]
        if filters.max_prep_time is not None:
            results = [
                r for r in results
                if r.get("preparationTime") is not None
                and r["preparationTime"] <= filters.max_prep_time
            ]
        if filters.min_cost is not None:
            results = [r for r in results if (r.get("estimatedCost") or 0) >= filters.min_cost]
        if filters.max_cost is not None:
            results = [r for r in results if (r.get("estimatedCost") or 0) <= filters.max_cost]
        if filters.exclude_allergens:
            results = [
                r for r in results
                if not set(r.get("allergens") or []) & set(filters.exclude_allergens)
            ]
        if filters.dietary_restrictions:
            results = [
                r for r in results
                if set(filters.dietary_restrictions) <= set(r.get("dietaryRestrictions") or [])
            ]
        if filters.regions:
            wanted_regions = {region.upper() for region in filters.regions}
            results = [r for r in results if wanted_regions & set(r.get("regions") or [])]

        return results

    def _ingredient_names(self, recipe: Dict[str, Any]) -> List[str]:
        return [
            self.catalog.get_ingredient_name(i["ingredientId"]).lower()
            for i in recipe.get("ingredients", [])
        ]

    def score_recipe(self, recipe: Dict[str, Any], terms: List[str]) -> Tuple[int, List[str]]:
        """
        Additive relevance of a recipe for the query terms.

        Returns:
            ``(score, match_reasons)``
        """
        name = recipe.get("name", "").lower()
        profile = recipe.get("profile", "").lower()
        category = recipe.get("category", "").lower()
        soda_type = recipe.get("sodaType", "").lower()
        ingredient_names = self._ingredient_names(recipe)
        bases = [b.lower() for b in recipe.get("compatibleBases", [])]

        score = 0
        reasons: List[str] = []
        for term in terms:
            if term in name:
                score += FIELD_RELEVANCE["name"]
                reasons.append(f"Name matches '{term}'")
                if name.startswith(term):
                    score += FIELD_RELEVANCE["name_prefix"]
            if term in profile:
                score += FIELD_RELEVANCE["profile"]
                reasons.append(f"Flavor profile mentions '{term}'")
            if term in category:
                score += FIELD_RELEVANCE["category"]
                reasons.append(f"Category '{category}'")
            if term in soda_type:
                score += FIELD_RELEVANCE["soda_type"]
                reasons.append(f"Soda type '{soda_type}'")
            matched = [n for n in ingredient_names if term in n]
            if matched:
                score += FIELD_RELEVANCE["ingredient"]
                reasons.append(f"Contains {matched[0]}")
            if any(term in b for b in bases):
                score += FIELD_RELEVANCE["compatible_base"]
                reasons.append(f"Works with a base matching '{term}'")
        return score, reasons

    def _sort(
        self,
        scored: List[Tuple[Dict[str, Any], int, List[str]]],
        sort_by: str,
        sort_order: str,
    ) -> List[Tuple[Dict[str, Any], int, List[str]]]:
        reverse = sort_order == "desc"

        if sort_by == "name":
            key = lambda item: item[0].get("name", "").lower()
        elif sort_by == "caffeine":
            key = lambda item: get_field_value(item[0], "caffeine_range") or 0
        elif sort_by == "difficulty":
            key = lambda item: DIFFICULTY_ORDER.get(item[0].get("difficultyLevel"), 0)
        elif sort_by == "cost":
            key = lambda item: item[0].get("estimatedCost") or 0
        elif sort_by == "popularity":
            key = lambda item: self.popularity.popularity("recipe", item[0]["id"])
        else:
            key = lambda item: item[1]

        return sorted(scored, key=key, reverse=reverse)

    # ------------------------------------------------------------------
    # Side results
    # ------------------------------------------------------------------

    def search_ingredients(self, terms: List[str]) -> List[Dict[str, Any]]:
        if not terms:
            return []
        results = []
        for ingredient in self.catalog.ingredients:
            haystack = " ".join([
                ingredient.get("name", ""), ingredient.get("nameNl", ""), ingredient.get("category", ""),
            ]).lower()
            if any(term in haystack for term in terms):
                results.append(ingredient)
        return results[:MAX_SIDE_RESULTS]

    def search_suppliers(self, terms: List[str]) -> List[Dict[str, Any]]:
        if not terms:
            return []
        results = []
        for supplier in self.catalog.suppliers:
            stocked = [self.catalog.get_ingredient_name(i).lower() for i in supplier.get("ingredients", [])]
            haystack = " ".join([supplier.get("name", ""), supplier.get("location", "")] + stocked).lower()
            if any(term in haystack for term in terms):
                results.append(supplier)
        return results[:MAX_SIDE_RESULTS]

    @staticmethod
    def _products(recipes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        products = []
        for recipe in recipes:
            for product in recipe.get("premadeProducts") or []:
                products.append({**product, "flavorId": recipe["id"]})
        return products[:MAX_SIDE_RESULTS]

    def build_facets(self, recipes: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        """Value counts over the full (unpaginated) result set."""
        counters = {
            "categories": Counter(r.get("category") for r in recipes if r.get("category")),
            "sodaTypes": Counter(r.get("sodaType") for r in recipes if r.get("sodaType")),
            "caffeineLevels": Counter(
                r.get("caffeineCategory") for r in recipes if r.get("caffeineCategory")
            ),
            "difficulty": Counter(r.get("difficultyLevel") for r in recipes if r.get("difficultyLevel")),
            "ingredients": Counter(),
            "regions": Counter(),
        }
        for recipe in recipes:
            counters["ingredients"].update(set(self._ingredient_names(recipe)))
            counters["regions"].update(set(recipe.get("regions") or []))

        return {
            facet: [{"value": value, "count": count} for value, count in counter.most_common()]
            for facet, counter in counters.items()
        }

    def related_queries(self, query: str, recipes: List[Dict[str, Any]]) -> List[str]:
        if not query:
            return []
        related: List[str] = []
        for recipe in recipes[:MAX_RELATED_QUERIES]:
            related.append(f"{recipe.get('sodaType', '').replace('-', ' ')} recipes")
            related.append(f"{recipe.get('category', '')} sodas")
        return self._dedupe(related, exclude=query)[:MAX_RELATED_QUERIES]

    # ------------------------------------------------------------------
    # Quick search (GET /api/search)
    # ------------------------------------------------------------------

    def quick_search(self, query: str, types: List[str], limit: int) -> Dict[str, Any]:
        """
        Substring search per catalog type with capped relevance scores.

        Args:
            query: Search text
            types: Subset of QUICK_SEARCH_TYPES
            limit: Maximum results per type

        Returns:
            Dict with one list per requested type, ``totalResults`` and
            ``relevanceScores`` (item id -> score)
        """
        q = query.lower().strip()
        limit = max(1, min(limit, self.settings.max_search_results))
        result: Dict[str, Any] = {}
        scores: Dict[str, int] = {}

        for item_type in types:
            if item_type not in QUICK_SEARCH_TYPES:
                continue
            matches = []
            for item in self._quick_items(item_type):
                haystack = " ".join([
                    item["name"], item["description"], item["category"], " ".join(item["ingredients"]),
                ]).lower()
                if q in haystack:
                    score = self.relevance_score(q, item)
                    matches.append((score, item))
            matches.sort(key=lambda pair: pair[0], reverse=True)
            result[item_type] = [item["record"] for _, item in matches[:limit]]
            scores.update({item["id"]: score for score, item in matches[:limit]})

        result["totalResults"] = sum(len(result[t]) for t in types if t in result)
        result["relevanceScores"] = scores
        return result

    def _quick_items(self, item_type: str) -> List[Dict[str, Any]]:
        if item_type == "flavors":
            return [
                {
                    "id": f["id"],
                    "name": f.get("name", ""),
                    "description": f.get("profile", ""),
                    "category": f.get("category", ""),
                    "ingredients": self._ingredient_names(f),
                    "brand": " ".join(p.get("brand", "") for p in f.get("premadeProducts") or []),
                    "caffeine": f.get("caffeineCategory", "none"),
                    "record": f,
                }
                for f in self.catalog.flavors
            ]
        if item_type == "ingredients":
            return [
                {
                    "id": i["id"],
                    "name": i.get("name", ""),
                    "description": i.get("nameNl", ""),
                    "category": i.get("category", ""),
                    "ingredients": [],
                    "brand": "",
                    "caffeine": "high" if i["id"] == "caffeine-anhydrous" else "none",
                    "record": i,
                }
                for i in self.catalog.ingredients
            ]
        return [
            {
                "id": s["id"],
                "name": s.get("name", ""),
                "description": s.get("location", ""),
                "category": s.get("region", ""),
                "ingredients": [self.catalog.get_ingredient_name(i).lower() for i in s.get("ingredients", [])],
                "brand": s.get("name", ""),
                "caffeine": "none",
                "record": s,
            }
            for s in self.catalog.suppliers
        ]

    @staticmethod
    def relevance_score(query: str, item: Dict[str, Any]) -> int:
        """Quick-search relevance, capped at QUICK_SEARCH_MAX_SCORE."""
        q = query.lower()
        name = item.get("name", "").lower()
        score = 0
        if q in name:
            score += QUICK_SEARCH_WEIGHTS["name"]
            if name.startswith(q):
                score += QUICK_SEARCH_WEIGHTS["name_prefix"]
        if q in item.get("description", "").lower():
            score += QUICK_SEARCH_WEIGHTS["description"]
        if q in item.get("category", "").lower():
            score += QUICK_SEARCH_WEIGHTS["category"]
        if any(q in ingredient for ingredient in item.get("ingredients", [])):
            score += QUICK_SEARCH_WEIGHTS["ingredient"]
        if q in item.get("brand", "").lower():
            score += QUICK_SEARCH_WEIGHTS["brand"]
        if "caffeine" in q and item.get("caffeine") not in (None, "none"):
            score += QUICK_SEARCH_WEIGHTS["caffeine"]
        return min(score, QUICK_SEARCH_MAX_SCORE)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def generate_suggestions(self, query: str, limit: int = 5) -> List[str]:
        """
        Query completions mixing recipe names, ingredient names and flavor words.

        Short queries get the popular-search list instead.
        """
        query = (query or "").strip()
        if len(query) < self.settings.min_query_length:
            return POPULAR_SEARCHES[:limit]

        q = query.lower()
        recipe_names = [f["name"] for f in self.catalog.flavors if q in f.get("name", "").lower()]
        ingredient_names = [
            i["name"] for i in self.catalog.ingredients if q in i.get("name", "").lower()
        ]
        flavor_words = []
        for flavor in self.catalog.flavors:
            for word in re.findall(r"[a-z]{4,}", flavor.get("profile", "").lower()):
                if word.startswith(q) and word not in flavor_words:
                    flavor_words.append(word)

        mixed = (
            recipe_names[:math.ceil(limit * SUGGESTION_MIX["recipes"])]
            + ingredient_names[:math.ceil(limit * SUGGESTION_MIX["ingredients"])]
            + flavor_words[:math.ceil(limit * SUGGESTION_MIX["flavors"])]
        )
        return self._dedupe(mixed, exclude=query)[:limit]

    @staticmethod
    def _dedupe(values: List[str], exclude: str = "") -> List[str]:
        seen = {exclude.lower()} if exclude else set()
        unique = []
        for value in values:
            key = value.lower().strip()
            if key and key not in seen:
                seen.add(key)
                unique.append(value)
        return unique

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def _record_search(self, query: str, result_count: int) -> None:
        if query:
            self._history.append({
                "query": query.lower(),
                "resultCount": result_count,
                "timestamp": self._clock(),
            })

    def popular_queries(self, limit: int = 10) -> List[Dict[str, Any]]:
        counts = Counter(entry["query"] for entry in self._history)
        return [{"query": q, "count": c} for q, c in counts.most_common(limit)]

    def analytics(self) -> Dict[str, Any]:
        zero = sum(1 for entry in self._history if entry["resultCount"] == 0)
        return {
            "totalSearches": len(self._history),
            "zeroResultSearches": zero,
            "popularQueries": self.popular_queries(),
            "cache": self._cache.stats(),
        }
