"""
Core modules for the SodaLab Discovery Service.

This package contains:
- catalog: JSON catalog loading (bases, flavors, ingredients, suppliers)
- filters: Multi-criteria filter engine with facets and saved sets
- search / autocomplete: Recipe search, suggestions and corrections
- query_classifier: TF-IDF soda-type classifier for free-text queries
- recommender: Content-based recipe recommendations
- affiliate / amazon: Attribution tracking, regional URLs and stock checks
- calculator: Batch scaling and caffeine adjustment
"""

from .catalog import CatalogLoader
from .filters import FilterEngine, FilterExpression, FilterQuery, apply_boolean_logic, evaluate_filter
from .search import SearchEngine
from .autocomplete import AutocompleteEngine
from .recommender import RecipeRecommender
from .affiliate import AttributionTracker
from .amazon import AmazonURLGenerator, AvailabilityChecker
from .calculator import calculate_recipe

__all__ = [
    "CatalogLoader",
    "FilterEngine",
    "FilterExpression",
    "FilterQuery",
    "apply_boolean_logic",
    "evaluate_filter",
    "SearchEngine",
    "AutocompleteEngine",
    "RecipeRecommender",
    "AttributionTracker",
    "AmazonURLGenerator",
    "AvailabilityChecker",
    "calculate_recipe",
]
