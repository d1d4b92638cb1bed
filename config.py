"""
Configuration for the SodaLab Discovery Service.

This file contains all configuration constants including:
- Data file locations
- Filter definitions, groups and operator sets
- Search and autocomplete scoring weights
- Typo, synonym and localization tables
- Mock availability data for the Amazon stub
- The Settings object passed to every engine at construction time
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Base directory (project root)
BASE_DIR = Path(__file__).parent.absolute()

# Static JSON catalog (bases, flavors, ingredients, suppliers)
DATA_DIR = BASE_DIR / "data"

# Directory holding trained artefacts
MODEL_DIR = BASE_DIR / "model"

DATA_PATHS = {
    "bases": "bases",
    "flavors": "flavors",
    "ingredients": "ingredients/ingredients.json",
    "suppliers": "suppliers/netherlands.json",
    "amazon_regions": "suppliers/amazon-regions.json",
}

MODEL_PATHS = {
    "query_classifier": MODEL_DIR / "query_classifier.pkl",
}


# =============================================================================
# CATALOG VOCABULARY
# =============================================================================

RECIPE_CATEGORIES = ["classic", "energy", "hybrid"]

SODA_TYPES = [
    "cola", "citrus", "fruit", "cream", "root-beer", "ginger-ale", "energy-drink",
]

CAFFEINE_LEVELS = ["none", "low", "medium", "high"]

DIFFICULTY_ORDER = {"beginner": 1, "intermediate": 2, "advanced": 3}

CATEGORY_COLORS = {
    "classic": "#FF6B6B",
    "energy": "#4ECDC4",
    "hybrid": "#45B7D1",
}
DEFAULT_CATEGORY_COLOR = "#96CEB4"

LOCALIZED_CATEGORY_NAMES = {
    "classic": {"nl": "Klassieke Frisdrank", "de": "Klassische Limonade"},
    "energy": {"nl": "Energiedrank", "de": "Energiedrink"},
    "hybrid": {"nl": "Hybride Recepten", "de": "Hybrid Rezepte"},
}


# =============================================================================
# FILTER SYSTEM
# Operator set, definitions and UI groups for the multi-criteria filter engine
# =============================================================================

FILTER_OPERATORS = [
    "equals", "not_equals", "contains", "not_contains", "starts_with",
    "ends_with", "greater_than", "less_than", "between", "in", "not_in",
    "has", "not_has", "regex", "fuzzy", "geographic",
]

FILTER_LOGIC = ["AND", "OR"]

# Field id -> definition. "type" drives facet extraction:
# multiselect/select produce value histograms, range produces buckets,
# ingredient produces ingredient usage counts.
FILTER_DEFINITIONS: List[Dict[str, Any]] = [
    {"id": "name", "category": "basic", "type": "text", "operator": "contains",
     "weight": 1.0, "name": "Recipe name", "group": "basic"},
    {"id": "category", "category": "category", "type": "multiselect", "operator": "in",
     "weight": 0.9, "name": "Category", "group": "basic"},
    {"id": "soda_type", "category": "category", "type": "multiselect", "operator": "in",
     "weight": 0.9, "name": "Soda type", "group": "basic"},
    {"id": "caffeine_level", "category": "nutrition", "type": "select", "operator": "in",
     "weight": 0.8, "name": "Caffeine level", "group": "nutrition"},
    {"id": "caffeine_range", "category": "nutrition", "type": "range", "operator": "between",
     "weight": 0.8, "name": "Caffeine (mg per serving)", "group": "nutrition",
     "min": 0, "max": 200},
    {"id": "ingredients_include", "category": "ingredient", "type": "ingredient", "operator": "has",
     "weight": 0.9, "name": "Includes ingredients", "group": "ingredients"},
    {"id": "ingredients_exclude", "category": "ingredient", "type": "ingredient", "operator": "not_has",
     "weight": 0.9, "name": "Excludes ingredients", "group": "ingredients"},
    {"id": "dietary_restrictions", "category": "dietary", "type": "multiselect", "operator": "has",
     "weight": 0.7, "name": "Dietary restrictions", "group": "nutrition"},
    {"id": "allergens", "category": "allergen", "type": "multiselect", "operator": "not_in",
     "weight": 1.0, "name": "Allergens", "group": "nutrition"},
    {"id": "difficulty", "category": "difficulty", "type": "select", "operator": "equals",
     "weight": 0.6, "name": "Difficulty", "group": "preparation"},
    {"id": "prep_time", "category": "time", "type": "range", "operator": "less_than",
     "weight": 0.6, "name": "Preparation time (minutes)", "group": "preparation",
     "min": 0, "max": 120},
    {"id": "cost_range", "category": "cost", "type": "range", "operator": "between",
     "weight": 0.5, "name": "Cost per serving", "group": "practical",
     "min": 0, "max": 10},
    {"id": "premade_available", "category": "availability", "type": "boolean", "operator": "equals",
     "weight": 0.5, "name": "Premade available", "group": "practical"},
    {"id": "region", "category": "regional", "type": "location", "operator": "geographic",
     "weight": 0.4, "name": "Region", "group": "practical"},
    {"id": "cultural_origin", "category": "cultural", "type": "select", "operator": "equals",
     "weight": 0.4, "name": "Cultural origin", "group": "practical"},
    {"id": "required_equipment", "category": "equipment", "type": "multiselect", "operator": "has",
     "weight": 0.5, "name": "Required equipment", "group": "preparation"},
    {"id": "season", "category": "seasonal", "type": "multiselect", "operator": "in",
     "weight": 0.3, "name": "Season", "group": "preferences"},
]

FILTER_GROUPS: List[Dict[str, Any]] = [
    {"id": "basic", "name": "Basic", "description": "Name, category and soda type",
     "filters": ["name", "category", "soda_type"], "logic": "AND", "collapsed": False},
    {"id": "ingredients", "name": "Ingredients", "description": "Include or exclude ingredients",
     "filters": ["ingredients_include", "ingredients_exclude"], "logic": "AND", "collapsed": False},
    {"id": "nutrition", "name": "Nutrition & Dietary",
     "description": "Caffeine, dietary restrictions and allergens",
     "filters": ["caffeine_level", "caffeine_range", "dietary_restrictions", "allergens"],
     "logic": "AND", "collapsed": True},
    {"id": "preparation", "name": "Preparation", "description": "Difficulty, time and equipment",
     "filters": ["difficulty", "prep_time", "required_equipment"], "logic": "AND", "collapsed": True},
    {"id": "practical", "name": "Practical",
     "description": "Cost, availability, and regional considerations",
     "filters": ["cost_range", "premade_available", "region", "cultural_origin"],
     "logic": "AND", "collapsed": True},
    {"id": "preferences", "name": "Preferences", "description": "Personal and seasonal preferences",
     "filters": ["season"], "logic": "AND", "collapsed": True},
]

# Buckets reported for range facets
RANGE_BUCKET_COUNT = 4

# Confidence attached to generated filter suggestions
FILTER_SUGGESTION_CONFIDENCE = {
    "category": 0.8,
    "soda_type": 0.75,
    "ingredient": 0.7,
    "caffeine": 0.65,
    "alternative": 0.5,
}

CAFFEINE_QUERY_WORDS = {
    "decaf": ["none"],
    "caffeine-free": ["none"],
    "low": ["none", "low"],
    "medium": ["medium"],
    "high": ["high"],
    "strong": ["high"],
}


# =============================================================================
# QUERY CLASSIFIER
# Weak-supervision keywords per soda type (TF-IDF + LinearSVC)
# =============================================================================

SODA_TYPE_KEYWORDS = {
    "cola": [
        "cola", "coke", "kola", "cola nut", "caramel", "phosphoric", "cinnamon",
        "nutmeg", "vanilla cola", "cherry cola", "dark soda", "classic cola",
        "brown soda", "cola syrup", "diet cola", "cola zero",
    ],
    "citrus": [
        "lemon", "lime", "lemon lime", "citrus", "grapefruit", "yuzu", "zesty",
        "tangy", "sour", "sherbet", "lemonade", "limeade", "sprite", "clear soda",
    ],
    "fruit": [
        "berry", "strawberry", "raspberry", "blueberry", "cherry", "grape",
        "peach", "mango", "pineapple", "tropical", "passion fruit", "apple",
        "watermelon", "fruit punch", "mixed berry",
    ],
    "cream": [
        "cream", "cream soda", "vanilla", "creamy", "orange cream", "float",
        "marshmallow", "butterscotch", "smooth", "dessert soda",
    ],
    "root-beer": [
        "root beer", "sarsaparilla", "birch", "wintergreen", "sassafras",
        "licorice", "anise", "herbal soda", "old fashioned",
    ],
    "ginger-ale": [
        "ginger", "ginger ale", "ginger beer", "spicy", "ginger root",
        "dry ginger", "gingerade", "fiery",
    ],
    "energy-drink": [
        "energy", "energy drink", "taurine", "caffeine", "boost", "power",
        "guarana", "vitamin b", "focus", "pre workout", "electrolyte",
        "stimulant", "red bull", "monster",
    ],
}

# Minimum classifier confidence before a soda-type suggestion is offered
CLASSIFIER_MIN_CONFIDENCE = 0.4


# =============================================================================
# SEARCH ENGINE
# =============================================================================

# Common typos rewritten during tokenization
SEARCH_TYPO_MAP = {
    "colaa": "cola",
    "energey": "energy",
    "bery": "berry",
}

# Per-term field relevance for full-text recipe search
FIELD_RELEVANCE = {
    "name": 10,
    "name_prefix": 5,
    "profile": 8,
    "category": 6,
    "soda_type": 6,
    "ingredient": 7,
    "compatible_base": 4,
}

# Quick search relevance (GET /api/search), capped at QUICK_SEARCH_MAX_SCORE
QUICK_SEARCH_WEIGHTS = {
    "name": 10,
    "name_prefix": 5,
    "description": 5,
    "category": 3,
    "ingredient": 7,
    "brand": 6,
    "caffeine": 2,
}
QUICK_SEARCH_MAX_SCORE = 20
QUICK_SEARCH_TYPES = ["flavors", "ingredients", "suppliers"]

SEARCH_SORT_FIELDS = ["relevance", "name", "caffeine", "difficulty", "cost", "popularity"]

# Suggestion mix for generate_suggestions (fractions of the limit)
SUGGESTION_MIX = {"recipes": 0.4, "ingredients": 0.3, "flavors": 0.3}

POPULAR_SEARCHES = [
    "cola", "energy drink", "berry", "citrus", "ginger ale",
    "sugar free", "root beer", "tropical",
]

CAFFEINE_MG_PER_LEVEL = {"none": 0, "low": 30, "medium": 80, "high": 160}


# =============================================================================
# AUTOCOMPLETE
# =============================================================================

AUTOCOMPLETE_RELEVANCE = {
    "recipe": {"name": 1.0, "synonym": 0.8, "fuzzy": 0.6},
    "ingredient": {"name": 0.9, "synonym": 0.7, "fuzzy": 0.5},
    "supplier": {"name": 0.85, "synonym": 0.65, "fuzzy": 0.45},
}

AUTOCOMPLETE_SUCCESS_RATE = {
    "recipe": 0.85,
    "ingredient": 0.9,
    "supplier": 0.8,
    "category": 0.9,
}

# Final rank = relevance*0.4 + popularity*0.2 + favourite*0.2 + success*0.2
RANKING_WEIGHTS = {
    "relevance": 0.4,
    "popularity": 0.2,
    "favorite_category": 0.2,
    "success_rate": 0.2,
}

AUTOCOMPLETE_TYPOS = {
    "colaa": "cola",
    "energey": "energy",
    "bery": "berry",
    "citrusy": "citrus",
    "troppical": "tropical",
}

AUTOCOMPLETE_ALTERNATIVES = {
    "cola": ["kola", "coke"],
    "energy": ["power", "boost"],
    "berry": ["bery", "berri"],
}

LOCALIZATION_TABLE = {
    "en-US": {"soda": "soda", "soft-drink": "soft drink", "energy-drink": "energy drink"},
    "en-GB": {"soda": "fizzy drink", "soft-drink": "soft drink", "energy-drink": "energy drink"},
    "nl-NL": {"soda": "frisdrank", "soft-drink": "frisdrank", "energy-drink": "energiedrank"},
    "de-DE": {"soda": "limonade", "soft-drink": "soft drink", "energy-drink": "energydrink"},
}

SYNONYMS = {
    "en": {
        "cola": ["coke", "soft-drink", "carbonated"],
        "energy": ["power", "stimulant", "boost"],
        "berry": ["fruits", "mixed-berry", "red-fruits"],
        "citrus": ["lemon", "lime", "orange", "tangy"],
        "tropical": ["exotic", "island", "pina-colada"],
        "sweet": ["sugary", "dessert", "candy"],
        "sour": ["tart", "acidic", "sharp"],
    },
    "nl": {
        "cola": ["coke", "frisdrank", "bruisend"],
        "energie": ["power", "stimulans", "boost"],
        "bes": ["vruchten", "rode-vruchten", "bosvruchten"],
        "citrus": ["citroen", "limoen", "sinaasappel", "zuur"],
        "tropisch": ["exotisch", "eiland", "pina-colada"],
        "zoet": ["suiker", "dessert", "snoep"],
    },
    "de": {
        "cola": ["coke", "limonade", "kohlensäure"],
        "energie": ["kraft", "stimulans", "schub"],
        "beere": ["früchte", "rote-früchte", "waldfrüchte"],
        "zitrus": ["zitrone", "limette", "orange", "säuerlich"],
        "tropisch": ["exotisch", "insel", "piña-colada"],
        "sauer": ["herb", "säuerlich", "scharf"],
    },
}

TRENDING_QUERIES = [
    {"query": "berry citrus fusion", "trend": "rising", "growth": 25.5,
     "category": "energy", "region": "US", "confidence": 0.9},
    {"query": "classic cola recipe", "trend": "stable", "growth": 5.2,
     "category": "classic", "region": "US", "confidence": 0.8},
    {"query": "tropical energy drink", "trend": "rising", "growth": 18.7,
     "category": "energy", "region": "EU", "confidence": 0.85},
    {"query": "ginger ale recipe", "trend": "stable", "growth": 2.1,
     "category": "classic", "region": "UK", "confidence": 0.75},
    {"query": "hybrid soda recipe", "trend": "rising", "growth": 32.1,
     "category": "hybrid", "region": "US", "confidence": 0.88},
]

MAX_TRENDING = 5
MAX_HISTORY_SUGGESTIONS = 3
MAX_QUERY_LENGTH = 100

# In-memory event logs keep only the newest entries
MAX_ANALYTICS_EVENTS = 10000
MAX_USER_HISTORY = 100


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

# Signal weights for building the preference vector
SIGNAL_WEIGHTS = {
    "favorites": 0.6,
    "viewed": 0.2,
    "categories": 0.2,
}

# Bonus when a recipe matches the requested caffeine preference
CAFFEINE_PREFERENCE_BONUS = 0.1

DEFAULT_K = 10
MAX_K = 50
MAX_PER_CATEGORY = 3
MIN_SIMILARITY_SCORE = 0.05


# =============================================================================
# AFFILIATE ATTRIBUTION
# =============================================================================

ATTRIBUTION_PREFIX = "attr_"
ATTRIBUTION_EXPIRY_DAYS = 30
ATTRIBUTION_RECENT_WINDOW_HOURS = 24
DEFAULT_CONVERSION_CURRENCY = "EUR"


# =============================================================================
# AMAZON AVAILABILITY (stubbed upstream)
# =============================================================================

DEFAULT_AVAILABILITY_REGIONS = ["US", "UK", "DE", "FR", "NL", "CA", "AU", "JP"]

MOCK_AVAILABILITY: Dict[str, Dict[str, Dict[str, Any]]] = {
    "B08N5WRWNW": {
        "US": {"status": "in-stock", "stockLevel": 50, "fulfillmentType": "FBA",
               "sellerCount": 15, "shippingOptions": ["Same-day", "Next-day", "Standard"],
               "priceStability": "stable"},
        "UK": {"status": "limited", "stockLevel": 3, "fulfillmentType": "FBA",
               "sellerCount": 8, "shippingOptions": ["Next-day", "Standard"],
               "priceStability": "fluctuating"},
        "DE": {"status": "in-stock", "stockLevel": 25, "fulfillmentType": "FBA",
               "sellerCount": 12, "shippingOptions": ["Next-day", "Standard", "Economy"],
               "priceStability": "stable"},
        "FR": {"status": "limited", "stockLevel": 7, "fulfillmentType": "FBM",
               "sellerCount": 6, "shippingOptions": ["Standard", "Economy"],
               "priceStability": "increasing"},
        "NL": {"status": "in-stock", "stockLevel": 15, "fulfillmentType": "FBA",
               "sellerCount": 4, "shippingOptions": ["Next-day", "Standard"],
               "priceStability": "stable"},
    },
    "B09X4R5TEST": {
        "US": {"status": "out-of-stock", "restockDate": "2024-03-15", "fulfillmentType": "FBA",
               "sellerCount": 20, "shippingOptions": ["Standard"], "priceStability": "stable"},
        "UK": {"status": "pre-order", "restockDate": "2024-03-01", "fulfillmentType": "FBM",
               "sellerCount": 3, "shippingOptions": ["Standard"], "priceStability": "stable"},
        "DE": {"status": "in-stock", "stockLevel": 30, "fulfillmentType": "FBA",
               "sellerCount": 10, "shippingOptions": ["Next-day", "Standard"],
               "priceStability": "stable"},
    },
}

MOCK_ALTERNATIVES = [
    {"asin": "B08N5WRWNW-alt1", "region": "US", "status": "in-stock",
     "price": 5.49, "similarity": 0.9},
    {"asin": "B08N5WRWNW-alt2", "region": "UK", "status": "in-stock",
     "price": 4.29, "similarity": 0.85},
]

# Restock heuristics
RESTOCK_CONFIDENCE_KNOWN_DATE = 0.85
RESTOCK_CONFIDENCE_ESTIMATED = 0.6
RESTOCK_ESTIMATE_DAYS = 14
LOW_STOCK_THRESHOLD = 10
LIMITED_STOCK_ALERT_THRESHOLD = 5

# Amazon store category / sort mappings for search URLs
AMAZON_CATEGORY_MAP = {
    "grocery": {"US": "food-and-beverages", "UK": "grocery", "DE": "lebensmittel",
                "FR": "epicerie", "NL": "levensmiddelen", "CA": "grocery",
                "AU": "food-beverage", "JP": "food-beverage"},
    "health": {"US": "health-personal-care", "UK": "drugstore", "DE": "drogerie-und-kosmetik",
               "FR": "sante-parapharmacie", "NL": "drogisterij", "CA": "health-personal-care",
               "AU": "health-beauty", "JP": "drug-store"},
}
AMAZON_SORT_MAP = {
    "relevance": "relevancerank",
    "price-low": "price-asc-rank",
    "price-high": "price-desc-rank",
    "rating": "review-rank",
    "newest": "release-date-rank",
}


# =============================================================================
# API CONFIGURATION
# =============================================================================

API_CONFIG = {
    "host": os.getenv("FLASK_HOST", "0.0.0.0"),
    "port": int(os.getenv("FLASK_PORT", 5001)),
    "debug": os.getenv("FLASK_DEBUG", "false").lower() == "true",
}


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO"),
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


# =============================================================================
# RUNTIME SETTINGS
# One instance is built at the composition root and handed to every engine.
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """Runtime knobs for the discovery engines."""

    data_dir: Path = DATA_DIR
    classifier_path: Path = MODEL_PATHS["query_classifier"]
    enable_classifier: bool = True

    # Filter engine
    filter_cache_ttl: float = 30 * 60
    max_filters: int = 50
    max_filter_groups: int = 10
    default_filter_limit: int = 50
    max_filter_results: int = 1000

    # Search engine
    search_cache_ttl: float = 30 * 60
    default_search_limit: int = 20
    max_search_results: int = 50
    min_query_length: int = 2

    # Autocomplete
    autocomplete_cache_ttl: float = 60 * 60
    max_suggestions: int = 10
    fuzzy_threshold: float = 0.6

    # Analytics logs
    max_analytics_events: int = MAX_ANALYTICS_EVENTS
    max_user_history: int = MAX_USER_HISTORY

    # Affiliate attribution
    attribution_expiry_days: int = ATTRIBUTION_EXPIRY_DAYS

    # Recommendations
    max_per_category: int = MAX_PER_CATEGORY

    default_region: str = "US"
    default_language: str = "en"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SODALAB_* environment variables."""
        return cls(
            data_dir=Path(os.getenv("SODALAB_DATA_DIR", str(DATA_DIR))),
            classifier_path=Path(os.getenv(
                "SODALAB_CLASSIFIER_PATH", str(MODEL_PATHS["query_classifier"])
            )),
            enable_classifier=os.getenv("SODALAB_ENABLE_CLASSIFIER", "true").lower() == "true",
            filter_cache_ttl=float(os.getenv("SODALAB_FILTER_CACHE_TTL", 30 * 60)),
            search_cache_ttl=float(os.getenv("SODALAB_SEARCH_CACHE_TTL", 30 * 60)),
            autocomplete_cache_ttl=float(os.getenv("SODALAB_AUTOCOMPLETE_CACHE_TTL", 60 * 60)),
            max_filter_results=int(os.getenv("SODALAB_MAX_FILTER_RESULTS", 1000)),
            max_search_results=int(os.getenv("SODALAB_MAX_SEARCH_RESULTS", 50)),
            max_analytics_events=int(os.getenv("SODALAB_MAX_ANALYTICS_EVENTS", MAX_ANALYTICS_EVENTS)),
            default_region=os.getenv("SODALAB_DEFAULT_REGION", "US"),
            default_language=os.getenv("SODALAB_DEFAULT_LANGUAGE", "en"),
        )
