"""
Flask API for the SodaLab Discovery Service.

This module provides the REST API endpoints:
- GET  /health, /health/live              - Health checks
- GET  /api/flavors, /api/bases, ...      - Catalog data
- GET  /api/search                        - Quick search across catalog types
- POST /api/enhanced-search               - Full recipe search
- GET|POST /api/autocomplete              - Autocomplete suggestions
- POST /api/filters                       - Multi-criteria filtering
- POST|PUT /api/amazon/availability       - Stock lookup / stock alerts
- POST /api/affiliate/track-click         - Affiliate attribution
- POST /api/calculator                    - Batch calculator
- POST /api/recommendations               - Personalized recommendations

Every engine is built once in ``create_app`` from a single Settings
object and shared by the route closures.
"""

import json
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from config import API_CONFIG, DEFAULT_K, LOGGING_CONFIG, QUICK_SEARCH_TYPES, Settings
from sodalab.affiliate import AttributionTracker
from sodalab.amazon import AmazonURLGenerator, AvailabilityChecker
from sodalab.autocomplete import AutocompleteEngine
from sodalab.calculator import calculate_recipe
from sodalab.catalog import CatalogLoader
from sodalab.exceptions import (
    InvalidFilterError,
    InvalidRegionError,
    RecipeNotFoundError,
    UnknownFilterFieldError,
)
from sodalab.filters import FilterEngine
from sodalab.query_classifier import load_or_train
from sodalab.recommender import RecipeRecommender
from sodalab.schemas import (
    AutocompleteRequest,
    AvailabilityRequest,
    CalculatorRequest,
    ConversionRequest,
    FilterRequest,
    FilterSetRequest,
    FilterSuggestionRequest,
    InteractionRequest,
    RecommendationRequest,
    SearchRequest,
    StockAlertRequest,
)
from sodalab.search import SearchEngine
from sodalab.services import (
    PopularityService,
    ProductAvailabilityService,
    TranslationService,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOGGING_CONFIG["level"], logging.INFO),
    format=LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validation_error(error: ValidationError):
    return jsonify({
        "success": False,
        "error": "Validation failed",
        "details": error.errors(include_url=False, include_context=False),
    }), 400


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[CatalogLoader] = None,
    availability_service: Optional[ProductAvailabilityService] = None,
    popularity: Optional[PopularityService] = None,
    translator: Optional[TranslationService] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        settings: Runtime settings (defaults to ``Settings.from_env()``)
        catalog: Pre-built catalog; built from ``settings.data_dir`` if omitted
        availability_service: Stock data source for /api/amazon/availability
        popularity: Popularity source for ranking
        translator: Translation source for multilingual autocomplete

    Returns:
        Configured Flask app instance. The engines are available under
        ``app.extensions["sodalab"]``.
    """
    app = Flask(__name__)
    settings = settings or Settings.from_env()

    CORS(app, resources={
        r"/api/*": {
            "origins": "*",
            "methods": ["GET", "POST", "PUT", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    catalog = catalog or CatalogLoader(settings)
    url_generator = AmazonURLGenerator(catalog.regions)
    engines: Dict[str, Any] = {
        "settings": settings,
        "catalog": catalog,
        "filters": FilterEngine(settings, catalog),
        "search": SearchEngine(settings, catalog, popularity=popularity),
        "autocomplete": AutocompleteEngine(settings, catalog, popularity=popularity, translator=translator),
        "recommender": RecipeRecommender(settings, catalog, popularity=popularity),
        "attribution": AttributionTracker(settings),
        "urls": url_generator,
        "availability": AvailabilityChecker(url_generator, availability_service),
    }
    app.extensions["sodalab"] = engines

    @app.before_request
    def initialize_on_first_request():
        """
        Lazily load the query classifier for API traffic only.

        Health endpoints stay lightweight so platform checks never wait
        on model training.
        """
        if request.path.startswith("/health"):
            return None

        if not hasattr(app, "_classifier_init_attempted"):
            app._classifier_init_attempted = True
            if settings.enable_classifier:
                logger.info("Initializing query classifier...")
                classifier = load_or_train(settings.classifier_path)
                engines["filters"].classifier = classifier
                engines["search"].classifier = classifier
        return None

    # Request timing decorator
    def timed_request(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            start_time = time.time()
            response = f(*args, **kwargs)
            elapsed_ms = (time.time() - start_time) * 1000
            logger.info(f"{request.method} {request.path} completed in {elapsed_ms:.2f}ms")
            return response
        return decorated_function

    def read_json() -> Optional[Dict[str, Any]]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    def no_json():
        return jsonify({"success": False, "error": "No JSON data provided"}), 400

    def server_error(action: str, e: Exception):
        logger.error(f"Error {action}: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    # Error handlers
    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            "success": False,
            "error": "Bad Request",
            "message": str(error.description)
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            "success": False,
            "error": "Not Found",
            "message": "The requested resource was not found"
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            "success": False,
            "error": "Method Not Allowed",
            "message": str(error.description)
        }), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal error: {error}")
        return jsonify({
            "success": False,
            "error": "Internal Server Error",
            "message": "An unexpected error occurred"
        }), 500

    # ==========================================================================
    # HEALTH CHECK ENDPOINTS
    # ==========================================================================

    @app.route("/health", methods=["GET"])
    @timed_request
    def health_check():
        """
        Health check endpoint.

        Example:
            GET /health
            Response: {"status": "healthy", "catalog_loaded": true, "catalog": {"flavors": 11, ...}}
        """
        loaded = catalog.initialize()
        return jsonify({
            "status": "healthy" if loaded else "degraded",
            "catalog_loaded": loaded,
            "catalog": catalog.summary() if loaded else {},
            "timestamp": time.time()
        }), 200

    @app.route("/health/live", methods=["GET"])
    @timed_request
    def health_live():
        """Liveness endpoint that never touches the catalog."""
        return jsonify({
            "status": "alive",
            "timestamp": time.time()
        }), 200

    # ==========================================================================
    # CATALOG ENDPOINTS
    # ==========================================================================

    @app.route("/api/flavors", methods=["GET"])
    @timed_request
    def list_flavors():
        """
        All flavor recipes.

        Query Parameters:
        - category: classic / energy / hybrid (optional)
        """
        try:
            flavors = catalog.flavors
            category = request.args.get("category")
            if category:
                flavors = [f for f in flavors if f.get("category") == category]
            return jsonify({"success": True, "data": flavors, "count": len(flavors)}), 200
        except Exception as e:
            return server_error("listing flavors", e)

    @app.route("/api/flavors/<flavor_id>", methods=["GET"])
    @timed_request
    def get_flavor(flavor_id: str):
        flavor = catalog.get_flavor(flavor_id)
        if flavor is None:
            return jsonify({"success": False, "error": f"Flavor {flavor_id} not found"}), 404
        return jsonify({"success": True, "data": flavor}), 200

    @app.route("/api/bases", methods=["GET"])
    @timed_request
    def list_bases():
        return jsonify({"success": True, "data": catalog.bases, "count": len(catalog.bases)}), 200

    @app.route("/api/ingredients", methods=["GET"])
    @timed_request
    def list_ingredients():
        return jsonify({
            "success": True, "data": catalog.ingredients, "count": len(catalog.ingredients),
        }), 200

    @app.route("/api/suppliers", methods=["GET"])
    @timed_request
    def list_suppliers():
        return jsonify({
            "success": True, "data": catalog.suppliers, "count": len(catalog.suppliers),
        }), 200

    # ==========================================================================
    # SEARCH ENDPOINTS
    # ==========================================================================

    @app.route("/api/search", methods=["GET"])
    @timed_request
    def quick_search():
        """
        Substring search across flavors, ingredients and suppliers.

        Query Parameters:
        - q: Search text (required)
        - types: Comma separated subset of flavors,ingredients,suppliers
        - limit: Max results per type (default 20, max 50)
        """
        query = (request.args.get("q") or "").strip()
        if not query:
            return jsonify({"success": False, "error": 'Query parameter "q" is required'}), 400

        types = request.args.get("types", ",".join(QUICK_SEARCH_TYPES)).split(",")
        types = [t.strip() for t in types if t.strip() in QUICK_SEARCH_TYPES]
        if not types:
            return jsonify({
                "success": False,
                "error": "At least one valid search type is required (flavors, ingredients, suppliers)",
            }), 400

        try:
            limit = int(request.args.get("limit", settings.default_search_limit))
        except ValueError:
            return jsonify({"success": False, "error": "limit must be an integer"}), 400

        try:
            start = time.perf_counter()
            result = engines["search"].quick_search(query, types, limit)
            result["query"] = query
            result["searchTime"] = round((time.perf_counter() - start) * 1000, 2)
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("running quick search", e)

    @app.route("/api/enhanced-search", methods=["POST"])
    @timed_request
    def enhanced_search():
        """
        Full recipe search.

        Request Body:
        {
            "query": "berry energy",
            "filters": {"categories": ["energy"], "maxPrepTime": 30},
            "options": {"sortBy": "relevance", "limit": 10},
            "searchType": "comprehensive"      // or "suggestions", "recommendations"
        }
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = SearchRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            if payload.search_type == "suggestions":
                limit = payload.options.limit or 10
                return jsonify({
                    "success": True,
                    "data": {
                        "query": payload.query,
                        "suggestions": engines["search"].generate_suggestions(payload.query, limit),
                    },
                }), 200

            if payload.search_type == "recommendations":
                recommendations = engines["recommender"].recommend(
                    payload.options.preferences,
                    k=payload.options.limit or DEFAULT_K,
                )
                return jsonify({
                    "success": True,
                    "data": {"query": payload.query, "recommendations": recommendations},
                }), 200

            result = engines["search"].search({
                **payload.options.model_dump(by_alias=True, exclude={"preferences"}),
                "query": payload.query,
                "filters": payload.filters.to_filters(),
            })
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("running enhanced search", e)

    @app.route("/api/enhanced-search", methods=["GET"])
    @timed_request
    def enhanced_search_get():
        """
        Simple full search from query parameters.

        Query Parameters: q (required), category, caffeine, limit, sort, order
        """
        query = (request.args.get("q") or "").strip()
        if not query:
            return jsonify({"success": False, "error": 'Query parameter "q" is required'}), 400

        filters: Dict[str, Any] = {}
        if request.args.get("category"):
            filters["categories"] = [request.args["category"]]
        if request.args.get("caffeine"):
            filters["caffeineLevels"] = [request.args["caffeine"]]

        try:
            result = engines["search"].search({
                "query": query,
                "filters": filters,
                "sortBy": request.args.get("sort", "relevance"),
                "sortOrder": request.args.get("order", "desc"),
                "limit": request.args.get("limit", type=int),
            })
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("running search", e)

    # ==========================================================================
    # AUTOCOMPLETE ENDPOINTS
    # ==========================================================================

    @app.route("/api/autocomplete", methods=["GET"])
    @timed_request
    def autocomplete_get():
        """
        Query Parameters: q, userId, sessionId, language, region, limit
        """
        query = request.args.get("q", "")
        context = {
            "userId": request.args.get("userId"),
            "sessionId": request.args.get("sessionId", ""),
            "language": request.args.get("language"),
            "region": request.args.get("region"),
        }
        options = {"maxSuggestions": request.args.get("limit", type=int)}
        try:
            result = engines["autocomplete"].suggest(query, context, options)
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("generating autocomplete suggestions", e)

    @app.route("/api/autocomplete", methods=["POST"])
    @timed_request
    def autocomplete_post():
        """
        Request Body:
        {
            "query": "ber",
            "context": {"userId": "u1", "language": "en", "region": "US"},
            "options": {"maxSuggestions": 8, "fuzzyMatching": true},
            "languages": ["nl", "de"]      // optional: multilingual mode
        }
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = AutocompleteRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            engine = engines["autocomplete"]
            if payload.languages:
                result = engine.multilingual_suggestions(payload.query, payload.languages, payload.context)
                return jsonify({"success": True, "data": {"languages": result}}), 200
            result = engine.suggest(payload.query, payload.context, payload.options)
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("generating autocomplete suggestions", e)

    @app.route("/api/autocomplete/interactions", methods=["POST"])
    @timed_request
    def autocomplete_interaction():
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = InteractionRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            preferences = engines["autocomplete"].record_interaction(payload.user_id, payload.interaction())
            return jsonify({
                "success": True,
                "data": {
                    "userId": payload.user_id,
                    "favoriteCategories": preferences.favorite_categories,
                    "historySize": len(preferences.search_history),
                    "secondaryLanguages": preferences.secondary_languages,
                },
            }), 200
        except Exception as e:
            return server_error("recording autocomplete interaction", e)

    # ==========================================================================
    # FILTER ENDPOINTS
    # ==========================================================================

    @app.route("/api/filters", methods=["POST"])
    @timed_request
    def apply_filters():
        """
        Apply a filter query to the flavor catalog.

        Request Body:
        {
            "filters": [
                {"field": "category", "operator": "in", "value": ["energy"], "group": "basic"},
                {"field": "caffeine_range", "value": [0, 100]}
            ],
            "logic": "AND",
            "groupLogic": {"basic": "OR"},
            "sortBy": "name",
            "offset": 0,
            "limit": 20,
            "includeStatistics": true
        }
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = FilterRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            result = engines["filters"].apply_filters(
                None, payload.to_query(),
                include_statistics=payload.include_statistics,
                use_cache=payload.use_cache,
            )
            return jsonify({"success": True, "data": result}), 200
        except InvalidFilterError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("applying filters", e)

    @app.route("/api/filters/definitions", methods=["GET"])
    @timed_request
    def filter_definitions():
        engine = engines["filters"]
        return jsonify({
            "success": True,
            "data": {
                "definitions": engine.definitions(),
                "groups": engine.groups(),
                "popular": engine.popular_filters(),
            },
        }), 200

    @app.route("/api/filters/<filter_id>/values", methods=["GET"])
    @timed_request
    def filter_values(filter_id: str):
        try:
            values = engines["filters"].get_available_values(filter_id)
            return jsonify({"success": True, "data": {"filterId": filter_id, "values": values}}), 200
        except UnknownFilterFieldError as e:
            return jsonify({"success": False, "error": str(e)}), 404
        except Exception as e:
            return server_error("collecting filter values", e)

    @app.route("/api/filters/suggestions", methods=["POST"])
    @timed_request
    def filter_suggestions():
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = FilterSuggestionRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            suggestions = engines["filters"].get_filter_suggestions(
                payload.query, current_filters=payload.expressions(),
            )
            return jsonify({"success": True, "data": {"suggestions": suggestions}}), 200
        except InvalidFilterError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("generating filter suggestions", e)

    @app.route("/api/filters/sets", methods=["POST"])
    @timed_request
    def save_filter_set():
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = FilterSetRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            saved = engines["filters"].save_filter_set(
                payload.name, payload.description, payload.expressions(),
                is_public=payload.is_public, tags=payload.tags,
            )
            return jsonify({"success": True, "data": saved.to_dict()}), 201
        except InvalidFilterError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("saving filter set", e)

    @app.route("/api/filters/sets", methods=["GET"])
    @timed_request
    def list_filter_sets():
        public_only = request.args.get("public", "false").lower() == "true"
        sets = engines["filters"].list_filter_sets(public_only=public_only)
        return jsonify({"success": True, "data": [s.to_dict() for s in sets], "count": len(sets)}), 200

    @app.route("/api/filters/sets/<set_id>/apply", methods=["POST"])
    @timed_request
    def apply_filter_set(set_id: str):
        try:
            result = engines["filters"].apply_filter_set(set_id)
            if result is None:
                return jsonify({"success": False, "error": f"Filter set {set_id} not found"}), 404
            return jsonify({"success": True, "data": result}), 200
        except Exception as e:
            return server_error("applying filter set", e)

    # ==========================================================================
    # AMAZON ENDPOINTS
    # ==========================================================================

    @app.route("/api/amazon/availability", methods=["POST"])
    @timed_request
    def check_availability():
        """
        Request Body:
        {
            "asins": ["B08N5WRWNW"],
            "regions": ["US", "UK", "DE"],
            "checkAlternatives": true
        }
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = AvailabilityRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            report = engines["availability"].check(
                payload.asins, payload.regions, payload.check_alternatives,
            )
            return jsonify({"success": True, "data": report, "timestamp": _now_iso()}), 200
        except InvalidRegionError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("checking availability", e)

    @app.route("/api/amazon/availability", methods=["PUT"])
    @timed_request
    def configure_stock_alert():
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = StockAlertRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            alert = engines["availability"].configure_alert(
                payload.asin,
                payload.region,
                threshold=payload.threshold,
                email=payload.email,
                webhook=str(payload.webhook) if payload.webhook else None,
            )
            return jsonify({
                "success": True,
                "data": alert,
                "message": "Stock alert configured successfully",
            }), 200
        except InvalidRegionError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("configuring stock alert", e)

    @app.route("/api/amazon/regions", methods=["GET"])
    @timed_request
    def list_regions():
        """
        Configured marketplaces, the caller's region first.

        Query Parameters:
        - countryCode: Caller's region (defaults to the configured default)
        - q: Optional search keywords for the per-region search URL
        """
        try:
            user_region = (request.args.get("countryCode") or settings.default_region).upper()
            keywords = request.args.get("q", "soda syrup")
            regions = []
            for region in engines["urls"].list_regions():
                regions.append({
                    **region,
                    "isUserRegion": region["code"] == user_region,
                    "searchUrl": engines["urls"].search_url(region["code"], query=keywords, category="grocery"),
                })
            regions.sort(key=lambda r: (not r["isUserRegion"], r.get("name", "")))
            return jsonify({
                "success": True,
                "data": {"regions": regions, "userRegion": user_region},
                "count": len(regions),
            }), 200
        except Exception as e:
            return server_error("listing regions", e)

    # ==========================================================================
    # AFFILIATE ENDPOINTS
    # ==========================================================================

    def read_raw_json():
        """Parse the body as JSON; returns ``(data, error_response)``."""
        body = request.get_data(as_text=True)
        if not body.strip():
            return None, (jsonify({"success": False, "error": "Request body is empty"}), 400)
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return None, (jsonify({"success": False, "error": "Invalid JSON in request body"}), 400)
        if not isinstance(data, dict):
            return None, (jsonify({"success": False, "error": "Invalid JSON in request body"}), 400)
        return data, None

    @app.route("/api/affiliate/track-click", methods=["POST"])
    @timed_request
    def track_click():
        """
        Request Body:
        {"affiliate": "amazon", "productId": "B08N5WRWNW", "flavorId": "classic-cola"}
        """
        data, error = read_raw_json()
        if error:
            return error

        if not data.get("affiliate"):
            return jsonify({"success": False, "error": "Affiliate name is required"}), 400

        try:
            attribution_id = engines["attribution"].track_click(
                data["affiliate"],
                product_id=data.get("productId"),
                flavor_id=data.get("flavorId"),
                referrer=data.get("referrer") or request.headers.get("Referer"),
                user_agent=data.get("userAgent") or request.headers.get("User-Agent"),
                ip=request.headers.get("X-Forwarded-For") or request.remote_addr,
            )
            return jsonify({
                "success": True,
                "attributionId": attribution_id,
                "message": "Click tracked successfully",
            }), 200
        except Exception as e:
            logger.error(f"Error tracking affiliate click: {e}")
            return jsonify({"success": False, "error": "Failed to track click"}), 500

    @app.route("/api/affiliate/track-click", methods=["GET"])
    @timed_request
    def track_click_status():
        return jsonify({
            "service": "affiliate-click-tracking",
            "status": "operational",
            "timestamp": _now_iso(),
        }), 200

    @app.route("/api/affiliate/track-conversion", methods=["POST"])
    @timed_request
    def track_conversion():
        data, error = read_raw_json()
        if error:
            return error

        if not data.get("affiliate") or not data.get("attributionId"):
            return jsonify({"success": False, "error": "Affiliate and attribution ID are required"}), 400

        try:
            payload = ConversionRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            conversion = engines["attribution"].track_conversion(
                payload.attribution_id,
                payload.affiliate,
                order_value=payload.value,
                currency=payload.currency,
                conversion_type=payload.conversion_type,
                order_id=payload.order_id,
                product_id=payload.product_id,
                flavor_id=payload.flavor_id,
            )
            if conversion is None:
                return jsonify({"success": False, "error": "Invalid or expired attribution ID"}), 400
            return jsonify({
                "success": True,
                "attributionId": payload.attribution_id,
                "data": conversion.to_dict(),
                "message": "Conversion tracked successfully",
            }), 200
        except Exception as e:
            logger.error(f"Error tracking affiliate conversion: {e}")
            return jsonify({"success": False, "error": "Failed to track conversion"}), 500

    @app.route("/api/affiliate/track-conversion", methods=["GET"])
    @timed_request
    def track_conversion_status():
        return jsonify({
            "service": "affiliate-conversion-tracking",
            "status": "operational",
            "timestamp": _now_iso(),
        }), 200

    @app.route("/api/affiliate/stats", methods=["GET"])
    @timed_request
    def attribution_stats():
        return jsonify({"success": True, "data": engines["attribution"].stats()}), 200

    # ==========================================================================
    # CALCULATOR ENDPOINT
    # ==========================================================================

    @app.route("/api/calculator", methods=["POST"])
    @timed_request
    def calculator():
        """
        Request Body:
        {"baseId": "classic-base", "flavorId": "cola-energy",
         "volume": 1000, "targetCaffeine": 80, "servingSize": 250}
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = CalculatorRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        base = catalog.get_base(payload.base_id)
        if base is None:
            return jsonify({"success": False, "error": f"Base {payload.base_id} not found"}), 404
        flavor = catalog.get_flavor(payload.flavor_id)
        if flavor is None:
            return jsonify({"success": False, "error": f"Flavor {payload.flavor_id} not found"}), 404

        try:
            result = calculate_recipe(
                base, flavor, payload.volume,
                target_caffeine=payload.target_caffeine,
                serving_size=payload.serving_size,
                catalog=catalog,
            )
            return jsonify({"success": True, "data": result.to_dict()}), 200
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            return server_error("calculating recipe", e)

    # ==========================================================================
    # RECOMMENDATION ENDPOINTS
    # ==========================================================================

    @app.route("/api/recommendations/similar/<recipe_id>", methods=["GET"])
    @timed_request
    def similar_recipes(recipe_id: str):
        """
        Query Parameters:
        - k: Number of results (default 10, max 50)
        """
        try:
            k = request.args.get("k", DEFAULT_K, type=int)
            recommendations = engines["recommender"].find_similar(recipe_id, k)
            return jsonify({
                "success": True,
                "data": recommendations,
                "count": len(recommendations),
            }), 200
        except RecipeNotFoundError as e:
            return jsonify({"success": False, "error": str(e), "data": [], "count": 0}), 404
        except Exception as e:
            return server_error("finding similar recipes", e)

    @app.route("/api/recommendations", methods=["POST"])
    @timed_request
    def recommendations():
        """
        Request Body:
        {
            "favoriteRecipes": ["classic-cola"],
            "viewedRecipes": ["root-beer"],
            "favoriteCategories": ["classic"],
            "dislikedIngredients": ["taurine"],
            "caffeinePreference": "low",
            "maxCost": 0.5,
            "k": 5
        }
        """
        data = read_json()
        if data is None:
            return no_json()

        try:
            payload = RecommendationRequest.model_validate(data)
        except ValidationError as e:
            return validation_error(e)

        try:
            results = engines["recommender"].recommend(payload.preferences(), k=payload.k)
            return jsonify({"success": True, "data": results, "count": len(results)}), 200
        except Exception as e:
            logger.error(f"Error getting recommendations: {e}")
            return jsonify({"success": False, "error": str(e), "data": [], "count": 0}), 500

    return app


def main():
    """
    Run the Flask development server.

    WSGI servers build the app through the factory instead, e.g.
    ``gunicorn "sodalab_api.app:create_app()"``.
    """
    app = create_app()
    logger.info("Starting SodaLab Discovery API...")
    logger.info(f"Server: http://{API_CONFIG['host']}:{API_CONFIG['port']}")

    app.run(
        host=API_CONFIG["host"],
        port=API_CONFIG["port"],
        debug=API_CONFIG["debug"]
    )


if __name__ == "__main__":
    main()
