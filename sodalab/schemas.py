"""
Request models for the SodaLab API.

Bodies arrive with camelCase keys; every model accepts either the alias
or the Python field name. Routes call ``model_validate`` and turn a
pydantic ``ValidationError`` into a 400 response.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from config import FILTER_OPERATORS, MAX_K, MAX_QUERY_LENGTH
from sodalab.filters import FilterExpression, FilterQuery
from sodalab.search import SearchFilters

Logic = Literal["AND", "OR"]
SortOrder = Literal["asc", "desc"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Filters
# =============================================================================


class FilterExpressionModel(CamelModel):
    """A single ``{field, operator, value, group}`` filter."""

    field: str = Field(..., min_length=1)
    value: Any = None
    operator: Optional[str] = None
    group: Optional[str] = None

    @field_validator("operator")
    @classmethod
    def operator_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FILTER_OPERATORS:
            raise ValueError(f"Unknown filter operator: {v}")
        return v

    def to_expression(self) -> FilterExpression:
        return FilterExpression(field=self.field, value=self.value, operator=self.operator, group=self.group)


def _expressions(filters: List[FilterExpressionModel]) -> List[FilterExpression]:
    return [f.to_expression() for f in filters]


class FilterRequest(CamelModel):
    """Body of POST /api/filters."""

    filters: List[FilterExpressionModel] = Field(default_factory=list)
    query: str = ""
    logic: Logic = "AND"
    group_logic: Dict[str, Logic] = Field(default_factory=dict, alias="groupLogic")
    sort_by: Optional[str] = Field(None, alias="sortBy")
    sort_order: SortOrder = Field("asc", alias="sortOrder")
    offset: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, ge=1, le=1000)
    include_statistics: bool = Field(False, alias="includeStatistics")
    use_cache: bool = Field(True, alias="useCache")

    def to_query(self) -> FilterQuery:
        return FilterQuery(
            filters=_expressions(self.filters),
            query=self.query,
            global_logic=self.logic,
            group_logic=dict(self.group_logic),
            sort_by=self.sort_by,
            sort_order=self.sort_order,
            offset=self.offset,
            limit=self.limit,
        )


class FilterSuggestionRequest(CamelModel):
    query: str = Field("", max_length=MAX_QUERY_LENGTH)
    current_filters: List[FilterExpressionModel] = Field(default_factory=list, alias="currentFilters")

    def expressions(self) -> List[FilterExpression]:
        return _expressions(self.current_filters)


class FilterSetRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    filters: List[FilterExpressionModel] = Field(..., min_length=1)
    is_public: bool = Field(False, alias="isPublic")
    tags: List[str] = Field(default_factory=list)

    def expressions(self) -> List[FilterExpression]:
        return _expressions(self.filters)


# =============================================================================
# Search & autocomplete
# =============================================================================


class CostRangeModel(CamelModel):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class SearchFiltersModel(CamelModel):
    """Structured search filters; list fields must be JSON arrays."""

    categories: List[str] = Field(default_factory=list)
    soda_types: List[str] = Field(default_factory=list, alias="sodaTypes")
    caffeine_levels: List[str] = Field(default_factory=list, alias="caffeineLevels")
    ingredients: List[str] = Field(default_factory=list)
    premade_available: Optional[bool] = Field(None, alias="premadeAvailable")
    max_prep_time: Optional[float] = Field(None, ge=0, alias="maxPrepTime")
    cost_range: Optional[CostRangeModel] = Field(None, alias="costRange")
    exclude_allergens: List[str] = Field(default_factory=list, alias="excludeAllergens")
    dietary_restrictions: List[str] = Field(default_factory=list, alias="dietaryRestrictions")
    regions: List[str] = Field(default_factory=list)

    def to_filters(self) -> SearchFilters:
        cost = self.cost_range or CostRangeModel()
        return SearchFilters(
            categories=list(self.categories),
            soda_types=list(self.soda_types),
            caffeine_levels=list(self.caffeine_levels),
            ingredients=list(self.ingredients),
            premade_available=self.premade_available,
            max_prep_time=self.max_prep_time,
            min_cost=cost.min,
            max_cost=cost.max,
            exclude_allergens=list(self.exclude_allergens),
            dietary_restrictions=list(self.dietary_restrictions),
            regions=list(self.regions),
        )


class SearchOptionsModel(CamelModel):
    limit: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0)
    sort_by: Optional[str] = Field(None, alias="sortBy")
    sort_order: SortOrder = Field("desc", alias="sortOrder")
    preferences: Dict[str, Any] = Field(default_factory=dict)


class SearchRequest(CamelModel):
    """Body of POST /api/enhanced-search."""

    query: str = Field(..., max_length=MAX_QUERY_LENGTH)
    filters: SearchFiltersModel = Field(default_factory=SearchFiltersModel)
    options: SearchOptionsModel = Field(default_factory=SearchOptionsModel)
    search_type: Literal["comprehensive", "suggestions", "recommendations"] = Field(
        "comprehensive", alias="searchType"
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Query parameter is required")
        return v


class AutocompleteRequest(CamelModel):
    """Body of POST /api/autocomplete."""

    query: str = Field(..., max_length=MAX_QUERY_LENGTH)
    context: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)
    languages: List[str] = Field(default_factory=list)


class InteractionRequest(CamelModel):
    """Body of POST /api/autocomplete/interactions."""

    user_id: str = Field(..., min_length=1, alias="userId")
    query: str = Field(..., max_length=MAX_QUERY_LENGTH)
    result_count: int = Field(0, ge=0, alias="resultCount")
    clicked_result: Optional[str] = Field(None, alias="clickedResult")
    success: bool = False
    context: str = ""

    def interaction(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "resultCount": self.result_count,
            "clickedResult": self.clicked_result,
            "success": self.success,
            "context": self.context,
        }


# =============================================================================
# Amazon
# =============================================================================


class AvailabilityRequest(CamelModel):
    asins: List[str] = Field(..., min_length=1, max_length=50)
    regions: Optional[List[str]] = None
    check_alternatives: bool = Field(True, alias="checkAlternatives")

    @field_validator("asins")
    @classmethod
    def asins_not_blank(cls, v: List[str]) -> List[str]:
        if any(not asin for asin in v):
            raise ValueError("ASINs must be non-empty strings")
        return v


class StockAlertRequest(CamelModel):
    asin: str = Field(..., min_length=1)
    region: str
    threshold: int = Field(5, ge=0, le=100)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    webhook: Optional[HttpUrl] = None


# =============================================================================
# Affiliate
# =============================================================================


class ConversionRequest(CamelModel):
    affiliate: str = Field(..., min_length=1)
    attribution_id: str = Field(..., min_length=1, alias="attributionId")
    value: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    product_id: Optional[str] = Field(None, alias="productId")
    flavor_id: Optional[str] = Field(None, alias="flavorId")
    conversion_type: Literal["purchase", "signup", "trial"] = Field("purchase", alias="conversionType")
    order_id: Optional[str] = Field(None, alias="orderId")


# =============================================================================
# Calculator & recommendations
# =============================================================================


class CalculatorRequest(CamelModel):
    base_id: str = Field(..., alias="baseId")
    flavor_id: str = Field(..., alias="flavorId")
    volume: float = Field(..., gt=0, le=100000)
    target_caffeine: Optional[float] = Field(None, ge=0, le=1000, alias="targetCaffeine")
    serving_size: float = Field(250, gt=0, le=5000, alias="servingSize")


class RecommendationRequest(CamelModel):
    favorite_recipes: List[str] = Field(default_factory=list, alias="favoriteRecipes")
    viewed_recipes: List[str] = Field(default_factory=list, alias="viewedRecipes")
    favorite_categories: List[str] = Field(default_factory=list, alias="favoriteCategories")
    disliked_ingredients: List[str] = Field(default_factory=list, alias="dislikedIngredients")
    dietary_restrictions: List[str] = Field(default_factory=list, alias="dietaryRestrictions")
    allergens: List[str] = Field(default_factory=list)
    caffeine_preference: Optional[Literal["none", "low", "medium", "high"]] = Field(
        None, alias="caffeinePreference"
    )
    max_cost: Optional[float] = Field(None, ge=0, alias="maxCost")
    k: int = Field(10, ge=1, le=MAX_K)

    def preferences(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"k"}, exclude_none=True)
