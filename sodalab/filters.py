"""
Multi-criteria Filter Engine for SodaLab recipes.

This module provides the filtering capabilities behind /api/filters:
1. Field accessors mapping filter ids onto recipe attributes
2. Operator evaluation (equals, contains, between, regex, fuzzy, ...)
3. AND/OR combination within and across filter groups
4. Facet extraction (available values with counts)
5. Filter suggestions, saved filter sets and usage statistics

Filters operate on plain recipe dicts as loaded by CatalogLoader, so
the same functions can be used on any list of records.
"""

import logging
import re
import time
import uuid
from collections import Counter, defaultdict, deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from config import (
    CAFFEINE_MG_PER_LEVEL,
    CAFFEINE_QUERY_WORDS,
    CLASSIFIER_MIN_CONFIDENCE,
    FILTER_DEFINITIONS,
    FILTER_GROUPS,
    FILTER_LOGIC,
    FILTER_OPERATORS,
    FILTER_SUGGESTION_CONFIDENCE,
    RANGE_BUCKET_COUNT,
    RECIPE_CATEGORIES,
    Settings,
)
from sodalab.cache import TTLCache, make_cache_key
from sodalab.exceptions import InvalidFilterError, UnknownFilterFieldError
from sodalab.fuzzy import fuzzy_match

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "default"
MAX_FILTER_SUGGESTIONS = 10

# Words too generic to identify an ingredient on their own
_GENERIC_INGREDIENT_WORDS = {"extract", "oil", "acid", "flavor", "color", "mixed", "complex"}


# =============================================================================
# DATA TYPES
# =============================================================================

@dataclass(frozen=True)
class FilterDefinition:
    """A filterable field as shown in the filter UI."""
    id: str
    category: str
    type: str
    operator: str
    weight: float
    name: str
    group: str
    min: Optional[float] = None
    max: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.min is None:
            data.pop("min")
        if self.max is None:
            data.pop("max")
        return data


@dataclass
class FilterExpression:
    """
    One filter in a query.

    ``operator`` falls back to the definition's default operator.
    ``group`` names the boolean-logic group the expression belongs to;
    expressions without a group share the default group.
    """
    field: str
    value: Any = None
    operator: Optional[str] = None
    group: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
            "group": self.group,
        }


@dataclass
class FilterQuery:
    """A complete filter request: expressions, logic, sort and page."""
    filters: List[FilterExpression] = field(default_factory=list)
    query: str = ""
    global_logic: str = "AND"
    group_logic: Dict[str, str] = field(default_factory=dict)
    sort_by: Optional[str] = None
    sort_order: str = "asc"
    offset: int = 0
    limit: Optional[int] = None

    def cache_payload(self) -> Dict[str, Any]:
        return {
            "filters": [f.to_dict() for f in self.filters],
            "query": self.query,
            "global_logic": self.global_logic,
            "group_logic": self.group_logic,
            "sort_by": self.sort_by,
            "sort_order": self.sort_order,
            "offset": self.offset,
            "limit": self.limit,
        }


@dataclass
class SavedFilterSet:
    id: str
    name: str
    description: str
    filters: List[FilterExpression]
    created_at: float
    last_used: float
    usage_count: int = 0
    is_public: bool = False
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "filters": [f.to_dict() for f in self.filters],
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "usageCount": self.usage_count,
            "isPublic": self.is_public,
            "tags": list(self.tags),
        }


# =============================================================================
# FIELD ACCESSORS
# =============================================================================

def _key(name: str) -> Callable[[Dict[str, Any]], Any]:
    return lambda record: record.get(name)


def _ingredient_ids(record: Dict[str, Any]) -> List[str]:
    return [i.get("ingredientId") for i in record.get("ingredients", []) if i.get("ingredientId")]


def _caffeine_mg(record: Dict[str, Any]) -> Optional[float]:
    if record.get("caffeineMg") is not None:
        return record["caffeineMg"]
    return CAFFEINE_MG_PER_LEVEL.get(record.get("caffeineCategory"))


def _has_premade(record: Dict[str, Any]) -> bool:
    return bool(record.get("premadeProducts"))


FIELD_ACCESSORS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "name": _key("name"),
    "category": _key("category"),
    "soda_type": _key("sodaType"),
    "caffeine_level": _key("caffeineCategory"),
    "caffeine_range": _caffeine_mg,
    "ingredients_include": _ingredient_ids,
    "ingredients_exclude": _ingredient_ids,
    "dietary_restrictions": _key("dietaryRestrictions"),
    "allergens": _key("allergens"),
    "difficulty": _key("difficultyLevel"),
    "prep_time": _key("preparationTime"),
    "cost_range": _key("estimatedCost"),
    "premade_available": _has_premade,
    "region": _key("regions"),
    "cultural_origin": _key("culturalOrigin"),
    "required_equipment": _key("requiredEquipment"),
    "season": _key("season"),
}


def get_path(record: Dict[str, Any], path: str) -> Any:
    """Follow a dotted path ("color.type") through nested dicts."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def get_field_value(record: Dict[str, Any], field_id: str) -> Any:
    """Read a filter field from a record, via the accessor table when possible."""
    accessor = FIELD_ACCESSORS.get(field_id)
    if accessor is not None:
        return accessor(record)
    return get_path(record, field_id)


# =============================================================================
# OPERATOR EVALUATION
# =============================================================================

def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _contains(value: Any, expected: Any) -> bool:
    needle = str(expected).lower()
    if isinstance(value, str):
        return needle in value.lower()
    if isinstance(value, list):
        return any(needle in str(item).lower() for item in value)
    return False


def _in(value: Any, expected: Any) -> bool:
    options = _as_list(expected)
    if isinstance(value, list):
        return any(item in options for item in value)
    return value in options


def _has(record: Dict[str, Any], value: Any, expected: Any) -> bool:
    wanted = _as_list(expected)
    if isinstance(value, list):
        return any(item in value for item in wanted)
    return any(get_path(record, str(path)) is not None for path in wanted)


def _regex(value: Any, pattern: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        return re.search(str(pattern), value, re.IGNORECASE) is not None
    except re.error:
        logger.debug("Invalid regex pattern: %s", pattern)
        return False


def _fuzzy(value: Any, expected: Any, threshold: float) -> bool:
    if isinstance(value, list):
        return any(fuzzy_match(item, expected, threshold) for item in value)
    return fuzzy_match(value, expected, threshold)


def _geographic(value: Any, expected: Any) -> bool:
    declared = [str(r).upper() for r in _as_list(value)]
    if not declared:
        return True
    wanted = {str(r).upper() for r in _as_list(expected)}
    return any(region in wanted for region in declared)


def _between(value: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple)) or len(expected) != 2:
        raise ValueError(f"between expects [min, max], got {expected!r}")
    low, high = float(expected[0]), float(expected[1])
    return low <= float(value) <= high


def evaluate_filter(
    record: Dict[str, Any],
    field_id: str,
    operator: str,
    expected: Any,
    fuzzy_threshold: float = 0.6,
) -> bool:
    """
    Evaluate a single filter against one record.

    Args:
        record: Recipe dict
        field_id: Filter definition id or dotted attribute path
        operator: One of FILTER_OPERATORS
        expected: Value supplied by the caller
        fuzzy_threshold: Similarity that must be exceeded by ``fuzzy``

    Returns:
        True if the record satisfies the filter. Errors while evaluating
        (non-numeric values for a numeric operator, malformed ranges) are
        logged and count as a non-match.

    Example:
        >>> evaluate_filter({"name": "Cola Zero"}, "name", "contains", "cola")
        True
    """
    value = get_field_value(record, field_id)

    try:
        if operator == "equals":
            return value == expected
        if operator == "not_equals":
            return value != expected
        if operator == "contains":
            return _contains(value, expected)
        if operator == "not_contains":
            return not _contains(value, expected)
        if operator == "starts_with":
            return isinstance(value, str) and value.lower().startswith(str(expected).lower())
        if operator == "ends_with":
            return isinstance(value, str) and value.lower().endswith(str(expected).lower())
        if operator == "greater_than":
            return value is not None and float(value) > float(expected)
        if operator == "less_than":
            return value is not None and float(value) < float(expected)
        if operator == "between":
            return value is not None and _between(value, expected)
        if operator == "in":
            return _in(value, expected)
        if operator == "not_in":
            if not isinstance(expected, (list, tuple, set)):
                return True
            return not _in(value, expected)
        if operator == "has":
            return _has(record, value, expected)
        if operator == "not_has":
            return not _has(record, value, expected)
        if operator == "regex":
            return _regex(value, expected)
        if operator == "fuzzy":
            return _fuzzy(value, expected, fuzzy_threshold)
        if operator == "geographic":
            return _geographic(value, expected)
    except (TypeError, ValueError) as e:
        logger.warning(f"Error evaluating filter {field_id} {operator}: {e}")
        return False

    logger.warning(f"Unknown filter operator: {operator}")
    return False


def _matches(record: Dict[str, Any], expr: FilterExpression, fuzzy_threshold: float) -> bool:
    return evaluate_filter(record, expr.field, expr.operator, expr.value, fuzzy_threshold)


def apply_filter_group(
    records: List[Dict[str, Any]],
    filters: List[FilterExpression],
    logic: str = "AND",
    fuzzy_threshold: float = 0.6,
) -> List[Dict[str, Any]]:
    """
    Apply a set of filters combined with a single logic operator.

    AND keeps records matching every filter, OR keeps records matching
    at least one. An empty filter list keeps everything.
    """
    if not filters:
        return list(records)

    if logic == "OR":
        return [r for r in records if any(_matches(r, f, fuzzy_threshold) for f in filters)]
    return [r for r in records if all(_matches(r, f, fuzzy_threshold) for f in filters)]


def apply_boolean_logic(
    records: List[Dict[str, Any]],
    filters: List[FilterExpression],
    global_logic: str = "AND",
    group_logic: Optional[Dict[str, str]] = None,
    fuzzy_threshold: float = 0.6,
) -> List[Dict[str, Any]]:
    """
    Apply grouped filters with per-group and global logic.

    Filters are bucketed by their ``group`` (ungrouped filters share the
    default group). Each group is evaluated with its own logic from
    ``group_logic`` (AND when unspecified); group results are then
    intersected (global AND) or united (global OR). Input order is
    preserved in the output.

    Args:
        records: Records to filter
        filters: Parsed filter expressions
        global_logic: How group results are combined
        group_logic: Optional group id -> "AND" / "OR"
        fuzzy_threshold: Passed to the fuzzy operator

    Returns:
        Matching records in their original order
    """
    if not filters:
        return list(records)

    group_logic = group_logic or {}
    grouped: Dict[str, List[FilterExpression]] = defaultdict(list)
    for expr in filters:
        grouped[expr.group or DEFAULT_GROUP].append(expr)

    selected: Optional[set] = None
    for group_id, group_filters in grouped.items():
        logic = group_logic.get(group_id, "AND")
        matched = {
            id(r) for r in apply_filter_group(records, group_filters, logic, fuzzy_threshold)
        }
        if selected is None:
            selected = matched
        elif global_logic == "OR":
            selected |= matched
        else:
            selected &= matched

    return [r for r in records if id(r) in selected]


# =============================================================================
# FACET HELPERS
# =============================================================================

def format_filter_label(value: Any) -> str:
    """Human label for a facet value: "gluten_free" -> "Gluten free"."""
    text = str(value)
    if not text:
        return text
    return (text[0].upper() + text[1:]).replace("_", " ")


def _facet_value(value: Any, label: str, count: int, total: int) -> Dict[str, Any]:
    return {
        "value": value,
        "label": label,
        "count": count,
        "percentage": round(count / total * 100, 1) if total else 0.0,
        "selected": False,
        "disabled": count == 0,
    }


def _sort_key(value: Any) -> Tuple[int, Any]:
    if value is None:
        return (2, "")
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value).lower())


# =============================================================================
# FILTER ENGINE
# =============================================================================

class FilterEngine:
    """
    Stateful filter service used by the Flask layer.

    Holds the filter definitions, a result cache, saved filter sets and
    usage analytics. Records default to the catalog flavors.

    Usage:
        engine = FilterEngine(settings, catalog)
        result = engine.apply_filters(None, FilterQuery(filters=[
            FilterExpression(field="category", operator="in", value=["energy"]),
        ]))
    """

    def __init__(
        self,
        settings: Settings,
        catalog=None,
        classifier=None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.catalog = catalog
        self.classifier = classifier
        self._clock = clock

        self._definitions: Dict[str, FilterDefinition] = {
            d["id"]: FilterDefinition(**d) for d in FILTER_DEFINITIONS
        }
        self._cache = TTLCache(settings.filter_cache_ttl, clock=clock)
        self._saved_sets: Dict[str, SavedFilterSet] = {}

        self._execution_times: Deque[float] = deque(maxlen=settings.max_analytics_events)
        self._usage: Dict[str, Dict[str, int]] = defaultdict(
            lambda: {"usageCount": 0, "totalResults": 0, "zeroResults": 0}
        )

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def definitions(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self._definitions.values()]

    def groups(self) -> List[Dict[str, Any]]:
        """UI groups with their definitions resolved."""
        return [
            {
                **group,
                "filters": [
                    self._definitions[fid].to_dict()
                    for fid in group["filters"] if fid in self._definitions
                ],
            }
            for group in FILTER_GROUPS
        ]

    def get_definition(self, filter_id: str) -> FilterDefinition:
        definition = self._definitions.get(filter_id)
        if definition is None:
            raise UnknownFilterFieldError(filter_id)
        return definition

    def parse_filters(self, filters: List[FilterExpression]) -> List[FilterExpression]:
        """
        Validate expressions and fill in default operators.

        Raises:
            UnknownFilterFieldError: If a field has no definition
            InvalidFilterError: On unknown operators or too many filters/groups
        """
        if len(filters) > self.settings.max_filters:
            raise InvalidFilterError(
                f"Too many filters: {len(filters)} (max {self.settings.max_filters})"
            )

        parsed = []
        for expr in filters:
            definition = self.get_definition(expr.field)
            operator = expr.operator or definition.operator
            if operator not in FILTER_OPERATORS:
                raise InvalidFilterError(f"Unknown filter operator: {operator}")
            parsed.append(FilterExpression(
                field=expr.field, value=expr.value, operator=operator, group=expr.group,
            ))

        group_count = len({expr.group or DEFAULT_GROUP for expr in parsed})
        if group_count > self.settings.max_filter_groups:
            raise InvalidFilterError(
                f"Too many filter groups: {group_count} (max {self.settings.max_filter_groups})"
            )
        return parsed

    def _records(self, records: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        if records is not None:
            return records
        if self.catalog is None:
            return []
        return self.catalog.flavors

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def apply_filters(
        self,
        records: Optional[List[Dict[str, Any]]],
        query: FilterQuery,
        include_statistics: bool = False,
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Filter, sort and paginate records.

        Args:
            records: Records to filter (defaults to the catalog flavors)
            query: Filter expressions plus logic, sort and page settings
            include_statistics: Attach ``filterStatistics`` to the result
            use_cache: Serve identical queries from the TTL cache

        Returns:
            Dict with keys: items, totalCount, filteredCount, offset, limit,
            hasMore, appliedFilters, availableValues, executionTime, cached
            and optionally filterStatistics and suggestions (when
            ``query.query`` is not blank)
        """
        start = time.perf_counter()
        # Caller-supplied records are keyed on content; catalog records are fixed per process
        records_key = "catalog" if records is None else records
        records = self._records(records)

        if query.global_logic not in FILTER_LOGIC:
            raise InvalidFilterError(f"Unknown logic operator: {query.global_logic}")
        filters = self.parse_filters(query.filters)

        cache_key = make_cache_key("filters", {
            **query.cache_payload(),
            "records": records_key,
            "statistics": include_statistics,
        })
        if use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("Filter cache hit")
                return {**cached, "cached": True}

        filtered = apply_boolean_logic(
            records, filters, query.global_logic, query.group_logic,
            self.settings.fuzzy_threshold,
        )

        if query.sort_by:
            filtered = self.sort_records(filtered, query.sort_by, query.sort_order)

        limit = min(query.limit or self.settings.default_filter_limit,
                    self.settings.max_filter_results)
        offset = max(query.offset, 0)
        page = filtered[offset:offset + limit]

        result: Dict[str, Any] = {
            "items": page,
            "totalCount": len(records),
            "filteredCount": len(filtered),
            "offset": offset,
            "limit": limit,
            "hasMore": offset + limit < len(filtered),
            "appliedFilters": [
                {**f.to_dict(), "weight": self._definitions[f.field].weight} for f in filters
            ],
            "availableValues": self._all_available_values(records),
            "cached": False,
        }

        if include_statistics:
            result["filterStatistics"] = self._statistics(records, filtered, filters)

        if query.query.strip():
            result["suggestions"] = self.get_filter_suggestions(query.query, records, filters)

        elapsed_ms = (time.perf_counter() - start) * 1000
        result["executionTime"] = round(elapsed_ms, 2)
        self._record_usage(filters, len(filtered), elapsed_ms)

        logger.info(
            f"Applied {len(filters)} filters: {len(filtered)}/{len(records)} records "
            f"in {elapsed_ms:.2f}ms"
        )

        if use_cache:
            self._cache.set(cache_key, result)
        return result

    @staticmethod
    def sort_records(
        records: List[Dict[str, Any]],
        sort_by: str,
        sort_order: str = "asc",
    ) -> List[Dict[str, Any]]:
        """Stable sort by a filter field or dotted path; missing values sort last."""
        present = [r for r in records if get_field_value(r, sort_by) is not None]
        missing = [r for r in records if get_field_value(r, sort_by) is None]
        present.sort(
            key=lambda r: _sort_key(get_field_value(r, sort_by)),
            reverse=(sort_order == "desc"),
        )
        return present + missing

    # ------------------------------------------------------------------
    # Available values (facets)
    # ------------------------------------------------------------------

    def get_available_values(
        self,
        filter_id: str,
        records: Optional[List[Dict[str, Any]]] = None,
        context_filters: Optional[List[FilterExpression]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Values a filter can take over the (context-filtered) records.

        Args:
            filter_id: Filter definition id
            records: Records to inspect (defaults to the catalog flavors)
            context_filters: Other active filters narrowing the records

        Returns:
            Facet values sorted by count (descending)
        """
        definition = self.get_definition(filter_id)
        items = self._records(records)
        if context_filters:
            items = apply_boolean_logic(
                items, self.parse_filters(context_filters),
                fuzzy_threshold=self.settings.fuzzy_threshold,
            )

        if definition.type in ("multiselect", "select"):
            values = self._histogram_values(definition, items)
        elif definition.type == "range":
            values = self._range_values(definition, items)
        elif definition.type == "ingredient":
            values = self._ingredient_values(definition, items)
        elif definition.type == "boolean":
            values = self._boolean_values(definition, items)
        else:
            values = []

        values.sort(key=lambda v: v["count"], reverse=True)
        return values

    def _all_available_values(self, records: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        return {
            d.id: self.get_available_values(d.id, records)
            for d in self._definitions.values()
            if d.type in ("multiselect", "select")
        }

    def _histogram_values(self, definition: FilterDefinition, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        counts: Counter = Counter()
        for record in items:
            value = get_field_value(record, definition.id)
            for item in _as_list(value):
                if item:
                    counts[item] += 1
        return [
            _facet_value(value, format_filter_label(value), count, len(items))
            for value, count in counts.items()
        ]

    def _range_values(self, definition: FilterDefinition, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        numbers = []
        for record in items:
            value = get_field_value(record, definition.id)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                numbers.append(float(value))
        if not numbers:
            return []

        low, high = min(numbers), max(numbers)
        if low == high:
            return [_facet_value([low, high], f"{low:g}", len(numbers), len(items))]

        width = (high - low) / RANGE_BUCKET_COUNT
        values = []
        for i in range(RANGE_BUCKET_COUNT):
            start = low + i * width
            end = high if i == RANGE_BUCKET_COUNT - 1 else start + width
            last = i == RANGE_BUCKET_COUNT - 1
            count = sum(1 for n in numbers if start <= n < end or (last and n == end))
            bucket = [round(start, 2), round(end, 2)]
            values.append(_facet_value(bucket, f"{bucket[0]:g} - {bucket[1]:g}", count, len(items)))
        return values

    def _ingredient_values(self, definition: FilterDefinition, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        counts: Counter = Counter()
        for record in items:
            counts.update(set(get_field_value(record, definition.id) or []))
        values = []
        for ingredient_id, count in counts.items():
            if self.catalog is not None:
                label = self.catalog.get_ingredient_name(ingredient_id)
            else:
                label = format_filter_label(ingredient_id.replace("-", " "))
            values.append(_facet_value(ingredient_id, label, count, len(items)))
        return values

    def _boolean_values(self, definition: FilterDefinition, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        true_count = sum(1 for r in items if get_field_value(r, definition.id))
        return [
            _facet_value(True, "Yes", true_count, len(items)),
            _facet_value(False, "No", len(items) - true_count, len(items)),
        ]

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def get_filter_suggestions(
        self,
        query: str,
        records: Optional[List[Dict[str, Any]]] = None,
        current_filters: Optional[List[FilterExpression]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Suggest filters for a free-text query.

        Sources, in decreasing confidence: category words in the query,
        the soda-type classifier, ingredient names, caffeine words and,
        when the current filters match nothing, alternatives that drop
        one filter.

        Returns:
            At most 10 suggestions sorted by confidence
        """
        items = self._records(records)
        text = (query or "").lower()
        tokens = [t for t in re.split(r"\s+", text) if t]
        suggestions: List[Dict[str, Any]] = []

        for category in RECIPE_CATEGORIES:
            if category in text:
                count = sum(1 for r in items if r.get("category") == category)
                suggestions.append(self._suggestion(
                    "category", "in", [category],
                    f"Found {count} {category} recipes matching your query",
                    FILTER_SUGGESTION_CONFIDENCE["category"],
                ))

        if self.classifier is not None and text:
            soda_type, confidence = self.classifier.predict(text)
            if confidence >= CLASSIFIER_MIN_CONFIDENCE:
                suggestions.append(self._suggestion(
                    "soda_type", "in", [soda_type],
                    f"Your query sounds like a {soda_type.replace('-', ' ')}",
                    round(min(confidence, FILTER_SUGGESTION_CONFIDENCE["soda_type"]), 3),
                ))

        if self.catalog is not None:
            for ingredient in self.catalog.ingredients:
                words = {
                    w for w in ingredient.get("name", "").lower().split()
                    if len(w) > 3 and w not in _GENERIC_INGREDIENT_WORDS
                }
                if words & set(tokens):
                    suggestions.append(self._suggestion(
                        "ingredients_include", "has", [ingredient["id"]],
                        f"Recipes containing {ingredient['name']}",
                        FILTER_SUGGESTION_CONFIDENCE["ingredient"],
                    ))

        for word, levels in CAFFEINE_QUERY_WORDS.items():
            if word in tokens and (word in ("decaf", "caffeine-free") or "caffeine" in text):
                suggestions.append(self._suggestion(
                    "caffeine_level", "in", list(levels),
                    f"Recipes with {' or '.join(levels)} caffeine",
                    FILTER_SUGGESTION_CONFIDENCE["caffeine"],
                ))

        if current_filters:
            suggestions.extend(self._alternative_suggestions(items, current_filters))

        suggestions.sort(key=lambda s: s["confidence"], reverse=True)
        return suggestions[:MAX_FILTER_SUGGESTIONS]

    @staticmethod
    def _suggestion(field_id: str, operator: str, value: Any, reason: str, confidence: float) -> Dict[str, Any]:
        return {
            "type": "suggestion",
            "filter": {"field": field_id, "operator": operator, "value": value},
            "reason": reason,
            "confidence": confidence,
        }

    def _alternative_suggestions(
        self,
        items: List[Dict[str, Any]],
        current_filters: List[FilterExpression],
    ) -> List[Dict[str, Any]]:
        filters = self.parse_filters(current_filters)
        threshold = self.settings.fuzzy_threshold
        if apply_boolean_logic(items, filters, fuzzy_threshold=threshold):
            return []

        alternatives = []
        for i, dropped in enumerate(filters):
            remaining = filters[:i] + filters[i + 1:]
            count = len(apply_boolean_logic(items, remaining, fuzzy_threshold=threshold))
            if count > 0:
                name = self._definitions[dropped.field].name
                alternatives.append({
                    "type": "alternative",
                    "filter": dropped.to_dict(),
                    "remove": True,
                    "resultCount": count,
                    "reason": f"Removing the {name} filter returns {count} recipes",
                    "confidence": FILTER_SUGGESTION_CONFIDENCE["alternative"],
                })
        return alternatives

    # ------------------------------------------------------------------
    # Saved filter sets
    # ------------------------------------------------------------------

    def save_filter_set(
        self,
        name: str,
        description: str,
        filters: List[FilterExpression],
        is_public: bool = False,
        tags: Optional[List[str]] = None,
    ) -> SavedFilterSet:
        parsed = self.parse_filters(filters)
        now = self._clock()
        saved = SavedFilterSet(
            id=uuid.uuid4().hex[:12],
            name=name,
            description=description,
            filters=parsed,
            created_at=now,
            last_used=now,
            is_public=is_public,
            tags=list(tags or []),
        )
        self._saved_sets[saved.id] = saved
        logger.info(f"Saved filter set '{name}' ({saved.id}) with {len(parsed)} filters")
        return saved

    def list_filter_sets(self, public_only: bool = False) -> List[SavedFilterSet]:
        sets = list(self._saved_sets.values())
        if public_only:
            sets = [s for s in sets if s.is_public]
        return sorted(sets, key=lambda s: s.created_at)

    def get_filter_set(self, set_id: str) -> Optional[SavedFilterSet]:
        return self._saved_sets.get(set_id)

    def apply_filter_set(
        self,
        set_id: str,
        records: Optional[List[Dict[str, Any]]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Run a saved set and update its usage count; None if the id is unknown."""
        saved = self._saved_sets.get(set_id)
        if saved is None:
            return None
        saved.usage_count += 1
        saved.last_used = self._clock()
        return self.apply_filters(records, FilterQuery(filters=list(saved.filters)))

    # ------------------------------------------------------------------
    # Statistics & analytics
    # ------------------------------------------------------------------

    def _record_usage(self, filters: List[FilterExpression], result_count: int, elapsed_ms: float) -> None:
        self._execution_times.append(elapsed_ms)
        for expr in filters:
            usage = self._usage[expr.field]
            usage["usageCount"] += 1
            usage["totalResults"] += result_count
            if result_count == 0:
                usage["zeroResults"] += 1

    def popular_filters(self, limit: int = 5) -> List[Dict[str, Any]]:
        ranked = sorted(self._usage.items(), key=lambda kv: kv[1]["usageCount"], reverse=True)
        return [
            {
                "filterId": filter_id,
                "usageCount": usage["usageCount"],
                "avgResults": round(usage["totalResults"] / usage["usageCount"], 2),
                "zeroResultRate": round(usage["zeroResults"] / usage["usageCount"], 3),
            }
            for filter_id, usage in ranked[:limit]
        ]

    def _statistics(
        self,
        records: List[Dict[str, Any]],
        filtered: List[Dict[str, Any]],
        filters: List[FilterExpression],
    ) -> Dict[str, Any]:
        threshold = self.settings.fuzzy_threshold
        original = len(records)

        effectiveness = {}
        zero_result_filters = []
        for expr in filters:
            alone = len(apply_filter_group(records, [expr], "AND", threshold))
            effectiveness[expr.field] = round((original - alone) / original, 3) if original else 0.0
            if alone == 0:
                zero_result_filters.append(expr.field)

        distribution = Counter(r.get("category", "unknown") for r in filtered)

        complexity = len(filters) * 0.1 + sum(self._definitions[f.field].weight for f in filters)
        optimization = []
        if len(filters) > 10:
            optimization.append("Consider combining related filters")
        if any(f.operator == "fuzzy" for f in filters):
            optimization.append("Fuzzy matching may impact performance")

        avg_time = (
            sum(self._execution_times) / len(self._execution_times)
            if self._execution_times else 0.0
        )

        return {
            "filterEffectiveness": effectiveness,
            "resultDistribution": dict(distribution),
            "zeroResultFilters": zero_result_filters,
            "popularFilters": self.popular_filters(),
            "performanceMetrics": {
                "avgExecutionTime": round(avg_time, 2),
                "cacheHitRate": self._cache.stats()["hit_rate"],
                "complexityScore": round(complexity, 2),
                "optimizationSuggestions": optimization,
            },
        }

    def clear_cache(self) -> int:
        return self._cache.clear()
