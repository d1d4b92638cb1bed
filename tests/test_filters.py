"""
Test Suite for the Filter Engine.

Tests:
1. Operator evaluation (all sixteen operators)
2. Boolean logic within and across groups
3. Filter engine: parsing, sorting, pagination and caching
4. Facets (available values)
5. Filter suggestions and alternatives
6. Saved filter sets and statistics
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from sodalab.exceptions import InvalidFilterError, UnknownFilterFieldError
from sodalab.filters import (
    FilterEngine,
    FilterExpression,
    FilterQuery,
    apply_boolean_logic,
    apply_filter_group,
    evaluate_filter,
    format_filter_label,
    get_field_value,
)


# =============================================================================
# SAMPLE DATA
# =============================================================================

SAMPLE_RECORD = {
    "id": "cola-zero",
    "name": "Cola Zero",
    "category": "classic",
    "sodaType": "cola",
    "caffeineCategory": "low",
    "caffeineMg": 30,
    "ingredients": [
        {"ingredientId": "cola-extract", "amount": 20},
        {"ingredientId": "caffeine-anhydrous", "amount": 0.5},
    ],
    "color": {"type": "caramel"},
    "dietaryRestrictions": ["vegan", "sugar-free"],
    "allergens": [],
    "preparationTime": 20,
    "regions": ["US", "NL"],
}

NAMED_RECORDS = [
    {"id": "1", "name": "Cola"},
    {"id": "2", "name": "Cola Zero"},
    {"id": "3", "name": "Berry"},
]


def ids(records):
    return [r["id"] for r in records]


@pytest.fixture
def engine(settings, catalog):
    return FilterEngine(settings, catalog)


# =============================================================================
# TEST: FIELD ACCESSORS
# =============================================================================

class TestFieldAccessors:
    """Filter ids map onto recipe attributes."""

    def test_mapped_field(self):
        assert get_field_value(SAMPLE_RECORD, "soda_type") == "cola"

    def test_ingredient_ids(self):
        assert get_field_value(SAMPLE_RECORD, "ingredients_include") == ["cola-extract", "caffeine-anhydrous"]

    def test_caffeine_falls_back_to_level(self):
        """Without caffeineMg the caffeine level is converted to mg."""
        assert get_field_value({"caffeineCategory": "medium"}, "caffeine_range") == 80

    def test_dotted_path(self):
        assert get_field_value(SAMPLE_RECORD, "color.type") == "caramel"
        assert get_field_value(SAMPLE_RECORD, "color.missing.deeper") is None

    def test_premade_flag(self):
        assert get_field_value({"premadeProducts": [{"asin": "X"}]}, "premade_available") is True
        assert get_field_value({}, "premade_available") is False


# =============================================================================
# TEST: OPERATORS
# =============================================================================

class TestOperators:
    """Each operator against SAMPLE_RECORD."""

    @pytest.mark.parametrize("field,operator,value,expected", [
        ("soda_type", "equals", "cola", True),
        ("soda_type", "equals", "Cola", False),
        ("soda_type", "not_equals", "citrus", True),
        ("name", "contains", "ZERO", True),
        ("dietary_restrictions", "contains", "sugar", True),
        ("name", "not_contains", "berry", True),
        ("name", "starts_with", "cola", True),
        ("name", "ends_with", "Zero", True),
        ("caffeine_range", "greater_than", 20, True),
        ("prep_time", "less_than", 15, False),
        ("caffeine_range", "between", [0, 50], True),
        ("caffeine_range", "between", [31, 50], False),
        ("soda_type", "in", ["cola", "citrus"], True),
        ("dietary_restrictions", "in", ["vegetarian", "vegan"], True),
        ("soda_type", "not_in", ["cola"], False),
        ("allergens", "not_in", ["milk"], True),
        ("ingredients_include", "has", ["caffeine-anhydrous"], True),
        ("ingredients_exclude", "not_has", ["sugar"], True),
        ("color", "has", ["color.type"], True),
        ("name", "regex", r"^cola\s", True),
        ("name", "fuzzy", "cola zeor", True),
        ("name", "fuzzy", "ginger", False),
        ("region", "geographic", ["nl"], True),
        ("region", "geographic", ["JP"], False),
    ])
    def test_operator(self, field, operator, value, expected):
        assert evaluate_filter(SAMPLE_RECORD, field, operator, value) is expected

    def test_between_requires_pair(self):
        """A malformed range is a non-match, not an error."""
        assert evaluate_filter(SAMPLE_RECORD, "caffeine_range", "between", [10]) is False

    def test_not_in_requires_list(self):
        """not_in with a scalar excludes nothing."""
        assert evaluate_filter(SAMPLE_RECORD, "soda_type", "not_in", "cola") is True

    def test_invalid_regex(self):
        assert evaluate_filter(SAMPLE_RECORD, "name", "regex", "[unclosed") is False

    def test_numeric_operator_on_text(self):
        assert evaluate_filter(SAMPLE_RECORD, "name", "greater_than", 3) is False

    def test_missing_numeric_value(self):
        assert evaluate_filter({}, "prep_time", "less_than", 30) is False

    def test_geographic_without_regions(self):
        """Records that declare no regions are available everywhere."""
        assert evaluate_filter({"id": "x"}, "region", "geographic", ["JP"]) is True

    def test_unknown_operator(self):
        assert evaluate_filter(SAMPLE_RECORD, "name", "sounds_like", "cola") is False


# =============================================================================
# TEST: BOOLEAN LOGIC
# =============================================================================

class TestBooleanLogic:
    """Tests for grouped AND/OR evaluation."""

    def test_no_filters_returns_everything(self, catalog):
        assert apply_boolean_logic(catalog.flavors, []) == catalog.flavors

    def test_contains_cola(self):
        result = apply_filter_group(NAMED_RECORDS, [FilterExpression("name", "cola", "contains")])
        assert ids(result) == ["1", "2"]

    def test_and_is_subset_of_each_filter(self, catalog):
        f1 = FilterExpression("category", ["classic", "hybrid"], "in")
        f2 = FilterExpression("soda_type", ["cola"], "in")
        both = set(ids(apply_boolean_logic(catalog.flavors, [f1, f2])))
        assert both <= set(ids(apply_boolean_logic(catalog.flavors, [f1])))
        assert both <= set(ids(apply_boolean_logic(catalog.flavors, [f2])))
        assert both == {"classic-cola", "cola-energy", "cola-zero"}

    def test_or_is_superset_of_each_filter(self, catalog):
        f1 = FilterExpression("category", ["energy"], "in")
        f2 = FilterExpression("caffeine_level", ["none"], "in")
        either = set(ids(apply_filter_group(catalog.flavors, [f1, f2], "OR")))
        assert either >= set(ids(apply_filter_group(catalog.flavors, [f1])))
        assert either >= set(ids(apply_filter_group(catalog.flavors, [f2])))
        assert len(either) == 7

    def test_groups_combined_with_global_or(self, catalog):
        """Group results are united under global OR."""
        filters = [
            FilterExpression("category", ["energy"], "in", group="a"),
            FilterExpression("caffeine_level", ["none"], "in", group="b"),
        ]
        assert len(apply_boolean_logic(catalog.flavors, filters, "OR")) == 7
        assert apply_boolean_logic(catalog.flavors, filters, "AND") == []

    def test_group_logic(self, catalog):
        """A group evaluated with OR matches either of its filters."""
        filters = [
            FilterExpression("soda_type", ["cream"], "in", group="taste"),
            FilterExpression("soda_type", ["root-beer"], "in", group="taste"),
        ]
        assert apply_boolean_logic(catalog.flavors, filters) == []
        result = apply_boolean_logic(catalog.flavors, filters, group_logic={"taste": "OR"})
        assert ids(result) == ["orange-cream", "root-beer"]

    def test_input_order_preserved(self):
        records = list(reversed(NAMED_RECORDS))
        result = apply_boolean_logic(records, [FilterExpression("name", "cola", "contains")])
        assert ids(result) == ["2", "1"]


# =============================================================================
# TEST: FILTER ENGINE
# =============================================================================

class TestApplyFilters:
    """Tests for FilterEngine.apply_filters."""

    def test_category_filter(self, engine):
        query = FilterQuery(filters=[FilterExpression("category", ["energy"], "in")])
        result = engine.apply_filters(None, query)
        assert ids(result["items"]) == ["berry-blast", "citrus-energy", "tropical-power"]
        assert result["totalCount"] == 11
        assert result["filteredCount"] == 3
        assert result["hasMore"] is False
        assert result["cached"] is False

    def test_default_operator(self, engine):
        """An expression without an operator uses the definition default."""
        result = engine.apply_filters(None, FilterQuery(filters=[FilterExpression("category", ["classic"])]))
        assert result["filteredCount"] == 6
        assert result["appliedFilters"][0]["operator"] == "in"
        assert result["appliedFilters"][0]["weight"] == 0.9

    def test_second_call_is_cached(self, engine):
        query = FilterQuery(filters=[FilterExpression("season", ["summer"], "in")])
        engine.apply_filters(None, query)
        assert engine.apply_filters(None, query)["cached"] is True
        assert engine.apply_filters(None, query, use_cache=False)["cached"] is False

    def test_records_without_ids_are_cached_by_content(self, engine):
        """Two id-less record lists with the same query do not share a cache entry."""
        query = FilterQuery(filters=[FilterExpression("name", "a", "contains")])
        first = engine.apply_filters([{"name": "Cola"}], query)
        second = engine.apply_filters([{"name": "Banana"}], query)
        assert [r["name"] for r in first["items"]] == ["Cola"]
        assert [r["name"] for r in second["items"]] == ["Banana"]
        assert second["cached"] is False

    def test_same_records_hit_cache(self, engine):
        query = FilterQuery(filters=[FilterExpression("name", "a", "contains")])
        engine.apply_filters([{"name": "Cola"}], query)
        assert engine.apply_filters([{"name": "Cola"}], query)["cached"] is True

    def test_sort_desc(self, engine):
        result = engine.apply_filters(None, FilterQuery(sort_by="caffeine_range", sort_order="desc"))
        assert ids(result["items"])[:3] == ["berry-blast", "citrus-energy", "cola-energy"]

    def test_missing_sort_values_last(self):
        records = [{"id": "a"}, {"id": "b", "preparationTime": 5}]
        assert ids(FilterEngine.sort_records(records, "prep_time")) == ["b", "a"]

    def test_pagination_prefix_stable(self, engine):
        """A smaller page is a prefix of a larger one."""
        small = engine.apply_filters(None, FilterQuery(sort_by="name", limit=3), use_cache=False)
        large = engine.apply_filters(None, FilterQuery(sort_by="name", limit=10), use_cache=False)
        assert ids(small["items"]) == ids(large["items"])[:3]
        assert small["hasMore"] is True

    def test_offset(self, engine):
        result = engine.apply_filters(None, FilterQuery(sort_by="name", offset=9, limit=5))
        assert len(result["items"]) == 2
        assert result["hasMore"] is False

    def test_walking_pages_covers_every_record(self, engine):
        """Concatenated pages equal the unpaginated result, in order."""
        full = engine.apply_filters(None, FilterQuery(sort_by="name", limit=100), use_cache=False)
        collected = []
        offset = 0
        while True:
            page = engine.apply_filters(None, FilterQuery(sort_by="name", offset=offset, limit=3))
            collected.extend(page["items"])
            if not page["hasMore"]:
                break
            offset += page["limit"]
        assert ids(collected) == ids(full["items"])
        assert len(collected) == full["filteredCount"] == 11

    def test_query_text_adds_suggestions(self, engine):
        result = engine.apply_filters(None, FilterQuery(query="energy drink"))
        fields = [s["filter"]["field"] for s in result["suggestions"]]
        assert "category" in fields
        assert "suggestions" not in engine.apply_filters(None, FilterQuery())

    def test_execution_times_capped(self, catalog):
        engine = FilterEngine(Settings(enable_classifier=False, max_analytics_events=3), catalog)
        for limit in range(1, 6):
            engine.apply_filters(None, FilterQuery(limit=limit), use_cache=False)
        assert len(engine._execution_times) == 3

    def test_explicit_records(self, engine):
        result = engine.apply_filters(NAMED_RECORDS, FilterQuery(filters=[FilterExpression("name", "berry")]))
        assert ids(result["items"]) == ["3"]
        assert result["totalCount"] == 3

    def test_statistics(self, engine):
        query = FilterQuery(filters=[FilterExpression("category", ["energy"], "in")])
        stats = engine.apply_filters(None, query, include_statistics=True)["filterStatistics"]
        assert stats["filterEffectiveness"]["category"] == pytest.approx(0.727)
        assert stats["resultDistribution"] == {"energy": 3}
        assert stats["zeroResultFilters"] == []
        assert stats["performanceMetrics"]["complexityScore"] == pytest.approx(1.0)

    def test_fuzzy_optimization_hint(self, engine):
        query = FilterQuery(filters=[FilterExpression("name", "colla", "fuzzy")])
        stats = engine.apply_filters(None, query, include_statistics=True)["filterStatistics"]
        assert "Fuzzy matching may impact performance" in stats["performanceMetrics"]["optimizationSuggestions"]


class TestFilterValidation:
    """Malformed queries raise typed errors."""

    def test_unknown_field(self, engine):
        with pytest.raises(UnknownFilterFieldError):
            engine.apply_filters(None, FilterQuery(filters=[FilterExpression("colour", "red")]))

    def test_unknown_operator(self, engine):
        with pytest.raises(InvalidFilterError):
            engine.apply_filters(None, FilterQuery(filters=[FilterExpression("name", "x", "near")]))

    def test_unknown_logic(self, engine):
        with pytest.raises(InvalidFilterError):
            engine.apply_filters(None, FilterQuery(global_logic="XOR"))

    def test_too_many_filters(self, catalog):
        engine = FilterEngine(Settings(enable_classifier=False, max_filters=2), catalog)
        filters = [FilterExpression("name", "a")] * 3
        with pytest.raises(InvalidFilterError):
            engine.parse_filters(filters)

    def test_too_many_groups(self, catalog):
        engine = FilterEngine(Settings(enable_classifier=False, max_filter_groups=1), catalog)
        filters = [FilterExpression("name", "a", group="x"), FilterExpression("name", "b", group="y")]
        with pytest.raises(InvalidFilterError):
            engine.parse_filters(filters)


# =============================================================================
# TEST: AVAILABLE VALUES
# =============================================================================

class TestAvailableValues:
    """Tests for facet extraction."""

    def test_category_histogram(self, engine):
        values = engine.get_available_values("category")
        assert [(v["value"], v["count"]) for v in values] == [("classic", 6), ("energy", 3), ("hybrid", 2)]
        assert values[0]["label"] == "Classic"
        assert values[0]["percentage"] == pytest.approx(54.5)

    def test_range_buckets(self, engine):
        values = engine.get_available_values("caffeine_range")
        counts = {tuple(v["value"]): v["count"] for v in values}
        assert counts == {(0.0, 40.0): 6, (40.0, 80.0): 0, (80.0, 120.0): 2, (120.0, 160.0): 3}
        empty = [v for v in values if v["count"] == 0]
        assert empty[0]["disabled"] is True

    def test_single_value_range(self, engine):
        values = engine.get_available_values("caffeine_range", records=[{"caffeineMg": 50}])
        assert len(values) == 1
        assert values[0]["label"] == "50"

    def test_boolean_values(self, engine):
        values = engine.get_available_values("premade_available")
        assert {v["label"]: v["count"] for v in values} == {"Yes": 2, "No": 9}

    def test_ingredient_values(self, engine):
        values = {v["value"]: v for v in engine.get_available_values("ingredients_include")}
        assert values["caffeine-anhydrous"]["count"] == 7
        assert values["caffeine-anhydrous"]["label"] == "Caffeine Anhydrous"

    def test_context_filters(self, engine):
        """Other active filters narrow the facet counts."""
        values = engine.get_available_values(
            "category", context_filters=[FilterExpression("caffeine_level", ["none"], "in")]
        )
        assert [(v["value"], v["count"]) for v in values] == [("classic", 4)]

    def test_location_filter_has_no_values(self, engine):
        assert engine.get_available_values("region") == []

    def test_unknown_filter(self, engine):
        with pytest.raises(UnknownFilterFieldError):
            engine.get_available_values("colour")

    def test_result_carries_select_facets(self, engine):
        result = engine.apply_filters(None, FilterQuery())
        assert set(result["availableValues"]) == {
            "category", "soda_type", "caffeine_level", "dietary_restrictions",
            "allergens", "difficulty", "cultural_origin", "required_equipment", "season",
        }

    @pytest.mark.parametrize("value,label", [
        ("gluten_free", "Gluten free"),
        ("classic", "Classic"),
        ("", ""),
    ])
    def test_format_label(self, value, label):
        assert format_filter_label(value) == label


# =============================================================================
# TEST: SUGGESTIONS
# =============================================================================

class TestSuggestions:
    """Tests for free-text filter suggestions."""

    def test_category_word(self, engine):
        suggestions = engine.get_filter_suggestions("energy drinks")
        top = suggestions[0]
        assert top["filter"] == {"field": "category", "operator": "in", "value": ["energy"]}
        assert top["confidence"] == 0.8
        assert top["reason"] == "Found 3 energy recipes matching your query"

    def test_ingredient_word(self, engine):
        suggestions = engine.get_filter_suggestions("ginger something")
        values = [s["filter"]["value"] for s in suggestions if s["filter"]["field"] == "ingredients_include"]
        assert ["ginger-extract"] in values

    def test_generic_words_ignored(self, engine):
        """Words like "extract" do not suggest every extract."""
        assert engine.get_filter_suggestions("extract") == []

    def test_decaf(self, engine):
        suggestions = engine.get_filter_suggestions("decaf")
        assert suggestions[0]["filter"] == {"field": "caffeine_level", "operator": "in", "value": ["none"]}

    def test_alternatives_when_nothing_matches(self, engine):
        current = [
            FilterExpression("category", ["energy"], "in"),
            FilterExpression("caffeine_level", ["none"], "in"),
        ]
        alternatives = [s for s in engine.get_filter_suggestions("", current_filters=current)
                        if s["type"] == "alternative"]
        counts = {a["filter"]["field"]: a["resultCount"] for a in alternatives}
        assert counts == {"category": 4, "caffeine_level": 3}
        assert all(a["remove"] for a in alternatives)

    def test_no_alternatives_when_results_exist(self, engine):
        current = [FilterExpression("category", ["energy"], "in")]
        assert engine.get_filter_suggestions("", current_filters=current) == []

    def test_classifier_suggestion(self, settings, catalog):
        class StubClassifier:
            def predict(self, text):
                return "root-beer", 0.9

        engine = FilterEngine(settings, catalog, classifier=StubClassifier())
        suggestions = engine.get_filter_suggestions("sarsaparilla")
        soda = [s for s in suggestions if s["filter"]["field"] == "soda_type"]
        assert soda[0]["filter"]["value"] == ["root-beer"]
        assert soda[0]["confidence"] == 0.75


# =============================================================================
# TEST: SAVED SETS & ANALYTICS
# =============================================================================

class TestSavedSets:
    """Tests for saved filter sets."""

    def test_save_and_apply(self, engine):
        saved = engine.save_filter_set(
            "No caffeine", "Caffeine free recipes",
            [FilterExpression("caffeine_level", ["none"])], is_public=True, tags=["kids"],
        )
        assert len(saved.id) == 12
        assert saved.filters[0].operator == "in"

        result = engine.apply_filter_set(saved.id)
        assert result["filteredCount"] == 4
        assert engine.get_filter_set(saved.id).usage_count == 1

    def test_public_listing(self, engine):
        engine.save_filter_set("private", "", [FilterExpression("name", "cola")])
        public = engine.save_filter_set("public", "", [FilterExpression("name", "cola")], is_public=True)
        assert [s.id for s in engine.list_filter_sets(public_only=True)] == [public.id]
        assert len(engine.list_filter_sets()) == 2

    def test_unknown_set(self, engine):
        assert engine.apply_filter_set("missing") is None

    def test_invalid_set_rejected(self, engine):
        with pytest.raises(UnknownFilterFieldError):
            engine.save_filter_set("bad", "", [FilterExpression("colour", "red")])

    def test_to_dict(self, engine):
        saved = engine.save_filter_set("s", "d", [FilterExpression("name", "cola")], tags=["a"])
        data = saved.to_dict()
        assert data["isPublic"] is False
        assert data["tags"] == ["a"]
        assert data["filters"][0]["operator"] == "contains"


class TestPopularFilters:
    """Usage statistics."""

    def test_usage_counted(self, engine):
        engine.apply_filters(None, FilterQuery(filters=[FilterExpression("category", ["energy"])]), use_cache=False)
        engine.apply_filters(None, FilterQuery(filters=[FilterExpression("category", ["nope"])]), use_cache=False)
        popular = engine.popular_filters()
        assert popular[0]["filterId"] == "category"
        assert popular[0]["usageCount"] == 2
        assert popular[0]["avgResults"] == 1.5
        assert popular[0]["zeroResultRate"] == 0.5

    def test_clear_cache(self, engine):
        engine.apply_filters(None, FilterQuery())
        assert engine.clear_cache() == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
