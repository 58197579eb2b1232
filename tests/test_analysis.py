"""Index-usage and cost heuristics."""

from models.query import OrderBy, QueryOptions
from services.optimization import (
    analyze_query,
    check_index_usage,
    composite_index_name,
    estimate_query_cost,
)


class TestCheckIndexUsage:
    def test_single_filter_without_sort(self):
        assert check_index_usage({"status": "active"}, None) is False

    def test_multiple_filters(self):
        assert check_index_usage({"status": "active", "genre": "jazz"}, None) is True

    def test_any_sort(self):
        assert check_index_usage({}, OrderBy("date")) is True


class TestEstimateQueryCost:
    def test_base_cost(self):
        assert estimate_query_cost({}, QueryOptions()) == 1.0

    def test_filters_add_half_each(self):
        assert estimate_query_cost({"a": 1, "b": 2, "c": 3}, QueryOptions()) == 2.5

    def test_sort_and_pagination(self):
        assert estimate_query_cost({"a": 1}, QueryOptions(order_by=OrderBy("d"), limit=10)) == 2.0

    def test_offset_alone_counts_as_paginated(self):
        assert estimate_query_cost({}, QueryOptions(offset=20)) == 1.2


class TestAnalyzeQuery:
    def test_single_filter_has_no_recommendations(self):
        analysis = analyze_query("gigs", {"status": "active"}, QueryOptions())
        assert analysis.recommended_indexes == []
        assert analysis.optimization_suggestions == []
        assert analysis.estimated_cost == 1.5

    def test_multiple_filters_recommend_sorted_index(self):
        analysis = analyze_query("gigs", {"status": "active", "date": "2024-06-01"}, QueryOptions())
        assert analysis.recommended_indexes == ["gigs_date_status"]
        assert len(analysis.optimization_suggestions) == 1

    def test_filter_and_order_recommend_combined_index(self):
        analysis = analyze_query("gigs", {"status": "active"}, QueryOptions(order_by=OrderBy("date")))
        assert analysis.recommended_indexes == ["gigs_status_date"]

    def test_order_without_filters_has_no_recommendation(self):
        analysis = analyze_query("gigs", {}, QueryOptions(order_by=OrderBy("date")))
        assert analysis.recommended_indexes == []
        assert analysis.estimated_cost == 1.3

    def test_to_dict(self):
        analysis = analyze_query("gigs", {"a": 1, "b": 2}, QueryOptions(limit=5))
        assert analysis.to_dict() == {
            "recommendedIndexes": ["gigs_a_b"],
            "estimatedCost": 2.2,
            "optimizationSuggestions": ["Consider creating a composite index for multiple filters"],
        }

    def test_composite_index_name(self):
        assert composite_index_name("gigs", ["status", "date"]) == "gigs_status_date"
