"""Index-usage and query-cost heuristics.

None of these numbers come from the database. They are coarse, relative
signals for comparing queries against each other, not latency predictions.
"""

from typing import Any, Iterable, Mapping, Optional

from models.query import OrderBy, QueryOptions
from .models import QueryAnalysis

BASE_COST = 1.0
FILTER_COST = 0.5
ORDER_COST = 0.3
PAGINATION_COST = 0.2


def composite_index_name(collection: str, fields: Iterable[str]) -> str:
    """Name used when suggesting or requesting a composite index."""
    return "_".join([collection, *fields])


def check_index_usage(filters: Optional[Mapping[str, Any]], order_by: Optional[OrderBy]) -> bool:
    """Guess whether a query needs a composite index.

    True for multi-field filters or any sort: these are the query shapes that
    fail in production when the matching index is missing.
    """
    return len(filters or {}) > 1 or order_by is not None


def estimate_query_cost(filters: Optional[Mapping[str, Any]], options: QueryOptions) -> float:
    """Unit-less relative cost: 1.0 + 0.5/filter + 0.3 if sorted + 0.2 if paginated."""
    cost = BASE_COST + len(filters or {}) * FILTER_COST
    if options.order_by is not None:
        cost += ORDER_COST
    if options.paginated:
        cost += PAGINATION_COST
    return round(cost, 2)


def analyze_query(collection: str, filters: Optional[Mapping[str, Any]],
                  options: QueryOptions) -> QueryAnalysis:
    """Suggest composite indexes and estimate a relative cost for a query."""
    analysis = QueryAnalysis()
    filter_fields = sorted(filters or {})

    if len(filter_fields) > 1:
        analysis.recommended_indexes.append(composite_index_name(collection, filter_fields))
        analysis.optimization_suggestions.append(
            "Consider creating a composite index for multiple filters")

    if options.order_by is not None and filter_fields:
        analysis.recommended_indexes.append(
            composite_index_name(collection, [*filter_fields, options.order_by.field]))
        analysis.optimization_suggestions.append(
            "Consider creating an index that includes both filters and ordering")

    analysis.estimated_cost = estimate_query_cost(filters, options)
    return analysis
