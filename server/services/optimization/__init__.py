"""Query optimization package.

Cache-first reads and batched writes over the document store:
- Filter-map translation to native predicates
- Deterministic cache-key derivation
- Concurrent batch commits with per-batch error reporting
- Index-usage and query-cost heuristics
- Query-string normalization for list endpoints
"""

from .models import (
    OptimizerConfig,
    QueryMetrics,
    QueryResult,
    BatchResult,
    QueryAnalysis,
)
from .exceptions import (
    OptimizationError,
    QueryTranslationError,
    BatchCommitError,
)
from .filters import (
    RANGE_OPERATORS,
    translate_filter,
    translate_filters,
    canonical_json,
    generate_cache_key,
)
from .analysis import (
    analyze_query,
    check_index_usage,
    estimate_query_cost,
    composite_index_name,
)
from .params import (
    PageRequest,
    parse_query_params,
    pagination_headers,
)
from .optimizer import QueryOptimizer

__all__ = [
    # Models
    "OptimizerConfig",
    "QueryMetrics",
    "QueryResult",
    "BatchResult",
    "QueryAnalysis",
    # Exceptions
    "OptimizationError",
    "QueryTranslationError",
    "BatchCommitError",
    # Filters
    "RANGE_OPERATORS",
    "translate_filter",
    "translate_filters",
    "canonical_json",
    "generate_cache_key",
    # Analysis
    "analyze_query",
    "check_index_usage",
    "estimate_query_cost",
    "composite_index_name",
    # Params
    "PageRequest",
    "parse_query_params",
    "pagination_headers",
    # Optimizer
    "QueryOptimizer",
]
