"""Query optimizer configuration and result models.

Results are returned, never persisted. Their camelCase dict forms are what
the HTTP API serializes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import DEFAULT_QUERY_CACHE_PREFIX, FIRESTORE_MAX_BATCH_SIZE
from core.config import Settings


@dataclass
class OptimizerConfig:
    """Query optimizer configuration.

    max_concurrent_queries is enforced as a concurrency gate on store reads;
    enable_indexing is accepted and reported but does not change behavior.
    """
    enable_cache: bool = True
    cache_ttl: int = 300             # seconds
    batch_size: int = FIRESTORE_MAX_BATCH_SIZE
    max_concurrent_queries: int = 10
    enable_indexing: bool = True
    cache_prefix: str = DEFAULT_QUERY_CACHE_PREFIX

    def __post_init__(self):
        if not 1 <= self.batch_size <= FIRESTORE_MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {FIRESTORE_MAX_BATCH_SIZE}")
        if self.max_concurrent_queries < 1:
            raise ValueError("max_concurrent_queries must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enableCache": self.enable_cache,
            "cacheTTL": self.cache_ttl,
            "batchSize": self.batch_size,
            "maxConcurrentQueries": self.max_concurrent_queries,
            "enableIndexing": self.enable_indexing,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "OptimizerConfig":
        return cls(
            enable_cache=settings.query_cache_enabled,
            cache_ttl=settings.query_cache_ttl,
            batch_size=settings.batch_size,
            max_concurrent_queries=settings.max_concurrent_queries,
            enable_indexing=settings.enable_indexing,
            cache_prefix=settings.query_cache_prefix,
        )


@dataclass
class QueryMetrics:
    query_time_ms: float
    result_count: int = 0
    cache_hit: bool = False
    index_used: bool = False  # heuristic only, see analysis.check_index_usage
    optimization_applied: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queryTimeMillis": self.query_time_ms,
            "resultCount": self.result_count,
            "cacheHit": self.cache_hit,
            "indexUsedHeuristic": self.index_used,
            "optimizationApplied": self.optimization_applied,
        }


@dataclass
class QueryResult:
    """Outcome of optimized_query().

    A failed query has empty data, optimization_applied=False and an error
    message; callers must check ``ok`` to tell "no rows" from "failed".
    """
    data: List[Dict[str, Any]]
    metrics: QueryMetrics
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.metrics.optimization_applied

    def to_dict(self) -> Dict[str, Any]:
        result = {"data": self.data, "metrics": self.metrics.to_dict()}
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class BatchResult:
    """Outcome of batch_operations(). Partial success is representable."""
    success: bool
    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def failed_batches(self) -> List[int]:
        return [error["batchIndex"] for error in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "results": self.results, "errors": self.errors}


@dataclass
class QueryAnalysis:
    recommended_indexes: List[str] = field(default_factory=list)
    estimated_cost: float = 0.0
    optimization_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendedIndexes": self.recommended_indexes,
            "estimatedCost": self.estimated_cost,
            "optimizationSuggestions": self.optimization_suggestions,
        }
