"""Cache-first query execution and batched writes over a document store.

optimized_query() and batch_operations() never raise: failures come back as
result shapes (QueryResult.ok == False, BatchResult.errors) so callers can
tell "no rows" from "query failed" and "partially failed" from "failed".
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from core.cache import CacheService
from core.database import DocumentStore
from core.logging import get_logger, log_execution_time, log_query_metrics
from models.query import BatchOperation, QueryOptions, QuerySpec
from .analysis import analyze_query, check_index_usage, composite_index_name
from .exceptions import BatchCommitError
from .filters import generate_cache_key, translate_filters
from .models import BatchResult, OptimizerConfig, QueryAnalysis, QueryMetrics, QueryResult

logger = get_logger(__name__)

OptionsLike = Union[QueryOptions, Mapping[str, Any], None]
OperationLike = Union[BatchOperation, Mapping[str, Any]]


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _coerce_options(options: OptionsLike) -> QueryOptions:
    if isinstance(options, QueryOptions):
        return options
    return QueryOptions.from_dict(dict(options or {}))


def _coerce_operation(operation: OperationLike) -> BatchOperation:
    if isinstance(operation, BatchOperation):
        return operation
    return BatchOperation.from_dict(dict(operation))


class QueryOptimizer:
    """Read-through cache and batching layer in front of a DocumentStore.

    Concurrent identical misses may all hit the store (no stampede
    protection); store reads are capped at max_concurrent_queries.
    """

    def __init__(self, store: DocumentStore, cache: CacheService,
                 config: Optional[OptimizerConfig] = None):
        self.store = store
        self.cache = cache
        self.config = config or OptimizerConfig()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_queries)
        self._active_queries = 0

    # =========================================================================
    # READS
    # =========================================================================

    async def optimized_query(self, collection: str,
                              filters: Optional[Mapping[str, Any]] = None,
                              options: OptionsLike = None) -> QueryResult:
        """Run a filtered, ordered, paginated query, cache-first.

        Args:
            collection: Collection name
            filters: Field -> scalar (==), list (in) or {gte,lte,gt,lt} range
            options: QueryOptions or dict with limit/offset/orderBy/select/cacheKey

        Returns:
            QueryResult with rows (id merged into fields) and metrics
        """
        start = time.perf_counter()

        try:
            filters = dict(filters or {})
            query_options = _coerce_options(options)
            cache_key = generate_cache_key(collection, filters, query_options)

            if self.config.enable_cache:
                cached = await self.cache.get(cache_key, prefix=self.config.cache_prefix)
                if cached is not None:
                    return QueryResult(
                        data=cached,
                        metrics=QueryMetrics(
                            query_time_ms=_elapsed_ms(start),
                            result_count=len(cached),
                            cache_hit=True,
                        ),
                    )

            spec = QuerySpec(
                collection=collection,
                predicates=translate_filters(filters),
                order_by=query_options.order_by,
                select=query_options.select,
                limit=query_options.limit,
                offset=query_options.offset,
            )
            documents = await self._run(spec)
            data = [{"id": doc_id, **fields} for doc_id, fields in documents]

            if self.config.enable_cache:
                await self.cache.set(cache_key, data, ttl=self.config.cache_ttl,
                                     prefix=self.config.cache_prefix)

            metrics = QueryMetrics(
                query_time_ms=_elapsed_ms(start),
                result_count=len(data),
                cache_hit=False,
                index_used=check_index_usage(filters, query_options.order_by),
            )
            log_query_metrics(logger, collection, cache_key, metrics)
            return QueryResult(data=data, metrics=metrics)

        except Exception as e:
            logger.error("Optimized query failed",
                         collection=collection,
                         filters=filters if isinstance(filters, Mapping) else repr(filters),
                         options=options.to_dict() if isinstance(options, QueryOptions) else options,
                         error=str(e),
                         error_type=type(e).__name__)
            return QueryResult(
                data=[],
                metrics=QueryMetrics(query_time_ms=_elapsed_ms(start),
                                     optimization_applied=False),
                error=str(e),
            )

    async def count_query(self, collection: str,
                          filters: Optional[Mapping[str, Any]] = None) -> Optional[int]:
        """Count matching documents (uncached). Returns None on failure."""
        try:
            predicates = translate_filters(filters)
            async with self._semaphore:
                return await self.store.count(collection, predicates)
        except Exception as e:
            logger.error("Count query failed", collection=collection,
                         filters=dict(filters or {}), error=str(e))
            return None

    async def _run(self, spec: QuerySpec):
        async with self._semaphore:
            self._active_queries += 1
            try:
                return await self.store.run_query(spec)
            finally:
                self._active_queries -= 1

    # =========================================================================
    # WRITES
    # =========================================================================

    async def batch_operations(self, operations: Sequence[OperationLike]) -> BatchResult:
        """Commit writes in atomic groups of batch_size, all groups concurrently.

        A failing group does not stop the others. Each failure is reported as
        {"batchIndex", "error"}; there is no cross-batch rollback or retry.
        """
        start = time.perf_counter()
        try:
            operations = list(operations)
        except Exception as e:
            # Nothing to partition; no batch was attempted
            logger.error("Batch operations rejected", error=str(e),
                         error_type=type(e).__name__)
            return BatchResult(success=False, errors=[{
                "batchIndex": None,
                "error": str(e),
                "errorType": type(e).__name__,
            }])

        size = self.config.batch_size
        groups = [operations[i:i + size] for i in range(0, len(operations), size)]

        outcomes = await asyncio.gather(
            *(self._commit_group(index, group) for index, group in enumerate(groups)),
            return_exceptions=True,
        )

        results: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                cause = outcome.cause if isinstance(outcome, BatchCommitError) else outcome
                errors.append({
                    "batchIndex": index,
                    "error": str(cause),
                    "errorType": type(cause).__name__,
                })
                logger.error("Batch commit failed", batch_index=index,
                             operations=len(groups[index]), error=str(cause))
            else:
                results.extend(outcome)

        log_execution_time(logger, "batch_operations", start, time.perf_counter(),
                           total_operations=len(operations),
                           batches=len(groups),
                           failed_batches=len(errors))
        return BatchResult(success=not errors, results=results, errors=errors)

    async def _commit_group(self, index: int, group: List[OperationLike]) -> List[Dict[str, Any]]:
        try:
            batch = [_coerce_operation(op) for op in group]
            return await self.store.commit_batch(batch)
        except Exception as e:
            raise BatchCommitError(index, e) from e

    # =========================================================================
    # HEURISTICS & INDEXES
    # =========================================================================

    def analyze_query_performance(self, collection: str,
                                  filters: Optional[Mapping[str, Any]] = None,
                                  options: OptionsLike = None) -> QueryAnalysis:
        """Index suggestions and a relative (unit-less) cost estimate."""
        try:
            return analyze_query(collection, filters, _coerce_options(options))
        except Exception as e:
            logger.error("Query analysis failed", collection=collection,
                         filters=filters, error=str(e))
            return QueryAnalysis(optimization_suggestions=["Unable to analyze query performance"])

    async def create_composite_index(self, collection: str, fields: Iterable[str],
                                     query_scopes: Iterable[str] = ("COLLECTION",)) -> Dict[str, Any]:
        """Record a composite index request.

        Only the request is logged and named; provisioning the index is left to
        the Firestore console or `firebase deploy --only firestore:indexes`.
        """
        fields = list(fields)
        query_scopes = list(query_scopes)
        if not collection or not fields:
            logger.warning("Composite index request missing collection or fields",
                           collection=collection, fields=fields)
            return {"success": False}

        index_name = composite_index_name(collection, fields)
        logger.info("Composite index creation requested",
                    collection=collection,
                    fields=fields,
                    query_scopes=query_scopes,
                    index_name=index_name)
        return {"success": True, "indexName": index_name, "queryScopes": query_scopes}

    # =========================================================================
    # CACHE & STATS
    # =========================================================================

    async def clear_cache(self, prefix: Optional[str] = None) -> None:
        """Clear cached query results (default: this optimizer's namespace)."""
        key_prefix = prefix or self.config.cache_prefix
        await self.cache.clear(key_prefix)
        logger.info("Query cache cleared", prefix=key_prefix)

    async def get_stats(self) -> Dict[str, Any]:
        """cacheSize is the live key count in this optimizer's cache namespace."""
        return {
            "cacheSize": await self.cache.count(self.config.cache_prefix),
            "activeQueries": self._active_queries,
            "config": self.config.to_dict(),
        }
