"""Query optimization and cache administration routes."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from core.cache import CacheService
from core.config import Settings
from core.container import container
from core.database import DocumentStore
from core.health import get_health_status, get_system_info
from core.logging import get_logger
from services.optimization import QueryOptimizer, parse_query_params, pagination_headers

logger = get_logger(__name__)
router = APIRouter(prefix="/optimization", tags=["optimization"])


class QueryRequest(BaseModel):
    collection: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)


class IndexRequest(BaseModel):
    collection: Optional[str] = None
    fields: Optional[List[str]] = None
    queryScopes: List[str] = Field(default_factory=lambda: ["COLLECTION"])


class BatchRequest(BaseModel):
    operations: Optional[List[Dict[str, Any]]] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, error: Optional[Exception] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if error is not None:
        content["error"] = str(error)
    return JSONResponse(status_code=status_code, content=content)


def _cache_summary(stats: Dict[str, int]) -> Dict[str, Any]:
    total = stats["hits"] + stats["misses"]
    return {
        **stats,
        "hitRate": (stats["hits"] / total) * 100 if total else 0,
    }


@router.get("/cache/stats")
async def get_cache_stats(
    cache: CacheService = Depends(lambda: container.cache()),
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Cache hit/miss statistics plus optimizer bookkeeping."""
    try:
        stats = await cache.get_stats()
        return {
            "success": True,
            "data": {
                "cache": _cache_summary(stats),
                "firestore": await optimizer.get_stats(),
                "timestamp": _timestamp(),
            }
        }
    except Exception as e:
        logger.error("Failed to get cache stats", error=str(e))
        return _error(500, "Error retrieving cache statistics", e)


@router.delete("/cache/clear")
async def clear_cache(
    prefix: Optional[str] = None,
    cache: CacheService = Depends(lambda: container.cache()),
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Clear the default namespace and query cache, or everything under prefix."""
    prefixes = [prefix] if prefix else [cache.prefix, optimizer.config.cache_prefix]
    try:
        await cache.clear(prefix)
        await optimizer.clear_cache(prefix)
        logger.info("Cache cleared via API", prefixes=prefixes)
        return {
            "success": True,
            "message": "Cache cleared successfully",
            "data": {"prefixes": prefixes, "timestamp": _timestamp()}
        }
    except Exception as e:
        logger.error("Failed to clear cache", error=str(e))
        return _error(500, "Error clearing cache", e)


@router.post("/query/analyze")
async def analyze_query(
    request: QueryRequest,
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Index recommendations and a relative cost estimate for a query."""
    if not request.collection:
        return _error(400, "Collection name is required")
    try:
        analysis = optimizer.analyze_query_performance(
            request.collection, request.filters, request.options)
        return {
            "success": True,
            "data": {
                "collection": request.collection,
                "analysis": analysis.to_dict(),
                "timestamp": _timestamp(),
            }
        }
    except Exception as e:
        logger.error("Failed to analyze query", error=str(e))
        return _error(500, "Error analyzing query performance", e)


@router.post("/index/create")
async def create_composite_index(
    request: IndexRequest,
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Request a composite index."""
    if not request.collection or not request.fields:
        return _error(400, "Collection name and fields array are required")
    try:
        result = await optimizer.create_composite_index(
            request.collection, request.fields, request.queryScopes)
        content = {
            "success": result["success"],
            "message": ("Composite index creation requested" if result["success"]
                        else "Failed to create composite index"),
            "data": {
                "collection": request.collection,
                "fields": request.fields,
                "indexName": result.get("indexName"),
                "timestamp": _timestamp(),
            }
        }
        return JSONResponse(status_code=200 if result["success"] else 500, content=content)
    except Exception as e:
        logger.error("Failed to create composite index", error=str(e))
        return _error(500, "Error creating composite index", e)


@router.get("/stats")
async def get_optimization_stats(
    cache: CacheService = Depends(lambda: container.cache()),
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Cache, optimizer and process statistics."""
    try:
        stats = await cache.get_stats()
        return {
            "success": True,
            "data": {
                "cache": _cache_summary(stats),
                "firestore": await optimizer.get_stats(),
                "system": get_system_info(),
                "timestamp": _timestamp(),
            }
        }
    except Exception as e:
        logger.error("Failed to get optimization stats", error=str(e))
        return _error(500, "Error retrieving optimization statistics", e)


@router.post("/query/execute")
async def execute_query(
    request: QueryRequest,
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Run an optimized (cache-first) query.

    A failed query still answers 200 with success=false and
    metrics.optimizationApplied=false so clients can tell it from an empty result.
    """
    if not request.collection:
        return _error(400, "Collection name is required")

    result = await optimizer.optimized_query(request.collection, request.filters, request.options)
    data = {
        "collection": request.collection,
        "results": result.data,
        "metrics": result.metrics.to_dict(),
        "timestamp": _timestamp(),
    }
    if not result.ok:
        data["error"] = result.error
    return {"success": result.ok, "data": data}


@router.post("/batch")
async def batch_operations(
    request: BatchRequest,
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer())
):
    """Run batched writes. 207 when some batches failed."""
    if request.operations is None:
        return _error(400, "Operations array is required")

    result = await optimizer.batch_operations(request.operations)
    content = {
        "success": result.success,
        "message": ("Batch operations completed successfully" if result.success
                    else "Some batch operations failed"),
        "data": {
            "totalOperations": len(request.operations),
            "successfulResults": len(result.results),
            "errors": result.errors,
            "timestamp": _timestamp(),
        }
    }
    return JSONResponse(status_code=200 if result.success else 207, content=content)


@router.get("/health")
async def health_check(
    cache: CacheService = Depends(lambda: container.cache()),
    store: DocumentStore = Depends(lambda: container.document_store()),
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer()),
    settings: Settings = Depends(lambda: container.settings())
):
    """Per-service health of the optimization stack."""
    try:
        status = await get_health_status(cache, store, optimizer, settings)
        return {"success": True, "data": {**status, "timestamp": _timestamp()}}
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(status_code=500, content={
            "success": False,
            "status": "unhealthy",
            "message": "Health check failed",
            "error": str(e),
        })


@router.get("/collections/{collection}")
async def list_collection(
    collection: str,
    request: Request,
    response: Response,
    optimizer: QueryOptimizer = Depends(lambda: container.query_optimizer()),
    settings: Settings = Depends(lambda: container.settings())
):
    """List documents using query-string filters, sorting and pagination.

    ?page=2&limit=10&sortBy=date&sortOrder=desc&fields=name&status=active,pending
    """
    params = list(request.query_params.multi_items())
    page = parse_query_params(
        params,
        max_limit=settings.query_max_limit,
        default_limit=settings.query_default_limit,
        max_page_size=settings.query_max_page_size,
    )
    if page.search:
        logger.debug("Search parameter ignored by document queries", search=page.search)

    result = await optimizer.optimized_query(collection, page.filters, page.to_query_options())

    response.headers["X-Query-Optimized"] = str(result.ok).lower()
    response.headers["X-Page-Size"] = str(page.limit)
    response.headers["X-Current-Page"] = str(page.page)

    if result.ok:
        total = await optimizer.count_query(collection, page.filters)
        if total is not None:
            response.headers.update(
                pagination_headers(page, total, request.url.path, params))

    return {
        "success": result.ok,
        "data": result.data,
        "metrics": result.metrics.to_dict(),
        "error": result.error,
    }
