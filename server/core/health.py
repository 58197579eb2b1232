"""Health check utilities for the optimization service.

Provides uptime tracking and the per-service status report used by the
/health endpoints.
"""
import sys
import time
from typing import Dict, Any, TYPE_CHECKING

import psutil

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import DocumentStore
    from core.cache import CacheService
    from services.optimization import QueryOptimizer

# Module-level startup time tracking
_startup_time: float = 0.0

# Thresholds past which a service reports "warning"
MEMORY_WARNING_MB = 500
ACTIVE_QUERIES_WARNING = 100


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


def get_memory_mb() -> float:
    """Get current process memory usage in MB."""
    try:
        return psutil.Process().memory_info().rss / (1024 * 1024)
    except psutil.Error:
        return 0.0


def get_system_info() -> Dict[str, Any]:
    return {
        "memoryMb": round(get_memory_mb(), 1),
        "uptimeSeconds": round(get_uptime(), 1),
        "pythonVersion": sys.version.split()[0],
    }


async def check_cache(cache: "CacheService") -> bool:
    """Round-trip a value through the cache."""
    test_key = "_health_check"
    await cache.set(test_key, "ok", ttl=10)
    result = await cache.get(test_key)
    await cache.delete(test_key)
    return result == "ok"


async def check_document_store(store: "DocumentStore") -> bool:
    try:
        return await store.ping()
    except Exception:
        return False


def overall_status(services: Dict[str, str]) -> str:
    statuses = set(services.values())
    if "unhealthy" in statuses:
        return "unhealthy"
    if "warning" in statuses:
        return "degraded"
    return "healthy"


async def get_health_status(
    cache: "CacheService",
    store: "DocumentStore",
    optimizer: "QueryOptimizer",
    settings: "Settings"
) -> Dict[str, Any]:
    """Get per-service health for the optimization service.

    Returns:
        Dict with overall status, per-service status and feature flags.
    """
    cache_ok = await check_cache(cache)
    store_ok = await check_document_store(store)
    stats = await optimizer.get_stats()

    services = {
        "cache": "healthy" if cache_ok else "warning",
        "documents": ("unhealthy" if not store_ok
                      else "healthy" if stats["activeQueries"] < ACTIVE_QUERIES_WARNING
                      else "warning"),
        "memory": "healthy" if get_memory_mb() < MEMORY_WARNING_MB else "warning",
    }

    return {
        "status": overall_status(services),
        "services": services,
        "cacheBackend": cache.backend_name,
        "uptimeSeconds": round(get_uptime(), 1),
        "features": {
            "redis": settings.redis_enabled,
            "queryCache": settings.query_cache_enabled,
            "documentStore": settings.document_store,
        },
    }
