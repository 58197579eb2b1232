"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import create_document_store
from core.cache import CacheService
from core.cleanup import CacheSweeper
from services.optimization import OptimizerConfig, QueryOptimizer


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Document store (Firestore or in-memory, from DOCUMENT_STORE)
    document_store = providers.Singleton(
        create_document_store,
        settings=settings
    )

    # Cache service (Redis when enabled and reachable, memory otherwise)
    cache = providers.Singleton(
        CacheService,
        settings=settings
    )

    cache_sweeper = providers.Singleton(
        CacheSweeper,
        cache=cache,
        interval=settings.provided.cache_sweep_interval
    )

    optimizer_config = providers.Singleton(
        OptimizerConfig.from_settings,
        settings=settings
    )

    query_optimizer = providers.Singleton(
        QueryOptimizer,
        store=document_store,
        cache=cache,
        config=optimizer_config
    )


# Global container instance
container = Container()
