"""Periodic sweep of expired in-memory cache entries.

Reads only evict lazily, so entries that are written and never read again
would otherwise stay in the memory backend forever.
"""
import asyncio
from typing import Optional, TYPE_CHECKING

from core.logging import get_logger

if TYPE_CHECKING:
    from core.cache import CacheService

logger = get_logger(__name__)


class CacheSweeper:
    """Background task that calls CacheService.purge_expired() on an interval."""

    def __init__(self, cache: "CacheService", interval: int = 60):
        self.cache = cache
        self.interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweeper background task. An interval of 0 disables it."""
        if self._running:
            return
        if self.interval <= 0:
            logger.info("Cache sweeper disabled")
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Cache sweeper started", interval=self.interval)

    async def stop(self) -> None:
        """Stop the sweeper gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Cache sweep failed", error=str(e))
            await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """Run one sweep and return the number of entries removed."""
        removed = await self.cache.purge_expired()
        if removed > 0:
            logger.info("Expired cache entries purged", removed=removed)
        return removed
