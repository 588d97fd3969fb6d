"""Periodic removal of expired entries.

Expiry is lazy, so correctness never depends on this task. It only bounds
memory held by entries nobody reads any more.

Example:
    sweeper = ExpirySweeper(registry)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

import asyncio
import logging

from ticketcache.cache.registry import CacheRegistry

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Background asyncio task calling ``registry.purge_expired()``."""

    def __init__(self, registry: CacheRegistry, interval: float | None = None):
        self.registry = registry
        self.interval = interval if interval is not None else registry.settings.sweep_interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweeping."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started expiry sweeper (interval {self.interval}s)")

    async def stop(self) -> None:
        """Stop sweeping."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Stopped expiry sweeper")

    def sweep(self) -> int:
        """Run one sweep now."""
        removed = self.registry.purge_expired()
        self.sweeps += 1
        if removed:
            logger.info(f"Swept {removed} expired cache entries")
        return removed

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Expiry sweep failed")
