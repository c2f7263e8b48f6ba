"""
Rate limit cleanup sweeper.

Background task that periodically removes expired counters from every
registered limiter, bounding memory between requests. The task is owned by
the sweeper instance: start() is called from the application lifespan and
stop() cancels and awaits it on shutdown.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from src.services.prometheus_metrics import record_sweep

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300  # 5 minutes


class CleanupSweeper:
    """Periodic sweep of expired rate limit counters."""

    def __init__(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self._targets: list[tuple[str, Callable[[], int]]] = []
        self._listeners: list[Callable[[int], None]] = []
        self._task: asyncio.Task | None = None
        self.last_removed = 0
        self.total_removed = 0
        self.runs = 0

    def register(self, name: str, cleanup: Callable[[], int]) -> None:
        """Add a cleanup callable (usually a limiter's cleanup_expired)."""
        self._targets.append((name, cleanup))

    def add_listener(self, callback: Callable[[int], None]) -> None:
        """Call callback(removed) after every sweep."""
        self._listeners.append(callback)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Run every registered cleanup once; returns the total removed."""
        removed = 0
        for name, cleanup in self._targets:
            try:
                removed += cleanup()
            except Exception as e:
                logger.error(f"Rate limit cleanup failed for {name}: {e}", exc_info=True)

        self.runs += 1
        self.last_removed = removed
        self.total_removed += removed
        record_sweep(removed)
        for callback in self._listeners:
            try:
                callback(removed)
            except Exception as e:
                logger.error(f"Rate limit sweep listener failed: {e}", exc_info=True)

        if removed:
            logger.info(f"Cleaned up {removed} expired rate limit entries")
        return removed

    async def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.is_running:
            logger.warning("Rate limit sweeper is already running")
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-sweeper")
        logger.info(f"Rate limit sweeper started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Rate limit sweeper stopped")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                self.sweep_once()
        except asyncio.CancelledError:
            logger.debug("Rate limit sweeper task cancelled")
            raise

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "targets": [name for name, _ in self._targets],
            "runs": self.runs,
            "last_removed": self.last_removed,
            "total_removed": self.total_removed,
        }
