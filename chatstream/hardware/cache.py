"""Single-slot, time-boxed cache in front of the hardware collector.

All callers share one entry, so the probe runs at most once per freshness
window however many dashboards poll. Callers that find the entry stale
while a probe is already running wait for that probe instead of starting
another.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import NamedTuple

from chatstream.hardware.collector import HardwareMetricsCollector
from chatstream.hardware.config import get_hardware_config
from chatstream.models.schemas import HardwareMetricsSnapshot

logger = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    snapshot: HardwareMetricsSnapshot
    captured_at: float


class MetricsCache:
    """Reuses a collected snapshot within ``freshness_window`` seconds."""

    def __init__(
        self,
        collector: HardwareMetricsCollector,
        freshness_window: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._collector = collector
        self._window = freshness_window
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._pending: asyncio.Task[HardwareMetricsSnapshot] | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def is_fresh(self, now: float) -> bool:
        return self._entry is not None and now - self._entry.captured_at < self._window

    async def get(self, now: float | None = None) -> HardwareMetricsSnapshot:
        """Return the cached snapshot, probing only when it is stale.

        Args:
            now: Request time; defaults to the cache clock.
        """
        now = self._clock() if now is None else now
        if self.is_fresh(now):
            return self._entry.snapshot

        if self._pending is None:
            self._pending = asyncio.create_task(self._refresh(now))
        # Shield so one cancelled caller does not cancel the shared probe
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        self._entry = None

    async def _refresh(self, now: float) -> HardwareMetricsSnapshot:
        try:
            snapshot = await self._collector.collect()
            self._entry = CacheEntry(snapshot, now)
            logger.debug(f"Refreshed hardware metrics at {now:.3f}")
            return snapshot
        finally:
            self._pending = None


# Module-level singleton instance
_metrics_cache: MetricsCache | None = None


def get_metrics_cache() -> MetricsCache:
    """Get or create the global metrics cache.

    Returns:
        The process-wide MetricsCache instance.
    """
    global _metrics_cache
    if _metrics_cache is None:
        config = get_hardware_config()
        _metrics_cache = MetricsCache(
            HardwareMetricsCollector(config),
            freshness_window=config.freshness_window,
        )
    return _metrics_cache
