"""Periodic hardware metrics polling for dashboards."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from chatstream.hardware.cache import MetricsCache
from chatstream.models.schemas import HardwareMetricsSnapshot

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[HardwareMetricsSnapshot], Awaitable[None] | None]


class HardwareMetricsPoller:
    """Reads the metrics cache on a fixed interval until stopped.

    ``stop`` is the cancellation token: once set, no further callback is
    made, even if a poll was already in progress.
    """

    def __init__(self, cache: MetricsCache, on_snapshot: SnapshotCallback, interval: float = 2.0) -> None:
        self._cache = cache
        self._on_snapshot = on_snapshot
        self._interval = interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def poll_once(self) -> None:
        snapshot = await self._cache.get()
        if self._stop.is_set():
            return
        try:
            result = self._on_snapshot(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Metrics display callback failed: {e}")

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                pass
