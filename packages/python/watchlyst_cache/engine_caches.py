from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from watchlyst_core.settings import EngineSettings
from watchlyst_core.types import FeatureVector, ItemId, ItemRecord

from .memory_cache import MemoryCache

log = logging.getLogger(__name__)


@dataclass
class EngineCaches:
    """Caches owned by one engine instance."""

    features: MemoryCache[ItemId, FeatureVector]
    queries: MemoryCache[str, list[ItemRecord]]

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "EngineCaches":
        return cls(
            features=MemoryCache(
                settings.feature_cache_size,
                default_ttl_sec=settings.feature_cache_ttl_sec,
            ),
            queries=MemoryCache(
                settings.query_cache_size,
                default_ttl_sec=settings.query_cache_ttl_sec,
            ),
        )

    def all(self) -> dict[str, MemoryCache[Any, Any]]:
        return {"features": self.features, "queries": self.queries}

    def total_entries(self) -> int:
        return sum(c.size() for c in self.all().values())

    def clear(self) -> None:
        for c in self.all().values():
            c.clear()

    def relieve_pressure(self, max_entries: int) -> bool:
        """Clear every cache when the combined entry count exceeds `max_entries`."""
        total = self.total_entries()
        if total <= max_entries:
            return False
        log.warning("cache pressure: %d entries > %d, clearing caches", total, max_entries)
        self.clear()
        return True


class CachePressureMonitor:
    """Periodic `relieve_pressure` check. start() must run inside an event loop."""

    def __init__(self, caches: EngineCaches, *, max_entries: int, interval_sec: float) -> None:
        self.caches = caches
        self.max_entries = max_entries
        self.interval_sec = interval_sec
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.caches.relieve_pressure(self.max_entries)

    async def aclose(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
