from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    expiry: float  # absolute, in clock units


class MemoryCache(Generic[K, V]):
    """
    Bounded in-process TTL cache.

    - Eviction is by insertion order (oldest inserted first) once `max_size`
      is reached; reads do not refresh an entry's position.
    - Expired entries are treated as absent and dropped lazily on `get`.
    - Reads are lock-free; writes and eviction run under one lock.
    """

    def __init__(
        self,
        max_size: int = 1000,
        *,
        default_ttl_sec: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = int(max_size)
        self.default_ttl_sec = float(default_ttl_sec)
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def set(self, key: K, value: V, ttl_sec: float | None = None) -> None:
        ttl = self.default_ttl_sec if ttl_sec is None else float(ttl_sec)
        entry = CacheEntry(value=value, expiry=self._clock() + ttl)
        with self._lock:
            # re-setting a key moves it to the newest position
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = entry

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expiry:
            with self._lock:
                # only drop it if nobody replaced it meanwhile
                if self._entries.get(key) is entry:
                    del self._entries[key]
            return None
        return entry.value

    def delete(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._clock() <= entry.expiry

    def __len__(self) -> int:
        return len(self._entries)
