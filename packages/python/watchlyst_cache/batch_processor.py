from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")
FlushFn = Callable[[list[T]], Awaitable[None]]


class BatchProcessor(Generic[T]):
    """
    Buffers records and writes them in bulk.

    A flush happens when the queue reaches `max_size` or `interval_sec` after
    the first unflushed item was queued, whichever comes first. A failed flush
    puts the whole batch back at the front and retries with capped exponential
    backoff (at-least-once; `flush_fn` must be idempotent by record identity).
    At most one flush runs at a time; `add_item` never waits on it.

    Nothing is dropped while the store is down. A warning is logged each time
    the backlog climbs past `high_water` items.
    """

    def __init__(
        self,
        flush_fn: FlushFn[T],
        *,
        max_size: int = 500,
        interval_sec: float = 5.0,
        retry_base_sec: float = 0.5,
        retry_cap_sec: float = 30.0,
        high_water: int | None = None,
        name: str = "batch",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._flush_fn = flush_fn
        self.max_size = int(max_size)
        self.interval_sec = float(interval_sec)
        self.retry_base_sec = float(retry_base_sec)
        self.retry_cap_sec = float(retry_cap_sec)
        self.high_water = int(high_water) if high_water is not None else 10 * self.max_size
        self.name = name

        # (queued_at, item), queued_at on the event loop clock
        self._queue: deque[tuple[float, T]] = deque()
        self._inflight: list[T] = []
        self._processing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._timer: asyncio.Task | None = None
        self._failures = 0
        self._above_high_water = False
        self._closed = False

    # ---------- Public API ----------
    async def add_item(self, item: T) -> None:
        if self._closed:
            raise RuntimeError(f"{self.name} processor is closed")
        self._queue.append((self._now(), item))
        self._check_high_water()
        if len(self._queue) >= self.max_size:
            await self.flush()
        elif self._timer is None and not self._processing:
            self._arm(self.interval_sec)

    async def flush(self) -> bool:
        """Write up to `max_size` queued items. False if nothing was written."""
        if self._processing or not self._queue:
            return False
        self._processing = True
        self._idle.clear()
        self._cancel_timer()

        n = min(self.max_size, len(self._queue))
        entries = [self._queue.popleft() for _ in range(n)]
        batch = [item for _, item in entries]
        self._inflight = batch
        ok = False
        try:
            await self._flush_fn(batch)
        except Exception as exc:
            self._failures += 1
            self._queue.extendleft(reversed(entries))
            log.warning(
                "%s flush of %d items failed (attempt %d), requeued: %r",
                self.name,
                len(batch),
                self._failures,
                exc,
            )
        else:
            ok = True
            self._failures = 0
            log.info("%s flushed %d items", self.name, len(batch))
        finally:
            self._inflight = []
            self._processing = False
            self._idle.set()

        self._check_high_water()
        if not self._closed:
            self._schedule_next()
        return ok

    def pending(self) -> list[T]:
        """Items not yet durably written (in flight first, then queued)."""
        return list(self._inflight) + [item for _, item in self._queue]

    def __len__(self) -> int:
        return len(self._queue) + len(self._inflight)

    @property
    def failures(self) -> int:
        return self._failures

    async def aclose(self) -> None:
        """Stop timers and make one final attempt to drain the queue."""
        self._closed = True
        self._cancel_timer()
        await self._idle.wait()
        while self._queue:
            if not await self.flush():
                break
        if self._queue:
            log.error("%s closed with %d unflushed items", self.name, len(self._queue))

    # ---------- Timer ----------
    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    def _retry_delay(self) -> float:
        return min(self.retry_cap_sec, self.retry_base_sec * 2 ** (self._failures - 1))

    def _schedule_next(self) -> None:
        if not self._queue or self._timer is not None:
            return
        if self._failures:
            self._arm(self._retry_delay())
        elif len(self._queue) >= self.max_size:
            self._arm(0)
        else:
            # the interval runs from when the oldest waiting item was queued
            waited = self._now() - self._queue[0][0]
            self._arm(max(0.0, self.interval_sec - waited))

    def _arm(self, delay: float) -> None:
        self._timer = asyncio.create_task(self._fire(delay))

    async def _fire(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # clear before flushing so flush() does not cancel this task
        self._timer = None
        await self.flush()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    def _check_high_water(self) -> None:
        size = len(self)
        if size > self.high_water and not self._above_high_water:
            self._above_high_water = True
            log.warning(
                "%s backlog at %d items (high water %d, %d failed flushes)",
                self.name,
                size,
                self.high_water,
                self._failures,
            )
        elif size <= self.high_water:
            self._above_high_water = False
