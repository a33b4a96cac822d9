"""
Viewport filtering and the debounce/throttle timers that drive it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from autogreen.scanning.clock import Clock
from autogreen.scanning.surface import CandidateElement, Viewport

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


def _log_task_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Scheduled page processing failed", exc_info=exc)


class VisibilityTracker:
    """
    Pure geometric query: which candidates intersect the buffered viewport.
    """

    def __init__(self, *, buffer_px: float = 200.0) -> None:
        self._buffer_px = buffer_px

    def is_visible(self, candidate: CandidateElement, viewport: Viewport) -> bool:
        if not candidate.has_geometry:
            return False
        bottom = candidate.top + candidate.height
        return (
            bottom > viewport.scroll_top - self._buffer_px
            and candidate.top < viewport.bottom + self._buffer_px
        )

    def filter_visible(
        self,
        candidates: list[CandidateElement],
        viewport: Viewport,
    ) -> list[CandidateElement]:
        return [candidate for candidate in candidates if self.is_visible(candidate, viewport)]


class Debouncer:
    """
    Runs `callback` once motion has been quiet for `delay_seconds`.
    """

    def __init__(self, clock: Clock, delay_seconds: float, callback: AsyncCallback) -> None:
        self._clock = clock
        self._delay_seconds = delay_seconds
        self._callback = callback
        self._pending: asyncio.Task[None] | None = None

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._fire_later())
        self._pending.add_done_callback(_log_task_failure)

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def wait_pending(self) -> None:
        task = self._pending
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _fire_later(self) -> None:
        await self._clock.sleep(self._delay_seconds)
        self._pending = None
        await self._callback()


class Throttler:
    """
    Leading-edge throttle: the first trigger fires, later triggers inside
    `interval_seconds` are dropped.
    """

    def __init__(self, clock: Clock, interval_seconds: float, callback: AsyncCallback) -> None:
        self._clock = clock
        self._interval_seconds = interval_seconds
        self._callback = callback
        self._last_fired: float | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def trigger(self) -> bool:
        now = self._clock.monotonic()
        if self._last_fired is not None and now - self._last_fired < self._interval_seconds:
            logger.debug("Throttled page change signal")
            return False
        self._last_fired = now
        task = asyncio.get_running_loop().create_task(self._callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)
        return True

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def wait_pending(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
