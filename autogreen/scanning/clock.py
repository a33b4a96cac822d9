"""
Time source shared by every scanner component.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone


class Clock:
    """
    Wall-clock time and cooperative sleeping.

    Components never call `time` or `asyncio.sleep` directly so tests can
    substitute a clock that does not wait.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
