"""Fixed-interval pacing for outbound translation requests.

Public LibreTranslate instances throttle aggressively, so calls are spaced by
a minimum interval instead of being fired back to back.
"""

import asyncio
import time
from typing import Awaitable, Callable

import logfire

from src.constants import TRANSLATION_FIELD_INTERVAL_SECONDS


class RequestPacer:
    """Async fixed-interval scheduler.

    ``wait()`` returns once at least ``min_interval_seconds`` have elapsed
    since the previous ``wait()`` returned. The first call never sleeps.
    """

    def __init__(
        self,
        min_interval_seconds: float = TRANSLATION_FIELD_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the pacer.

        Args:
            min_interval_seconds: Default spacing between consecutive calls.
            clock: Monotonic clock, injectable for tests.
            sleep: Async sleep function, injectable for tests.
        """
        self._interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_release: float | None = None
        self._lock = asyncio.Lock()

    @property
    def min_interval_seconds(self) -> float:
        return self._interval

    def time_until_next(self, interval: float | None = None) -> float:
        """Seconds the next ``wait()`` would sleep."""
        if self._last_release is None:
            return 0.0
        spacing = self._interval if interval is None else interval
        elapsed = self._clock() - self._last_release
        return max(0.0, spacing - elapsed)

    async def wait(self, interval: float | None = None) -> float:
        """Sleep until the next slot is free.

        Args:
            interval: Override the default spacing for this call only.

        Returns:
            Seconds actually slept.
        """
        async with self._lock:
            delay = self.time_until_next(interval)
            if delay > 0:
                logfire.debug("Pacing translation request", delay_seconds=delay)
                await self._sleep(delay)
            self._last_release = self._clock()
            return delay

    def reset(self) -> None:
        """Forget the previous call so the next wait() returns immediately."""
        self._last_release = None


# Global instance
_request_pacer: RequestPacer | None = None


def get_request_pacer() -> RequestPacer:
    """Get the global request pacer instance.

    Returns:
        The singleton RequestPacer instance.
    """
    global _request_pacer
    if _request_pacer is None:
        _request_pacer = RequestPacer()
    return _request_pacer


def reset_request_pacer() -> None:
    """Reset the global request pacer (primarily for testing)."""
    global _request_pacer
    _request_pacer = None
