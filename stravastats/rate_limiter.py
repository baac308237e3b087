from __future__ import annotations

import time
from typing import Callable, Optional


class PolitenessDelay:
    """Minimum gap between finishing one subject and starting the next.

    wait() blocks until at least min_interval_secs have passed since the last
    mark_done(). Before the first mark_done() it returns immediately. One
    instance belongs to a single run loop and is not shared between threads."""

    def __init__(
        self,
        min_interval_secs: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = max(0.0, float(min_interval_secs))
        self._sleep = sleep
        self._clock = clock
        self._last_done: Optional[float] = None

    @property
    def interval(self) -> float:
        return self._interval

    def wait(self) -> float:
        """Block until the next subject may start. Returns the seconds slept."""
        if self._interval <= 0 or self._last_done is None:
            return 0.0
        remaining = self._last_done + self._interval - self._clock()
        if remaining <= 0:
            return 0.0
        self._sleep(remaining)
        return remaining

    def mark_done(self) -> None:
        """Record that the current subject has finished processing."""
        self._last_done = self._clock()
