import time
from typing import Callable


class FixedWindowRateLimiter:
    """Fixed-window request quota: at most `limit` grants per window.

    The first grant opens a window; the count resets once the window has
    elapsed, with no carryover. try_acquire() never blocks: callers decide
    whether to wait, retry or give up. A limit <= 0 disables limiting."""

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window_start = None
        self._used = 0

    def _roll(self, now: float) -> None:
        if self._window_start is None or now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._used = 0

    def try_acquire(self) -> bool:
        """Consume one unit if the current window has quota left."""
        if self.limit <= 0:
            return True
        self._roll(self._clock())
        if self._used >= self.limit:
            return False
        self._used += 1
        return True

    @property
    def remaining(self) -> int:
        if self.limit <= 0:
            return -1
        self._roll(self._clock())
        return self.limit - self._used

    def reset_in(self) -> float:
        """Seconds until the current window closes."""
        if self._window_start is None:
            return 0.0
        return max(0.0, self.window_seconds - (self._clock() - self._window_start))
