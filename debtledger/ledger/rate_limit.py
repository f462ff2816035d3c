"""Sliding-window rate limiter keyed by action name.

Each RateLimiter owns its own windows; nothing is shared at module
level, so tests (and separate sessions) get independent state. The clock
is injectable for deterministic tests.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Allow at most max_attempts per action within a rolling window.

    Args:
        max_attempts: Attempts allowed per window (per action).
        window_seconds: Window length in seconds.
        clock: Monotonic time source returning seconds.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: dict[str, deque[float]] = {}

    @classmethod
    def from_config(cls, config, action: str, clock: Callable[[], float] = time.monotonic):
        limits = config.rate_limit_for(action) or {}
        return cls(
            max_attempts=limits.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
            window_seconds=limits.get("window_seconds", DEFAULT_WINDOW_SECONDS),
            clock=clock,
        )

    def _purge(self, action: str, now: float) -> deque[float]:
        window = self._attempts.setdefault(action, deque())
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def check(self, action: str) -> bool:
        """Record an attempt and return True, or return False if the limit is reached.

        Rejected attempts are not recorded.
        """
        now = self._clock()
        window = self._purge(action, now)
        if len(window) >= self.max_attempts:
            logger.warning("Rate limit exceeded for '%s'", action)
            return False
        window.append(now)
        return True

    def remaining(self, action: str) -> int:
        """Attempts still available in the current window."""
        window = self._purge(action, self._clock())
        return max(0, self.max_attempts - len(window))

    def retry_after(self, action: str) -> float:
        """Seconds until the next attempt would be allowed (0 if allowed now)."""
        now = self._clock()
        window = self._purge(action, now)
        if len(window) < self.max_attempts:
            return 0.0
        return window[0] + self.window_seconds - now

    def reset(self, action: str | None = None) -> None:
        """Forget attempts for one action, or for all actions."""
        if action is None:
            self._attempts.clear()
        else:
            self._attempts.pop(action, None)
