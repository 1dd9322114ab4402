"""
Fixed-window rate limiter keyed by endpoint and client.
Why: every generation spends the user's Gemini quota; cap bursts per client.
"""

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional, Tuple

from draftwise.config.settings import settings
from draftwise.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(
        self,
        limits: Optional[Mapping[str, Tuple[int, int]]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limits: Dict[str, Tuple[int, int]] = dict(
            limits if limits is not None else settings.security.rate_limits
        )
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = Lock()

    def _limit_for(self, endpoint: str) -> Tuple[int, int]:
        return self.limits.get(endpoint) or self.limits.get("default", (50, 60))

    def hit(self, endpoint: str, client: str) -> bool:
        """Count one request; False when the client is over the limit."""
        max_requests, window_s = self._limit_for(endpoint)
        key = f"{endpoint}:{client}"
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(1, now + window_s)
                return True
            if window.count >= max_requests:
                return False
            window.count += 1
            return True

    def retry_after(self, endpoint: str, client: str) -> int:
        """Seconds until the client's current window resets (0 if none)."""
        with self._lock:
            window = self._windows.get(f"{endpoint}:{client}")
        if window is None:
            return 0
        return max(0, math.ceil(window.reset_at - self._clock()))

    def cleanup(self) -> None:
        now = self._clock()
        with self._lock:
            stale = [k for k, w in self._windows.items() if now > w.reset_at]
            for key in stale:
                del self._windows[key]
        if stale:
            logger.debug(f"rate limiter cleanup removed={len(stale)}")

    def __len__(self) -> int:
        return len(self._windows)


rate_limiter = RateLimiter()
