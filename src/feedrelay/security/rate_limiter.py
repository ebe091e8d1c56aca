"""
Fixed-window request limiter keyed by request origin.

State is in-memory and process-local. A bucket is reset once its window has
fully elapsed (``window_start + window < now``); expired buckets are swept on
every call so memory stays proportional to the number of active origins.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from feedrelay.util.logger import get_logger

logger = get_logger("rate_limiter")


@dataclass(slots=True)
class RateLimitBucket:
    origin_key: str
    window_start: float
    count: int


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None


class RateLimiter:
    """Allows at most ``max_requests`` per origin within each ``window_seconds`` window.

    Args:
        window_seconds: Length of one window.
        max_requests: Requests admitted per origin and window.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.window_seconds = float(window_seconds)
        self.max_requests = int(max_requests)
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def _expired(self, bucket: RateLimitBucket, now: float) -> bool:
        return bucket.window_start + self.window_seconds < now

    def _sweep(self, now: float) -> None:
        stale = [key for key, bucket in self._buckets.items() if self._expired(bucket, now)]
        for key in stale:
            del self._buckets[key]

    def admit(self, origin_key: str) -> RateLimitDecision:
        """Count one request for ``origin_key`` and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            self._sweep(now)

            bucket = self._buckets.get(origin_key)
            if bucket is None:
                self._buckets[origin_key] = RateLimitBucket(origin_key, now, 1)
                return RateLimitDecision(allowed=True)

            bucket.count += 1
            if bucket.count > self.max_requests:
                retry_after = max(1, math.ceil(bucket.window_start + self.window_seconds - now))
                logger.warning(
                    "[RATE LIMIT] %s exceeded %d requests per %.0fs (retry in %ds)",
                    origin_key, self.max_requests, self.window_seconds, retry_after,
                )
                return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)
            return RateLimitDecision(allowed=True)

    def active_origins(self) -> int:
        """Number of origins with a live window."""
        with self._lock:
            self._sweep(self._clock())
            return len(self._buckets)
