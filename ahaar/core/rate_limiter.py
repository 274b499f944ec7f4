from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock

from ahaar.core.config import RATE_LIMIT_PER_MINUTE, RATE_LIMIT_WINDOW_SECONDS

# idle client buckets are dropped every SWEEP_EVERY checks
SWEEP_EVERY = 500


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, client_key: str) -> RateLimitDecision:
        """Decide whether the next request from ``client_key`` may proceed."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding-window limiter keyed by client.

    Lives in process memory; a shared store can implement the same interface.
    """

    def __init__(
        self,
        *,
        limit: int = RATE_LIMIT_PER_MINUTE,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock=time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._checks = 0

    def check(self, *, client_key: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            self._checks += 1
            if self._checks % SWEEP_EVERY == 0:
                self._evict_idle(now)
            bucket = self._store.setdefault(client_key, deque())
            cutoff = now - self.window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.limit:
                retry_after = max(1, int(self.window_seconds - (now - bucket[0])))
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            bucket.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - len(bucket)),
                retry_after_seconds=0,
            )

    def _evict_idle(self, now: float) -> None:
        cutoff = now - self.window_seconds
        idle = [key for key, bucket in self._store.items() if not bucket or bucket[-1] <= cutoff]
        for key in idle:
            del self._store[key]

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._store)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
