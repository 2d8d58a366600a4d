"""Sliding-window call counter stored in a cache backend."""

from __future__ import annotations

import time
from typing import Callable, List

from .cache import CacheBackend


class SlidingWindowCounter:
    """Allow at most ``limit`` hits per key within the trailing ``window`` seconds."""

    def __init__(
        self,
        backend: CacheBackend,
        *,
        limit: int,
        window: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.limit = limit
        self.window = window
        self.clock = clock

    def _bucket(self, key: str, now: float) -> List[float]:
        bucket = self.backend.get(key) or []
        return [timestamp for timestamp in bucket if timestamp > now - self.window]

    def hit(self, key: str) -> bool:
        """Record one hit for ``key`` and return False when the window is already full."""

        now = self.clock()
        bucket = self._bucket(key, now)
        if len(bucket) >= self.limit:
            return False
        bucket.append(now)
        self.backend.set(key, bucket, self.window)
        return True

    def remaining(self, key: str) -> int:
        return max(0, self.limit - len(self._bucket(key, self.clock())))
