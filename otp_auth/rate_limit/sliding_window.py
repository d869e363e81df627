"""
Sliding Window Rate Limiter
===========================
In-process sliding window limiter keyed by identity.
"""

import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, Optional
import structlog

from ..clock import Clock, SYSTEM_CLOCK
from ..identity import mask_phone
from ..locks import KeyedLock
from .models import RateLimitInfo

logger = structlog.get_logger(__name__)


class RateLimiter(ABC):
    """Admission control keyed by identity."""

    @abstractmethod
    async def check(self, key: str) -> RateLimitInfo:
        """Decide and, when admitted, record the request."""

    async def admit(self, key: str) -> bool:
        """Return True if the request is admitted."""
        info = await self.check(key)
        return info.allowed

    async def sweep(self) -> int:
        """Reclaim memory held for idle keys. Returns the number dropped."""
        return 0


class SlidingWindowLimiter(RateLimiter):
    """
    Sliding window rate limiter.

    Keeps the monotonic instants of admitted requests for each key over the
    trailing ``window`` seconds, inclusive of an instant exactly
    ``window`` seconds old. A rejected request is not recorded, so it
    does not push back the moment the window cools down.

    Single-process only; each process keeps its own windows.
    """

    def __init__(
        self,
        rate: int = 3,
        window: float = 600,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            rate: Requests admitted per window
            window: Window size in seconds
            clock: Time source (monotonic() is used)
        """
        if rate < 1:
            raise ValueError("rate must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")
        self.rate = rate
        self.window = window
        self.clock = clock or SYSTEM_CLOCK
        self._windows: Dict[str, Deque[float]] = {}
        self._locks = KeyedLock()

    def _purge(self, timestamps: Deque[float], now: float) -> None:
        cutoff = now - self.window
        while timestamps and timestamps[0] < cutoff:
            timestamps.popleft()

    async def check(self, key: str) -> RateLimitInfo:
        """Check using sliding window algorithm."""
        async with self._locks.hold(key):
            now = self.clock.monotonic()
            timestamps = self._windows.setdefault(key, deque())
            self._purge(timestamps, now)

            count = len(timestamps)

            if count >= self.rate:
                reset_after = timestamps[0] + self.window - now
                logger.warning(
                    "Rate limit exceeded",
                    identity=mask_phone(key),
                    limit=self.rate,
                    window=self.window,
                )
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_after=reset_after,
                    retry_after=math.floor(reset_after) + 1,
                )

            timestamps.append(now)
            return RateLimitInfo(
                allowed=True,
                remaining=self.rate - count - 1,
                limit=self.rate,
                reset_after=timestamps[0] + self.window - now,
            )

    async def sweep(self) -> int:
        """Drop keys whose window holds no recent requests."""
        now = self.clock.monotonic()
        dropped = 0
        for key in list(self._windows):
            async with self._locks.hold(key):
                timestamps = self._windows.get(key)
                if timestamps is None:
                    continue
                self._purge(timestamps, now)
                if not timestamps:
                    del self._windows[key]
                    dropped += 1
        if dropped:
            logger.debug("Rate limiter sweep finished", dropped=dropped)
        return dropped

    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        return len(self._windows)
