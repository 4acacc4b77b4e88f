"""Per-client fixed-window rate limiting (in-process, best effort)."""

from __future__ import annotations

from dataclasses import dataclass
import math
import time
from typing import Callable, Dict, Optional

Clock = Callable[[], float]


@dataclass
class RateRecord:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class RateLimiter:
    """
    Keyed fixed-window limiter.

    The first request from a client opens a window of ``window_seconds``.
    Up to ``max_requests`` are admitted inside it; the window is fully reset
    once the clock passes its end.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Optional[Clock] = None,
        max_keys: int = 20000,
    ) -> None:
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self._clock = clock or time.monotonic
        self._max_keys = int(max_keys) if int(max_keys) > 0 else 20000
        self._records: Dict[str, RateRecord] = {}

    def check(self, key: Optional[str]) -> RateDecision:
        """Count one request for ``key`` and report whether it is admitted."""
        key = key or "_anon"
        now = self._clock()
        record = self._records.get(key)

        if record is None or now > record.window_reset_at:
            if record is None and len(self._records) >= self._max_keys:
                self._prune(now)
                # Table is full of live windows.
                if len(self._records) >= self._max_keys:
                    return RateDecision(allowed=False, retry_after=math.ceil(self.window_seconds))
            self._records[key] = RateRecord(count=1, window_reset_at=now + self.window_seconds)
            return RateDecision(allowed=True)

        if record.count >= self.max_requests:
            return RateDecision(allowed=False, retry_after=max(1, math.ceil(record.window_reset_at - now)))

        record.count += 1
        return RateDecision(allowed=True)

    def allow(self, key: Optional[str]) -> bool:
        return self.check(key).allowed

    def reset(self) -> None:
        self._records.clear()

    def update_limits(self, max_requests: int, window_seconds: float) -> None:
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)

    def _prune(self, now: float) -> None:
        expired = [key for key, record in self._records.items() if now > record.window_reset_at]
        for key in expired:
            del self._records[key]

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["RateLimiter", "RateDecision", "RateRecord"]
