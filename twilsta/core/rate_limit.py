"""Fixed-window request rate limiting.

Counters live in process memory keyed by ``{scope}:{identity}``. They are
lost on restart and not shared between workers, so limits hold per instance.
"""
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat(),
        }


class RateLimiter:
    def __init__(self, clock=time.time):
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}

    def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count one request against ``key`` and report whether it is allowed."""
        now = self._clock()
        count, reset_at = self._windows.get(key, (0, 0.0))

        if count == 0 or now >= reset_at:
            count, reset_at = 1, now + window_seconds
        else:
            count += 1
        self._windows[key] = (count, reset_at)

        allowed = count <= max_requests
        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_at=reset_at,
            retry_after=0 if allowed else math.ceil(reset_at - now),
        )

    def reset(self) -> None:
        self._windows.clear()


rate_limiter = RateLimiter()
