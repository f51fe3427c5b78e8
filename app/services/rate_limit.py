from dataclasses import dataclass
import threading
import time
from typing import Callable

from fastapi import HTTPException, Request, status

from app.config import settings


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    limit: int
    reset_at: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """In-process fixed window counter keyed by client address."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_start = int(now // self.window_seconds) * self.window_seconds
        reset_at = window_start + self.window_seconds
        with self._lock:
            bucket_start, count = self._buckets.get(key, (window_start, 0))
            if bucket_start < window_start:
                bucket_start, count = window_start, 0
            if count >= self.limit:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    limit=self.limit,
                    reset_at=reset_at,
                    retry_after=max(1, reset_at - int(now)),
                )
            count += 1
            self._buckets[key] = (bucket_start, count)
            return RateLimitDecision(
                allowed=True,
                remaining=self.limit - count,
                limit=self.limit,
                reset_at=reset_at,
            )

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


otp_rate_limiter = FixedWindowRateLimiter(
    settings.otp_rate_limit, settings.otp_rate_window_seconds
)


def limit_otp_requests(request: Request) -> None:
    if not settings.otp_rate_limit_enabled:
        return
    client = request.client.host if request.client else "unknown"
    decision = otp_rate_limiter.check(f"otp:{client}")
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many OTP requests, please try later.",
            headers={"Retry-After": str(decision.retry_after)},
        )
