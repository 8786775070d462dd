"""In-memory token bucket rate limiter registry.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards bucket creation and every bucket update.
- Buckets are created lazily on a key's first request and kept for the life
  of the process unless an idle TTL is configured.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from crafting_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _BucketState:
    tokens: float
    updated_at: float


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Token bucket limiter keeping one bucket per client key.

    Each bucket holds at most ``burst`` tokens and refills continuously at
    ``rate`` tokens per second. A request is admitted when the refilled
    bucket holds at least ``cost`` tokens, which are then removed.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        rate: float,
        burst: int,
        idle_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the registry.

        Args:
            rate: Tokens added per second to every bucket.
            burst: Bucket capacity; also the size of a new bucket.
            idle_ttl_seconds: When set, buckets untouched for this long are
                dropped by ``sweep()``. None keeps every key.
            clock: Monotonic time source used for refill arithmetic.
            wall_clock: UNIX time source used for ``reset_at``.

        Raises:
            ValueError: If rate, burst or idle_ttl_seconds are invalid.
        """
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        if idle_ttl_seconds is not None and idle_ttl_seconds <= 0:
            raise ValueError("idle_ttl_seconds must be > 0")

        self._rate = float(rate)
        self._burst = burst
        self._idle_ttl = idle_ttl_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.RLock()
        self._buckets: dict[str, _BucketState] = {}
        self._last_sweep = clock()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _get_or_create_bucket(self, key: str, now: float) -> _BucketState:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _BucketState(tokens=float(self._burst), updated_at=now)
            self._buckets[key] = bucket
        return bucket

    def _refill(self, bucket: _BucketState, now: float) -> None:
        elapsed = max(0.0, now - bucket.updated_at)
        bucket.tokens = min(float(self._burst), bucket.tokens + elapsed * self._rate)
        bucket.updated_at = now

    def _seconds_until(self, tokens_needed: float) -> float:
        return max(0.0, tokens_needed) / self._rate

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Refill the key's bucket, then take ``cost`` tokens if available.

        Args:
            key: Client identifier.
            cost: Tokens to consume (default 1).

        Returns:
            RateLimitResult with the admission decision and bucket metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if cost > self._burst:
            raise ValueError("cost must not exceed burst")
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            self._maybe_sweep_locked(now)
            bucket = self._get_or_create_bucket(key, now)
            self._refill(bucket, now)

            allowed = bucket.tokens >= cost
            if allowed:
                bucket.tokens -= cost

            tokens = bucket.tokens
            wall_now = self._wall_clock()

        reset_at = int(math.ceil(wall_now + self._seconds_until(self._burst - tokens)))
        remaining = int(math.floor(tokens))
        if allowed:
            return RateLimitResult(
                allowed=True,
                limit=self._burst,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        retry_after = int(math.ceil(self._seconds_until(cost - tokens)))
        return RateLimitResult(
            allowed=False,
            limit=self._burst,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=max(1, retry_after),
        )

    def sweep(self) -> int:
        """Drop buckets idle for longer than the configured TTL.

        A bucket idle that long has refilled to capacity, so dropping it does
        not change any later admission decision.

        Returns:
            Number of buckets removed (always 0 without an idle TTL).
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _maybe_sweep_locked(self, now: float) -> None:
        if self._idle_ttl is None or now - self._last_sweep < self._idle_ttl:
            return
        self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        if self._idle_ttl is None:
            return 0

        stale = [k for k, b in self._buckets.items() if now - b.updated_at >= self._idle_ttl]
        for key in stale:
            del self._buckets[key]

        if stale:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(stale), "remaining_keys": len(self._buckets)},
            )
        return len(stale)
