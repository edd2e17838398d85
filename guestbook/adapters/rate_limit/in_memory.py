"""In-memory token bucket rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a registry lock guards the bucket map, each bucket has its own
  lock so different clients never wait on each other.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from guestbook.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    tokens: float
    updated_at: float
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one token bucket per key.

    A bucket holds at most ``burst`` tokens and regains one token every
    ``replenish_seconds``. Each admitted request takes ``cost`` tokens.
    Buckets are created full on first sight of a key.

    Buckets that have refilled completely carry no information (a fresh bucket
    would be identical), so they are dropped once the map grows past
    ``max_idle_buckets``. The map is scanned at most once per
    ``replenish_seconds``, the time a bucket needs to gain one token.
    """

    def __init__(
        self,
        *,
        burst: int,
        replenish_seconds: float,
        clock: Callable[[], float] = time.time,
        max_idle_buckets: int = 10000,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            burst: Bucket capacity, i.e. requests allowed back to back.
            replenish_seconds: Seconds needed to regain one token.
            clock: Time source function returning UNIX time in seconds.
            max_idle_buckets: Bucket count that triggers eviction of full buckets.

        Raises:
            ValueError: If any argument is out of range.
        """
        if burst < 1:
            raise ValueError("burst must be >= 1")
        if replenish_seconds <= 0:
            raise ValueError("replenish_seconds must be > 0")
        if max_idle_buckets < 1:
            raise ValueError("max_idle_buckets must be >= 1")

        self._burst = burst
        self._replenish_seconds = replenish_seconds
        self._clock = clock
        self._max_idle_buckets = max_idle_buckets
        self._lock = threading.Lock()
        self._buckets: dict[str, _Bucket] = {}
        self._next_eviction_at = float("-inf")

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _refill(self, bucket: _Bucket, now: float) -> None:
        """Credit the tokens earned since the bucket was last touched."""
        if now <= bucket.updated_at:
            # Clock went backwards or did not move
            return
        elapsed = now - bucket.updated_at
        bucket.tokens = min(float(self._burst), bucket.tokens + elapsed / self._replenish_seconds)
        bucket.updated_at = now

    def _evict_full_buckets_locked(self, now: float) -> None:
        """Drop buckets that are full. Caller holds the registry lock."""
        if now < self._next_eviction_at:
            return
        self._next_eviction_at = now + self._replenish_seconds

        evicted = 0
        for key, bucket in list(self._buckets.items()):
            # Skip buckets another thread is using right now
            if not bucket.lock.acquire(blocking=False):
                continue
            try:
                self._refill(bucket, now)
                if bucket.tokens >= self._burst:
                    bucket.evicted = True
                    del self._buckets[key]
                    evicted += 1
            finally:
                bucket.lock.release()

        logger.debug(
            "rate_limit.buckets_evicted",
            extra={"evicted": evicted, "remaining_buckets": len(self._buckets)},
        )

    def _get_bucket(self, key: str, now: float) -> _Bucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                if len(self._buckets) >= self._max_idle_buckets:
                    self._evict_full_buckets_locked(now)
                bucket = _Bucket(tokens=float(self._burst), updated_at=now)
                self._buckets[key] = bucket
            return bucket

    def _reset_at(self, bucket: _Bucket, now: float) -> int:
        missing = self._burst - bucket.tokens
        return int(math.ceil(now + missing * self._replenish_seconds))

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Take ``cost`` tokens from the key's bucket if it has them.

        The check and the decrement happen under the bucket's lock, so two
        concurrent requests from one client can never both take the last token.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).
            cost: Tokens to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        while True:
            now = self._clock()
            bucket = self._get_bucket(key, now)
            with bucket.lock:
                if bucket.evicted:
                    # Lost a race with eviction, the key now maps to a new bucket
                    continue

                self._refill(bucket, now)

                if bucket.tokens >= cost:
                    bucket.tokens -= cost
                    return RateLimitResult(
                        allowed=True,
                        limit=self._burst,
                        remaining=int(bucket.tokens),
                        reset_at=self._reset_at(bucket, now),
                        retry_after_seconds=None,
                    )

                shortfall = cost - bucket.tokens
                return RateLimitResult(
                    allowed=False,
                    limit=self._burst,
                    remaining=int(bucket.tokens),
                    reset_at=self._reset_at(bucket, now),
                    retry_after_seconds=max(1, int(math.ceil(shortfall * self._replenish_seconds))),
                )
