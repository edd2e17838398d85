"""Unit tests for the in-memory token bucket rate limiter."""

import logging
import threading
from unittest.mock import Mock

import pytest

from guestbook.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter


def test_allows_burst_then_blocks() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(burst=3, replenish_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True
    third = limiter.consume("k")
    assert third.allowed is True
    assert third.remaining == 0

    blocked = limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.limit == 3
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 60
    assert blocked.reset_at == 1000 + 3 * 60


def test_regains_one_token_per_period() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(burst=3, replenish_seconds=60, clock=clock)
    for _ in range(3):
        limiter.consume("k")

    clock.return_value = 1030.0
    half_way = limiter.consume("k")
    assert half_way.allowed is False
    assert half_way.retry_after_seconds == 30

    clock.return_value = 1060.0
    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is False


def test_bucket_never_exceeds_burst() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(burst=2, replenish_seconds=1, clock=clock)
    limiter.consume("k")

    clock.return_value = 1_000_000.0
    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is False


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(burst=1, replenish_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_clock_going_backwards_grants_nothing() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(burst=1, replenish_seconds=60, clock=clock)
    limiter.consume("k")

    clock.return_value = 900.0
    assert limiter.consume("k").allowed is False


def test_concurrent_requests_for_one_key_never_exceed_burst() -> None:
    limiter = InMemoryTokenBucketRateLimiter(burst=3, replenish_seconds=3600)
    barrier = threading.Barrier(20)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        allowed = limiter.consume("same-client").allowed
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 3
    assert results.count(False) == 17


class TestIdleBucketEviction:
    def test_full_buckets_are_evicted_when_over_capacity(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryTokenBucketRateLimiter(
            burst=1, replenish_seconds=10, clock=clock, max_idle_buckets=2
        )
        limiter.consume("a")
        limiter.consume("b")
        assert len(limiter) == 2

        clock.return_value = 1020.0
        limiter.consume("c")

        assert len(limiter) == 1

    def test_buckets_still_refilling_are_kept(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryTokenBucketRateLimiter(
            burst=1, replenish_seconds=10, clock=clock, max_idle_buckets=2
        )
        limiter.consume("a")
        limiter.consume("b")

        limiter.consume("c")

        assert len(limiter) == 3
        assert limiter.consume("a").allowed is False

    def test_eviction_does_not_change_decisions(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryTokenBucketRateLimiter(
            burst=2, replenish_seconds=10, clock=clock, max_idle_buckets=1
        )
        limiter.consume("a")

        clock.return_value = 1010.0
        limiter.consume("b")  # "a" is full again and gets evicted

        assert limiter.consume("a").allowed is True
        assert limiter.consume("a").allowed is True
        assert limiter.consume("a").allowed is False

    def test_scans_at_most_once_per_replenish_period(self, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="guestbook.adapters.rate_limit.in_memory")
        clock = Mock(return_value=1000.0)
        limiter = InMemoryTokenBucketRateLimiter(
            burst=1, replenish_seconds=10, clock=clock, max_idle_buckets=2
        )

        def scans() -> int:
            return sum(r.getMessage() == "rate_limit.buckets_evicted" for r in caplog.records)

        # Rotating keys while no bucket is full
        for index in range(50):
            limiter.consume(f"rotating-{index}")
        clock.return_value = 1005.0
        limiter.consume("later")

        assert scans() == 1
        assert len(limiter) == 51

        clock.return_value = 1010.0
        limiter.consume("after-period")

        assert scans() == 2
        assert len(limiter) == 2


@pytest.mark.parametrize(
    "kwargs",
    [
        {"burst": 0, "replenish_seconds": 60},
        {"burst": 1, "replenish_seconds": 0},
        {"burst": 1, "replenish_seconds": 60, "max_idle_buckets": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryTokenBucketRateLimiter(**kwargs)


def test_invalid_consume_args() -> None:
    limiter = InMemoryTokenBucketRateLimiter(burst=1, replenish_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")

    with pytest.raises(ValueError):
        limiter.consume("k", cost=0)
