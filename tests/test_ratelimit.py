"""Tests for the token-bucket rate limiter."""

import threading
import time

import pytest

from tcexporter.errors import (
    LimiterClosedError,
    RateLimitedError,
    RateLimitSizeError,
    RateLimitTimeError,
)
from tcexporter.ratelimit import RateLimiter


def test_exactly_capacity_tokens_before_limited():
    limiter = RateLimiter(interval=60, bucket_size=5)
    try:
        for _ in range(5):
            limiter.get()
        with pytest.raises(RateLimitedError):
            limiter.get()
    finally:
        limiter.stop()


def test_starts_full():
    limiter = RateLimiter(interval=60, bucket_size=3)
    try:
        assert limiter.available_tokens() == 3
        assert limiter.bucket_size == 3
        assert limiter.interval == 60
    finally:
        limiter.stop()


def test_refill_never_exceeds_capacity():
    limiter = RateLimiter(interval=0.02, bucket_size=3)
    try:
        time.sleep(0.2)
        assert limiter.available_tokens() == 3
    finally:
        limiter.stop()


def test_refill_after_drain():
    limiter = RateLimiter(interval=0.05, bucket_size=2)
    try:
        limiter.get()
        limiter.get()
        assert limiter.available_tokens() == 0
        time.sleep(0.3)
        limiter.get()
    finally:
        limiter.stop()


def test_get_after_stop_reports_closed():
    limiter = RateLimiter(interval=60, bucket_size=5)
    limiter.stop()

    assert limiter.is_closed()
    assert limiter.available_tokens() == 0
    for _ in range(3):
        with pytest.raises(LimiterClosedError):
            limiter.get()


def test_stop_twice_is_harmless():
    limiter = RateLimiter(interval=0.01, bucket_size=1)
    limiter.stop()
    limiter.stop()
    assert limiter.is_closed()


def test_closed_is_not_rate_limited():
    limiter = RateLimiter(interval=60, bucket_size=1)
    limiter.stop()
    with pytest.raises(LimiterClosedError) as exc_info:
        limiter.get()
    assert not isinstance(exc_info.value, RateLimitedError)


def test_invalid_bucket_size():
    with pytest.raises(RateLimitSizeError):
        RateLimiter(interval=1, bucket_size=0)
    with pytest.raises(RateLimitSizeError):
        RateLimiter(interval=1, bucket_size=-3)


def test_invalid_interval():
    with pytest.raises(RateLimitTimeError):
        RateLimiter(interval=0, bucket_size=10)


def test_size_checked_before_interval():
    with pytest.raises(RateLimitSizeError):
        RateLimiter(interval=0, bucket_size=0)


def test_try_get_with_timeout_times_out():
    limiter = RateLimiter(interval=60, bucket_size=1)
    try:
        limiter.get()
        start = time.monotonic()
        with pytest.raises(RateLimitedError):
            limiter.try_get_with_timeout(0.1)
        assert time.monotonic() - start >= 0.09
    finally:
        limiter.stop()


def test_try_get_with_timeout_waits_for_refill():
    limiter = RateLimiter(interval=0.05, bucket_size=1)
    try:
        limiter.get()
        limiter.try_get_with_timeout(2.0)
    finally:
        limiter.stop()


def test_stop_wakes_blocked_waiter():
    limiter = RateLimiter(interval=60, bucket_size=1)
    limiter.get()
    errors = []

    def wait():
        try:
            limiter.try_get_with_timeout(5.0)
        except Exception as e:
            errors.append(e)

    waiter = threading.Thread(target=wait)
    waiter.start()
    time.sleep(0.1)
    limiter.stop()
    waiter.join(timeout=2.0)

    assert not waiter.is_alive()
    assert len(errors) == 1
    assert isinstance(errors[0], LimiterClosedError)


def test_concurrent_gets_never_oversubscribe():
    limiter = RateLimiter(interval=60, bucket_size=50)
    granted = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            try:
                limiter.get()
            except RateLimitedError:
                continue
            with lock:
                granted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    limiter.stop()

    assert len(granted) == 50
