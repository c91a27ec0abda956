"""
Token bucket guarding the scrape endpoint.

The bucket starts full. A daemon thread adds one token per interval while
the bucket is below capacity; refills that find it full are dropped.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from tcexporter.errors import (
    LimiterClosedError,
    RateLimitedError,
    RateLimitSizeError,
    RateLimitTimeError,
)

log = logging.getLogger(__name__)


class RateLimiter:

    def __init__(self, interval: float, bucket_size: int):
        if bucket_size <= 0:
            raise RateLimitSizeError(bucket_size)
        if interval <= 0:
            raise RateLimitTimeError(interval)

        self._interval = float(interval)
        self._bucket_size = int(bucket_size)
        self._tokens = self._bucket_size
        self._closed = False
        self._cond = threading.Condition(threading.Lock())
        self._stop = threading.Event()
        self._stop_lock = threading.Lock()

        self._refill_thread = threading.Thread(
            target=self._refill_loop, name="ratelimit-refill", daemon=True
        )
        self._refill_thread.start()
        log.debug("Rate limiter started: interval=%.3fs, bucket=%d", self._interval, self._bucket_size)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def bucket_size(self) -> int:
        return self._bucket_size

    def _refill_loop(self) -> None:
        while not self._stop.wait(self._interval):
            with self._cond:
                if self._closed:
                    return
                if self._tokens < self._bucket_size:
                    self._tokens += 1
                    self._cond.notify()

    def get(self) -> None:
        """Take a token without blocking."""
        with self._cond:
            if self._closed:
                raise LimiterClosedError()
            if self._tokens == 0:
                raise RateLimitedError()
            self._tokens -= 1

    def try_get_with_timeout(self, timeout: float) -> None:
        """Wait up to `timeout` seconds for a token."""
        with self._cond:
            ready = self._cond.wait_for(lambda: self._closed or self._tokens > 0, timeout)
            if self._closed:
                raise LimiterClosedError()
            if not ready:
                raise RateLimitedError(f"rate limited: no token within {timeout}s")
            self._tokens -= 1

    def available_tokens(self) -> int:
        with self._cond:
            return 0 if self._closed else self._tokens

    def is_closed(self) -> bool:
        with self._cond:
            return self._closed

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop refilling and release every waiter. Safe to call repeatedly."""
        with self._stop_lock:
            if self._stop.is_set():
                return
            self._stop.set()
            if self._refill_thread is not threading.current_thread():
                self._refill_thread.join(timeout)
            with self._cond:
                self._closed = True
                self._tokens = 0
                self._cond.notify_all()
        log.debug("Rate limiter stopped")
