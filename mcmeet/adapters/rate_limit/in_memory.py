"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, one lock per limiter.
- Windows start at a key's first request, not on aligned clock boundaries.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from mcmeet.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision

DEFAULT_CLEANUP_THRESHOLD = 1000


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _WindowRecord:
    count: int
    reset_at_ms: int


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key within a fixed window.

    The first request for a key opens a window of ``window_ms`` milliseconds.
    Every request inside that window (admitted or not) increments the counter;
    once the counter passes ``limit`` the key is rejected until the window
    expires, at which point the next request opens a fresh window.

    Expired records are purged lazily: when more than ``cleanup_threshold``
    keys are tracked, the next check sweeps out every expired record.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        clock: Callable[[], int] = _wall_clock_ms,
        cleanup_threshold: int = DEFAULT_CLEANUP_THRESHOLD,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_ms: Window length in milliseconds.
            clock: Time source returning UNIX time in milliseconds.
            cleanup_threshold: Tracked-key count above which expired records
                are swept before a check.

        Raises:
            ValueError: If limit or window_ms are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._limit = limit
        self._window_ms = window_ms
        self._clock = clock
        self._cleanup_threshold = cleanup_threshold
        self._lock = threading.Lock()
        self._records: dict[str, _WindowRecord] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryRateLimiter(limit={self._limit}, window_ms={self._window_ms}, "
            f"tracked_keys={len(self._records)})"
        )

    def _cleanup(self, now: int) -> None:
        """Drop expired records once the store grows past the threshold."""
        if len(self._records) <= self._cleanup_threshold:
            return
        expired = [k for k, rec in self._records.items() if rec.reset_at_ms <= now]
        for key in expired:
            del self._records[key]

    def _decision(self, *, allowed: bool, remaining: int, reset_at_ms: int, now: int) -> RateLimitDecision:
        retry_after = None
        if not allowed:
            retry_after = max(0, math.ceil((reset_at_ms - now) / 1000))
        return RateLimitDecision(
            allowed=allowed,
            limit=self._limit,
            remaining=remaining,
            reset_at_ms=reset_at_ms,
            retry_after_seconds=retry_after,
        )

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and return the admission decision.

        Never raises: any string is a valid key and every call produces a
        decision.

        Args:
            key: Namespaced subject identifier.

        Returns:
            RateLimitDecision with the admit/reject outcome and quota metadata.
        """
        now = self._clock()

        with self._lock:
            self._cleanup(now)

            record = self._records.get(key)
            if record is None or record.reset_at_ms <= now:
                record = _WindowRecord(count=1, reset_at_ms=now + self._window_ms)
                self._records[key] = record
                return self._decision(
                    allowed=True,
                    remaining=self._limit - 1,
                    reset_at_ms=record.reset_at_ms,
                    now=now,
                )

            record.count += 1
            if record.count > self._limit:
                return self._decision(
                    allowed=False, remaining=0, reset_at_ms=record.reset_at_ms, now=now
                )

            return self._decision(
                allowed=True,
                remaining=self._limit - record.count,
                reset_at_ms=record.reset_at_ms,
                now=now,
            )

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
