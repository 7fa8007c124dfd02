"""Rate limiter interfaces.

Request handlers depend on this abstraction (not the concrete implementation)
so the per-process store can later be swapped for a shared one (e.g., Redis)
without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Admission decision for a single check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window for the policy.
        remaining: Requests left in the current window (always 0 when rejected).
        reset_at_ms: UNIX epoch milliseconds when the current window expires.
        retry_after_seconds: Suggested wait time in seconds when rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str) -> RateLimitDecision:
        """Count one request against ``key`` and decide whether it is admitted.

        Args:
            key: Namespaced subject identifier (e.g., ``"chat:user-1"``).

        Returns:
            RateLimitDecision describing whether it was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Drop all tracked window records."""
        raise NotImplementedError
