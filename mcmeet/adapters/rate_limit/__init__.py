"""Rate limiting adapters.

A small abstraction layer so the service can start with a per-process
in-memory limiter and later move to Redis or another shared store without
changing the API layer.
"""

from mcmeet.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from mcmeet.adapters.rate_limit.in_memory import InMemoryRateLimiter

__all__ = ["AbstractRateLimiter", "InMemoryRateLimiter", "RateLimitDecision"]
