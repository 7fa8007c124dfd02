"""Rate limiting policies and the FastAPI dependency that enforces them.

This module wires the rate limiting adapter into the HTTP layer.

- Each policy (chat, booking, auth) owns one limiter instance. The instances
  are built at application start and kept on ``app.state.rate_limiters``, so
  there is no process-wide singleton and tests can build as many independent
  apps as they need.
- Keys are ``"<policy>:<subject>"`` where subject is the authenticated user
  id, else the client address, else ``"anon"``.
- Admitted requests get ``X-RateLimit-*`` headers; rejected requests raise
  ``RateLimitAppError`` which the global handler turns into HTTP 429.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass

from fastapi import Request, Response

from mcmeet.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from mcmeet.adapters.rate_limit.in_memory import InMemoryRateLimiter
from mcmeet.core.config import RateLimitSettings, settings, settings_for
from mcmeet.core.errors import RateLimitAppError
from mcmeet.core.principal import get_principal_id, hash_identifier

logger = logging.getLogger(__name__)

CHAT = "chat"
BOOKING = "booking"
AUTH = "auth"

ANONYMOUS_SUBJECT = "anon"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named rate limiting configuration.

    Attributes:
        name: Policy namespace, also used as the key prefix.
        limit: Max admitted requests per window.
        window_ms: Window length in milliseconds.
    """

    name: str
    limit: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


def policies_from_settings(cfg: RateLimitSettings) -> list[RateLimitPolicy]:
    """Build the chat, booking and auth policies from configuration."""
    return [
        RateLimitPolicy(CHAT, cfg.chat_limit, cfg.chat_window_ms),
        RateLimitPolicy(BOOKING, cfg.booking_limit, cfg.booking_window_ms),
        RateLimitPolicy(AUTH, cfg.auth_limit, cfg.auth_window_ms),
    ]


class RateLimiterRegistry(Mapping[str, AbstractRateLimiter]):
    """Policy name -> independently owned limiter instance."""

    def __init__(
        self,
        policies: list[RateLimitPolicy],
        limiters: Mapping[str, AbstractRateLimiter],
    ) -> None:
        self._policies = {p.name: p for p in policies}
        self._limiters = dict(limiters)

    def __getitem__(self, name: str) -> AbstractRateLimiter:
        return self._limiters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._limiters)

    def __len__(self) -> int:
        return len(self._limiters)

    def policy(self, name: str) -> RateLimitPolicy:
        return self._policies[name]

    def check(self, name: str, subject_key: str) -> RateLimitDecision:
        """Run ``subject_key`` through the limiter of policy ``name``.

        Raises:
            KeyError: If no such policy is registered.
        """
        return self._limiters[name].check(subject_key)

    def reset(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()


def build_rate_limiters(
    cfg: RateLimitSettings | None = None,
    *,
    clock: Callable[[], int] | None = None,
) -> RateLimiterRegistry:
    """Construct one in-memory limiter per configured policy.

    Args:
        cfg: Rate limit settings; defaults to the global settings.
        clock: Optional millisecond clock shared by all limiters (tests).

    Returns:
        Registry holding a separate limiter (and store) for each policy.
    """
    cfg = cfg or settings.rate_limit
    policies = policies_from_settings(cfg)

    limiters: dict[str, AbstractRateLimiter] = {}
    for policy in policies:
        kwargs = {"clock": clock} if clock is not None else {}
        limiters[policy.name] = InMemoryRateLimiter(
            limit=policy.limit,
            window_ms=policy.window_ms,
            cleanup_threshold=cfg.cleanup_threshold,
            **kwargs,
        )
    return RateLimiterRegistry(policies, limiters)


def build_rate_limit_key(
    policy: str,
    principal_id: str | None = None,
    client_ip: str | None = None,
) -> str:
    """Build the limiter key for a request.

    Examples:
        >>> build_rate_limit_key("chat", "user-1", "10.0.0.1")
        'chat:user-1'
        >>> build_rate_limit_key("booking", None, "10.0.0.1")
        'booking:10.0.0.1'
        >>> build_rate_limit_key("auth")
        'auth:anon'
    """
    subject = principal_id or client_ip or ANONYMOUS_SUBJECT
    return f"{policy}:{subject}"


def resolve_client_ip(request: Request) -> str | None:
    """Best-effort client address for an incoming request.

    Uses the first ``X-Forwarded-For`` hop, then ``X-Real-IP`` when proxy
    headers are trusted, and finally the socket peer address.
    """
    if settings_for(request).app.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        real_ip = (request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host
    return None


def build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Headers surfacing the quota state of a decision."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at_ms),
    }
    if not decision.allowed and decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def get_rate_limiters(request: Request) -> RateLimiterRegistry:
    """Fetch the registry built for the application serving this request."""
    registry = getattr(request.app.state, "rate_limiters", None)
    if registry is None:
        raise RuntimeError(
            "app.state.rate_limiters is not configured; build the app with create_app()"
        )
    return registry


def rate_limit_dependency(policy_name: str):
    """Create a FastAPI dependency enforcing the named policy.

    The dependency counts the request, attaches quota headers to the response
    when admitted and raises ``RateLimitAppError`` (HTTP 429) when rejected.

    Usage:
        @router.post("/chat", dependencies=[Depends(rate_limit_dependency("chat"))])
    """

    async def enforce(request: Request, response: Response) -> RateLimitDecision | None:
        cfg = settings_for(request).rate_limit
        if not cfg.enabled:
            return None

        registry = get_rate_limiters(request)
        principal_id = get_principal_id(request)
        client_ip = resolve_client_ip(request)
        key = build_rate_limit_key(policy_name, principal_id, client_ip)
        subject_type = "user" if principal_id else ("ip" if client_ip else "anon")

        decision = registry.check(policy_name, key)
        headers = build_rate_limit_headers(decision)

        if decision.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "policy": policy_name,
                    "subject_type": subject_type,
                    "key_hash": hash_identifier(key),
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                },
            )
            if cfg.include_headers:
                response.headers.update(headers)
            return decision

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": policy_name,
                "subject_type": subject_type,
                "key_hash": hash_identifier(key),
                "limit": decision.limit,
                "reset_at_ms": decision.reset_at_ms,
                "retry_after_s": decision.retry_after_seconds,
            },
        )
        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message="Too many requests. Please try again later.",
            details={
                "policy": policy_name,
                "limit": decision.limit,
                "reset_at_ms": decision.reset_at_ms,
                "retry_after": decision.retry_after_seconds or 0,
            },
            headers=headers if cfg.include_headers else {},
        )

    enforce.__name__ = f"enforce_{policy_name}_rate_limit"
    return enforce


enforce_chat_rate_limit = rate_limit_dependency(CHAT)
enforce_booking_rate_limit = rate_limit_dependency(BOOKING)
enforce_auth_rate_limit = rate_limit_dependency(AUTH)
