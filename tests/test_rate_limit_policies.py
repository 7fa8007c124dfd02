"""Tests for policy construction, key derivation and header helpers."""

from unittest.mock import Mock

import pytest
from starlette.requests import Request

from mcmeet.adapters.rate_limit.base import RateLimitDecision
from mcmeet.core import rate_limit
from mcmeet.core.config import RateLimitSettings
from mcmeet.core.rate_limit import (
    RateLimitPolicy,
    build_rate_limit_headers,
    build_rate_limit_key,
    build_rate_limiters,
    policies_from_settings,
    resolve_client_ip,
)


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("9.9.9.9", 4321)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestPolicies:
    def test_default_policies(self) -> None:
        policies = {p.name: p for p in policies_from_settings(RateLimitSettings())}

        assert policies["chat"] == RateLimitPolicy("chat", 60, 60_000)
        assert policies["booking"] == RateLimitPolicy("booking", 10, 60_000)
        assert policies["auth"] == RateLimitPolicy("auth", 5, 60_000)

    @pytest.mark.parametrize("limit, window_ms", [(0, 1000), (1, 0)])
    def test_policy_rejects_invalid_values(self, limit: int, window_ms: int) -> None:
        with pytest.raises(ValueError):
            RateLimitPolicy("chat", limit, window_ms)

    def test_policy_is_immutable(self) -> None:
        policy = RateLimitPolicy("chat", 60, 60_000)
        with pytest.raises(AttributeError):
            policy.limit = 1  # type: ignore[misc]


class TestRegistry:
    def test_builds_one_limiter_per_policy(self) -> None:
        registry = build_rate_limiters(RateLimitSettings(), clock=Mock(return_value=0))

        assert set(registry) == {"chat", "booking", "auth"}
        assert len({id(limiter) for limiter in registry.values()}) == 3
        assert registry["booking"].limit == 10
        assert registry.policy("auth").window_ms == 60_000

    def test_policies_do_not_share_state_for_identical_keys(self) -> None:
        registry = build_rate_limiters(RateLimitSettings(), clock=Mock(return_value=0))

        for _ in range(5):
            registry.check("auth", "user-1")
        assert registry.check("auth", "user-1").allowed is False

        chat = registry.check("chat", "user-1")
        assert chat.allowed is True
        assert chat.remaining == 59

    def test_unknown_policy_raises_key_error(self) -> None:
        registry = build_rate_limiters(RateLimitSettings(), clock=Mock(return_value=0))
        with pytest.raises(KeyError):
            registry.check("uploads", "k")

    def test_settings_override_limits(self) -> None:
        cfg = RateLimitSettings(booking_limit=2, booking_window_ms=1000)
        registry = build_rate_limiters(cfg, clock=Mock(return_value=0))

        assert registry.check("booking", "k").remaining == 1
        assert registry.check("booking", "k").remaining == 0
        assert registry.check("booking", "k").allowed is False

    def test_reset_clears_every_policy(self) -> None:
        registry = build_rate_limiters(RateLimitSettings(), clock=Mock(return_value=0))
        registry.check("chat", "a")
        registry.check("auth", "a")

        registry.reset()

        assert all(len(limiter) == 0 for limiter in registry.values())


class TestKeyDerivation:
    @pytest.mark.parametrize(
        "principal_id, client_ip, expected",
        [
            ("user-1", "10.0.0.1", "chat:user-1"),
            (None, "10.0.0.1", "chat:10.0.0.1"),
            ("", "10.0.0.1", "chat:10.0.0.1"),
            (None, None, "chat:anon"),
            ("", "", "chat:anon"),
        ],
    )
    def test_subject_priority(self, principal_id, client_ip, expected: str) -> None:
        assert build_rate_limit_key("chat", principal_id, client_ip) == expected

    def test_namespace_prefix(self) -> None:
        assert build_rate_limit_key("booking") == "booking:anon"
        assert build_rate_limit_key("auth", "jane@example.edu") == "auth:jane@example.edu"


class TestClientIp:
    def test_prefers_first_forwarded_hop(self) -> None:
        request = _request({"X-Forwarded-For": "1.2.3.4, 5.6.7.8", "X-Real-IP": "7.7.7.7"})
        assert resolve_client_ip(request) == "1.2.3.4"

    def test_falls_back_to_real_ip(self) -> None:
        assert resolve_client_ip(_request({"X-Real-IP": "7.7.7.7"})) == "7.7.7.7"

    def test_falls_back_to_socket_peer(self) -> None:
        assert resolve_client_ip(_request()) == "9.9.9.9"

    def test_none_when_nothing_is_known(self) -> None:
        assert resolve_client_ip(_request(client=None)) is None

    def test_ignores_proxy_headers_when_untrusted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(rate_limit.settings.app, "trust_proxy_headers", False)
        request = _request({"X-Forwarded-For": "1.2.3.4"})
        assert resolve_client_ip(request) == "9.9.9.9"


class TestHeaders:
    def test_admitted_headers(self) -> None:
        decision = RateLimitDecision(allowed=True, limit=60, remaining=12, reset_at_ms=1_700_000_060_000)

        assert build_rate_limit_headers(decision) == {
            "X-RateLimit-Limit": "60",
            "X-RateLimit-Remaining": "12",
            "X-RateLimit-Reset": "1700000060000",
        }

    def test_rejected_headers_include_retry_after(self) -> None:
        decision = RateLimitDecision(
            allowed=False, limit=5, remaining=0, reset_at_ms=2000, retry_after_seconds=2
        )

        headers = build_rate_limit_headers(decision)

        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "2"
