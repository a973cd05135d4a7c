"""Test the auth rate limiter and client IP resolution."""

from datetime import datetime, timezone

import pytest
from starlette.requests import Request

from app.core.errors import RateLimited
from app.core.limiter import StorageRateLimiter, enforce_rate_limit, get_client_ip


def make_request(headers=None, client=("127.0.0.1", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestGetClientIp:

    def test_first_forwarded_for_entry_wins(self):
        request = make_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "X-Real-IP": "10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_real_ip_then_client_ip(self):
        assert get_client_ip(make_request({"X-Real-IP": "198.51.100.1"})) == "198.51.100.1"
        assert get_client_ip(make_request({"X-Client-IP": "198.51.100.2"})) == "198.51.100.2"

    def test_socket_peer_then_unknown(self):
        assert get_client_ip(make_request()) == "127.0.0.1"
        assert get_client_ip(make_request(client=None)) == "unknown"


class TestStorageRateLimiter:

    def test_allows_up_to_max_then_blocks(self):
        limiter = StorageRateLimiter()
        results = [limiter.check("signup:1.2.3.4", 3, 900) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[0].remaining == 2
        assert results[-1].reset_time >= datetime.now(timezone.utc).replace(microsecond=0)

    def test_keys_are_independent(self):
        limiter = StorageRateLimiter()
        limiter.check("login:a", 1, 60)

        assert limiter.check("login:a", 1, 60).allowed is False
        assert limiter.check("login:b", 1, 60).allowed is True

    def test_reset_clears_counters(self):
        limiter = StorageRateLimiter()
        limiter.check("k", 1, 60)
        limiter.reset()

        assert limiter.check("k", 1, 60).allowed is True


def test_enforce_rate_limit_raises_with_reset_time():
    limiter = StorageRateLimiter()
    enforce_rate_limit(limiter, "regenerate:ip", "1/hour", "slow down")

    with pytest.raises(RateLimited) as exc_info:
        enforce_rate_limit(limiter, "regenerate:ip", "1/hour", "slow down")

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "slow down"
    assert "reset_time" in exc_info.value.details
