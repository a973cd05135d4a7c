# app/core/limiter.py

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from fastapi import Request
from limits import RateLimitItemPerSecond, parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter

from app.core.config import settings
from app.core.errors import RateLimited

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Resolves the caller's IP, preferring proxy headers:
    first X-Forwarded-For entry, then X-Real-IP, then X-Client-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("x-real-ip", "x-client-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"

# ---------------------------------------------
# Global abuse ceiling (SlowAPI)
# ---------------------------------------------
# Limits each client IP to RATE_LIMIT_DEFAULT across the whole API.
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)

# ---------------------------------------------
# Per-identifier limits for auth endpoints
# ---------------------------------------------

@dataclass
class RateLimitResult:
    allowed: bool
    reset_time: datetime
    remaining: int


class RateLimiter(Protocol):
    def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        ...


class StorageRateLimiter:
    """
    Fixed-window counter per key, stored in a `limits` storage backend.

    With "memory://" the counters are process-local: each instance limits on its own.
    Point RATE_LIMIT_STORAGE_URI at a shared backend (redis://...) for a global limit.
    """

    def __init__(self, storage_uri: str = "memory://"):
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        item = RateLimitItemPerSecond(max_requests, window_seconds)
        allowed = self.strategy.hit(item, key)
        stats = self.strategy.get_window_stats(item, key)
        return RateLimitResult(
            allowed=allowed,
            reset_time=datetime.fromtimestamp(stats.reset_time, tz=timezone.utc),
            remaining=stats.remaining,
        )

    def reset(self):
        self.storage.reset()


def enforce_rate_limit(rate_limiter: RateLimiter, key: str, limit: str, message: str) -> RateLimitResult:
    """
    Counts one attempt for `key` against `limit` (limits notation, e.g. "3/15 minutes").
    Raises RateLimited (HTTP 429, details.reset_time) when the window is used up.
    """
    item = parse(limit)
    result = rate_limiter.check(key, item.amount, item.get_expiry())
    if not result.allowed:
        logger.warning(f"Rate limit exceeded for {key} (limit {limit})")
        raise RateLimited(message, details={"reset_time": result.reset_time.isoformat()})
    return result

"""
------------------------------------------------
✅ Purpose:
Protects the control plane from brute force and abuse.

🔍 What It Does:
- `limiter`: SlowAPI limiter applying RATE_LIMIT_DEFAULT per client IP (SlowAPIMiddleware in main.py).
- `StorageRateLimiter`: the `RateLimiter` used by signup/login/regenerate-key, returning
  {allowed, reset_time} so the 429 envelope can tell the client when to retry.

📌 Used By:
- app/main.py (middleware + 429 handler)
- app/deps/services.py (`get_rate_limiter`) and the auth routes.

🧠 Notes:
- Call sites only see the RateLimiter protocol; the backing store is chosen by URI.
- The in-memory default gives per-instance limiting only. That is a known gap
  for multi-instance deployments, not something the code tries to hide.

------------------------------------------------
"""
