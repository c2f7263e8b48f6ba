#!/usr/bin/env python3
"""
Anonymous Rate Limiter Service

Daily allowance for unauthenticated callers, keyed by client IP.

Key Features:
- IP-based rate limiting (3 requests per day per IP by default)
- Fixed 24 hour window starting at the first request of the day
- Callers without any IP header share the "unknown" bucket
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from src.config.usage_limits import ANONYMOUS_DAILY_LIMIT, ANONYMOUS_WINDOW_SECONDS
from src.services.rate_limit_store import RateLimitStore
from src.services.rate_limiting import FixedWindowRateLimiter, RateLimitResult
from src.utils.client_ip import get_client_ip

logger = logging.getLogger(__name__)

ANONYMOUS_KEY_PREFIX = "anon:"


class AnonymousRateLimiter:
    """IP-based daily limiter for anonymous usage."""

    def __init__(
        self,
        daily_limit: int = ANONYMOUS_DAILY_LIMIT,
        window_seconds: float = ANONYMOUS_WINDOW_SECONDS,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._limiter = FixedWindowRateLimiter(
            daily_limit,
            window_seconds,
            name="anonymous",
            key_prefix=ANONYMOUS_KEY_PREFIX,
            store=store,
            clock=clock,
        )

    @property
    def daily_limit(self) -> int:
        return self._limiter.limit

    @property
    def store(self) -> RateLimitStore:
        return self._limiter.store

    def check(self, ip_address: str | None) -> RateLimitResult:
        """
        Count an anonymous request from ip_address if the daily allowance permits.

        Returns:
            RateLimitResult; when denied, reason explains that signing up lifts the limit
        """
        result = self._limiter.check(ip_address)
        if not result.allowed:
            result.reason = (
                f"Anonymous daily limit exceeded ({self.daily_limit} requests/day). "
                "Please sign up for an account to continue."
            )
        return result

    def check_request(self, request: Any) -> RateLimitResult:
        """Resolve the client IP from request headers, then check it."""
        return self.check(get_client_ip(request))

    def get_usage(self, ip_address: str | None) -> RateLimitResult:
        """Today's usage for ip_address, without counting a request."""
        return self._limiter.peek(ip_address)

    def reset(self, ip_address: str | None) -> bool:
        return self._limiter.reset(ip_address)

    def cleanup_expired(self) -> int:
        return self._limiter.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about anonymous usage (for monitoring)."""
        return self._limiter.get_stats()
