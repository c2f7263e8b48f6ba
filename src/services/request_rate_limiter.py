"""
Per-Minute Request Guard

Two fixed-window counters per request: one keyed by client IP and, for
authenticated calls, one keyed by user ID. IP and user counters live in
separate stores, so a flood of distinct (possibly spoofed) client IPs can
only evict other IP counters. Either counter can deny the request, and a
denied request is never counted against the other: both are checked under
the guard lock before either is charged.
"""

import logging
import time
from collections.abc import Callable
from threading import Lock
from typing import Any

from src.config.usage_limits import REQUEST_IP_LIMIT, REQUEST_USER_LIMIT, REQUEST_WINDOW_SECONDS
from src.services.prometheus_metrics import record_rate_limit_decision
from src.services.rate_limit_store import MemoryRateLimitStore, RateLimitStore
from src.services.rate_limiting import (
    FixedWindowRateLimiter,
    RateLimitResult,
    build_result,
    first_denied,
)
from src.utils.client_ip import get_client_ip, mask_identifier

logger = logging.getLogger(__name__)


class RequestRateGuard:
    """IP + user request limiter for general API traffic."""

    name = "request"

    def __init__(
        self,
        ip_limit: int = REQUEST_IP_LIMIT,
        user_limit: int = REQUEST_USER_LIMIT,
        window_seconds: float = REQUEST_WINDOW_SECONDS,
        store: RateLimitStore | None = None,
        user_store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._lock = Lock()
        self.store = store if store is not None else MemoryRateLimitStore(clock=clock)
        self.user_store = (
            user_store if user_store is not None else MemoryRateLimitStore(clock=clock)
        )
        if self.user_store is self.store:
            raise ValueError("user_store must be separate from the IP store")

        self.ip_limiter = FixedWindowRateLimiter(
            ip_limit, window_seconds, name="ip", key_prefix="ip:", store=self.store, clock=clock
        )
        self.user_limiter = FixedWindowRateLimiter(
            user_limit,
            window_seconds,
            name="user",
            key_prefix="user:",
            store=self.user_store,
            clock=clock,
        )

    def check(self, ip_address: str | None, user_id: str | None = None) -> RateLimitResult:
        """
        Check a request from ip_address (and user_id when authenticated).

        Returns:
            The denying counter's result, or on success the counter with the
            least headroom left.
        """
        limiters = [self.ip_limiter]
        identities = [ip_address]
        if user_id:
            limiters.append(self.user_limiter)
            identities.append(str(user_id))

        charges = [
            limiter.charge(identity) for limiter, identity in zip(limiters, identities, strict=True)
        ]

        with self._lock:
            states = [
                limiter.store.peek(charge.key, charge.limit, charge.window_seconds)
                for limiter, charge in zip(limiters, charges, strict=True)
            ]
            allowed = all(state.allowed for state in states)

            if allowed:
                states = []
                for limiter, charge in zip(limiters, charges, strict=True):
                    # Another instance sharing a Redis store can still win the race
                    passed, (state,) = limiter.store.hit([charge])
                    states.append(state)
                    if not passed:
                        allowed = False
                        break

        now = self._clock()
        if allowed:
            index = min(range(len(states)), key=lambda i: states[i].remaining)
        else:
            index = first_denied(states)

        limit_type = limiters[index].name
        result = build_result(states[index], allowed, now, limit_type=limit_type)
        record_rate_limit_decision(self.name, allowed, limit_type)

        if not allowed:
            logger.warning(
                "Request rate limit exceeded: limit_type=%s, identity=%s, limit=%d/%ss",
                limit_type,
                mask_identifier(identities[index]),
                result.limit,
                limiters[index].window_seconds,
            )
        return result

    def check_request(self, request: Any, user_id: str | None = None) -> RateLimitResult:
        """Resolve the client IP from request headers, then check it."""
        return self.check(get_client_ip(request), user_id)

    def cleanup_expired(self) -> int:
        return self.store.cleanup_expired() + self.user_store.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        ip_stats = self.store.get_stats()
        user_stats = self.user_store.get_stats()
        stats = {
            "ip_limit": self.ip_limiter.limit,
            "user_limit": self.user_limiter.limit,
            "window_seconds": self.ip_limiter.window_seconds,
            **ip_stats,
            "user_store": user_stats,
        }
        if "tracked_keys" in ip_stats and "tracked_keys" in user_stats:
            stats["tracked_keys"] = ip_stats["tracked_keys"] + user_stats["tracked_keys"]
        return stats
