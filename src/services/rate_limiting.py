#!/usr/bin/env python3
"""
Fixed-Window Rate Limiting Module

Core limiter shared by the anonymous, per-minute and plan-tier variants.

Algorithm (per counter):
1. Look up the record for the identity.
2. Missing, or now > reset_time: start a fresh window
   (count = 0, reset_time = now + window).
3. count + cost > limit: deny and report reset_time / retry_after.
4. Otherwise count += cost and allow.

With cost = 1 this admits the first request of every window, and denies
once count reaches the limit. Because windows are fixed, an identity can
spend up to 2x the limit across a window boundary (the tail of one window
plus the head of the next). That burst is accepted behaviour.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from src.services.prometheus_metrics import record_rate_limit_decision
from src.services.rate_limit_store import (
    MemoryRateLimitStore,
    RateLimitStore,
    WindowCharge,
    WindowState,
)
from src.utils.client_ip import UNKNOWN_IP, mask_identifier

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Result of a rate limit check"""

    allowed: bool
    limit: int
    remaining: int
    reset_time: float  # Unix timestamp when the current window ends
    count: int = 0
    retry_after: int | None = None  # Seconds, only set when denied
    reason: str | None = None
    limit_type: str | None = None
    # Token budget (plan-tier limiter only)
    remaining_tokens: int | None = None
    token_limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_time,
            "retry_after": self.retry_after,
            "reason": self.reason,
            "limit_type": self.limit_type,
            "remaining_tokens": self.remaining_tokens,
            "token_limit": self.token_limit,
        }


def retry_after_seconds(reset_time: float, now: float) -> int:
    """Whole seconds until reset_time, never less than 1."""
    return max(1, math.ceil(reset_time - now))


def build_result(
    state: WindowState,
    allowed: bool,
    now: float,
    limit_type: str | None = None,
) -> RateLimitResult:
    """Turn a store state into a RateLimitResult."""
    result = RateLimitResult(
        allowed=allowed,
        limit=state.limit,
        remaining=state.remaining,
        reset_time=state.reset_time,
        count=state.count,
        limit_type=limit_type,
    )
    if not allowed:
        result.retry_after = retry_after_seconds(state.reset_time, now)
        result.reason = f"{limit_type or 'request'} rate limit exceeded"
    return result


def first_denied(states: list[WindowState]) -> int:
    """Index of the first counter that refused its charge (0 if none did)."""
    for index, state in enumerate(states):
        if not state.allowed:
            return index
    return 0


class FixedWindowRateLimiter:
    """
    Fixed-window counter keyed by identity.

    Each instance owns (or is handed) its store, so tests and separate
    limiters never share counters unless they are given the same store.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        name: str = "default",
        key_prefix: str = "",
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if limit < 1:
            raise ValueError(f"limit must be at least 1 (got {limit})")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive (got {window_seconds})")

        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self.key_prefix = key_prefix
        self._clock = clock
        self.store = store if store is not None else MemoryRateLimitStore(clock=clock)

    def key_for(self, identity: str | None) -> str:
        return f"{self.key_prefix}{identity or UNKNOWN_IP}"

    def charge(self, identity: str | None, cost: int = 1) -> WindowCharge:
        """Build the store charge for one request from identity."""
        return WindowCharge(
            key=self.key_for(identity),
            cost=cost,
            limit=self.limit,
            window_seconds=self.window_seconds,
        )

    def check(self, identity: str | None, cost: int = 1) -> RateLimitResult:
        """
        Check and, when allowed, count a request for identity.

        Args:
            identity: IP address or user ID ("unknown" when empty)
            cost: Units consumed by this request

        Returns:
            RateLimitResult with allowed status and remaining allowance
        """
        allowed, states = self.store.hit([self.charge(identity, cost)])
        result = build_result(states[0], allowed, self._clock(), limit_type=self.name)
        record_rate_limit_decision(self.name, allowed)

        if not allowed:
            logger.warning(
                "Rate limit exceeded: limiter=%s, identity=%s, count=%d, limit=%d, retry_after=%ds",
                self.name,
                mask_identifier(identity),
                result.count,
                self.limit,
                result.retry_after,
                extra={"limiter": self.name, "retry_after": result.retry_after},
            )
        return result

    def peek(self, identity: str | None) -> RateLimitResult:
        """Current usage for identity, without counting a request."""
        state = self.store.peek(self.key_for(identity), self.limit, self.window_seconds)
        return build_result(state, state.allowed, self._clock(), limit_type=self.name)

    def get_remaining(self, identity: str | None) -> int:
        """Get remaining requests for an identity in the current window."""
        return self.peek(identity).remaining

    def reset(self, identity: str | None) -> bool:
        """Reset the counter for an identity (admin function)."""
        removed = self.store.reset(self.key_for(identity))
        if removed:
            logger.info(
                "Rate limit reset: limiter=%s, identity=%s", self.name, mask_identifier(identity)
            )
        return removed

    def cleanup_expired(self) -> int:
        """Remove counters whose window has ended."""
        return self.store.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "limit": self.limit,
            "window_seconds": self.window_seconds,
            **self.store.get_stats(),
        }
