"""
Plan-Tiered AI Usage Limiter

Per-user request and estimated-token budgets for AI calls, with ceilings
taken from the static plan table. Unknown plans are limited as FREE.

Each check charges two counters all-or-nothing:
- req_<user_id>: cost 1, ceiling = plan.requests
- tok_<user_id>: cost = estimated tokens, ceiling = plan.tokens_per_minute

Token cost is the caller's estimate made before the call, not a measured
post-hoc count.
"""

import logging
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from src.config.usage_limits import (
    DEFAULT_ESTIMATED_TOKENS,
    DEFAULT_PLAN,
    PLAN_LIMITS,
    PlanLimitConfig,
)
from src.services.prometheus_metrics import record_rate_limit_decision
from src.services.rate_limit_store import MemoryRateLimitStore, RateLimitStore, WindowCharge
from src.services.rate_limiting import RateLimitResult, build_result, retry_after_seconds
from src.utils.client_ip import mask_identifier

logger = logging.getLogger(__name__)

REQUEST_KEY_PREFIX = "req_"
TOKEN_KEY_PREFIX = "tok_"


class PlanRateLimiter:
    """Request + token limiter for AI endpoints, tiered by subscription plan."""

    name = "plan"

    def __init__(
        self,
        plan_limits: Mapping[str, PlanLimitConfig] | None = None,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if plan_limits is None:
            plan_limits = PLAN_LIMITS
        self.plan_limits = MappingProxyType(dict(plan_limits))
        if DEFAULT_PLAN not in self.plan_limits:
            raise ValueError(f"plan_limits must define the {DEFAULT_PLAN} tier")
        self._clock = clock
        self.store = store if store is not None else MemoryRateLimitStore(clock=clock)

    def _config_for(self, plan: str | None) -> tuple[str, PlanLimitConfig]:
        normalized = str(plan).strip().upper() if plan else DEFAULT_PLAN
        if normalized not in self.plan_limits:
            normalized = DEFAULT_PLAN
        return normalized, self.plan_limits[normalized]

    @staticmethod
    def _charges(user_id: str, config: PlanLimitConfig, tokens: int) -> list[WindowCharge]:
        return [
            WindowCharge(
                key=f"{REQUEST_KEY_PREFIX}{user_id}",
                cost=1,
                limit=config.requests,
                window_seconds=config.window_seconds,
            ),
            WindowCharge(
                key=f"{TOKEN_KEY_PREFIX}{user_id}",
                cost=tokens,
                limit=config.tokens_per_minute,
                window_seconds=config.window_seconds,
            ),
        ]

    def check(
        self,
        user_id: str,
        plan: str | None,
        estimated_tokens: int = DEFAULT_ESTIMATED_TOKENS,
    ) -> RateLimitResult:
        """
        Check and, when allowed, count an AI call for user_id.

        Args:
            user_id: Authenticated user ID
            plan: Plan tier name (FREE/BASIC/PLUS/PRO, anything else is FREE)
            estimated_tokens: Caller's token estimate for this call

        Returns:
            RateLimitResult with request headroom in remaining and token
            headroom in remaining_tokens. limit_type is "requests" or
            "tokens" when denied.
        """
        plan_name, config = self._config_for(plan)
        tokens = max(0, int(estimated_tokens))
        request_charge, token_charge = self._charges(str(user_id), config, tokens)

        allowed, (request_state, token_state) = self.store.hit([request_charge, token_charge])
        now = self._clock()

        limit_type = "tokens" if not allowed and request_state.allowed else "requests"
        result = build_result(request_state, allowed, now, limit_type=limit_type)
        if limit_type == "tokens":
            result.reset_time = token_state.reset_time
            result.retry_after = retry_after_seconds(token_state.reset_time, now)

        result.remaining_tokens = token_state.remaining
        result.token_limit = token_state.limit
        record_rate_limit_decision(self.name, allowed, limit_type)

        if not allowed:
            logger.warning(
                "Plan rate limit exceeded: user=%s, plan=%s, limit_type=%s, retry_after=%ds",
                mask_identifier(str(user_id)),
                plan_name,
                limit_type,
                result.retry_after,
                extra={"limiter": self.name, "plan": plan_name, "limit_type": limit_type},
            )
        return result

    def get_usage(self, user_id: str, plan: str | None) -> RateLimitResult:
        """Current request and token usage for user_id, without charging."""
        _, config = self._config_for(plan)
        request_state = self.store.peek(
            f"{REQUEST_KEY_PREFIX}{user_id}", config.requests, config.window_seconds
        )
        token_state = self.store.peek(
            f"{TOKEN_KEY_PREFIX}{user_id}", config.tokens_per_minute, config.window_seconds
        )
        allowed = request_state.allowed and token_state.remaining > 0
        result = build_result(request_state, allowed, self._clock(), limit_type="requests")
        result.remaining_tokens = token_state.remaining
        result.token_limit = token_state.limit
        return result

    def get_remaining_requests(self, user_id: str, plan: str | None) -> int:
        """Requests left for user_id in the current window."""
        return self.get_usage(user_id, plan).remaining

    def reset(self, user_id: str) -> bool:
        removed_requests = self.store.reset(f"{REQUEST_KEY_PREFIX}{user_id}")
        removed_tokens = self.store.reset(f"{TOKEN_KEY_PREFIX}{user_id}")
        return removed_requests or removed_tokens

    def cleanup_expired(self) -> int:
        return self.store.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        return {
            "plans": sorted(self.plan_limits),
            **self.store.get_stats(),
        }
