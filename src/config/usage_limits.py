"""
Usage Limits Configuration
Centralized static limits for plan tiers and anonymous usage.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

# Anonymous (unauthenticated) usage
ANONYMOUS_DAILY_LIMIT = 3  # Maximum requests per day per IP
ANONYMOUS_WINDOW_SECONDS = 24 * 60 * 60  # 24 hours

# Per-minute request guard
REQUEST_WINDOW_SECONDS = 60
REQUEST_IP_LIMIT = 20  # requests per minute per IP
REQUEST_USER_LIMIT = 60  # requests per minute per authenticated user

# Plan-tiered AI usage
DEFAULT_PLAN = "FREE"
DEFAULT_ESTIMATED_TOKENS = 100


@dataclass(frozen=True)
class PlanLimitConfig:
    """Per-plan ceilings for AI calls within one window."""

    requests: int
    window_seconds: int
    tokens_per_minute: int


# Read-only view; the tiers are fixed at import
PLAN_LIMITS: Mapping[str, PlanLimitConfig] = MappingProxyType(
    {
        "FREE": PlanLimitConfig(requests=10, window_seconds=60, tokens_per_minute=1000),
        "BASIC": PlanLimitConfig(requests=50, window_seconds=60, tokens_per_minute=5000),
        "PLUS": PlanLimitConfig(requests=100, window_seconds=60, tokens_per_minute=10000),
        "PRO": PlanLimitConfig(requests=200, window_seconds=60, tokens_per_minute=20000),
    }
)


def normalize_plan(plan: str | None) -> str:
    """Return the canonical plan name, falling back to FREE for anything unknown."""
    if not plan:
        return DEFAULT_PLAN
    normalized = str(plan).strip().upper()
    return normalized if normalized in PLAN_LIMITS else DEFAULT_PLAN


def get_plan_limits(plan: str | None) -> PlanLimitConfig:
    """Look up the limits for a plan (unknown plans get the FREE tier)."""
    return PLAN_LIMITS[normalize_plan(plan)]
