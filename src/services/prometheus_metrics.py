"""
Prometheus metrics for the usage guard.

Exposes:
- Rate limit decisions (allowed / denied) per limiter and limit type
- Cleanup sweep runs and removed counters
- Tracked identities per limiter (refreshed by the sweeper)
"""

import logging

from prometheus_client import Counter, Gauge

logger = logging.getLogger(__name__)

# ==================== Rate Limiting Metrics ====================
rate_limit_decisions = Counter(
    "rate_limit_decisions_total",
    "Rate limit decisions by limiter, limit type and outcome",
    ["limiter", "limit_type", "outcome"],
)

rate_limit_sweep_runs = Counter(
    "rate_limit_sweep_runs_total",
    "Completed cleanup sweeps",
)

rate_limit_sweep_removed = Counter(
    "rate_limit_sweep_removed_total",
    "Expired rate limit counters removed by cleanup sweeps",
)

rate_limit_tracked_keys = Gauge(
    "rate_limit_tracked_keys",
    "Counters currently held in memory per limiter",
    ["limiter"],
)


def record_rate_limit_decision(limiter: str, allowed: bool, limit_type: str | None = None) -> None:
    """Count one allow/deny decision."""
    outcome = "allowed" if allowed else "denied"
    rate_limit_decisions.labels(
        limiter=limiter, limit_type=limit_type or "default", outcome=outcome
    ).inc()


def record_sweep(removed: int) -> None:
    """Count one sweep and the counters it removed."""
    rate_limit_sweep_runs.inc()
    if removed:
        rate_limit_sweep_removed.inc(removed)


def set_tracked_keys(limiter: str, count: int) -> None:
    rate_limit_tracked_keys.labels(limiter=limiter).set(count)
