"""
Startup service: builds the rate limit services and owns their lifecycle.

The limiters are created here, once per application, and attached to
``app.state.rate_limits``. The cleanup sweeper starts with the lifespan and
is cancelled on shutdown. Nothing is created at import time.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from src.config import Config
from src.services.anonymous_rate_limiter import AnonymousRateLimiter
from src.services.cleanup_sweeper import CleanupSweeper
from src.services.plan_rate_limiter import PlanRateLimiter
from src.services.prometheus_metrics import set_tracked_keys
from src.services.rate_limit_store import (
    MemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
)
from src.services.request_rate_limiter import RequestRateGuard

logger = logging.getLogger(__name__)


@dataclass
class RateLimitServices:
    """Everything the guard dependencies and routes need."""

    anonymous: AnonymousRateLimiter
    requests: RequestRateGuard
    plans: PlanRateLimiter
    sweeper: CleanupSweeper
    default_estimated_tokens: int = 100

    def limiters(self) -> dict[str, Any]:
        return {"anonymous": self.anonymous, "requests": self.requests, "plans": self.plans}

    def refresh_gauges(self, removed: int = 0) -> None:
        """Publish per-limiter counter totals (sweeper listener)."""
        for name, limiter in self.limiters().items():
            stats = limiter.get_stats()
            if "tracked_keys" in stats:
                set_tracked_keys(name, stats["tracked_keys"])

    def get_stats(self) -> dict[str, Any]:
        return {
            "limiters": {name: limiter.get_stats() for name, limiter in self.limiters().items()},
            "sweeper": self.sweeper.get_stats(),
        }


def _build_store(backend: str, max_entries: int, redis_client=None) -> RateLimitStore:
    memory_store = MemoryRateLimitStore(max_entries=max_entries)
    if backend != "redis":
        return memory_store

    if redis_client is None:
        logger.warning("RATE_LIMIT_BACKEND=redis but Redis is unreachable; using memory store")
        return memory_store
    return RedisRateLimitStore(redis_client, fallback=memory_store)


def build_rate_limit_services(config=Config, redis_client=None) -> RateLimitServices:
    """
    Create the limiters from configuration.

    Args:
        config: Object exposing the Config attributes (class or instance)
        redis_client: Optional pre-built Redis client for the redis backend

    Returns:
        RateLimitServices with a sweeper registered for every limiter
    """
    config.validate()
    backend = config.RATE_LIMIT_BACKEND
    max_entries = config.RATE_LIMIT_MAX_ENTRIES

    if backend == "redis" and redis_client is None:
        from src.config.redis_config import RedisConfig

        redis_client = RedisConfig().get_client()

    anonymous = AnonymousRateLimiter(
        daily_limit=config.ANONYMOUS_DAILY_LIMIT,
        store=_build_store(backend, max_entries, redis_client),
    )
    requests = RequestRateGuard(
        ip_limit=config.REQUEST_IP_LIMIT_PER_MINUTE,
        user_limit=config.REQUEST_USER_LIMIT_PER_MINUTE,
        store=_build_store(backend, max_entries, redis_client),
        user_store=_build_store(backend, max_entries, redis_client),
    )
    plans = PlanRateLimiter(store=_build_store(backend, max_entries, redis_client))

    sweeper = CleanupSweeper(interval_seconds=config.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS)
    sweeper.register("anonymous", anonymous.cleanup_expired)
    sweeper.register("requests", requests.cleanup_expired)
    sweeper.register("plans", plans.cleanup_expired)

    logger.info(
        "Rate limit services ready (backend=%s, anonymous=%d/day, ip=%d/min, user=%d/min)",
        backend,
        config.ANONYMOUS_DAILY_LIMIT,
        config.REQUEST_IP_LIMIT_PER_MINUTE,
        config.REQUEST_USER_LIMIT_PER_MINUTE,
    )

    services = RateLimitServices(
        anonymous=anonymous,
        requests=requests,
        plans=plans,
        sweeper=sweeper,
        default_estimated_tokens=config.DEFAULT_ESTIMATED_TOKENS,
    )
    sweeper.add_listener(services.refresh_gauges)
    return services


@asynccontextmanager
async def lifespan(app):
    """
    Application lifespan manager for startup and shutdown events
    """
    services = getattr(app.state, "rate_limits", None)
    if services is None:
        services = build_rate_limit_services()
        app.state.rate_limits = services

    await services.sweeper.start()
    try:
        yield
    finally:
        await services.sweeper.stop()
        logger.info("Rate limit services shut down")
