import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request, Response

from src.config.usage_limits import DEFAULT_PLAN, PLAN_LIMITS, normalize_plan
from src.schemas.rate_limits import (
    AnonymousUsageResponse,
    PlanLimits,
    PlanLimitsResponse,
    PlanUsageResponse,
    RateLimitStatsResponse,
    RateLimitStatus,
    UsageCheckRequest,
)
from src.security.deps import get_rate_limit_services, raise_if_denied
from src.services.startup import RateLimitServices
from src.utils.client_ip import get_client_ip
from src.utils.rate_limit_headers import get_rate_limit_headers
from src.utils.token_estimator import estimate_message_tokens

# Initialize logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rate-limits", tags=["rate-limits"])


@router.get("/plans", response_model=PlanLimitsResponse)
async def list_plan_limits():
    """Static request and token ceilings for every plan tier."""
    return PlanLimitsResponse(
        default_plan=DEFAULT_PLAN,
        plans=[
            PlanLimits(
                plan=name,
                requests=config.requests,
                window_seconds=config.window_seconds,
                tokens_per_minute=config.tokens_per_minute,
            )
            for name, config in PLAN_LIMITS.items()
        ],
    )


@router.get("/anonymous", response_model=AnonymousUsageResponse)
async def get_anonymous_usage(
    request: Request,
    services: RateLimitServices = Depends(get_rate_limit_services),
):
    """Today's anonymous usage for the calling IP. Does not count as a request."""
    ip_address = get_client_ip(request)
    result = await asyncio.to_thread(services.anonymous.get_usage, ip_address)
    return AnonymousUsageResponse(ip_address=ip_address, **result.to_dict())


@router.get("/status", response_model=PlanUsageResponse)
async def get_plan_usage(
    user_id: str = Query(..., min_length=1),
    plan: str | None = Query(None),
    services: RateLimitServices = Depends(get_rate_limit_services),
):
    """Current plan usage for a user. Does not count as a request."""
    result = await asyncio.to_thread(services.plans.get_usage, user_id, plan)
    return PlanUsageResponse(user_id=user_id, plan=normalize_plan(plan), **result.to_dict())


@router.post("/check", response_model=RateLimitStatus)
async def check_plan_usage(
    body: UsageCheckRequest,
    response: Response,
    services: RateLimitServices = Depends(get_rate_limit_services),
):
    """
    Charge one AI call against the user's plan budget.

    The token estimate is taken from estimated_tokens when given, otherwise
    computed from messages (+ max_tokens), otherwise the configured default.

    Raises:
        HTTPException: 429 with Retry-After when the request or token budget is spent
    """
    if body.estimated_tokens is not None:
        estimated_tokens = body.estimated_tokens
    elif body.messages:
        estimated_tokens = estimate_message_tokens(
            [message.model_dump() for message in body.messages],
            body.max_tokens,
            fallback_tokens=services.default_estimated_tokens,
        )
    else:
        estimated_tokens = services.default_estimated_tokens

    result = await asyncio.to_thread(
        services.plans.check, body.user_id, body.plan, estimated_tokens
    )
    result = raise_if_denied(result)
    response.headers.update(get_rate_limit_headers(result))
    return RateLimitStatus(**result.to_dict())


@router.get("/stats", response_model=RateLimitStatsResponse)
async def get_rate_limit_stats(services: RateLimitServices = Depends(get_rate_limit_services)):
    """Counter store sizes per limiter and sweeper state."""
    return services.get_stats()
