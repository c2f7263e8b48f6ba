"""
FastAPI Security Dependencies
Dependency injection functions that enforce the usage limits on a route.

Usage:
    @router.post("/ai/chat", dependencies=[Depends(enforce_plan_limit)])
    async def chat(...): ...

Identity for authenticated calls is read from the X-User-Id header and the
plan tier from X-User-Plan. Authentication itself happens upstream.

Limiter checks can block on a Redis round trip; they run in a worker thread
via asyncio.to_thread.
"""

import asyncio
import logging

from fastapi import Request

from src.services.rate_limiting import RateLimitResult
from src.services.startup import RateLimitServices
from src.utils.exceptions import APIExceptions
from src.utils.rate_limit_headers import get_rate_limit_headers

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_PLAN_HEADER = "X-User-Plan"
ESTIMATED_TOKENS_HEADER = "X-Estimated-Tokens"


def get_rate_limit_services(request: Request) -> RateLimitServices:
    """Return the limiters attached to the application by the lifespan."""
    services = getattr(request.app.state, "rate_limits", None)
    if services is None:
        raise APIExceptions.service_unavailable("Rate limit services are not initialised")
    return services


def get_user_id(request: Request) -> str | None:
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    return user_id or None


def get_user_plan(request: Request) -> str | None:
    return request.headers.get(USER_PLAN_HEADER)


def raise_if_denied(result: RateLimitResult) -> RateLimitResult:
    """Translate a denied result into a 429 carrying the X-RateLimit-* headers."""
    if result.allowed:
        return result
    raise APIExceptions.rate_limited(
        retry_after=result.retry_after,
        reason=result.reason,
        headers=get_rate_limit_headers(result),
    )


async def enforce_anonymous_limit(request: Request) -> RateLimitResult:
    """
    Charge the caller's IP against the anonymous daily allowance.

    Raises:
        HTTPException: 429 once the IP has used its daily allowance
    """
    services = get_rate_limit_services(request)
    result = await asyncio.to_thread(services.anonymous.check_request, request)
    return raise_if_denied(result)


async def enforce_request_limit(request: Request) -> RateLimitResult:
    """
    Charge the per-minute IP counter, and the user counter when X-User-Id is set.

    Raises:
        HTTPException: 429 when either counter is exhausted
    """
    services = get_rate_limit_services(request)
    result = await asyncio.to_thread(
        services.requests.check_request, request, get_user_id(request)
    )
    return raise_if_denied(result)


async def enforce_plan_limit(request: Request) -> RateLimitResult:
    """
    Charge an AI call against the caller's plan budget.

    The token estimate comes from X-Estimated-Tokens when present, otherwise
    the configured default is used.

    Raises:
        HTTPException: 400 without X-User-Id, 429 when the plan budget is exhausted
    """
    services = get_rate_limit_services(request)
    user_id = get_user_id(request)
    if not user_id:
        raise APIExceptions.bad_request(f"{USER_ID_HEADER} header is required")

    estimated_tokens = services.default_estimated_tokens
    raw_tokens = request.headers.get(ESTIMATED_TOKENS_HEADER)
    if raw_tokens:
        try:
            estimated_tokens = int(raw_tokens)
        except ValueError:
            raise APIExceptions.bad_request(
                f"{ESTIMATED_TOKENS_HEADER} must be an integer"
            ) from None

    result = await asyncio.to_thread(
        services.plans.check, user_id, get_user_plan(request), estimated_tokens
    )
    return raise_if_denied(result)
