"""
Utilities for converting rate limit results to HTTP headers
"""

from src.services.rate_limiting import RateLimitResult


def get_rate_limit_headers(rate_limit_result: RateLimitResult) -> dict[str, str]:
    """Convert a RateLimitResult into HTTP headers for the response.

    Returns a dictionary of HTTP headers like:
    {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "1700000000",
        "X-RateLimit-Reason": "requests",
        "X-RateLimit-Limit-Tokens": "1000",
        "X-RateLimit-Remaining-Tokens": "900",
        "Retry-After": "42"
    }
    """
    headers = {
        "X-RateLimit-Limit": str(rate_limit_result.limit),
        "X-RateLimit-Remaining": str(max(0, rate_limit_result.remaining)),
        "X-RateLimit-Reset": str(int(rate_limit_result.reset_time)),
    }

    if rate_limit_result.limit_type:
        headers["X-RateLimit-Reason"] = rate_limit_result.limit_type

    if rate_limit_result.token_limit is not None:
        headers["X-RateLimit-Limit-Tokens"] = str(rate_limit_result.token_limit)

    if rate_limit_result.remaining_tokens is not None:
        headers["X-RateLimit-Remaining-Tokens"] = str(max(0, rate_limit_result.remaining_tokens))

    if not rate_limit_result.allowed and rate_limit_result.retry_after:
        headers["Retry-After"] = str(rate_limit_result.retry_after)

    return headers
