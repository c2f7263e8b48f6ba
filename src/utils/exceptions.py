"""
HTTP Exception Factories

Centralized exception creation with consistent error messages and status codes.

Usage:
    from src.utils.exceptions import APIExceptions

    raise APIExceptions.rate_limited(retry_after=30, reason="requests")
"""

import logging
from typing import Any

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class APIExceptions:
    """Factory class for creating standardized HTTP exceptions."""

    @staticmethod
    def rate_limited(
        retry_after: int | None = None,
        detail: str = "Rate limit exceeded",
        reason: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> HTTPException:
        """
        429 Too Many Requests - Rate limit exceeded.

        Args:
            retry_after: Seconds until retry is allowed
            detail: Custom error message
            reason: Optional reason for rate limit (e.g., "tokens", "requests")
            headers: Extra response headers (X-RateLimit-*)

        Returns:
            HTTPException with status 429 and Retry-After header when known
        """
        if reason:
            detail = f"{detail}: {reason}"

        response_headers = dict(headers or {})
        if retry_after:
            response_headers["Retry-After"] = str(retry_after)
            detail = f"{detail}. Retry after {retry_after} seconds"

        return HTTPException(status_code=429, detail=detail, headers=response_headers or None)

    @staticmethod
    def bad_request(
        detail: str = "Bad request", errors: dict[str, Any] | None = None
    ) -> HTTPException:
        """
        400 Bad Request - Invalid request parameters.

        Args:
            detail: Custom error message
            errors: Optional field-level errors

        Returns:
            HTTPException with status 400
        """
        if errors:
            return HTTPException(status_code=400, detail={"message": detail, "errors": errors})
        return HTTPException(status_code=400, detail=detail)

    @staticmethod
    def service_unavailable(detail: str = "Service temporarily unavailable") -> HTTPException:
        """503 Service Unavailable - rate limit services not initialised."""
        logger.error(detail)
        return HTTPException(status_code=503, detail=detail)
