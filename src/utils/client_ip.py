"""
Client identity helpers for rate limiting.
"""

from collections.abc import Mapping
from typing import Any

UNKNOWN_IP = "unknown"

# Checked in order; the first non-blank value wins
_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


def _lowercase_headers(request_or_headers: Any) -> dict[str, str]:
    headers = getattr(request_or_headers, "headers", request_or_headers)
    if headers is None:
        return {}
    if isinstance(headers, Mapping) or hasattr(headers, "items"):
        return {str(name).lower(): value for name, value in headers.items()}
    return {}


def get_client_ip(request_or_headers: Any) -> str:
    """
    Resolve the client IP address used as the anonymous rate limit identity.

    Order: first entry of X-Forwarded-For, then X-Real-IP, then
    CF-Connecting-IP. Falls back to "unknown" when none is present, which
    means every such caller shares one bucket.

    Args:
        request_or_headers: A FastAPI/Starlette request, or any mapping of headers

    Returns:
        Client IP address string
    """
    headers = _lowercase_headers(request_or_headers)

    for name in _IP_HEADERS:
        value = headers.get(name)
        if not value:
            continue
        candidate = value.split(",")[0].strip() if name == "x-forwarded-for" else value.strip()
        if candidate:
            return candidate

    return UNKNOWN_IP


def mask_identifier(identifier: str | None) -> str:
    """Mask IP address or identifier for logging."""
    if not identifier:
        return UNKNOWN_IP
    parts = identifier.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.{parts[2]}.xxx"
    if len(identifier) > 8:
        return f"{identifier[:8]}..."
    return identifier
