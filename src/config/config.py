import os

from dotenv import load_dotenv

from src.config import usage_limits

# Load environment variables from .env file
load_dotenv()

SUPPORTED_RATE_LIMIT_BACKENDS = ("memory", "redis")


def _get_env_var(name: str, default: str | None = None, *, strip: bool = True) -> str | None:
    """
    Fetch an environment variable with optional whitespace trimming.

    Args:
        name: Environment variable to look up.
        default: Value to return when the env var is unset or empty.
        strip: Whether to strip leading/trailing whitespace (default: True).

    Returns:
        The normalized string value or the provided default when empty.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    if strip:
        value = value.strip()

    return value or default


def _get_int_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to default on bad input."""
    value = _get_env_var(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Configuration class for the application"""

    # Environment Detection
    APP_ENV = os.environ.get("APP_ENV", "development")  # development, staging, production
    IS_DEVELOPMENT = APP_ENV == "development"

    LOG_LEVEL = (_get_env_var("LOG_LEVEL", "INFO") or "INFO").upper()
    SERVICE_NAME = _get_env_var("SERVICE_NAME", "lawai-usage-guard")

    # Rate limit storage: "memory" (per process) or "redis" (shared across instances)
    RATE_LIMIT_BACKEND = (_get_env_var("RATE_LIMIT_BACKEND", "memory") or "memory").lower()
    RATE_LIMIT_MAX_ENTRIES = _get_int_env("RATE_LIMIT_MAX_ENTRIES", 10000)
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS = _get_int_env("RATE_LIMIT_CLEANUP_INTERVAL_SECONDS", 300)

    # Anonymous (unauthenticated) daily allowance per IP
    ANONYMOUS_DAILY_LIMIT = _get_int_env("ANONYMOUS_DAILY_LIMIT", usage_limits.ANONYMOUS_DAILY_LIMIT)

    # Per-minute request guard
    REQUEST_IP_LIMIT_PER_MINUTE = _get_int_env(
        "REQUEST_IP_LIMIT_PER_MINUTE", usage_limits.REQUEST_IP_LIMIT
    )
    REQUEST_USER_LIMIT_PER_MINUTE = _get_int_env(
        "REQUEST_USER_LIMIT_PER_MINUTE", usage_limits.REQUEST_USER_LIMIT
    )

    # Token estimate used when the caller supplies neither a count nor messages
    DEFAULT_ESTIMATED_TOKENS = _get_int_env(
        "DEFAULT_ESTIMATED_TOKENS", usage_limits.DEFAULT_ESTIMATED_TOKENS
    )

    @classmethod
    def validate(cls):
        """Validate rate limit settings, raising RuntimeError on bad values."""
        problems = []

        if cls.RATE_LIMIT_BACKEND not in SUPPORTED_RATE_LIMIT_BACKENDS:
            problems.append(
                f"RATE_LIMIT_BACKEND must be one of {', '.join(SUPPORTED_RATE_LIMIT_BACKENDS)}"
                f" (got {cls.RATE_LIMIT_BACKEND!r})"
            )
        for name in (
            "RATE_LIMIT_MAX_ENTRIES",
            "RATE_LIMIT_CLEANUP_INTERVAL_SECONDS",
            "ANONYMOUS_DAILY_LIMIT",
            "REQUEST_IP_LIMIT_PER_MINUTE",
            "REQUEST_USER_LIMIT_PER_MINUTE",
        ):
            if getattr(cls, name) < 1:
                problems.append(f"{name} must be a positive integer")

        if problems:
            raise RuntimeError("Invalid rate limit configuration:\n" + "\n".join(problems))

        return True
