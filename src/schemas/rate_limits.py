from typing import Any

from pydantic import BaseModel, Field, field_validator


class PlanLimits(BaseModel):
    plan: str
    requests: int
    window_seconds: int
    tokens_per_minute: int


class PlanLimitsResponse(BaseModel):
    default_plan: str
    plans: list[PlanLimits]


class RateLimitStatus(BaseModel):
    """Serialised RateLimitResult."""

    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: int | None = None
    reason: str | None = None
    limit_type: str | None = None
    remaining_tokens: int | None = None
    token_limit: int | None = None


class AnonymousUsageResponse(RateLimitStatus):
    ip_address: str


class PlanUsageResponse(RateLimitStatus):
    user_id: str
    plan: str


class ChatMessage(BaseModel):
    role: str = "user"
    content: Any = None


class UsageCheckRequest(BaseModel):
    """Charge one AI call against a user's plan budget."""

    user_id: str = Field(..., min_length=1)
    plan: str | None = None
    estimated_tokens: int | None = Field(default=None, ge=0)
    messages: list[ChatMessage] | None = None
    max_tokens: int | None = Field(default=None, ge=1)

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user_id must not be blank")
        return v


class RateLimitStatsResponse(BaseModel):
    limiters: dict[str, dict[str, Any]]
    sweeper: dict[str, Any]
