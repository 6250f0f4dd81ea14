"""
API Request and Response Schemas

This module defines all Pydantic models for API responses.
Separated from endpoints to keep concerns separated and enable reuse (the
admission middleware renders its 429/403 bodies with these too).

Design Principles:
- Wire format is camelCase; Python attributes stay snake_case
- from_attributes lets the ORM records be validated directly
- Admin policy updates are validated in the service layer
  (app.services.policy_service.PolicyUpdate), not here
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def whole_number_or_float(value: float) -> Union[int, float]:
    """Render 10.0 as 10 on the wire; fractional rates stay floats."""
    if float(value).is_integer():
        return int(value)
    return value


class PolicyResponse(CamelModel):
    """Current global policy."""
    max_tokens: int
    refill_rate_per_minute: float
    standard_request_cost: int
    shorten_url_cost: int
    blacklist_threshold: int
    blacklist_duration_hours: float

    @field_serializer("refill_rate_per_minute", "blacklist_duration_hours")
    def _serialize_rate(self, value: float) -> Union[int, float]:
        return whole_number_or_float(value)


class BucketResponse(CamelModel):
    """One subject's token bucket."""
    subject_id: str
    tokens: int
    last_refill_at: datetime
    attempt_count: int
    attempt_window_start: Optional[datetime] = None


class RateLimitOverviewResponse(CamelModel):
    """Response model for the admin rate-limit overview."""
    settings: PolicyResponse
    user_rate_limits: list[BucketResponse]


class PolicyUpdateResponse(CamelModel):
    message: str = "Rate limit settings updated successfully"
    settings: PolicyResponse


class BlacklistEntryResponse(CamelModel):
    subject_id: str
    blacklisted_at: datetime
    blacklisted_until: datetime
    reason: str


class BlacklistResponse(CamelModel):
    blacklist_entries: list[BlacklistEntryResponse]


class BlacklistRemovalResponse(CamelModel):
    message: str = "User removed from blacklist successfully"
    user_id: str


class RequestCosts(CamelModel):
    standard: int
    shorten_url: int


class BlacklistStatus(CamelModel):
    """Abuse-window counters as seen by the subject."""
    rate_limited_attempts: int
    threshold: int
    window_minutes: int
    attempts_reset_minutes: Optional[int] = None
    active: bool
    warning_message: Optional[str] = None


class RateLimitStatusResponse(CamelModel):
    """Response model for the self-service status endpoint."""
    subject_id: str
    tokens_remaining: int
    max_tokens: int
    refill_rate_per_minute: float
    request_costs: RequestCosts
    blacklist_status: BlacklistStatus
    reset_seconds: int = Field(..., description="Seconds until the bucket is full again")

    @field_serializer("refill_rate_per_minute")
    def _serialize_rate(self, value: float) -> Union[int, float]:
        return whole_number_or_float(value)


class DeniedResponse(CamelModel):
    """429 body returned when a request costs more than the remaining tokens."""
    error: str
    tokens_remaining: int
    reset_seconds: int
    rate_limited_attempts: int
    attempts_reset_minutes: Optional[int] = None
    warning_message: str


class BlacklistedResponse(CamelModel):
    """403 body returned while a subject is suspended."""
    error: str
    reason: str
    blacklisted_until: datetime
    hours_remaining: int
