"""
Database Models for the Admission-Control Service

This module defines the SQLModel database schemas for:
- PolicyConfiguration: Singleton policy row (token economics + escalation thresholds)
- RateLimitBucket: Per-subject token bucket and abuse-window counters
- BlacklistEntry: Temporary suspensions created by escalation

Design Decisions:
- subject_id is unique on buckets (one bucket per subject, never deleted)
- subject_id is NOT unique on blacklist entries: expired suspensions stay as
  audit history, and a subject may be suspended again after expiry
- Indexes on blacklisted_until because every admission looks up the active entry
- All timestamps are naive UTC columns (see app.core.clock); timestamptz would
  hand back aware datetimes on PostgreSQL and break comparisons
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String
from sqlmodel import Column, Field, SQLModel

from app.core.clock import utc_now


class PolicyConfiguration(SQLModel, table=True):
    """
    Global admission policy.

    There is exactly one row, keyed "global". It is created with defaults on
    first access and afterwards changed only through validated partial
    updates from the admin routes.
    """
    __tablename__ = "policy_configurations"

    key: str = Field(sa_column=Column(String(32), primary_key=True))
    max_tokens: int = Field(sa_column=Column(Integer, nullable=False))
    refill_rate_per_minute: float = Field(sa_column=Column(Float, nullable=False))
    standard_request_cost: int = Field(sa_column=Column(Integer, nullable=False))
    shorten_url_cost: int = Field(sa_column=Column(Integer, nullable=False))
    blacklist_threshold: int = Field(sa_column=Column(Integer, nullable=False))
    blacklist_duration_hours: float = Field(sa_column=Column(Float, nullable=False))
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(), nullable=False)
    )


class RateLimitBucket(SQLModel, table=True):
    """
    Token bucket for one subject.

    Fields:
    - tokens: Current balance, kept within [0, policy.max_tokens]
    - last_refill_at: Last time tokens were actually added (not every request)
    - attempt_count: Denied requests in the current abuse window (0 when idle)
    - attempt_window_start: When the abuse window opened (None when idle)
    """
    __tablename__ = "rate_limit_buckets"

    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True)
    )
    tokens: int = Field(sa_column=Column(Integer, nullable=False))
    last_refill_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(), nullable=False)
    )
    attempt_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    attempt_window_start: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(), nullable=True)
    )


class BlacklistEntry(SQLModel, table=True):
    """
    A temporary suspension of a subject.

    An entry is active while blacklisted_until is in the future. Expired
    entries are kept for audit and ignored by admission.
    """
    __tablename__ = "blacklist_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True)
    )
    blacklisted_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(), nullable=False, index=True)
    )
    blacklisted_until: datetime = Field(
        sa_column=Column(DateTime(), nullable=False, index=True)
    )
    reason: str = Field(
        default="Exceeded rate limit threshold",
        sa_column=Column(String(255), nullable=False)
    )

    def is_active(self, now: datetime) -> bool:
        return self.blacklisted_until > now
