"""
Token Bucket Arithmetic

Pure functions shared by the admission path and the status path, so both
report the same refill results and the same countdowns.

Refill rule:
- tokens_to_add = floor(elapsed_minutes * refill_rate_per_minute)
- last_refill_at only moves when at least one token was added, so partial
  minutes keep accumulating across calls instead of being thrown away

Abuse window:
- Fixed 10 minutes, anchored at the first denial (not a rolling window)
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from app.db.models import PolicyConfiguration, RateLimitBucket

ABUSE_WINDOW_MINUTES = 10
ABUSE_WINDOW = timedelta(minutes=ABUSE_WINDOW_MINUTES)


def refill(bucket: RateLimitBucket, policy: PolicyConfiguration, now: datetime) -> int:
    """
    Add the tokens earned since the last refill to the bucket.

    Tokens are also capped at max_tokens when the policy cap was lowered
    after the bucket last refilled.

    Args:
        bucket: Bucket to update in place
        policy: Current policy
        now: Decision time

    Returns:
        Number of tokens earned (0 when less than one whole token elapsed)
    """
    elapsed_seconds = (now - bucket.last_refill_at).total_seconds()
    tokens_to_add = math.floor(elapsed_seconds * policy.refill_rate_per_minute / 60)

    if tokens_to_add > 0:
        bucket.tokens = min(bucket.tokens + tokens_to_add, policy.max_tokens)
        bucket.last_refill_at = now

    if bucket.tokens > policy.max_tokens:
        bucket.tokens = policy.max_tokens

    return max(tokens_to_add, 0)


def abuse_window_expired(window_start: Optional[datetime], now: datetime) -> bool:
    """True when no window is open or the open one started over 10 minutes ago."""
    return window_start is None or window_start < now - ABUSE_WINDOW


def seconds_to_next_token(policy: PolicyConfiguration) -> int:
    return math.ceil(60 / policy.refill_rate_per_minute)


def seconds_to_full(tokens: int, policy: PolicyConfiguration) -> int:
    missing = max(policy.max_tokens - tokens, 0)
    return math.ceil(missing * 60 / policy.refill_rate_per_minute)


def attempts_reset_minutes(window_start: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole minutes until the open abuse window closes (None when idle)."""
    if window_start is None:
        return None
    remaining = (window_start + ABUSE_WINDOW - now).total_seconds()
    return math.ceil(remaining / 60)


def hours_remaining(blacklisted_until: datetime, now: datetime) -> int:
    return math.ceil((blacklisted_until - now).total_seconds() / 3600)


def attempts_warning(attempt_count: int, threshold: int, reset_minutes: Optional[int]) -> str:
    return (
        f"Warning: You have made {attempt_count} of {threshold} allowed attempts "
        f"while rate limited. This counter resets in {reset_minutes} minutes"
    )
