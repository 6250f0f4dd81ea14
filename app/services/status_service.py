"""
Rate Limit Status Service

Self-service view of a subject's bucket.

Design Decisions:
- Runs the same refill step as admission, but never charges a cost
- Also closes an abuse window that is older than 10 minutes
- Persists the recomputed bucket: a status read advances stored refill state
  on purpose, so two reads in quick succession report consistent,
  monotonically refilled figures. Reads are idempotent with respect to cost,
  not with respect to stored state.
"""

import logging
from datetime import datetime
from typing import Optional

from app.core.classifier import CostClass
from app.core.clock import Clock, utc_now
from app.db.models import PolicyConfiguration
from app.services import token_bucket
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class StatusService:
    """
    Service for reporting a subject's rate limit status.
    """

    def __init__(self, store: RecordStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    async def get_status(
        self,
        subject_id: str,
        policy: PolicyConfiguration,
        now: Optional[datetime] = None
    ) -> Optional[dict]:
        """
        Recompute and report the subject's bucket.

        Returns:
            Dictionary with:
            - subject_id, tokens_remaining, max_tokens, refill_rate_per_minute
            - request_costs: cost per cost class
            - blacklist_status: abuse-window counters and countdown
            - reset_seconds: seconds until the bucket is full again

        Returns None if the subject has never been through admission.
        """
        now = now or self.clock()

        bucket = await self.store.get_bucket(subject_id)
        if bucket is None:
            return None

        if token_bucket.abuse_window_expired(bucket.attempt_window_start, now):
            bucket.attempt_count = 0
            bucket.attempt_window_start = None

        token_bucket.refill(bucket, policy, now)

        await self.store.save_bucket(bucket)

        attempts = bucket.attempt_count or 0
        reset_minutes = token_bucket.attempts_reset_minutes(bucket.attempt_window_start, now)
        warning = None
        if attempts > 0:
            warning = token_bucket.attempts_warning(attempts, policy.blacklist_threshold, reset_minutes)

        return {
            "subject_id": subject_id,
            "tokens_remaining": bucket.tokens,
            "max_tokens": policy.max_tokens,
            "refill_rate_per_minute": policy.refill_rate_per_minute,
            "request_costs": {
                CostClass.STANDARD.value: policy.standard_request_cost,
                CostClass.SHORTEN_URL.value: policy.shorten_url_cost,
            },
            "blacklist_status": {
                "rate_limited_attempts": attempts,
                "threshold": policy.blacklist_threshold,
                "window_minutes": token_bucket.ABUSE_WINDOW_MINUTES,
                "attempts_reset_minutes": reset_minutes,
                "active": attempts > 0,
                "warning_message": warning,
            },
            "reset_seconds": token_bucket.seconds_to_full(bucket.tokens, policy),
        }
