"""
Admission Service

Decides whether a single request from a subject is allowed, denied or
answered with a blacklist, and records the outcome on the subject's bucket.

Algorithm (per request):
1. Active blacklist entry -> Blacklisted, nothing is written
2. Load or create the bucket (new buckets start full)
3. Refill from elapsed time (see app.services.token_bucket)
4. Resolve the cost of the request's cost class
5. Not enough tokens -> count the denial in the 10-minute abuse window;
   reaching the threshold creates a blacklist entry and resets the window
6. Enough tokens -> charge the cost

Concurrency:
- No per-subject locking. Two simultaneous requests from the same subject
  can read the same balance and both be admitted. Subjects are expected to
  issue requests roughly sequentially.
- Allowed requests never touch the abuse-window counters.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from app.core.classifier import CostClass
from app.core.clock import Clock, to_epoch_seconds, utc_now
from app.db.models import BlacklistEntry, PolicyConfiguration, RateLimitBucket
from app.services import token_bucket
from app.services.decisions import Allowed, Blacklisted, Decision, Denied
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def request_cost(policy: PolicyConfiguration, cost_class: CostClass) -> int:
    if cost_class == CostClass.SHORTEN_URL:
        return policy.shorten_url_cost
    return policy.standard_request_cost


class AdmissionController:
    """
    Token-bucket admission with abuse escalation.

    The policy is passed in per call; the controller holds no policy state.
    """

    def __init__(self, store: RecordStore, clock: Clock = utc_now):
        """
        Initialize the controller.

        Args:
            store: Record store bound to the request's session
            clock: Time source used when admit() is called without `now`
        """
        self.store = store
        self.clock = clock

    async def admit(
        self,
        subject_id: str,
        cost_class: CostClass,
        policy: PolicyConfiguration,
        now: Optional[datetime] = None
    ) -> Decision:
        """
        Decide admission for one request.

        Args:
            subject_id: Authenticated subject identifier
            cost_class: Cost class chosen by the request classifier
            policy: Current policy (loaded once for this request)
            now: Decision time (defaults to the controller's clock)

        Returns:
            Allowed, Denied or Blacklisted

        Raises:
            StoreError: If the store fails; the caller decides the response
        """
        now = now or self.clock()

        entry = await self.store.get_active_blacklist_entry(subject_id, now)
        if entry is not None:
            logger.info(f"Rejected blacklisted subject {subject_id} until {entry.blacklisted_until.isoformat()}")
            return Blacklisted(
                reason=entry.reason,
                blacklisted_until=entry.blacklisted_until,
                hours_remaining=token_bucket.hours_remaining(entry.blacklisted_until, now),
            )

        bucket = await self._load_bucket(subject_id, policy, now)
        token_bucket.refill(bucket, policy, now)

        cost = request_cost(policy, cost_class)
        if bucket.tokens < cost:
            return await self._deny(bucket, policy, cost, now)

        bucket.tokens -= cost
        await self.store.save_bucket(bucket)

        return Allowed(
            tokens_remaining=bucket.tokens,
            limit=policy.max_tokens,
            reset_epoch=math.ceil(to_epoch_seconds(now)) + token_bucket.seconds_to_next_token(policy),
        )

    async def _load_bucket(
        self,
        subject_id: str,
        policy: PolicyConfiguration,
        now: datetime
    ) -> RateLimitBucket:
        bucket = await self.store.get_bucket(subject_id)
        if bucket is not None:
            return bucket

        logger.debug(f"Creating bucket for subject {subject_id} with {policy.max_tokens} tokens")
        return await self.store.create_bucket(
            RateLimitBucket(
                subject_id=subject_id,
                tokens=policy.max_tokens,
                last_refill_at=now,
                attempt_count=0,
                attempt_window_start=None,
            )
        )

    async def _deny(
        self,
        bucket: RateLimitBucket,
        policy: PolicyConfiguration,
        cost: int,
        now: datetime
    ) -> Decision:
        # A denial after the window closed starts a new window instead of
        # extending the old tally
        if token_bucket.abuse_window_expired(bucket.attempt_window_start, now):
            bucket.attempt_count = 1
            bucket.attempt_window_start = now
        else:
            bucket.attempt_count += 1

        if bucket.attempt_count >= policy.blacklist_threshold:
            return await self._escalate(bucket, policy, now)

        await self.store.save_bucket(bucket)

        reset_minutes = token_bucket.attempts_reset_minutes(bucket.attempt_window_start, now)
        logger.info(
            f"Rate limited subject {bucket.subject_id}: tokens={bucket.tokens} cost={cost} "
            f"attempts={bucket.attempt_count}/{policy.blacklist_threshold}"
        )
        return Denied(
            tokens_remaining=bucket.tokens,
            reset_seconds=token_bucket.seconds_to_next_token(policy),
            attempt_count=bucket.attempt_count,
            attempts_reset_minutes=reset_minutes,
            warning_message=token_bucket.attempts_warning(
                bucket.attempt_count, policy.blacklist_threshold, reset_minutes
            ),
        )

    async def _escalate(
        self,
        bucket: RateLimitBucket,
        policy: PolicyConfiguration,
        now: datetime
    ) -> Blacklisted:
        blacklisted_until = now + timedelta(hours=policy.blacklist_duration_hours)
        reason = (
            f"Exceeded rate limit threshold of {policy.blacklist_threshold} "
            f"attempts in {token_bucket.ABUSE_WINDOW_MINUTES} minutes"
        )

        await self.store.create_blacklist_entry(
            BlacklistEntry(
                subject_id=bucket.subject_id,
                blacklisted_at=now,
                blacklisted_until=blacklisted_until,
                reason=reason,
            )
        )

        bucket.attempt_count = 0
        bucket.attempt_window_start = None
        await self.store.save_bucket(bucket)

        logger.warning(f"Blacklisted subject {bucket.subject_id} until {blacklisted_until.isoformat()}: {reason}")
        return Blacklisted(
            reason=(
                f"Exceeded {policy.blacklist_threshold} attempts in "
                f"{token_bucket.ABUSE_WINDOW_MINUTES} minutes while rate limited"
            ),
            blacklisted_until=blacklisted_until,
            hours_remaining=token_bucket.hours_remaining(blacklisted_until, now),
            error="Account blacklisted",
        )
