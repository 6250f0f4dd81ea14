"""
Policy Service

Loads and updates the global admission policy.

Design Decisions:
- The policy row is created lazily with DEFAULT_POLICY on first access
- Callers load it once per request and pass it to the controllers, instead of
  the controllers reading a module-level global
- Updates go through an explicit schema (PolicyUpdate): every present field
  must be a positive, finite JSON number; strings and booleans are not coerced
- Only fields present in the payload are merged (last write wins)
"""

import logging
import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.core.clock import Clock, utc_now
from app.core.exceptions import PolicyValidationError
from app.db.models import PolicyConfiguration
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

POLICY_KEY = "global"

DEFAULT_POLICY = {
    "max_tokens": 20,
    "refill_rate_per_minute": 10,
    "standard_request_cost": 2,
    "shorten_url_cost": 4,
    "blacklist_threshold": 20,
    "blacklist_duration_hours": 24,
}

# Integer columns are 32-bit on PostgreSQL
MAX_POLICY_INTEGER = 2**31 - 1
# now + duration must stay a representable datetime
MAX_BLACKLIST_DURATION_HOURS = 24 * 365 * 100

MAX_POLICY_VALUES = {
    "max_tokens": MAX_POLICY_INTEGER,
    "refill_rate_per_minute": MAX_POLICY_INTEGER,
    "standard_request_cost": MAX_POLICY_INTEGER,
    "shorten_url_cost": MAX_POLICY_INTEGER,
    "blacklist_threshold": MAX_POLICY_INTEGER,
    "blacklist_duration_hours": MAX_BLACKLIST_DURATION_HOURS,
}


class PolicyUpdate(BaseModel):
    """
    Partial policy update.

    Absent fields are left untouched. An explicit null is rejected rather
    than treated as absent. Token counts, costs and the threshold must be
    whole numbers; the refill rate and blacklist duration may be fractional.
    Every field has an upper bound (MAX_POLICY_VALUES).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    max_tokens: Optional[int] = None
    refill_rate_per_minute: Optional[float] = None
    standard_request_cost: Optional[int] = None
    shorten_url_cost: Optional[int] = None
    blacklist_threshold: Optional[int] = None
    blacklist_duration_hours: Optional[float] = None

    @field_validator("*", mode="before")
    @classmethod
    def _positive_number(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a positive number")
        if not math.isfinite(value) or value <= 0:
            raise ValueError("must be positive")
        limit = MAX_POLICY_VALUES[info.field_name]
        if value > limit:
            raise ValueError(f"must be at most {limit}")
        return value


def _validation_error_from(error: ValidationError) -> PolicyValidationError:
    first = error.errors()[0]
    loc = first.get("loc") or ()
    if not loc:
        return PolicyValidationError("Request body must be a JSON object")

    field = str(loc[0])
    if first.get("type") == "value_error":
        reason = str(first["ctx"]["error"])
    else:
        reason = "must be a whole number"
    return PolicyValidationError(f"{field} {reason}", field=field)


class PolicyService:
    """Reads the singleton policy and applies validated partial updates."""

    def __init__(self, store: RecordStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    async def get_policy(self) -> PolicyConfiguration:
        """
        Return the global policy, creating it with defaults on first access.
        """
        policy = await self.store.get_policy(POLICY_KEY)
        if policy is not None:
            return policy

        logger.info("No policy found, creating default policy")
        policy = PolicyConfiguration(key=POLICY_KEY, updated_at=self.clock(), **DEFAULT_POLICY)
        return await self.store.create_policy(policy)

    async def update_policy(self, payload: Any) -> PolicyConfiguration:
        """
        Validate a partial update and merge it into the stored policy.

        Args:
            payload: Decoded JSON body (camelCase or snake_case keys)

        Returns:
            The updated policy

        Raises:
            PolicyValidationError: If no known field is present or a value
                is not a positive number. Nothing is written in that case.
        """
        if not isinstance(payload, Mapping):
            raise PolicyValidationError("Request body must be a JSON object")

        try:
            update = PolicyUpdate.model_validate(payload)
        except ValidationError as e:
            raise _validation_error_from(e)

        changes = update.model_dump(exclude_unset=True)
        if not changes:
            raise PolicyValidationError("At least one setting must be provided")

        policy = await self.get_policy()
        for field, value in changes.items():
            setattr(policy, field, value)
        policy.updated_at = self.clock()

        await self.store.save_policy(policy)
        logger.info(f"Policy updated: {changes}")
        return policy
