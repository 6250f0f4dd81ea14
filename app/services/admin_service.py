"""
Admin Service

Policy administration: the aggregate rate-limit view, partial policy
updates, and blacklist listing/removal.

Removal only touches an entry that is still active. Expired entries are the
audit history of past suspensions and are never deleted from here.
"""

import logging
from typing import Any

from app.core.clock import Clock, utc_now
from app.core.exceptions import NotFoundError
from app.db.models import BlacklistEntry, PolicyConfiguration
from app.services.policy_service import PolicyService
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class AdminService:
    """Operations behind the /admin routes."""

    def __init__(self, store: RecordStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock
        self.policy_service = PolicyService(store, clock=clock)

    async def get_overview(self) -> dict:
        """
        Current policy plus every subject's bucket.
        """
        policy = await self.policy_service.get_policy()
        buckets = await self.store.list_buckets()
        return {
            "settings": policy,
            "user_rate_limits": buckets,
        }

    async def get_policy(self) -> PolicyConfiguration:
        return await self.policy_service.get_policy()

    async def update_policy(self, payload: Any) -> PolicyConfiguration:
        return await self.policy_service.update_policy(payload)

    async def list_blacklist(self) -> list[BlacklistEntry]:
        """All entries, active and expired, newest first."""
        return await self.store.list_blacklist_entries()

    async def remove_from_blacklist(self, subject_id: str) -> None:
        """
        Lift a subject's active suspension early.

        Raises:
            NotFoundError: If the subject has no active entry
        """
        deleted = await self.store.delete_active_blacklist_entries(subject_id, self.clock())
        if deleted == 0:
            raise NotFoundError(subject_id)
        logger.info(f"Removed subject {subject_id} from blacklist")
