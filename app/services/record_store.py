"""
Record Store

Durable storage for policy, bucket and blacklist records, exposed to the
admission services as small get/create/save/list/delete operations.

Design Decisions:
- One store per database session; the caller owns the transaction
  (middleware or get_session commits once the decision is made)
- save/create only flush, so a denial that escalates writes the bucket and
  the blacklist entry in the same commit
- Every SQLAlchemy failure surfaces as StoreError; nothing is retried here
- Lazy creation races (two first requests from one subject) are resolved
  inside a SAVEPOINT: on IntegrityError only the savepoint is rolled back
  and the winning row is re-read
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreError
from app.db.models import BlacklistEntry, PolicyConfiguration, RateLimitBucket

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Durable record store keyed by subject identifier.

    Services receive a RecordStore instead of a raw session so the storage
    engine stays an implementation detail.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, record, action: str):
        try:
            self.session.add(record)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to {action}: {e}", original_error=e)
        return record

    async def _scalar(self, statement, action: str):
        try:
            result = await self.session.execute(statement)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to {action}: {e}", original_error=e)

    async def _scalars(self, statement, action: str) -> list:
        try:
            result = await self.session.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to {action}: {e}", original_error=e)

    # Policy

    async def get_policy(self, key: str) -> Optional[PolicyConfiguration]:
        statement = select(PolicyConfiguration).where(PolicyConfiguration.key == key)
        return await self._scalar(statement, "load policy")

    async def create_policy(self, policy: PolicyConfiguration) -> PolicyConfiguration:
        """
        Insert the policy row, or return the row another request inserted first.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(policy)
            return policy
        except IntegrityError:
            existing = await self.get_policy(policy.key)
            if existing is not None:
                logger.info(f"Policy '{policy.key}' was created concurrently, reusing it")
                return existing
            raise StoreError(f"Failed to create policy '{policy.key}'")
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create policy: {e}", original_error=e)

    async def save_policy(self, policy: PolicyConfiguration) -> PolicyConfiguration:
        return await self._flush(policy, "save policy")

    # Buckets

    async def get_bucket(self, subject_id: str) -> Optional[RateLimitBucket]:
        statement = select(RateLimitBucket).where(RateLimitBucket.subject_id == subject_id)
        return await self._scalar(statement, f"load bucket for '{subject_id}'")

    async def create_bucket(self, bucket: RateLimitBucket) -> RateLimitBucket:
        """
        Insert a new bucket, or return the one a concurrent request created.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(bucket)
            return bucket
        except IntegrityError:
            existing = await self.get_bucket(bucket.subject_id)
            if existing is not None:
                return existing
            raise StoreError(f"Failed to create bucket for '{bucket.subject_id}'")
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create bucket: {e}", original_error=e)

    async def save_bucket(self, bucket: RateLimitBucket) -> RateLimitBucket:
        return await self._flush(bucket, f"save bucket for '{bucket.subject_id}'")

    async def list_buckets(self) -> list[RateLimitBucket]:
        statement = select(RateLimitBucket).order_by(RateLimitBucket.subject_id)
        return await self._scalars(statement, "list buckets")

    # Blacklist

    async def get_active_blacklist_entry(
        self,
        subject_id: str,
        now: datetime
    ) -> Optional[BlacklistEntry]:
        statement = (
            select(BlacklistEntry)
            .where(BlacklistEntry.subject_id == subject_id)
            .where(BlacklistEntry.blacklisted_until > now)
            .order_by(BlacklistEntry.blacklisted_until.desc())
            .limit(1)
        )
        return await self._scalar(statement, f"load blacklist entry for '{subject_id}'")

    async def create_blacklist_entry(self, entry: BlacklistEntry) -> BlacklistEntry:
        return await self._flush(entry, f"create blacklist entry for '{entry.subject_id}'")

    async def list_blacklist_entries(self) -> list[BlacklistEntry]:
        statement = select(BlacklistEntry).order_by(
            BlacklistEntry.blacklisted_at.desc(),
            BlacklistEntry.id.desc()
        )
        return await self._scalars(statement, "list blacklist entries")

    async def delete_active_blacklist_entries(self, subject_id: str, now: datetime) -> int:
        """
        Delete the subject's active entries; expired history rows are kept.

        Returns:
            Number of rows deleted
        """
        statement = (
            delete(BlacklistEntry)
            .where(BlacklistEntry.subject_id == subject_id)
            .where(BlacklistEntry.blacklisted_until > now)
        )
        try:
            result = await self.session.execute(statement)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete blacklist entry for '{subject_id}': {e}", original_error=e)
        return result.rowcount or 0
