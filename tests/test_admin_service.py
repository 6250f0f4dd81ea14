"""
Tests for AdminService: overview, policy passthrough and blacklist management.
"""

from datetime import timedelta

import pytest

from app.core.classifier import CostClass
from app.core.exceptions import NotFoundError
from app.db.models import BlacklistEntry
from app.services.admin_service import AdminService
from app.services.admission_service import AdmissionController


async def add_entry(store, subject_id, blacklisted_at, hours=24):
    return await store.create_blacklist_entry(
        BlacklistEntry(
            subject_id=subject_id,
            blacklisted_at=blacklisted_at,
            blacklisted_until=blacklisted_at + timedelta(hours=hours),
            reason="Exceeded rate limit threshold of 20 attempts in 10 minutes",
        )
    )


@pytest.mark.asyncio
async def test_overview_lists_policy_and_buckets(store, clock, policy):
    controller = AdmissionController(store, clock=clock)
    await controller.admit("user-b", CostClass.STANDARD, policy)
    await controller.admit("user-a", CostClass.SHORTEN_URL, policy)

    overview = await AdminService(store, clock=clock).get_overview()

    assert overview["settings"] is policy
    assert [b.subject_id for b in overview["user_rate_limits"]] == ["user-a", "user-b"]
    assert [b.tokens for b in overview["user_rate_limits"]] == [16, 18]


@pytest.mark.asyncio
async def test_overview_before_any_traffic(store, clock):
    overview = await AdminService(store, clock=clock).get_overview()

    assert overview["settings"].max_tokens == 20
    assert overview["user_rate_limits"] == []


@pytest.mark.asyncio
async def test_update_policy_is_visible_to_next_read(store, clock):
    service = AdminService(store, clock=clock)

    await service.update_policy({"maxTokens": 50})

    policy = await service.get_policy()
    assert policy.max_tokens == 50


@pytest.mark.asyncio
async def test_blacklist_is_listed_newest_first(store, clock):
    await add_entry(store, "user-a", clock() - timedelta(days=3))
    await add_entry(store, "user-b", clock() - timedelta(hours=1))
    await add_entry(store, "user-c", clock() - timedelta(days=1))

    entries = await AdminService(store, clock=clock).list_blacklist()

    assert [e.subject_id for e in entries] == ["user-b", "user-c", "user-a"]


@pytest.mark.asyncio
async def test_remove_active_entry(store, clock, policy):
    await add_entry(store, "user-1", clock() - timedelta(hours=1))
    service = AdminService(store, clock=clock)

    await service.remove_from_blacklist("user-1")

    assert await store.get_active_blacklist_entry("user-1", clock()) is None
    decision = await AdmissionController(store, clock=clock).admit("user-1", CostClass.STANDARD, policy)
    assert decision.tokens_remaining == 18


@pytest.mark.asyncio
async def test_remove_keeps_expired_history(store, clock):
    await add_entry(store, "user-1", clock() - timedelta(days=3))
    await add_entry(store, "user-1", clock() - timedelta(hours=1))
    service = AdminService(store, clock=clock)

    await service.remove_from_blacklist("user-1")

    entries = await service.list_blacklist()
    assert len(entries) == 1
    assert entries[0].blacklisted_until < clock()


@pytest.mark.asyncio
async def test_remove_without_active_entry_raises(store, clock):
    await add_entry(store, "user-1", clock() - timedelta(days=3))
    service = AdminService(store, clock=clock)

    with pytest.raises(NotFoundError) as exc_info:
        await service.remove_from_blacklist("user-1")

    assert exc_info.value.message == "No active blacklist found for this user"
    assert len(await service.list_blacklist()) == 1
