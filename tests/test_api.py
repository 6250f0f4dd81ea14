"""
HTTP tests for admission middleware, status route and admin routes.

Requests go through the full ASGI stack (httpx ASGITransport) against an
in-memory database; identity is forwarded in the X-Subject-* headers.
"""


import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.clock import to_epoch_seconds
from app.db.session import build_session_maker
from app.main import create_app

USER_HEADERS = {"X-Subject-Id": "user-1", "X-Subject-Role": "user"}
ADMIN_HEADERS = {"X-Subject-Id": "admin-1", "X-Subject-Role": "admin"}


def user(subject_id):
    return {"X-Subject-Id": subject_id, "X-Subject-Role": "user"}


class TestHealth:

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Admission Gateway"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert "X-Process-Time" in response.headers


class TestAdmission:

    @pytest.mark.asyncio
    async def test_allowed_request_carries_rate_limit_headers(self, client, clock):
        response = await client.get("/api/urls", headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"urls": []}
        assert response.headers["X-RateLimit-Limit"] == "20"
        assert response.headers["X-RateLimit-Remaining"] == "18"
        assert response.headers["X-RateLimit-Reset"] == str(int(to_epoch_seconds(clock())) + 6)

    @pytest.mark.asyncio
    async def test_shorten_costs_more(self, client):
        response = await client.post("/api/shorten", headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "16"

    @pytest.mark.asyncio
    async def test_exhausted_bucket_answers_429(self, client):
        for _ in range(10):
            assert (await client.get("/api/urls", headers=USER_HEADERS)).status_code == 200

        response = await client.get("/api/urls", headers=USER_HEADERS)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "6"
        assert response.json() == {
            "error": "Rate limit exceeded",
            "tokensRemaining": 0,
            "resetSeconds": 6,
            "rateLimitedAttempts": 1,
            "attemptsResetMinutes": 10,
            "warningMessage": (
                "Warning: You have made 1 of 20 allowed attempts while rate limited. "
                "This counter resets in 10 minutes"
            ),
        }

    @pytest.mark.asyncio
    async def test_subjects_have_separate_buckets(self, client):
        for _ in range(5):
            await client.post("/api/shorten", headers=user("user-a"))

        assert (await client.post("/api/shorten", headers=user("user-a"))).status_code == 429
        assert (await client.post("/api/shorten", headers=user("user-b"))).status_code == 200

    @pytest.mark.asyncio
    async def test_refill_over_time(self, client, clock):
        for _ in range(10):
            await client.get("/api/urls", headers=USER_HEADERS)
        assert (await client.get("/api/urls", headers=USER_HEADERS)).status_code == 429

        clock.advance(seconds=12)
        response = await client.get("/api/urls", headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_repeated_denials_blacklist_subject(self, client, clock):
        update = await client.put("/admin/rate-limits", json={"blacklistThreshold": 3}, headers=ADMIN_HEADERS)
        assert update.status_code == 200

        for _ in range(10):
            await client.get("/api/urls", headers=USER_HEADERS)
        assert (await client.get("/api/urls", headers=USER_HEADERS)).status_code == 429
        assert (await client.get("/api/urls", headers=USER_HEADERS)).status_code == 429

        response = await client.get("/api/urls", headers=USER_HEADERS)
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "Account blacklisted"
        assert body["reason"] == "Exceeded 3 attempts in 10 minutes while rate limited"
        assert body["hoursRemaining"] == 24

        clock.advance(hours=2)
        response = await client.get("/api/urls", headers=USER_HEADERS)
        assert response.status_code == 403
        assert response.json()["error"] == "User is blacklisted"
        assert response.json()["reason"] == "Exceeded rate limit threshold of 3 attempts in 10 minutes"
        assert response.json()["hoursRemaining"] == 22

        clock.advance(hours=22, seconds=1)
        response = await client.get("/api/urls", headers=USER_HEADERS)
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "18"

    @pytest.mark.asyncio
    async def test_admin_role_is_not_rate_limited(self, client):
        for _ in range(15):
            response = await client.get("/api/urls", headers=ADMIN_HEADERS)
            assert response.status_code == 200
            assert "X-RateLimit-Remaining" not in response.headers

    @pytest.mark.asyncio
    async def test_anonymous_request_passes_through(self, client):
        response = await client.get("/api/urls")
        assert response.status_code == 200
        assert "X-RateLimit-Remaining" not in response.headers

    @pytest.mark.asyncio
    async def test_paths_outside_prefix_are_not_guarded(self, client):
        for _ in range(15):
            assert (await client.get("/health", headers=USER_HEADERS)).status_code == 200

    @pytest.mark.asyncio
    async def test_store_failure_answers_500(self, clock):
        # No tables: every store call fails
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        app = create_app(session_maker=build_session_maker(engine), clock=clock, manage_database=False)

        async def list_urls():
            return {"urls": []}

        app.add_api_route("/api/urls", list_urls, methods=["GET"])

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/urls", headers=USER_HEADERS)

        await engine.dispose()
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}


class TestStatusRoute:

    @pytest.mark.asyncio
    async def test_status_requires_user_role(self, client):
        assert (await client.get("/api/rate-limit/status")).status_code == 401
        assert (await client.get("/api/rate-limit/status", headers=ADMIN_HEADERS)).status_code == 403

    @pytest.mark.asyncio
    async def test_status_unknown_subject(self, client):
        response = await client.get("/api/rate-limit/status", headers=USER_HEADERS)
        assert response.status_code == 404
        assert response.json()["detail"] == "Rate limit information not found"

    @pytest.mark.asyncio
    async def test_status_is_free(self, client):
        await client.get("/api/urls", headers=USER_HEADERS)

        for _ in range(3):
            response = await client.get("/api/rate-limit/status", headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["subjectId"] == "user-1"
        assert body["tokensRemaining"] == 18
        assert body["maxTokens"] == 20
        assert body["refillRatePerMinute"] == 10
        assert body["requestCosts"] == {"standard": 2, "shortenUrl": 4}
        assert body["resetSeconds"] == 12
        assert body["blacklistStatus"]["rateLimitedAttempts"] == 0
        assert body["blacklistStatus"]["active"] is False
        assert body["blacklistStatus"]["windowMinutes"] == 10
        assert "X-RateLimit-Remaining" not in response.headers


class TestAdminRoutes:

    @pytest.mark.asyncio
    async def test_admin_routes_require_admin_role(self, client):
        assert (await client.get("/admin/rate-limits")).status_code == 401
        response = await client.get("/admin/rate-limits", headers=USER_HEADERS)
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_get_rate_limits(self, client):
        await client.get("/api/urls", headers=user("user-b"))
        await client.post("/api/shorten", headers=user("user-a"))

        response = await client.get("/admin/rate-limits", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["settings"] == {
            "maxTokens": 20,
            "refillRatePerMinute": 10,
            "standardRequestCost": 2,
            "shortenUrlCost": 4,
            "blacklistThreshold": 20,
            "blacklistDurationHours": 24,
        }
        assert [(b["subjectId"], b["tokens"]) for b in body["userRateLimits"]] == [
            ("user-a", 16),
            ("user-b", 18),
        ]

    @pytest.mark.asyncio
    async def test_update_rate_limits(self, client):
        response = await client.put(
            "/admin/rate-limits",
            json={"maxTokens": 40, "shortenUrlCost": 8},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Rate limit settings updated successfully"
        assert body["settings"]["maxTokens"] == 40
        assert body["settings"]["shortenUrlCost"] == 8
        assert body["settings"]["standardRequestCost"] == 2

        allowed = await client.post("/api/shorten", headers=USER_HEADERS)
        assert allowed.headers["X-RateLimit-Limit"] == "40"
        assert allowed.headers["X-RateLimit-Remaining"] == "32"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload, detail", [
        ({}, "At least one setting must be provided"),
        ({"maxTokens": -1}, "maxTokens must be positive"),
        ({"refillRatePerMinute": "fast"}, "refillRatePerMinute must be a positive number"),
        ([1], "Request body must be a JSON object"),
    ])
    async def test_invalid_update_answers_400(self, client, payload, detail):
        response = await client.put("/admin/rate-limits", json=payload, headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert response.json()["detail"] == detail

    @pytest.mark.asyncio
    async def test_empty_body_answers_400(self, client):
        response = await client.put("/admin/rate-limits", headers=ADMIN_HEADERS)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_blacklist_listing_and_removal(self, client, clock):
        await client.put("/admin/rate-limits", json={"blacklistThreshold": 1}, headers=ADMIN_HEADERS)
        for _ in range(11):
            await client.get("/api/urls", headers=USER_HEADERS)
        assert (await client.get("/api/urls", headers=USER_HEADERS)).status_code == 403

        listing = await client.get("/admin/blacklist", headers=ADMIN_HEADERS)
        assert listing.status_code == 200
        entries = listing.json()["blacklistEntries"]
        assert len(entries) == 1
        assert entries[0]["subjectId"] == "user-1"
        assert entries[0]["reason"] == "Exceeded rate limit threshold of 1 attempts in 10 minutes"

        removal = await client.delete("/admin/blacklist/user-1", headers=ADMIN_HEADERS)
        assert removal.status_code == 200
        assert removal.json() == {
            "message": "User removed from blacklist successfully",
            "userId": "user-1",
        }

        # Unblocked, but the bucket is still empty
        clock.advance(seconds=6)
        response = await client.get("/api/urls", headers=USER_HEADERS)
        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_remove_unknown_subject_answers_404(self, client):
        response = await client.delete("/admin/blacklist/user-9", headers=ADMIN_HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "No active blacklist found for this user"

    @pytest.mark.asyncio
    async def test_remove_invalid_subject_answers_400(self, client):
        response = await client.delete("/admin/blacklist/bad%20id", headers=ADMIN_HEADERS)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_out_of_range_duration_is_rejected_and_escalation_keeps_working(self, client):
        response = await client.put(
            "/admin/rate-limits",
            json={"blacklistDurationHours": 100000000, "blacklistThreshold": 1},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "blacklistDurationHours must be at most 876000"

        await client.put("/admin/rate-limits", json={"blacklistThreshold": 1}, headers=ADMIN_HEADERS)
        for _ in range(10):
            await client.get("/api/urls", headers=USER_HEADERS)

        response = await client.get("/api/urls", headers=USER_HEADERS)
        assert response.status_code == 403
        assert response.json()["hoursRemaining"] == 24

        listing = await client.get("/admin/blacklist", headers=ADMIN_HEADERS)
        assert len(listing.json()["blacklistEntries"]) == 1

    @pytest.mark.asyncio
    async def test_whole_number_rates_are_rendered_as_integers(self, client):
        response = await client.get("/admin/rate-limits", headers=ADMIN_HEADERS)
        settings = response.json()["settings"]
        assert type(settings["refillRatePerMinute"]) is int
        assert type(settings["blacklistDurationHours"]) is int

        response = await client.put(
            "/admin/rate-limits",
            json={"refillRatePerMinute": 7.5},
            headers=ADMIN_HEADERS,
        )
        assert response.json()["settings"]["refillRatePerMinute"] == 7.5

        await client.get("/api/urls", headers=USER_HEADERS)
        await client.put("/admin/rate-limits", json={"refillRatePerMinute": 10}, headers=ADMIN_HEADERS)
        status = await client.get("/api/rate-limit/status", headers=USER_HEADERS)
        assert type(status.json()["refillRatePerMinute"]) is int
