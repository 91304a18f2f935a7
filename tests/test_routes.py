"""Tests for the HTTP routes."""

from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from reminder_hub.context import set_context
from reminder_hub.models.finance import Bill, BillReminder


async def request(ctx, method: str, url: str, **kwargs):
    from reminder_hub.main import app

    set_context(ctx)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, url, **kwargs)


async def save_rent(ctx) -> None:
    await ctx.repos.bills.save(
        Bill(
            id="b1",
            name="Rent",
            next_due_date=date(2026, 3, 11),
            reminders=[BillReminder(id="r1", value=1, hour=9)],
        )
    )


class TestHealth:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_lists_registered_modules(self, ctx):
        resp = await request(ctx, "GET", "/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "task" in data["modules"]
        assert data["native_alarms"] is False


class TestModules:
    """Tests for the module enable toggle."""

    @pytest.mark.asyncio
    async def test_toggle(self, ctx):
        resp = await request(ctx, "PUT", "/modules/task/enabled", json={"enabled": False})
        assert resp.status_code == 200

        resp = await request(ctx, "GET", "/modules/task/enabled")
        assert resp.json() == {"module_id": "task", "enabled": False}

    @pytest.mark.asyncio
    async def test_unknown_module_404(self, ctx):
        resp = await request(ctx, "GET", "/modules/garden/enabled")

        assert resp.status_code == 404


class TestSchedulerRoutes:
    """Tests for the sync endpoints and the views they feed."""

    @pytest.mark.asyncio
    async def test_finance_sync_then_views(self, ctx):
        await save_rent(ctx)

        resp = await request(ctx, "POST", "/finance/sync")
        assert resp.status_code == 200
        assert resp.json()["scheduled"] == 1

        scheduled = (await request(ctx, "GET", "/scheduled", params={"module_id": "finance"})).json()
        assert len(scheduled) == 1
        assert datetime.fromisoformat(scheduled[0]["scheduled_at"]) == datetime(2026, 3, 10, 9, 0)

        history = (await request(ctx, "GET", "/history", params={"event": "scheduled"})).json()
        assert [e["module_id"] for e in history] == ["finance"]

        dashboard = (await request(ctx, "GET", "/dashboard")).json()
        assert dashboard["total_pending"] == 1

    @pytest.mark.asyncio
    async def test_entity_sync_without_definitions_404(self, ctx):
        resp = await request(ctx, "POST", "/universal/entities/nope/sync")

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_universal_sync_empty(self, ctx):
        resp = await request(ctx, "POST", "/universal/sync")

        assert resp.status_code == 200
        assert resp.json()["scheduled"] == 0


class TestHistoryRoutes:
    """Tests for history maintenance endpoints."""

    @pytest.mark.asyncio
    async def test_delete_unknown_entry_404(self, ctx):
        resp = await request(ctx, "DELETE", "/history/missing")

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_clear(self, ctx):
        await save_rent(ctx)
        await ctx.finance_scheduler.sync_schedules()

        resp = await request(ctx, "DELETE", "/history")

        assert resp.status_code == 204
        assert await ctx.hub.get_history() == []

    @pytest.mark.asyncio
    async def test_compact_nothing_to_remove(self, ctx):
        resp = await request(ctx, "POST", "/history/compact")

        assert resp.json() == {"removed": 0}


class TestRecoveryRoutes:
    """Tests for recovery and throttled resync endpoints."""

    @pytest.mark.asyncio
    async def test_run_recovery(self, ctx):
        resp = await request(ctx, "POST", "/recovery/run", json={"source_flow": "manual"})

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["source_flow"] == "manual"

    @pytest.mark.asyncio
    async def test_resync_reports_skip(self, ctx):
        first = await request(ctx, "POST", "/resync", json={"reason": "app_start"})
        second = await request(ctx, "POST", "/resync", json={"reason": "app_resume"})

        assert first.json()["skipped"] is False
        assert second.json() == {"skipped": True, "result": None}


class TestNotificationRoutes:
    """Tests for tap, action and delete endpoints."""

    @pytest.mark.asyncio
    async def test_tap_returns_route(self, ctx):
        resp = await request(
            ctx, "POST", "/notifications/tap", json={"payload": "task|t9|at_time|0|minutes"}
        )

        assert resp.json() == {"handled": True, "route": "/tasks/t9"}

    @pytest.mark.asyncio
    async def test_tap_invalid_payload_400(self, ctx):
        resp = await request(ctx, "POST", "/notifications/tap", json={"payload": "garbage"})

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_cancels_pending(self, ctx):
        await save_rent(ctx)
        await ctx.finance_scheduler.sync_schedules()
        [pending] = await ctx.gateway.list_pending()

        resp = await request(ctx, "DELETE", f"/notifications/{pending.id}")

        assert resp.status_code == 204
        assert await ctx.gateway.list_pending() == []


class TestRecoveryLoopTiming:
    """Tests for seconds_until_next_run."""

    def test_next_quarter_hour(self):
        from reminder_hub.main import seconds_until_next_run

        assert seconds_until_next_run("*/15 * * * *", datetime(2026, 3, 10, 8, 7)) == 480.0

    def test_on_the_boundary_waits_a_full_period(self):
        from reminder_hub.main import seconds_until_next_run

        assert seconds_until_next_run("*/15 * * * *", datetime(2026, 3, 10, 8, 0)) == 900.0
