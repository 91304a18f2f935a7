"""Tests for the throttled lifecycle refresher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from reminder_hub.context import build_context
from reminder_hub.db.store import InMemoryKeyValueStore
from reminder_hub.manager.module_settings import GLOBAL_SETTINGS_KEY
from reminder_hub.manager.refresher import (
    PENDING_SYSTEM_RESYNC_KEY,
    SIGNATURE_KEY,
    requires_hard_resync,
    serialize_setting,
)
from reminder_hub.models.recovery import RecoveryResult


class YieldingStore(InMemoryKeyValueStore):
    """Store that yields to the event loop on every read."""

    async def get(self, collection, key):
        await asyncio.sleep(0)
        return await super().get(collection, key)


class TestHelpers:
    """Tests for signature helpers."""

    def test_serialize_setting(self):
        assert serialize_setting(None) == "<null>"
        assert serialize_setting(True) == "True"
        assert serialize_setting({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'

    @pytest.mark.parametrize(
        "reason,expected",
        [
            ("app_resume_timezone_change", True),
            ("backup_restore_complete", True),
            ("app_resume", False),
        ],
    )
    def test_requires_hard_resync(self, reason, expected):
        assert requires_hard_resync(reason) is expected


class TestResyncAll:
    """Tests for NotificationSystemRefresher.resync_all."""

    @pytest.mark.asyncio
    async def test_first_run_records_signature(self, ctx):
        result = await ctx.refresher.resync_all("app_start")

        assert result is not None
        assert result.success is True
        assert result.source_flow == "app_start"
        stored = await ctx.settings_store.get_value(SIGNATURE_KEY)
        assert stored == (await ctx.refresher.read_signature()).current

    @pytest.mark.asyncio
    async def test_unchanged_settings_fast_skip(self, ctx, clock):
        await ctx.refresher.resync_all("app_start")
        clock.advance(minutes=10)

        assert await ctx.refresher.resync_all("app_resume") is None

    @pytest.mark.asyncio
    async def test_settings_change_bypasses_debounce(self, ctx, clock):
        await ctx.refresher.resync_all("app_start")
        clock.advance(seconds=5)
        await ctx.settings_store.set_value(GLOBAL_SETTINGS_KEY, {"quiet_hours": True})

        result = await ctx.refresher.resync_all("settings_changed")

        assert result is not None

    @pytest.mark.asyncio
    async def test_hard_resync_debounced_inside_interval(self, ctx, clock):
        await ctx.refresher.resync_all("app_start")
        clock.advance(seconds=10)

        assert await ctx.refresher.resync_all("timezone_change") is None

    @pytest.mark.asyncio
    async def test_hard_resync_runs_after_interval(self, ctx, clock):
        await ctx.refresher.resync_all("app_start")
        clock.advance(seconds=60)

        result = await ctx.refresher.resync_all("timezone_change")

        assert result is not None
        assert result.source_flow == "timezone_change"

    @pytest.mark.asyncio
    async def test_force_ignores_throttling(self, ctx):
        await ctx.refresher.resync_all("app_start")

        assert await ctx.refresher.resync_all("manual", force=True) is not None

    @pytest.mark.asyncio
    async def test_failed_run_does_not_store_signature(self, ctx):
        ctx.refresher.recovery = AsyncMock()
        ctx.refresher.recovery.run_recovery.return_value = RecoveryResult(success=False)

        result = await ctx.refresher.resync_all("app_start")

        assert result.success is False
        assert await ctx.settings_store.get_value(SIGNATURE_KEY) is None

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_none(self, ctx):
        ctx.refresher.recovery = AsyncMock()
        ctx.refresher.recovery.run_recovery.side_effect = RuntimeError("boom")

        assert await ctx.refresher.resync_all("app_start") is None
        assert ctx.refresher.in_progress is False

    @pytest.mark.asyncio
    async def test_concurrent_triggers_run_once(self, settings, gateway, clock):
        ctx = build_context(settings=settings, store=YieldingStore(), gateway=gateway, clock=clock)
        ctx.refresher.recovery = AsyncMock()
        ctx.refresher.recovery.run_recovery.return_value = RecoveryResult(success=True)

        results = await asyncio.gather(
            ctx.refresher.resync_all("app_start"),
            ctx.refresher.resync_all("app_resume_timezone_change"),
        )

        assert ctx.refresher.recovery.run_recovery.await_count == 1
        assert results.count(None) == 1
        assert ctx.refresher.in_progress is False

    @pytest.mark.asyncio
    async def test_fast_skip_releases_in_progress(self, ctx):
        await ctx.refresher.resync_all("app_start")

        assert await ctx.refresher.resync_all("app_resume") is None
        assert ctx.refresher.in_progress is False


class TestOnAppResumed:
    """Tests for the resume entry point."""

    @pytest.mark.asyncio
    async def test_pending_system_resync_forces_run(self, ctx):
        await ctx.refresher.resync_all("app_start")
        await ctx.settings_store.set_value(PENDING_SYSTEM_RESYNC_KEY, True)

        result = await ctx.refresher.on_app_resumed()

        assert result is not None
        assert result.source_flow == "app_resume_timezone_change"
        assert await ctx.settings_store.get_value(PENDING_SYSTEM_RESYNC_KEY) is None

    @pytest.mark.asyncio
    async def test_plain_resume_fast_skips(self, ctx):
        await ctx.refresher.resync_all("app_start")

        assert await ctx.refresher.on_app_resumed() is None
