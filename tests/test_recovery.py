"""Tests for the recovery orchestrator and its health check."""

from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from reminder_hub.config import Settings
from reminder_hub.context import build_context
from reminder_hub.exceptions import GatewayError, StorageError
from reminder_hub.models.finance import Bill, BillReminder, FinanceNotificationSettings
from reminder_hub.models.notification import ScheduledNotification
from reminder_hub.models.tasks import Habit, Task
from reminder_hub.models.universal import UniversalNotification
from reminder_hub.services.gateway import InMemoryNotificationGateway


def reminder_task(i: int) -> Task:
    return Task(id=f"t{i}", title=f"Task {i}", reminders_json="15 min before")


def reminder_habit(i: int) -> Habit:
    return Habit(
        id=f"h{i}", title=f"Habit {i}", reminder_enabled=True, reminder_duration="5 min before"
    )


class TestRunRecovery:
    """Tests for NotificationRecoveryService.run_recovery."""

    @pytest.mark.asyncio
    async def test_headless_skips_legacy_resync(self, ctx):
        await ctx.repos.tasks.save(reminder_task(1))

        result = await ctx.recovery.run_recovery(
            bootstrap_for_background=True, source_flow="background_task"
        )

        assert result.success is True
        assert result.source_flow == "background_task"
        assert result.legacy_resync_skipped_headless is True
        assert "legacy_resync_skipped_headless" in result.skipped_reasons
        assert "out_of_range_skip_headless" in result.skipped_reasons
        assert result.task_rescheduled == 0

    @pytest.mark.asyncio
    async def test_headless_bootstrap_registers_adapters(self, ctx):
        ctx.hub.unregister_adapter("task")

        await ctx.recovery.run_recovery(bootstrap_for_background=True)

        assert ctx.hub.is_registered("task")

    @pytest.mark.asyncio
    async def test_foreground_without_native_alarms(self, ctx):
        result = await ctx.recovery.run_recovery()

        assert result.success is True
        assert "out_of_range_skip_platform" in result.skipped_reasons
        assert result.legacy_resync_skipped_headless is False

    @pytest.mark.asyncio
    async def test_runs_every_scheduler(self, ctx):
        await ctx.repos.bills.save(
            Bill(
                id="b1",
                name="Rent",
                next_due_date=date(2026, 3, 11),
                reminders=[BillReminder(id="r1", value=1, hour=9)],
            )
        )
        await ctx.repos.tasks.save(
            Task(id="t1", title="Report", due_date=date(2026, 3, 11), reminders_json="1 hour before")
        )
        await ctx.repos.tasks.save(Task(id="t2", title="Review", due_date=date(2026, 3, 11)))
        await ctx.repos.universal.save(
            UniversalNotification(
                module_id="task",
                entity_id="t2",
                title_template="{taskName}",
                timing="before",
                timing_value=1,
                timing_unit="days",
            )
        )

        result = await ctx.recovery.run_recovery()

        assert result.finance_scheduled == 1
        assert result.universal_scheduled == 1
        assert result.task_rescheduled == 1
        assert result.modules_processed == 4
        assert len(await ctx.gateway.list_pending()) == 3

    @pytest.mark.asyncio
    async def test_resync_caps(self, ctx):
        for i in range(305):
            await ctx.repos.tasks.save(reminder_task(i))
        for i in range(405):
            await ctx.repos.habits.save(reminder_habit(i))
        ctx.recovery.legacy_reminders = AsyncMock()

        result = await ctx.recovery.run_recovery()

        assert result.task_rescheduled == 300
        assert result.task_skipped_by_cap == 5
        assert result.habit_rescheduled == 400
        assert result.habit_skipped_by_cap == 5
        assert ctx.recovery.legacy_reminders.reschedule_task.await_count == 300
        assert ctx.recovery.legacy_reminders.reschedule_habit.await_count == 400

    @pytest.mark.asyncio
    async def test_disabled_modules_recorded(self, ctx):
        await ctx.settings_store.set_module_enabled("finance", False)
        await ctx.settings_store.set_module_enabled("task", False)

        result = await ctx.recovery.run_recovery()

        assert "finance_disabled" in result.skipped_reasons
        assert "task_module_disabled" in result.skipped_reasons

    @pytest.mark.asyncio
    async def test_exception_reported_not_raised(self, ctx):
        ctx.hub.initialize = AsyncMock(side_effect=RuntimeError("boom"))

        result = await ctx.recovery.run_recovery(source_flow="api")

        assert result.success is False
        assert result.error == "boom"
        assert result.skipped_reasons == ["recovery_exception"]
        assert "error=boom" in result.summary_line()

    @pytest.mark.asyncio
    async def test_finance_failure_does_not_block_universal(self, ctx):
        await ctx.repos.tasks.save(Task(id="t2", title="Review", due_date=date(2026, 3, 11)))
        definition = UniversalNotification(
            module_id="task",
            entity_id="t2",
            title_template="{taskName}",
            timing="before",
            timing_value=1,
            timing_unit="days",
        )
        await ctx.repos.universal.save(definition)
        ctx.recovery.finance_scheduler = AsyncMock()
        ctx.recovery.finance_scheduler.load_settings.return_value = FinanceNotificationSettings()
        ctx.recovery.finance_scheduler.sync_schedules.side_effect = StorageError(
            "get", "bills", "disk unavailable"
        )

        result = await ctx.recovery.run_recovery()

        assert result.success is True
        assert "finance_failed" in result.skipped_reasons
        assert result.universal_scheduled == 1
        pending_ids = [p.id for p in await ctx.gateway.list_pending()]
        assert pending_ids == [ctx.universal_scheduler.notification_id_for(definition)]

    @pytest.mark.asyncio
    async def test_universal_failure_does_not_block_legacy(self, ctx):
        await ctx.repos.tasks.save(
            Task(id="t1", title="Report", due_date=date(2026, 3, 11), reminders_json="1 hour before")
        )
        ctx.recovery.universal_scheduler = AsyncMock()
        ctx.recovery.universal_scheduler.sync_all_with_metrics.side_effect = GatewayError("down")

        result = await ctx.recovery.run_recovery()

        assert result.success is True
        assert "universal_failed" in result.skipped_reasons
        assert result.task_rescheduled == 1
        assert len(await ctx.gateway.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_legacy_resync_keeps_universal_reminder(self, ctx):
        await ctx.repos.tasks.save(
            Task(id="t1", title="Report", due_date=date(2026, 3, 11), reminders_json="1 hour before")
        )
        definition = UniversalNotification(
            module_id="task",
            entity_id="t1",
            title_template="{taskName}",
            timing="before",
            timing_value=1,
            timing_unit="days",
        )
        await ctx.repos.universal.save(definition)
        universal_id = ctx.universal_scheduler.notification_id_for(definition)

        for _ in range(2):
            result = await ctx.recovery.run_recovery()

            assert result.universal_scheduled == 1
            assert result.task_rescheduled == 1
            pending_ids = [p.id for p in await ctx.gateway.list_pending()]
            assert len(pending_ids) == 2
            assert universal_id in pending_ids

    @pytest.mark.asyncio
    async def test_universal_failures_recorded(self, ctx):
        await ctx.repos.universal.save(
            UniversalNotification(module_id="task", entity_id="missing", title_template="x")
        )

        result = await ctx.recovery.run_recovery()

        assert result.universal_failed == 1
        assert "universal_failed_1" in result.skipped_reasons


class TestNativeAlarmCleanup:
    """Tests for out-of-range and orphan cleanup on native-alarm platforms."""

    @pytest.mark.asyncio
    async def test_out_of_range_pruned(self, native_ctx, clock):
        await native_ctx.gateway.schedule(
            ScheduledNotification(
                id=77,
                fire_at=clock.now + timedelta(hours=1),
                title="Old build",
                payload="task|t1|at_time|0|minutes",
                channel_key="task_reminders",
            )
        )

        result = await native_ctx.recovery.run_recovery()

        assert "out_of_range_pruned_1" in result.skipped_reasons
        assert await native_ctx.gateway.list_pending() == []

    @pytest.mark.asyncio
    async def test_orphaned_native_alarms_pruned(self, native_ctx, clock):
        await native_ctx.repos.tasks.save(Task(id="kept", title="Kept"))
        for entity_id in ("kept", "gone"):
            await native_ctx.gateway.schedule(
                ScheduledNotification(
                    id=150_000 if entity_id == "kept" else 150_001,
                    fire_at=clock.now + timedelta(hours=1),
                    title=entity_id,
                    payload=f"task|{entity_id}|at_time|0|minutes",
                    channel_key="task_reminders",
                    use_alarm_mode=True,
                )
            )

        pruned = await native_ctx.recovery.prune_orphaned_alarms()

        assert pruned == 1
        assert [a.id for a in await native_ctx.gateway.list_native_alarms()] == [150_000]

    @pytest.mark.asyncio
    async def test_prune_respects_cap(self, store, clock):
        gateway = InMemoryNotificationGateway(clock=clock, native_alarms=True)
        ctx = build_context(
            settings=Settings(native_alarm_prune_cap=2), store=store, gateway=gateway, clock=clock
        )
        for i in range(5):
            await gateway.schedule(
                ScheduledNotification(
                    id=150_000 + i,
                    fire_at=clock.now + timedelta(hours=1),
                    title="orphan",
                    payload=f"task|gone{i}|at_time|0|minutes",
                    channel_key="task_reminders",
                    use_alarm_mode=True,
                )
            )

        assert await ctx.recovery.prune_orphaned_alarms() == 2


class TestHealthCheck:
    """Tests for run_health_check_if_needed."""

    @pytest.mark.asyncio
    async def test_nothing_expected(self, ctx):
        await ctx.finance_scheduler.save_settings(
            FinanceNotificationSettings(notifications_enabled=False)
        )

        assert await ctx.recovery.run_health_check_if_needed() is None

    @pytest.mark.asyncio
    async def test_empty_os_with_expected_reminders_triggers_run(self, ctx):
        await ctx.repos.tasks.save(
            Task(id="t1", title="Report", due_date=date(2026, 3, 11), reminders_json="1 hour before")
        )

        result = await ctx.recovery.run_health_check_if_needed()

        assert result is not None
        assert result.source_flow == "health_check"
        assert result.task_rescheduled == 1
        assert len(await ctx.gateway.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_pending_present_skips(self, ctx, clock):
        await ctx.repos.tasks.save(reminder_task(1))
        await ctx.gateway.schedule(
            ScheduledNotification(
                id=100_500,
                fire_at=clock.now + timedelta(hours=1),
                title="Already there",
                payload="task|t1|at_time|0|minutes",
                channel_key="task_reminders",
            )
        )

        assert await ctx.recovery.run_health_check_if_needed() is None

    @pytest.mark.asyncio
    async def test_expectation_checks(self, ctx):
        assert await ctx.recovery.has_enabled_universal_notifications() is False
        assert await ctx.recovery.has_enabled_finance_notifications() is True
        assert await ctx.recovery.has_active_task_reminders() is False

        await ctx.repos.habits.save(reminder_habit(1))
        assert await ctx.recovery.has_active_habit_reminders() is True

        await ctx.settings_store.set_module_enabled("habit", False)
        assert await ctx.recovery.has_active_habit_reminders() is False
