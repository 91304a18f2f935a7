"""Tests for the universal notification scheduler."""

from datetime import date, datetime

import pytest

from reminder_hub.manager.module_settings import SLEEP_WINDDOWN_KEY
from reminder_hub.manager.universal_scheduler import NO_DUE_DATE, resolve_template
from reminder_hub.models.notification import NotificationEvent
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.models.tasks import Habit, Task
from reminder_hub.models.universal import UniversalNotification


def task_definition(entity_id: str = "t1", **kwargs) -> UniversalNotification:
    defaults = {
        "module_id": "task",
        "section": "tasks",
        "entity_id": entity_id,
        "title_template": "{taskName} due tomorrow",
        "timing": "before",
        "timing_value": 1,
        "timing_unit": "days",
        "hour": 9,
        "minute": 0,
    }
    defaults.update(kwargs)
    return UniversalNotification(**defaults)


async def pending_by_id(ctx) -> dict:
    return {p.id: p for p in await ctx.gateway.list_pending()}


class TestResolveTemplate:
    """Tests for placeholder substitution."""

    def test_replaces_known_and_keeps_unknown(self):
        assert resolve_template("{a} and {b}", {"{a}": "x"}) == "x and {b}"


class TestSyncAll:
    """Tests for sync_all_with_metrics."""

    @pytest.mark.asyncio
    async def test_schedules_task_reminder(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        definition = task_definition()
        await ctx.repos.universal.save(definition)

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.processed == 1
        assert result.scheduled == 1
        pending = await pending_by_id(ctx)
        notification_id = ctx.universal_scheduler.notification_id_for(definition)
        assert pending[notification_id].title == "Write report due tomorrow"
        assert pending[notification_id].fire_at == datetime(2026, 3, 10, 9, 0)
        extras = NotificationPayload.parse(pending[notification_id].payload).extras
        assert extras["universalId"] == definition.id
        assert extras["sourceFlow"] == "universal_sync"

    @pytest.mark.asyncio
    async def test_repeated_sync_converges(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        await ctx.repos.tasks.save(Task(id="t2", title="Call bank", due_date=date(2026, 3, 12)))
        await ctx.repos.universal.save(task_definition("t1"))
        await ctx.repos.universal.save(task_definition("t2"))

        await ctx.universal_scheduler.sync_all()
        first = set(await pending_by_id(ctx))
        await ctx.universal_scheduler.sync_all()
        second = set(await pending_by_id(ctx))

        assert first == second
        assert len(first) == 2
        assert len(await ctx.hub.get_history(event=NotificationEvent.SCHEDULED)) == 2

    @pytest.mark.asyncio
    async def test_disabled_definition_cancelled(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        definition = task_definition()
        await ctx.repos.universal.save(definition)
        await ctx.universal_scheduler.sync_all()

        await ctx.repos.universal.save(definition.model_copy(update={"enabled": False}))
        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.cancelled == 1
        assert result.skipped == 1
        assert await ctx.gateway.list_pending() == []

    @pytest.mark.asyncio
    async def test_policy_disabled_module_skipped(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        await ctx.repos.universal.save(task_definition())
        await ctx.settings_store.set_module_enabled("task", False)

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.skipped == 1
        assert result.scheduled == 0
        assert await ctx.gateway.list_pending() == []

    @pytest.mark.asyncio
    async def test_missing_entity_counts_as_failure(self, ctx):
        await ctx.repos.universal.save(task_definition("ghost"))

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_fire_time_beyond_window_skipped(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Far off", due_date=date(2026, 8, 1)))
        await ctx.repos.universal.save(task_definition())

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.skipped == 1
        assert await ctx.gateway.list_pending() == []

    @pytest.mark.asyncio
    async def test_stale_fire_time_skipped(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Long gone", due_date=date(2026, 3, 8)))
        await ctx.repos.universal.save(task_definition())

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_recent_past_fire_time_clamped(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        definition = task_definition(hour=7)
        await ctx.repos.universal.save(definition)

        await ctx.universal_scheduler.sync_all()

        pending = await pending_by_id(ctx)
        notification_id = ctx.universal_scheduler.notification_id_for(definition)
        assert pending[notification_id].fire_at == datetime(2026, 3, 10, 8, 2)

    @pytest.mark.asyncio
    async def test_daily_habit_rolls_to_tomorrow(self, ctx):
        await ctx.repos.habits.save(Habit(id="h1", title="Stretch"))
        definition = UniversalNotification(
            module_id="habit",
            section="habits",
            entity_id="h1",
            title_template="Time for {habitName}",
            timing="on_due",
            hour=7,
        )
        await ctx.repos.universal.save(definition)

        await ctx.universal_scheduler.sync_all()

        pending = await pending_by_id(ctx)
        notification = pending[ctx.universal_scheduler.notification_id_for(definition)]
        assert notification.fire_at == datetime(2026, 3, 11, 7, 0)
        assert notification.title == "Time for Stretch"

    @pytest.mark.asyncio
    async def test_weekly_behavior_advances_past_today(self, ctx):
        definition = UniversalNotification(
            module_id="behavior",
            section="daily_reminder",
            entity_id="behavior_daily_tue",
            title_template="Log your {weekday}",
            timing="on_due",
            hour=7,
        )
        await ctx.repos.universal.save(definition)

        await ctx.universal_scheduler.sync_all()

        pending = await pending_by_id(ctx)
        notification = pending[ctx.universal_scheduler.notification_id_for(definition)]
        assert notification.fire_at == datetime(2026, 3, 17, 7, 0)
        assert notification.title == "Log your Tuesday"

    @pytest.mark.asyncio
    async def test_winddown_flag_off_skips(self, ctx):
        await ctx.settings_store.set_value(SLEEP_WINDDOWN_KEY, False)
        await ctx.repos.universal.save(
            UniversalNotification(
                module_id="sleep",
                section="winddown",
                entity_id="sleep_winddown_wed",
                title_template="Wind down",
                timing="on_due",
                hour=21,
            )
        )

        result = await ctx.universal_scheduler.sync_all_with_metrics()

        assert result.skipped == 1
        cancelled = await ctx.hub.get_history(event=NotificationEvent.CANCELLED)
        assert cancelled[0].title == "Wind-down reminder (Wednesday)"

    @pytest.mark.asyncio
    async def test_records_last_summary(self, ctx, clock):
        await ctx.universal_scheduler.sync_all()

        assert ctx.universal_scheduler.last_sync_summary is not None
        assert ctx.universal_scheduler.last_sync_completed_at == clock.now


class TestSyncForEntity:
    """Tests for sync_for_entity."""

    @pytest.mark.asyncio
    async def test_ok_when_scheduled(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Write report", due_date=date(2026, 3, 11)))
        await ctx.repos.universal.save(task_definition())

        result = await ctx.universal_scheduler.sync_for_entity("t1")

        assert result.success is True
        assert len(await ctx.gateway.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_no_due_date(self, ctx):
        await ctx.repos.tasks.save(Task(id="t1", title="Someday"))
        await ctx.repos.universal.save(task_definition())

        result = await ctx.universal_scheduler.sync_for_entity("t1")

        assert result == NO_DUE_DATE

    @pytest.mark.asyncio
    async def test_completed_task_cancels(self, ctx):
        task = Task(id="t1", title="Write report", due_date=date(2026, 3, 11))
        await ctx.repos.tasks.save(task)
        await ctx.repos.universal.save(task_definition())
        await ctx.universal_scheduler.sync_for_entity("t1")

        await ctx.repos.tasks.save(task.model_copy(update={"status": "completed"}))
        await ctx.universal_scheduler.sync_for_entity("t1")

        assert await ctx.gateway.list_pending() == []
