"""Schedules user-authored universal notification definitions.

For each definition the owning entity's next due date is computed, the
definition's timing offset is applied and the result goes through the hub.
Anything that should not be scheduled is explicitly cancelled, which keeps
repeated full syncs convergent.
"""

import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta

from reminder_hub.config import Settings, get_settings
from reminder_hub.db.repositories import Repositories
from reminder_hub.manager.adapters import WEEKDAY_NAMES, weekday_from_entity_id
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.manager.identity import universal_notification_id
from reminder_hub.manager.module_settings import (
    SLEEP_REMINDERS_KEY,
    SLEEP_WINDDOWN_KEY,
    ModuleSettingsStore,
)
from reminder_hub.manager.policy import NotificationModulePolicy
from reminder_hub.models.finance import apply_timing
from reminder_hub.models.module import ModuleId
from reminder_hub.models.notification import NotificationRequest, ScheduleResult
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.models.recovery import UniversalSyncResult
from reminder_hub.models.universal import UniversalNotification

logger = logging.getLogger(__name__)

SOURCE_FLOW = "universal_sync"
DEFAULT_ICON_CODE_POINT = 0xE7F4

HABIT_LOOKAHEAD_DAYS = 60
WEEKLY_LOOKAHEAD_WEEKS = 8

MOOD_SECTION = "mood_checkin"
MOOD_ENTITY = "mbt_mood_daily_checkin"
BEHAVIOR_SECTION = "daily_reminder"

NO_DUE_DATE = ScheduleResult.failed(
    "Could not compute due date. Check the bill, task, or habit has a valid due."
)
EMPTY_TITLE = ScheduleResult.failed("Title is empty after resolving.")


def resolve_template(template: str, variables: dict[str, str]) -> str:
    result = template
    for key, value in variables.items():
        result = result.replace(key, value)
    return result


def next_weekday(today: date, weekday: int) -> date:
    """Next date on the given weekday (Monday = 0), today included."""
    return today + timedelta(days=(weekday - today.weekday()) % 7)


class UniversalNotificationScheduler:
    """Keeps the OS in step with the stored universal definitions."""

    def __init__(
        self,
        hub: NotificationHub,
        repos: Repositories,
        policy: NotificationModulePolicy,
        settings_store: ModuleSettingsStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.hub = hub
        self.repos = repos
        self.policy = policy
        self.settings_store = settings_store
        self.settings = settings or get_settings()
        self._clock = clock

        self.last_sync_summary: UniversalSyncResult | None = None
        self.last_sync_completed_at: datetime | None = None

    async def sync_all(self) -> None:
        await self.sync_all_with_metrics()

    async def sync_all_with_metrics(self) -> UniversalSyncResult:
        """Reconcile every definition and return aggregate counters."""
        started = time.monotonic()
        await self.hub.initialize()
        definitions = await self.repos.universal.get_all()

        result = UniversalSyncResult()
        for definition in definitions:
            result.processed += 1
            if not definition.enabled:
                await self.cancel_for_definition(definition)
                result.cancelled += 1
                result.skipped += 1
                continue

            outcome = await self._schedule_one(definition)
            if outcome is None:
                result.skipped += 1
            elif outcome.success:
                result.scheduled += 1
            else:
                result.failed += 1

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"universal_sync_summary processed={result.processed} "
            f"scheduled={result.scheduled} cancelled={result.cancelled} "
            f"skipped={result.skipped} failed={result.failed} "
            f"duration_ms={result.duration_ms}",
            extra={"event": "universal_sync_summary", "source_flow": SOURCE_FLOW},
        )
        self.last_sync_summary = result
        self.last_sync_completed_at = self._clock()
        return result

    async def sync_for_entity(self, entity_id: str) -> ScheduleResult:
        """Resync one entity's definitions after it was saved or deleted.

        Returns:
            The last failure for user feedback, ok if anything was
            scheduled, otherwise the missing-due-date failure
        """
        await self.hub.initialize()
        definitions = await self.repos.universal.get_by_entity(entity_id)
        for definition in definitions:
            await self.cancel_for_definition(definition)

        last_failure: ScheduleResult | None = None
        any_scheduled = False
        for definition in definitions:
            if not definition.enabled:
                continue
            outcome = await self._schedule_one(definition)
            if outcome is None:
                continue
            if outcome.success:
                any_scheduled = True
            else:
                last_failure = outcome

        if last_failure is not None:
            return last_failure
        return ScheduleResult.ok() if any_scheduled else NO_DUE_DATE

    async def cancel_for_definition(self, definition: UniversalNotification) -> None:
        """Cancel a definition's OS notification, logging what it was."""
        reason = self._cancel_reason(definition)
        await self.hub.cancel_by_notification_id(
            self.notification_id_for(definition),
            entity_id=definition.entity_id,
            payload=NotificationPayload.for_source(
                definition.module_id, definition.entity_id, definition.section
            ).encode(),
            title=self._display_name(definition),
            metadata={"reason": reason},
        )

    def notification_id_for(self, definition: UniversalNotification) -> int:
        return universal_notification_id(
            definition.module_id,
            definition.entity_id,
            definition.id,
            definition.timing,
            definition.timing_value,
            definition.timing_unit,
        )

    async def _schedule_one(self, n: UniversalNotification) -> ScheduleResult | None:
        """Schedule one enabled definition.

        Returns:
            None when the definition was skipped (and cancelled), otherwise
            the scheduling result
        """
        decision = await self.policy.read(n.module_id)
        if not decision.enabled:
            await self.cancel_for_definition(n)
            logger.debug(
                f"Policy blocked {n.module_id}/{n.section}/{n.entity_id} "
                f"({decision.reason.value})"
            )
            return None

        if n.module_id == ModuleId.SLEEP.value:
            if n.section == "winddown":
                if not await self.settings_store.get_flag(SLEEP_WINDDOWN_KEY, True):
                    await self.cancel_for_definition(n)
                    return None
            elif n.section in ("bedtime", "wakeup"):
                if not await self.settings_store.get_flag(SLEEP_REMINDERS_KEY, True):
                    await self.cancel_for_definition(n)
                    return None

        due = await self._due_date_for(n)
        if due is None:
            await self.cancel_for_definition(n)
            logger.debug(f"No due date for {n.module_id}/{n.section}/{n.entity_id}")
            return NO_DUE_DATE

        now = self._clock()
        fire_at = self._fire_time(n, due)
        if fire_at > now + timedelta(days=self.settings.universal_planning_window_days):
            await self.cancel_for_definition(n)
            logger.debug(f"{n.id} fires {fire_at.isoformat()}, beyond planning window")
            return None
        if fire_at < now - timedelta(hours=self.settings.stale_window_hours):
            await self.cancel_for_definition(n)
            logger.debug(f"{n.id} fire time {fire_at.isoformat()} is stale")
            return None
        if fire_at < now:
            fire_at = now + timedelta(minutes=self.settings.past_clamp_minutes)

        adapter = self.hub.adapter_for(n.module_id)
        variables = (
            await adapter.resolve_variables_for_entity(n.entity_id, n.section)
            if adapter is not None
            else {}
        )
        title = resolve_template(n.title_template, variables).strip()
        body = resolve_template(n.body_template, variables)
        if not title:
            await self.cancel_for_definition(n)
            return EMPTY_TITLE

        request = NotificationRequest(
            module_id=n.module_id,
            entity_id=n.entity_id,
            title=title,
            body=body,
            scheduled_at=fire_at,
            reminder_type=n.timing,
            reminder_value=n.timing_value,
            reminder_unit=n.timing_unit,
            notification_id=self.notification_id_for(n),
            type=n.type_id,
            icon_code_point=n.icon_code_point or DEFAULT_ICON_CODE_POINT,
            color_value=n.color_value,
            extras={
                "universalId": n.id,
                "section": n.section,
                "condition": n.condition.value,
                "sourceFlow": SOURCE_FLOW,
            },
            actions=n.actions if n.actions_enabled else [],
            use_alarm_clock_schedule_mode=(
                n.module_id == ModuleId.SLEEP.value and n.section == "winddown"
            ),
        )
        result = await self.hub.schedule(request)
        if result.success:
            logger.debug(f"Scheduled {n.id} for {fire_at.isoformat()}")
        else:
            logger.debug(f"Hub rejected {n.id}: {result.failure_reason}")
        return result

    def _fire_time(self, n: UniversalNotification, due: date) -> datetime:
        target = datetime(due.year, due.month, due.day, n.hour, n.minute)
        return apply_timing(target, n.timing, n.timing_value, n.timing_unit)

    async def _due_date_for(self, n: UniversalNotification) -> date | None:
        match n.module_id:
            case ModuleId.TASK.value:
                return await self._task_due_date(n.entity_id)
            case ModuleId.HABIT.value:
                return await self._habit_due_date(n)
            case ModuleId.FINANCE.value:
                return await self._finance_due_date(n.section, n.entity_id)
            case ModuleId.SLEEP.value:
                return self._sleep_due_date(n)
            case ModuleId.MBT_MOOD.value:
                return self._mood_due_date(n)
            case ModuleId.BEHAVIOR.value:
                return self._behavior_due_date(n)
            case _:
                return None

    async def _task_due_date(self, entity_id: str) -> date | None:
        task = await self.repos.tasks.get_by_id(entity_id)
        if task is None or task.status != "pending":
            return None
        due_at = task.due_at()
        return due_at.date() if due_at else None

    async def _habit_due_date(self, n: UniversalNotification) -> date | None:
        habit = await self.repos.habits.get_by_id(n.entity_id)
        if habit is None:
            return None
        now = self._clock()
        threshold = now - timedelta(seconds=10)
        for offset in range(HABIT_LOOKAHEAD_DAYS):
            day = now.date() + timedelta(days=offset)
            if habit.is_due_on(day) and self._fire_time(n, day) > threshold:
                return day
        return None

    async def _finance_due_date(self, section: str, entity_id: str) -> date | None:
        today = self._clock().date()
        match section:
            case "bills":
                bill = await self.repos.bills.get_by_id(entity_id)
                if bill is None:
                    return None
                return bill.next_due_date or bill.next_due_fallback(today)
            case "debts" | "lending":
                debt = await self.repos.debts.get_by_id(entity_id)
                return debt.due_date if debt else None
            case "recurring_income":
                income = await self.repos.recurring_incomes.get_by_id(entity_id)
                return income.next_occurrence_after(self._clock()) if income else None
            case _:
                return None

    def _sleep_due_date(self, n: UniversalNotification) -> date | None:
        if n.section == "winddown":
            return self._weekly_due_date(n)
        now = self._clock()
        today = now.date()
        if datetime(today.year, today.month, today.day, n.hour, n.minute) > now:
            return today
        return today + timedelta(days=1)

    def _mood_due_date(self, n: UniversalNotification) -> date | None:
        if n.section != MOOD_SECTION or n.entity_id != MOOD_ENTITY:
            return None
        now = self._clock()
        today = now.date()
        if self._fire_time(n, today) > now - timedelta(seconds=10):
            return today
        return today + timedelta(days=1)

    def _behavior_due_date(self, n: UniversalNotification) -> date | None:
        if n.section != BEHAVIOR_SECTION:
            return None
        return self._weekly_due_date(n)

    def _weekly_due_date(self, n: UniversalNotification) -> date | None:
        """Next occurrence of the weekday encoded in the entity id.

        Advances week by week while the fire time is already past, up to
        the lookahead cap.
        """
        weekday = weekday_from_entity_id(n.entity_id)
        if weekday is None:
            return None
        now = self._clock()
        threshold = now - timedelta(minutes=1)
        due = next_weekday(now.date(), weekday)
        for _ in range(WEEKLY_LOOKAHEAD_WEEKS):
            if self._fire_time(n, due) >= threshold:
                return due
            due += timedelta(days=7)
        return None

    @staticmethod
    def _display_name(n: UniversalNotification) -> str:
        if n.entity_name:
            return n.entity_name
        if n.module_id == ModuleId.SLEEP.value:
            if n.section == "winddown":
                weekday = weekday_from_entity_id(n.entity_id)
                if weekday is not None:
                    return f"Wind-down reminder ({WEEKDAY_NAMES[weekday]})"
                return "Wind-down reminder"
            if n.section == "bedtime":
                return "Bedtime reminder"
            if n.section == "wakeup":
                return "Wake-up reminder"
        match n.module_id:
            case ModuleId.TASK.value:
                return "Task reminder"
            case ModuleId.HABIT.value:
                return "Habit reminder"
            case ModuleId.MBT_MOOD.value:
                return "Daily mood check-in"
            case ModuleId.BEHAVIOR.value:
                return "Behavior reminder"
        return f"{n.section or n.module_id} reminder"

    @staticmethod
    def _cancel_reason(n: UniversalNotification) -> str:
        if n.module_id == ModuleId.SLEEP.value:
            if n.section == "winddown":
                return "Wind-down disabled or schedule changed"
            return "Sleep reminders disabled or schedule changed"
        return "Cancelled during sync"
