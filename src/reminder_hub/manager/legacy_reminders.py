"""Legacy task and habit reminders.

Before universal definitions existed, tasks stored their reminders as a
phrase ("15 min before") or a JSON list, and habits stored a single phrase.
These still have to be honoured. They go through the native alarm path,
which is unavailable in a headless process, so recovery only resyncs them
in the foreground.
"""

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reminder_hub.manager.adapters import format_clock
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.models.module import ModuleId
from reminder_hub.models.notification import NotificationRequest
from reminder_hub.models.tasks import Habit, Task

logger = logging.getLogger(__name__)

SOURCE_FLOW = "legacy_resync"
HABIT_LOOKAHEAD_DAYS = 60

_HOURS = re.compile(r"(\d+)\s*h")
_MINUTES = re.compile(r"(\d+)\s*m")


class LegacyReminder(BaseModel):
    """One reminder offset relative to a task or habit time."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = "before"  # before, at_time, after, custom
    value: int = 0
    unit: str = "minutes"
    custom_date_time: datetime | None = Field(default=None, alias="customDateTime")
    enabled: bool = True

    def fire_time(self, due_at: datetime) -> datetime | None:
        match self.type:
            case "before":
                return self._before(due_at)
            case "at_time":
                return due_at
            case "after":
                return due_at + self._delta()
            case "custom":
                return self.custom_date_time
            case _:
                return None

    def _before(self, due_at: datetime) -> datetime:
        # Day and week offsets keep the time of day
        if self.unit in ("days", "weeks"):
            shifted = due_at - self._delta()
            return shifted.replace(hour=due_at.hour, minute=due_at.minute)
        return due_at - self._delta()

    def _delta(self) -> timedelta:
        match self.unit:
            case "minutes":
                return timedelta(minutes=self.value)
            case "hours":
                return timedelta(hours=self.value)
            case "days":
                return timedelta(days=self.value)
            case "weeks":
                return timedelta(weeks=self.value)
            case _:
                return timedelta()


FIVE_MINUTES_BEFORE = LegacyReminder(type="before", value=5, unit="minutes")

# "15 min before" contains "5 min before", so longer phrases come first
_PHRASES: list[tuple[tuple[str, ...], LegacyReminder]] = [
    (("15 min before", "15 minutes before"), LegacyReminder(value=15, unit="minutes")),
    (("30 min before", "30 minutes before"), LegacyReminder(value=30, unit="minutes")),
    (("5 min before", "5 minutes before"), FIVE_MINUTES_BEFORE),
    (("1 hour before", "1 hr before"), LegacyReminder(value=1, unit="hours")),
    (("1 day before",), LegacyReminder(value=1, unit="days")),
]

_AT_TIME_PHRASES = ("at task time", "at habit time", "on time")


def parse_reminder_phrase(phrase: str | None) -> list[LegacyReminder]:
    """Parse a single legacy phrase. Unrecognised phrases mean 5 minutes before."""
    if not phrase or not phrase.strip():
        return []
    text = phrase.strip()
    lowered = text.lower()
    if lowered == "no reminder":
        return []

    for variants, reminder in _PHRASES:
        if any(variant in text for variant in variants):
            return [reminder.model_copy()]
    if lowered in _AT_TIME_PHRASES:
        return [LegacyReminder(type="at_time")]
    if text.startswith("Custom:"):
        return _parse_custom(text[len("Custom:"):])
    return [FIVE_MINUTES_BEFORE.model_copy()]


def _parse_custom(text: str) -> list[LegacyReminder]:
    hours = _HOURS.search(text)
    minutes = _MINUTES.search(text)
    total = 0
    if hours:
        total += int(hours.group(1)) * 60
    if minutes:
        total += int(minutes.group(1))
    if total <= 0:
        return [FIVE_MINUTES_BEFORE.model_copy()]
    return [LegacyReminder(type="before", value=total, unit="minutes")]


def parse_task_reminders(raw: str | None) -> list[LegacyReminder]:
    """Parse a task's stored reminders: a JSON list or a legacy phrase."""
    text = (raw or "").strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            decoded = json.loads(text)
            reminders = [
                LegacyReminder.model_validate(item)
                for item in decoded
                if isinstance(item, dict)
            ]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Unreadable task reminder list: {e}")
            return []
    else:
        reminders = parse_reminder_phrase(text)
    return [r for r in reminders if r.enabled]


class LegacyReminderService:
    """Reschedules task and habit reminders stored in the legacy formats."""

    def __init__(
        self, hub: NotificationHub, clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self.hub = hub
        self._clock = clock

    async def reschedule_task(self, task: Task) -> int:
        """Cancel a task's legacy reminders and schedule its future ones.

        Returns:
            Number of reminders scheduled
        """
        await self.hub.cancel_for_entity(ModuleId.TASK.value, task.id, keep_universal=True)
        if not task.needs_reminders:
            return 0
        due_at = task.due_at()
        if due_at is None:
            return 0

        now = self._clock()
        scheduled = 0
        for reminder in parse_task_reminders(task.reminders_json):
            fire_at = reminder.fire_time(due_at)
            if fire_at is None or fire_at <= now:
                continue
            result = await self.hub.schedule(
                self._request(
                    ModuleId.TASK.value,
                    task.id,
                    task.title,
                    f"Due at {format_clock(due_at.hour, due_at.minute)}",
                    reminder,
                    fire_at,
                )
            )
            if result.success:
                scheduled += 1
        logger.debug(f"Rescheduled {scheduled} legacy reminder(s) for task {task.id}")
        return scheduled

    async def reschedule_habit(self, habit: Habit) -> int:
        """Cancel a habit's legacy reminders and schedule the next one per rule."""
        await self.hub.cancel_for_entity(ModuleId.HABIT.value, habit.id, keep_universal=True)
        if not habit.needs_reminders:
            return 0

        now = self._clock()
        scheduled = 0
        for reminder in parse_reminder_phrase(habit.reminder_duration):
            fire_at = self._next_habit_fire_time(habit, reminder, now)
            if fire_at is None:
                continue
            result = await self.hub.schedule(
                self._request(
                    ModuleId.HABIT.value,
                    habit.id,
                    habit.title,
                    f"Time for your habit at {format_clock(habit.hour, habit.minute)}",
                    reminder,
                    fire_at,
                )
            )
            if result.success:
                scheduled += 1
        logger.debug(f"Rescheduled {scheduled} legacy reminder(s) for habit {habit.id}")
        return scheduled

    async def cancel_for_task(self, task_id: str) -> int:
        return await self.hub.cancel_for_entity(
            ModuleId.TASK.value, task_id, keep_universal=True
        )

    async def cancel_for_habit(self, habit_id: str) -> int:
        return await self.hub.cancel_for_entity(
            ModuleId.HABIT.value, habit_id, keep_universal=True
        )

    @staticmethod
    def _next_habit_fire_time(
        habit: Habit, reminder: LegacyReminder, now: datetime
    ) -> datetime | None:
        for offset in range(HABIT_LOOKAHEAD_DAYS):
            day = now.date() + timedelta(days=offset)
            if not habit.is_due_on(day):
                continue
            due_at = datetime(day.year, day.month, day.day, habit.hour, habit.minute)
            fire_at = reminder.fire_time(due_at)
            if fire_at is not None and fire_at > now:
                return fire_at
        return None

    @staticmethod
    def _request(
        module_id: str,
        entity_id: str,
        title: str,
        body: str,
        reminder: LegacyReminder,
        fire_at: datetime,
    ) -> NotificationRequest:
        return NotificationRequest(
            module_id=module_id,
            entity_id=entity_id,
            title=title,
            body=body,
            scheduled_at=fire_at,
            reminder_type=reminder.type,
            reminder_value=reminder.value,
            reminder_unit=reminder.unit,
            use_alarm_mode=True,
            extras={"sourceFlow": SOURCE_FLOW},
        )
