"""Task and habit entities read by the schedulers."""

from datetime import date, datetime, time

from pydantic import BaseModel, Field


class Task(BaseModel):
    """A to-do item with an optional due time and legacy reminder string."""

    id: str
    title: str
    status: str = "pending"  # pending, completed, not_done, postponed
    due_date: date | None = None
    due_time_hour: int | None = None
    due_time_minute: int | None = None
    reminders_json: str | None = None

    def due_at(self) -> datetime | None:
        if self.due_date is None:
            return None
        return datetime.combine(
            self.due_date,
            time(self.due_time_hour if self.due_time_hour is not None else 9,
                 self.due_time_minute or 0),
        )

    @property
    def needs_reminders(self) -> bool:
        """Whether this task should currently hold OS reminders."""
        if self.status in ("completed", "not_done"):
            return False
        return bool((self.reminders_json or "").strip())


class Habit(BaseModel):
    """A recurring habit with a time of day."""

    id: str
    title: str
    frequency: str = "daily"  # daily, weekly, interval
    weekdays: list[int] = Field(default_factory=list)  # 1 = Monday ... 7 = Sunday
    interval_days: int = 1
    start_date: date | None = None
    hour: int = 9
    minute: int = 0
    reminder_enabled: bool = False
    reminder_duration: str | None = None
    archived: bool = False

    def is_due_on(self, day: date) -> bool:
        if self.archived:
            return False
        if self.start_date is not None and day < self.start_date:
            return False
        match self.frequency:
            case "weekly":
                return day.isoweekday() in self.weekdays
            case "interval":
                anchor = self.start_date or day
                return (day - anchor).days % max(self.interval_days, 1) == 0
            case _:
                return True

    @property
    def needs_reminders(self) -> bool:
        phrase = (self.reminder_duration or "").strip()
        return self.reminder_enabled and bool(phrase) and phrase.lower() != "no reminder"
