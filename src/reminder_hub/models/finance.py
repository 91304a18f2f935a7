"""Finance entities read by the finance scheduler."""

import calendar
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from reminder_hub.models.notification import ReminderCondition

FINANCE_SETTINGS_KEY = "finance_notification_settings_v1"


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def offset_delta(value: int, unit: str) -> timedelta:
    """Convert a reminder offset to a timedelta. Unknown units mean days."""
    match unit:
        case "minutes":
            return timedelta(minutes=value)
        case "hours":
            return timedelta(hours=value)
        case "weeks":
            return timedelta(days=value * 7)
        case "months":
            return timedelta(days=value * 30)
        case _:
            return timedelta(days=value)


def apply_timing(target: datetime, timing: str, value: int, unit: str) -> datetime:
    """Apply a before/on_due/after_due offset to a target time."""
    match timing:
        case "before":
            return target - offset_delta(value, unit)
        case "after_due":
            return target + offset_delta(value, unit)
        case _:
            return target


class BillReminder(BaseModel):
    """A reminder rule attached to a bill, debt or recurring income."""

    id: str
    timing: str = "before"
    value: int = 0
    unit: str = "days"
    hour: int = 9
    minute: int = 0
    type_id: str = "finance_bill_upcoming"
    condition: ReminderCondition = ReminderCondition.ALWAYS
    title_template: str | None = None
    body_template: str | None = None
    enabled: bool = True

    def calculate_fire_time(self, due_date: date) -> datetime:
        """Fire time for this rule given the entity's due date."""
        target = datetime.combine(due_date, time(self.hour, self.minute))
        return apply_timing(target, self.timing, self.value, self.unit)


class Bill(BaseModel):
    """A bill or subscription."""

    id: str
    name: str
    type: str = "bill"
    currency: str = "USD"
    default_amount: float = 0.0
    category_id: str = ""
    frequency: str = "monthly"  # daily, weekly, monthly, yearly, once
    due_day: int | None = None
    start_date: date = Field(default_factory=date.today)
    next_due_date: date | None = None
    last_paid_date: date | None = None
    reminder_enabled: bool = True
    reminders: list[BillReminder] = Field(default_factory=list)
    is_active: bool = True
    icon_code_point: int | None = None
    color_value: int | None = None

    @property
    def period_days(self) -> int:
        return {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}.get(
            self.frequency, 30
        )

    @property
    def is_paid_for_current_period(self) -> bool:
        if self.last_paid_date is None or self.next_due_date is None:
            return False
        period_start = self.next_due_date - timedelta(days=self.period_days)
        return self.last_paid_date > period_start

    def is_overdue(self, today: date) -> bool:
        if self.next_due_date is None:
            return False
        return self.next_due_date < today and not self.is_paid_for_current_period

    def next_due_fallback(self, today: date) -> date:
        """Estimate the next due date when none is stored."""
        match self.frequency:
            case "daily":
                return today + timedelta(days=1)
            case "weekly":
                return today + timedelta(days=7)
            case "monthly":
                due_day = self.due_day or self.start_date.day
                last_this_month = calendar.monthrange(today.year, today.month)[1]
                candidate = today.replace(day=min(max(due_day, 1), last_this_month))
                if candidate < today:
                    following = add_months(today.replace(day=1), 1)
                    last_next_month = calendar.monthrange(following.year, following.month)[1]
                    candidate = following.replace(day=min(max(due_day, 1), last_next_month))
                return candidate
            case "yearly":
                day = min(self.start_date.day, 28)
                candidate = date(today.year, self.start_date.month, day)
                if candidate < today:
                    candidate = date(today.year + 1, self.start_date.month, day)
                return candidate
            case _:
                if self.start_date < today:
                    return today + timedelta(days=1)
                return self.start_date


class DebtDirection(str, Enum):
    """Whether the user owes the money or lent it."""

    OWED = "owed"
    LENT = "lent"


class Debt(BaseModel):
    """A debt owed by the user, or money the user lent out."""

    id: str
    name: str
    direction: DebtDirection = DebtDirection.OWED
    currency: str = "USD"
    current_balance: float = 0.0
    due_date: date | None = None
    reminder_enabled: bool = True
    reminders: list[BillReminder] = Field(default_factory=list)
    is_active: bool = True
    icon_code_point: int | None = None
    color_value: int | None = None

    def is_overdue(self, today: date) -> bool:
        if self.due_date is None:
            return False
        return self.due_date < today and self.current_balance > 0


class Budget(BaseModel):
    """A spending budget for one period."""

    id: str
    name: str
    amount: float
    spent: float = 0.0
    currency: str = "USD"
    period: str = "monthly"  # weekly, monthly, yearly
    start_date: date = Field(default_factory=date.today)
    alert_enabled: bool = True
    alert_threshold: float = 80.0  # Percent of amount
    category_id: str | None = None
    is_active: bool = True

    @property
    def spending_percentage(self) -> float:
        if self.amount <= 0:
            return 0.0
        return self.spent / self.amount * 100

    @property
    def is_exceeded(self) -> bool:
        return self.spent > self.amount

    @property
    def is_approaching_limit(self) -> bool:
        return not self.is_exceeded and self.spending_percentage >= self.alert_threshold

    @property
    def should_alert(self) -> bool:
        return self.is_exceeded or self.is_approaching_limit

    @property
    def is_category_budget(self) -> bool:
        return bool(self.category_id)

    def current_period_end(self, as_of: date) -> date:
        match self.period:
            case "weekly":
                elapsed = max((as_of - self.start_date).days, 0)
                periods = elapsed // 7
                return self.start_date + timedelta(days=(periods + 1) * 7 - 1)
            case "yearly":
                return date(as_of.year, 12, 31)
            case _:
                last_day = calendar.monthrange(as_of.year, as_of.month)[1]
                return as_of.replace(day=last_day)


class SavingsGoal(BaseModel):
    """A savings target with a deadline."""

    id: str
    name: str
    currency: str = "USD"
    target_amount: float
    saved_amount: float = 0.0
    target_date: date
    is_active: bool = True
    icon_code_point: int | None = None
    color_value: int | None = None

    @property
    def remaining_amount(self) -> float:
        return max(self.target_amount - self.saved_amount, 0.0)

    def is_overdue(self, today: date) -> bool:
        return self.target_date < today and self.remaining_amount > 0


class RecurringIncome(BaseModel):
    """A recurring income stream such as a salary."""

    id: str
    title: str
    currency: str = "USD"
    amount: float = 0.0
    category_id: str = ""
    frequency: str = "monthly"  # weekly, biweekly, monthly, yearly
    start_date: date
    end_date: date | None = None
    reminder_enabled: bool = True
    reminders: list[BillReminder] = Field(default_factory=list)
    is_active: bool = True
    icon_code_point: int | None = None
    color_value: int | None = None

    def is_currently_active(self, today: date) -> bool:
        if not self.is_active:
            return False
        return self.end_date is None or self.end_date >= today

    def _occurrence(self, index: int) -> date:
        match self.frequency:
            case "weekly":
                return self.start_date + timedelta(days=7 * index)
            case "biweekly":
                return self.start_date + timedelta(days=14 * index)
            case "yearly":
                return add_months(self.start_date, 12 * index)
            case _:
                return add_months(self.start_date, index)

    def occurrences(self) -> Iterator[date]:
        index = 0
        while True:
            occurrence = self._occurrence(index)
            if self.end_date is not None and occurrence > self.end_date:
                return
            yield occurrence
            index += 1

    def occurrences_between(self, start: datetime, end: datetime) -> Iterator[date]:
        """Occurrence dates falling on or between the two moments' dates."""
        for occurrence in self.occurrences():
            if occurrence > end.date():
                return
            if occurrence >= start.date():
                yield occurrence

    def next_occurrence_after(self, moment: datetime) -> date | None:
        for occurrence in self.occurrences():
            if occurrence >= moment.date():
                return occurrence
        return None


class FinanceNotificationSettings(BaseModel):
    """User-level finance notification preferences."""

    notifications_enabled: bool = True
    bills_enabled: bool = True
    debts_enabled: bool = True
    lending_enabled: bool = True
    budgets_enabled: bool = True
    savings_goals_enabled: bool = True
    recurring_income_enabled: bool = True
    planning_window_days: int = 30
    default_reminder_hour: int = 9
    overdue_alerts_use_alarm: bool = False
    due_today_alerts_use_alarm: bool = False

    @property
    def any_section_enabled(self) -> bool:
        return (
            self.bills_enabled
            or self.debts_enabled
            or self.lending_enabled
            or self.budgets_enabled
            or self.savings_goals_enabled
            or self.recurring_income_enabled
        )
