"""Finance notification scheduler.

Turns bills, debts, lending, budgets, savings goals and recurring income
into hub schedule requests. A full sync always starts from a clean slate
(every finance notification is cancelled) and then schedules the current
candidate set, trimmed to the remaining OS alarm budget.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from pydantic import ValidationError

from reminder_hub.config import Settings, get_settings
from reminder_hub.db.repositories import Repositories
from reminder_hub.exceptions import StorageError
from reminder_hub.manager import finance_contract as fc
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.models.finance import (
    FINANCE_SETTINGS_KEY,
    Bill,
    BillReminder,
    Budget,
    Debt,
    DebtDirection,
    FinanceNotificationSettings,
    RecurringIncome,
    SavingsGoal,
)
from reminder_hub.models.module import ModuleId
from reminder_hub.models.notification import (
    NotificationRequest,
    ReminderCondition,
    ScheduleResult,
)
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.models.recovery import FinanceSyncResult

logger = logging.getLogger(__name__)

FINANCE = ModuleId.FINANCE.value
ONCE_HISTORY_LIMIT = 1200
MAX_INCOME_OCCURRENCES = 200
SAVINGS_DAYS_BEFORE = (14, 7, 3, 1, 0)
BUDGET_ALERT_DELAY = timedelta(minutes=3)

PRIORITY_LABELS = {"high": "High", "medium": "Medium", "low": "Low"}


@dataclass
class SectionedRequest:
    """A schedule request tagged with the finance section it belongs to."""

    section: str
    request: NotificationRequest


def date_key(day: date | datetime) -> str:
    return day.strftime("%Y%m%d")


def date_label(day: date | datetime) -> str:
    return day.strftime("%Y-%m-%d")


def days_until(now: datetime, target: datetime) -> int:
    return (target.date() - now.date()).days


def plural_days(days: int) -> str:
    return f"{days} day{'' if days == 1 else 's'}"


def priority_tier(type_id: str, due_days: int) -> str:
    """Priority tier from the notification type and days until due.

    Anything due today or overdue is high, whatever its type. Summaries
    carry no due date and stay low.
    """
    if type_id == fc.TYPE_SUMMARY:
        return "low"
    if due_days <= 0:
        return "high"
    match type_id:
        case fc.TYPE_BILL_OVERDUE | fc.TYPE_PAYMENT_DUE:
            return "high"
        case fc.TYPE_BILL_TOMORROW:
            return "medium"
        case fc.TYPE_BILL_UPCOMING:
            return "medium" if due_days <= 3 else "low"
        case _:
            return "medium"


def prioritize(requests: list[SectionedRequest], budget: int) -> list[SectionedRequest]:
    """Keep at most ``budget`` requests, filling by section priority."""
    by_section: dict[str, list[SectionedRequest]] = {}
    for item in requests:
        by_section.setdefault(item.section, []).append(item)

    kept: list[SectionedRequest] = []
    for section in fc.SECTION_PRIORITY:
        for item in by_section.get(section, []):
            if len(kept) >= budget:
                return kept
            kept.append(item)
    return kept


def fill_template(template: str, variables: dict[str, str]) -> str:
    for key, value in variables.items():
        template = template.replace(key, value)
    return template


class FinanceNotificationScheduler:
    """Schedules every finance reminder through the notification hub."""

    def __init__(
        self,
        hub: NotificationHub,
        repos: Repositories,
        settings_store: ModuleSettingsStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.hub = hub
        self.repos = repos
        self.settings_store = settings_store
        self.settings = settings or get_settings()
        self._clock = clock

    async def load_settings(self) -> FinanceNotificationSettings:
        try:
            raw = await self.settings_store.get_value(FINANCE_SETTINGS_KEY)
            if isinstance(raw, dict):
                return FinanceNotificationSettings.model_validate(raw)
        except (StorageError, ValidationError) as e:
            logger.warning(f"Unreadable finance notification settings, using defaults: {e}")
        return FinanceNotificationSettings()

    async def save_settings(self, finance_settings: FinanceNotificationSettings) -> None:
        await self.settings_store.set_value(
            FINANCE_SETTINGS_KEY, finance_settings.model_dump(mode="json")
        )

    # ------------------------------------------------------------------
    # Full sync
    # ------------------------------------------------------------------

    async def sync_schedules(self) -> FinanceSyncResult:
        """Cancel all finance notifications and schedule the current set."""
        await self.hub.initialize()
        finance_settings = await self.load_settings()

        # Unset counts as enabled; only write on a real change
        module_settings = await self.hub.get_module_settings(FINANCE)
        currently_enabled = module_settings.notifications_enabled is not False
        if currently_enabled != finance_settings.notifications_enabled:
            await self.hub.set_module_settings(
                FINANCE,
                module_settings.model_copy(
                    update={"notifications_enabled": finance_settings.notifications_enabled}
                ),
            )

        cancelled = await self.clear_scheduled_notifications()
        if not finance_settings.notifications_enabled:
            return FinanceSyncResult(cancelled=cancelled)

        once_keys = await self._load_triggered_once_keys()
        now = self._clock()
        horizon = now + timedelta(days=finance_settings.planning_window_days)

        requests: list[SectionedRequest] = []
        if finance_settings.bills_enabled:
            for bill in await self.repos.bills.get_active_bills():
                requests.extend(self._bill_requests(bill, finance_settings, now, horizon, once_keys))
        if finance_settings.debts_enabled:
            for debt in await self.repos.debts.get_active_debts(DebtDirection.OWED):
                requests.extend(self._debt_requests(debt, finance_settings, now, horizon, once_keys))
        if finance_settings.lending_enabled:
            for debt in await self.repos.debts.get_active_debts(DebtDirection.LENT):
                requests.extend(self._debt_requests(debt, finance_settings, now, horizon, once_keys))
        if finance_settings.budgets_enabled:
            for budget in await self.repos.budgets.get_active_budgets():
                request = self._budget_request(budget, finance_settings, now, horizon)
                if request is not None:
                    requests.append(request)
        if finance_settings.savings_goals_enabled:
            for goal in await self.repos.savings_goals.get_active_goals():
                requests.extend(self._savings_requests(goal, finance_settings, now, horizon))
        if finance_settings.recurring_income_enabled:
            for income in await self.repos.recurring_incomes.get_currently_active(now.date()):
                requests.extend(
                    self._income_requests(income, finance_settings, now, horizon, once_keys)
                )

        summary = await self.hub.get_dashboard_summary()
        max_alarms = self.settings.finance_max_total_alarms
        budget = max_alarms - summary.total_pending

        to_schedule = requests
        if len(requests) > budget:
            if budget <= 0:
                logger.info(
                    f"No alarm budget ({summary.total_pending} pending), "
                    f"skipping {len(requests)} finance notifications"
                )
                return FinanceSyncResult(cancelled=cancelled, failed=len(requests))
            to_schedule = prioritize(requests, budget)
            logger.info(
                f"Prioritized {len(to_schedule)}/{len(requests)} finance notifications "
                f"(budget {budget}) to stay under {max_alarms} alarms"
            )

        result = FinanceSyncResult(
            cancelled=cancelled, failed=len(requests) - len(to_schedule)
        )
        for item in to_schedule:
            outcome = await self.hub.schedule(item.request)
            if not outcome.success:
                result.failed += 1
                logger.debug(f"Finance schedule failed: {outcome.failure_reason}")
                continue
            result.scheduled += 1
            result.scheduled_by_section[item.section] = (
                result.scheduled_by_section.get(item.section, 0) + 1
            )
        return result

    async def clear_scheduled_notifications(self) -> int:
        return await self.hub.cancel_for_module(FINANCE)

    async def _load_triggered_once_keys(self) -> set[str]:
        """Once-keys that already reached a consuming lifecycle event."""
        history = await self.hub.get_history(module_id=FINANCE, limit=ONCE_HISTORY_LIMIT)
        keys: set[str] = set()
        for entry in history:
            if not entry.event.consumes_once:
                continue
            parsed = NotificationPayload.try_parse(entry.payload)
            once_key = parsed.extras.get(fc.EXTRA_ONCE_KEY) if parsed else None
            if once_key:
                keys.add(once_key)
        return keys

    # ------------------------------------------------------------------
    # Single-entity sync
    # ------------------------------------------------------------------

    async def sync_bill(self, bill: Bill) -> ScheduleResult:
        """Reschedule one bill after it was saved.

        Returns:
            The result of the last schedule attempt, or ok when nothing
            needed scheduling
        """
        await self.hub.initialize()
        await self.cancel_bill_notifications(bill.id)

        finance_settings = await self.load_settings()
        if not (finance_settings.notifications_enabled and finance_settings.bills_enabled):
            return ScheduleResult.ok()

        now = self._clock()
        horizon = now + timedelta(days=finance_settings.planning_window_days)
        once_keys = await self._load_triggered_once_keys()
        return await self._schedule_all(
            self._bill_requests(bill, finance_settings, now, horizon, once_keys)
        )

    async def sync_debt(self, debt: Debt) -> ScheduleResult:
        await self.hub.initialize()
        await self.cancel_debt_notifications(debt.id)

        finance_settings = await self.load_settings()
        section_enabled = (
            finance_settings.lending_enabled
            if debt.direction == DebtDirection.LENT
            else finance_settings.debts_enabled
        )
        if not (finance_settings.notifications_enabled and section_enabled):
            return ScheduleResult.ok()

        now = self._clock()
        horizon = now + timedelta(days=finance_settings.planning_window_days)
        once_keys = await self._load_triggered_once_keys()
        return await self._schedule_all(
            self._debt_requests(debt, finance_settings, now, horizon, once_keys)
        )

    async def sync_recurring_income(self, income: RecurringIncome) -> ScheduleResult:
        await self.hub.initialize()
        await self.cancel_recurring_income_notifications(income.id)

        finance_settings = await self.load_settings()
        if not (
            finance_settings.notifications_enabled
            and finance_settings.recurring_income_enabled
        ):
            return ScheduleResult.ok()

        now = self._clock()
        horizon = now + timedelta(days=finance_settings.planning_window_days)
        once_keys = await self._load_triggered_once_keys()
        return await self._schedule_all(
            self._income_requests(income, finance_settings, now, horizon, once_keys)
        )

    async def _schedule_all(self, requests: list[SectionedRequest]) -> ScheduleResult:
        last = ScheduleResult.ok()
        for item in requests:
            last = await self.hub.schedule(item.request)
            if not last.success:
                logger.debug(
                    f"Could not schedule {item.request.entity_id}: {last.failure_reason}"
                )
        return last

    async def cancel_bill_notifications(self, bill_id: str) -> int:
        return await self._cancel_by_prefix((f"bill:{bill_id}:",))

    async def cancel_debt_notifications(self, debt_id: str) -> int:
        return await self._cancel_by_prefix(
            (f"debt:owed:{debt_id}:", f"debt:lent:{debt_id}:")
        )

    async def cancel_recurring_income_notifications(self, income_id: str) -> int:
        return await self._cancel_by_prefix((f"income:{income_id}:",))

    async def _cancel_by_prefix(self, prefixes: tuple[str, ...]) -> int:
        await self.hub.initialize()
        cancelled = 0
        for info in await self.hub.get_scheduled_notifications_for_module(FINANCE):
            if not info.entity_id.startswith(prefixes):
                continue
            await self.hub.cancel_by_notification_id(
                info.id, entity_id=info.entity_id, payload=info.payload
            )
            cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} finance notification(s) for {prefixes[0]}")
        return cancelled

    # ------------------------------------------------------------------
    # Candidate builders
    # ------------------------------------------------------------------

    def _effective_fire_time(
        self, fire_at: datetime, now: datetime, horizon: datetime
    ) -> datetime | None:
        """Apply the horizon, staleness and clamp rules to one fire time."""
        if fire_at > horizon:
            return None
        if fire_at < now - timedelta(hours=self.settings.stale_window_hours):
            return None
        if fire_at < now:
            return now + timedelta(minutes=self.settings.past_clamp_minutes)
        return fire_at

    @staticmethod
    def _is_once_consumed(reminder: BillReminder, once_key: str, once_keys: set[str]) -> bool:
        return reminder.condition == ReminderCondition.ONCE and once_key in once_keys

    @staticmethod
    def _reminder_extras(
        reminder: BillReminder, once_key: str, extras: dict[str, str]
    ) -> dict[str, str]:
        extras.update(
            {
                "type": reminder.type_id,
                "reminderId": reminder.id,
                "condition": reminder.condition.value,
            }
        )
        if reminder.condition == ReminderCondition.ONCE:
            extras[fc.EXTRA_ONCE_KEY] = once_key
        return extras

    @staticmethod
    def _section_extras(
        section: str, template: str, tier: str, target_id: str, target: datetime, kind: str
    ) -> dict[str, str]:
        return {
            fc.EXTRA_MANAGED_BY: fc.MANAGED_BY,
            fc.EXTRA_SECTION: section,
            fc.EXTRA_SCREEN: fc.SECTION_SCREENS[section],
            fc.EXTRA_SOURCE: fc.SECTION_SOURCES[section],
            fc.EXTRA_TEMPLATE: template,
            fc.EXTRA_PRIORITY_TIER: tier,
            fc.EXTRA_TARGET_ENTITY_ID: target_id,
            fc.EXTRA_TARGET_DATE: target.isoformat(),
            fc.EXTRA_ENTITY_KIND: kind,
        }

    def _bill_requests(
        self,
        bill: Bill,
        finance_settings: FinanceNotificationSettings,
        now: datetime,
        horizon: datetime,
        once_keys: set[str],
    ) -> list[SectionedRequest]:
        if not bill.reminder_enabled or bill.next_due_date is None:
            return []

        due_at = datetime.combine(bill.next_due_date, time(finance_settings.default_reminder_hour))
        due_days = days_until(now, due_at)
        overdue = due_days < 0
        amount = f"{bill.currency} {bill.default_amount:.2f}"

        requests: list[SectionedRequest] = []
        for reminder in bill.reminders:
            if not reminder.enabled:
                continue
            once_key = f"bill:{bill.id}:{reminder.id}:{date_key(due_at)}"
            if self._is_once_consumed(reminder, once_key, once_keys):
                continue
            if not self._bill_condition_met(bill, reminder, now.date()):
                continue
            fire_at = self._effective_fire_time(
                reminder.calculate_fire_time(bill.next_due_date), now, horizon
            )
            if fire_at is None:
                continue

            tier = priority_tier(reminder.type_id, due_days)
            title, body = self._bill_message(bill, reminder, amount, due_at, due_days, overdue)
            extras = self._section_extras(
                fc.SECTION_BILLS, fc.TEMPLATE_BILL_DUE, tier, bill.id, due_at, bill.type
            )
            requests.append(
                SectionedRequest(
                    section=fc.SECTION_BILLS,
                    request=NotificationRequest(
                        module_id=FINANCE,
                        entity_id=once_key,
                        title=title,
                        body=body,
                        scheduled_at=fire_at,
                        reminder_type=reminder.timing,
                        reminder_value=reminder.value,
                        reminder_unit=reminder.unit,
                        icon_code_point=bill.icon_code_point,
                        color_value=bill.color_value,
                        extras=self._reminder_extras(reminder, once_key, extras),
                        type=reminder.type_id,
                        priority=PRIORITY_LABELS[tier],
                    ),
                )
            )
        return requests

    @staticmethod
    def _bill_condition_met(bill: Bill, reminder: BillReminder, today: date) -> bool:
        match reminder.condition:
            case ReminderCondition.IF_UNPAID:
                return not bill.is_paid_for_current_period
            case ReminderCondition.IF_OVERDUE:
                return bill.is_overdue(today)
            case _:
                return True

    @staticmethod
    def _bill_message(
        bill: Bill,
        reminder: BillReminder,
        amount: str,
        due_at: datetime,
        due_days: int,
        overdue: bool,
    ) -> tuple[str, str]:
        label = date_label(due_at)
        if overdue:
            title = f"{bill.name} payment overdue"
            body = f"{amount} was due on {label}"
        elif due_days == 0:
            title = f"{bill.name} is due today"
            body = f"{amount} - due {label}"
        else:
            title = f"{bill.name} due in {plural_days(due_days)}"
            body = f"{amount} - due {label}"

        variables = {
            "{billName}": bill.name,
            "{amount}": amount,
            "{dueDate}": label,
            "{daysLeft}": str(abs(due_days)),
            "{category}": bill.category_id,
        }
        if reminder.title_template is not None:
            title = fill_template(reminder.title_template, variables)
        if reminder.body_template is not None:
            body = fill_template(reminder.body_template, variables)
        return title, body

    def _debt_requests(
        self,
        debt: Debt,
        finance_settings: FinanceNotificationSettings,
        now: datetime,
        horizon: datetime,
        once_keys: set[str],
    ) -> list[SectionedRequest]:
        if not debt.reminder_enabled or debt.due_date is None:
            return []

        due_at = datetime.combine(debt.due_date, time(finance_settings.default_reminder_hour))
        if due_at > horizon:
            return []

        lending = debt.direction == DebtDirection.LENT
        section = fc.SECTION_LENDING if lending else fc.SECTION_DEBTS
        template = fc.TEMPLATE_LENDING_DUE if lending else fc.TEMPLATE_DEBT_DUE
        direction = debt.direction.value
        due_days = days_until(now, due_at)
        overdue = due_days < 0

        if overdue:
            title = f"{debt.name} {'collection' if lending else 'payment'} overdue"
        elif due_days == 0:
            title = f"{debt.name} due today"
        else:
            title = f"{debt.name} due in {plural_days(due_days)}"
        body = (
            f"Remaining {debt.currency} {debt.current_balance:.2f} "
            f"- due {date_label(due_at)}"
        )

        requests: list[SectionedRequest] = []
        for reminder in debt.reminders:
            if not reminder.enabled:
                continue
            once_key = f"debt:{direction}:{debt.id}:{reminder.id}"
            if self._is_once_consumed(reminder, once_key, once_keys):
                continue
            if not self._debt_condition_met(debt, reminder, now.date()):
                continue
            fire_at = self._effective_fire_time(
                reminder.calculate_fire_time(debt.due_date), now, horizon
            )
            if fire_at is None:
                continue

            tier = priority_tier(reminder.type_id, due_days)
            extras = self._section_extras(section, template, tier, debt.id, due_at, direction)
            requests.append(
                SectionedRequest(
                    section=section,
                    request=NotificationRequest(
                        module_id=FINANCE,
                        entity_id=f"{once_key}:{date_key(due_at)}",
                        title=title,
                        body=body,
                        scheduled_at=fire_at,
                        reminder_type=reminder.timing,
                        reminder_value=reminder.value,
                        reminder_unit=reminder.unit,
                        icon_code_point=debt.icon_code_point,
                        color_value=debt.color_value,
                        extras=self._reminder_extras(reminder, once_key, extras),
                        type=reminder.type_id,
                        priority=PRIORITY_LABELS[tier],
                    ),
                )
            )
        return requests

    @staticmethod
    def _debt_condition_met(debt: Debt, reminder: BillReminder, today: date) -> bool:
        match reminder.condition:
            case ReminderCondition.IF_UNPAID:
                return debt.current_balance > 0
            case ReminderCondition.IF_OVERDUE:
                return debt.is_overdue(today)
            case _:
                return True

    def _budget_request(
        self,
        budget: Budget,
        finance_settings: FinanceNotificationSettings,
        now: datetime,
        horizon: datetime,
    ) -> SectionedRequest | None:
        if not budget.alert_enabled:
            return None
        period_end = budget.current_period_end(now.date())
        period_end_at = datetime.combine(period_end, time(finance_settings.default_reminder_hour))
        if period_end_at > horizon:
            return None

        alert = budget.should_alert
        scheduled_at = now + BUDGET_ALERT_DELAY if alert else period_end_at
        if scheduled_at <= now:
            return None

        tier = "high" if budget.is_exceeded else "medium"
        if budget.is_exceeded:
            title = f"Budget exceeded: {budget.name}"
        elif budget.is_approaching_limit:
            title = f"Budget warning: {budget.name}"
        else:
            title = f"Budget review: {budget.name}"
        if alert:
            body = (
                f"Spent {budget.spending_percentage:.0f}% of "
                f"{budget.currency} {budget.amount:.2f}"
            )
        else:
            body = f"Period ends on {date_label(period_end)}"

        use_alarm = budget.is_exceeded and (
            finance_settings.overdue_alerts_use_alarm
            or finance_settings.due_today_alerts_use_alarm
        )
        if use_alarm:
            type_id = fc.TYPE_PAYMENT_DUE
        else:
            type_id = fc.TYPE_BUDGET_LIMIT if alert else fc.TYPE_BUDGET_WINDOW

        return SectionedRequest(
            section=fc.SECTION_BUDGETS,
            request=NotificationRequest(
                module_id=FINANCE,
                entity_id=(
                    f"budget:{budget.id}:{date_key(period_end)}:"
                    f"{'alert' if alert else 'review'}"
                ),
                title=title,
                body=body,
                scheduled_at=scheduled_at,
                reminder_type="threshold_reached" if alert else "period_end_review",
                reminder_value=int(budget.alert_threshold),
                reminder_unit="percent",
                extras=self._section_extras(
                    fc.SECTION_BUDGETS,
                    fc.TEMPLATE_BUDGET_LIMIT if alert else fc.TEMPLATE_BUDGET_WINDOW,
                    tier,
                    budget.id,
                    period_end_at,
                    "category_budget" if budget.is_category_budget else "overall_budget",
                ),
                type=type_id,
                priority=PRIORITY_LABELS[tier],
            ),
        )

    def _savings_requests(
        self,
        goal: SavingsGoal,
        finance_settings: FinanceNotificationSettings,
        now: datetime,
        horizon: datetime,
    ) -> list[SectionedRequest]:
        if goal.remaining_amount <= 0:
            return []
        target_at = datetime.combine(goal.target_date, time(finance_settings.default_reminder_hour))
        overdue = goal.is_overdue(now.date())

        if overdue:
            if target_at > horizon:
                return []
            type_id = (
                fc.TYPE_PAYMENT_DUE
                if finance_settings.overdue_alerts_use_alarm
                else fc.TYPE_SAVINGS_DEADLINE
            )
            return [
                self._savings_request(
                    goal, target_at, now + timedelta(minutes=self.settings.past_clamp_minutes),
                    type_id, "high", -1,
                )
            ]
        if target_at > horizon:
            return []

        requests: list[SectionedRequest] = []
        for days_before in SAVINGS_DAYS_BEFORE:
            fire_at = target_at - timedelta(days=days_before)
            if fire_at <= now:
                if days_before == 0 and days_until(now, target_at) == 0:
                    fire_at = now + timedelta(minutes=self.settings.past_clamp_minutes)
                else:
                    continue
            high = days_before <= 1
            type_id = (
                fc.TYPE_PAYMENT_DUE
                if high and finance_settings.due_today_alerts_use_alarm
                else fc.TYPE_SAVINGS_DEADLINE
            )
            requests.append(
                self._savings_request(
                    goal, target_at, fire_at, type_id, "high" if high else "medium", days_before
                )
            )
        return requests

    def _savings_request(
        self,
        goal: SavingsGoal,
        target_at: datetime,
        scheduled_at: datetime,
        type_id: str,
        tier: str,
        days_before: int,
    ) -> SectionedRequest:
        if days_before < 0:
            title = f"Savings goal overdue: {goal.name}"
            entity_id = f"savings:{goal.id}:overdue"
        else:
            if days_before == 0:
                title = f"{goal.name} target date is today"
            else:
                title = f"{goal.name} target in {plural_days(days_before)}"
            entity_id = f"savings:{goal.id}:{date_key(target_at)}:{days_before}"

        return SectionedRequest(
            section=fc.SECTION_SAVINGS_GOALS,
            request=NotificationRequest(
                module_id=FINANCE,
                entity_id=entity_id,
                title=title,
                body=(
                    f"Remaining {goal.currency} {goal.remaining_amount:.2f} "
                    f"- target {date_label(target_at)}"
                ),
                scheduled_at=scheduled_at,
                reminder_type="deadline",
                reminder_value=days_before,
                reminder_unit="days",
                icon_code_point=goal.icon_code_point,
                color_value=goal.color_value,
                extras=self._section_extras(
                    fc.SECTION_SAVINGS_GOALS,
                    fc.TEMPLATE_SAVINGS_GOAL,
                    tier,
                    goal.id,
                    target_at,
                    "savings_goal",
                ),
                type=type_id,
                priority=PRIORITY_LABELS[tier],
            ),
        )

    def _income_requests(
        self,
        income: RecurringIncome,
        finance_settings: FinanceNotificationSettings,
        now: datetime,
        horizon: datetime,
        once_keys: set[str],
    ) -> list[SectionedRequest]:
        if not income.reminder_enabled or not income.reminders:
            return []

        max_occurrences = min(max(finance_settings.planning_window_days, 1), MAX_INCOME_OCCURRENCES)
        amount = f"{income.currency} {income.amount:.2f}"

        requests: list[SectionedRequest] = []
        for index, occurrence in enumerate(income.occurrences_between(now, horizon)):
            if index >= max_occurrences:
                break
            due_at = datetime.combine(occurrence, time(finance_settings.default_reminder_hour))
            due_days = days_until(now, due_at)
            overdue = due_days < 0

            for reminder in income.reminders:
                if not reminder.enabled:
                    continue
                once_key = f"income:{income.id}:{reminder.id}:{date_key(due_at)}"
                if self._is_once_consumed(reminder, once_key, once_keys):
                    continue
                fire_at = self._effective_fire_time(
                    reminder.calculate_fire_time(occurrence), now, horizon
                )
                if fire_at is None:
                    continue

                tier = priority_tier(reminder.type_id, due_days)
                title, body = self._income_message(
                    income, reminder, amount, due_at, due_days, overdue
                )
                extras = self._section_extras(
                    fc.SECTION_RECURRING_INCOME,
                    fc.TEMPLATE_RECURRING_INCOME,
                    tier,
                    income.id,
                    due_at,
                    "recurring_income",
                )
                requests.append(
                    SectionedRequest(
                        section=fc.SECTION_RECURRING_INCOME,
                        request=NotificationRequest(
                            module_id=FINANCE,
                            entity_id=once_key,
                            title=title,
                            body=body,
                            scheduled_at=fire_at,
                            reminder_type=reminder.timing,
                            reminder_value=reminder.value,
                            reminder_unit=reminder.unit,
                            icon_code_point=income.icon_code_point,
                            color_value=income.color_value,
                            extras=self._reminder_extras(reminder, once_key, extras),
                            type=reminder.type_id,
                            priority=PRIORITY_LABELS[tier],
                        ),
                    )
                )
        return requests

    @staticmethod
    def _income_message(
        income: RecurringIncome,
        reminder: BillReminder,
        amount: str,
        due_at: datetime,
        due_days: int,
        overdue: bool,
    ) -> tuple[str, str]:
        label = date_label(due_at)
        if overdue:
            title = f"{income.title} income overdue"
            body = f"{amount} was expected on {label}"
        else:
            if due_days == 0:
                title = f"{income.title} is due today"
            elif due_days == 1:
                title = f"{income.title} is due tomorrow"
            else:
                title = f"{income.title} due in {due_days} days"
            body = f"{amount} - expected {label}"

        variables = {
            "{billName}": income.title,
            "{amount}": amount,
            "{dueDate}": label,
            "{daysLeft}": str(abs(due_days)),
            "{category}": income.category_id,
        }
        if reminder.title_template is not None:
            title = fill_template(reminder.title_template, variables)
        if reminder.body_template is not None:
            body = fill_template(reminder.body_template, variables)
        return title, body
