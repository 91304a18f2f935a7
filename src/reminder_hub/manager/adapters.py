"""Module adapters: the hub's only extension point.

Each feature module registers one adapter that resolves template variables
for its entities and reacts to taps, action buttons and permanent deletes.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Protocol, runtime_checkable

from reminder_hub.db.repositories import Repositories
from reminder_hub.manager import finance_contract as fc
from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.models.delivery import DeliveryConfig, NotificationType
from reminder_hub.models.module import ModuleDescriptor, ModuleId, ModuleSection
from reminder_hub.models.payload import NotificationPayload

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WEEKDAY_SUFFIXES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def format_clock(hour: int, minute: int) -> str:
    """Format a time of day as ``h:mm AM``."""
    hour12 = 12 if hour % 12 == 0 else hour % 12
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour12}:{minute:02d} {suffix}"


def weekday_from_entity_id(entity_id: str) -> int | None:
    """Weekday index (Monday = 0) encoded as a ``_mon`` style suffix."""
    suffix = entity_id.rsplit("_", 1)[-1]
    if suffix in WEEKDAY_SUFFIXES:
        return WEEKDAY_SUFFIXES.index(suffix)
    return None


def _parse_clock(value: object, default: tuple[int, int]) -> tuple[int, int]:
    if not isinstance(value, str):
        return default
    hour, sep, minute = value.partition(":")
    if not sep or not hour.isdigit() or not minute.isdigit():
        return default
    return int(hour), int(minute)


@runtime_checkable
class NotificationAdapter(Protocol):
    """Capabilities a module exposes to the hub."""

    @property
    def module(self) -> ModuleDescriptor:
        ...

    @property
    def custom_notification_types(self) -> list[NotificationType]:
        ...

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        ...

    async def on_notification_tapped(self, payload: NotificationPayload) -> None:
        ...

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        ...

    async def on_notification_deleted(self, payload: NotificationPayload) -> None:
        ...


class BaseNotificationAdapter(ABC):
    """Shared adapter plumbing.

    Taps and ``view`` actions record the screen the client should open in
    ``last_route``; the HTTP layer hands it back to the device.
    """

    route: str = "/"

    def __init__(self, repos: Repositories, settings_store: ModuleSettingsStore) -> None:
        self.repos = repos
        self.settings_store = settings_store
        self.last_route: str | None = None

    @property
    @abstractmethod
    def module(self) -> ModuleDescriptor:
        ...

    @property
    def custom_notification_types(self) -> list[NotificationType]:
        return []

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        return {}

    async def on_notification_tapped(self, payload: NotificationPayload) -> None:
        self.last_route = self.route_for(payload)

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        if action_id == "view":
            await self.on_notification_tapped(payload)
            return True
        return False

    async def on_notification_deleted(self, payload: NotificationPayload) -> None:
        return None

    def route_for(self, payload: NotificationPayload) -> str:
        return self.route


class TaskNotificationAdapter(BaseNotificationAdapter):
    route = "/tasks"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(ModuleId.TASK)

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        task = await self.repos.tasks.get_by_id(entity_id)
        if task is None:
            return {}
        due_at = task.due_at()
        return {
            "{title}": task.title,
            "{taskName}": task.title,
            "{status}": task.status,
            "{dueDate}": due_at.date().isoformat() if due_at else "",
            "{dueTime}": format_clock(due_at.hour, due_at.minute) if due_at else "",
        }

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        if action_id != "mark_done":
            return await super().on_notification_action(action_id, payload, notification_id)

        task = await self.repos.tasks.get_by_id(payload.entity_id)
        if task is None:
            return False
        if task.status != "completed":
            await self.repos.tasks.save(task.model_copy(update={"status": "completed"}))
            logger.info(f"Task {task.id} marked done from notification")
        return True

    def route_for(self, payload: NotificationPayload) -> str:
        return f"/tasks/{payload.entity_id}" if payload.entity_id else self.route


class HabitNotificationAdapter(BaseNotificationAdapter):
    route = "/habits"
    completions_collection = "habit_completions"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(ModuleId.HABIT)

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        habit = await self.repos.habits.get_by_id(entity_id)
        if habit is None:
            return {}
        return {
            "{title}": habit.title,
            "{habitName}": habit.title,
            "{time}": format_clock(habit.hour, habit.minute),
            "{frequency}": habit.frequency,
        }

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        if action_id not in ("mark_done", "skip"):
            return await super().on_notification_action(action_id, payload, notification_id)

        habit = await self.repos.habits.get_by_id(payload.entity_id)
        if habit is None:
            return False
        today = date.today().isoformat()
        await self.settings_store.store.put(
            self.completions_collection,
            f"{habit.id}:{today}",
            {
                "habit_id": habit.id,
                "date": today,
                "skipped": action_id == "skip",
                "completed_at": datetime.now().isoformat(),
            },
        )
        return True

    def route_for(self, payload: NotificationPayload) -> str:
        return f"/habits/{payload.entity_id}" if payload.entity_id else self.route


class FinanceNotificationAdapter(BaseNotificationAdapter):
    route = "/finance"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(
            ModuleId.FINANCE,
            default_channel="finance_reminders",
            sections=[
                ModuleSection(id=fc.SECTION_BILLS, display_name="Bills & Subscriptions"),
                ModuleSection(id=fc.SECTION_DEBTS, display_name="Debts"),
                ModuleSection(id=fc.SECTION_LENDING, display_name="Lending"),
                ModuleSection(id=fc.SECTION_BUDGETS, display_name="Budgets"),
                ModuleSection(id=fc.SECTION_SAVINGS_GOALS, display_name="Savings Goals"),
                ModuleSection(id=fc.SECTION_RECURRING_INCOME, display_name="Recurring Income"),
            ],
        )

    @property
    def custom_notification_types(self) -> list[NotificationType]:
        def finance_type(type_id: str, name: str, section: str, **config) -> NotificationType:
            return NotificationType(
                id=type_id,
                display_name=name,
                module_id=ModuleId.FINANCE.value,
                section_id=section,
                default_config=DeliveryConfig(channel_key="", **config),
            )

        return [
            finance_type(fc.TYPE_BILL_UPCOMING, "Bill Upcoming", fc.SECTION_BILLS),
            finance_type(fc.TYPE_BILL_TOMORROW, "Bill Due Tomorrow", fc.SECTION_BILLS),
            finance_type(
                fc.TYPE_PAYMENT_DUE, "Payment Due", fc.SECTION_BILLS, bypass_quiet_hours=True
            ),
            finance_type(
                fc.TYPE_BILL_OVERDUE,
                "Bill Overdue",
                fc.SECTION_BILLS,
                bypass_quiet_hours=True,
                persistent=True,
            ),
            finance_type(fc.TYPE_DEBT_REMINDER, "Debt Reminder", fc.SECTION_DEBTS),
            finance_type(fc.TYPE_LENDING_REMINDER, "Lending Reminder", fc.SECTION_LENDING),
            finance_type(fc.TYPE_BUDGET_LIMIT, "Budget Limit", fc.SECTION_BUDGETS),
            finance_type(fc.TYPE_BUDGET_WINDOW, "Budget Review", fc.SECTION_BUDGETS),
            finance_type(fc.TYPE_SAVINGS_DEADLINE, "Savings Deadline", fc.SECTION_SAVINGS_GOALS),
            finance_type(
                fc.TYPE_INCOME_REMINDER, "Income Reminder", fc.SECTION_RECURRING_INCOME
            ),
            finance_type(fc.TYPE_SUMMARY, "Finance Summary", fc.SECTION_BILLS),
        ]

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        bill = await self.repos.bills.get_by_id(entity_id)
        if bill is not None:
            due = bill.next_due_date or bill.next_due_fallback(date.today())
            return {
                "{title}": bill.name,
                "{billName}": bill.name,
                "{amount}": f"{bill.currency} {bill.default_amount:.2f}",
                "{dueDate}": due.isoformat(),
                "{daysLeft}": str((due - date.today()).days),
                "{category}": bill.category_id,
            }

        debt = await self.repos.debts.get_by_id(entity_id)
        if debt is not None:
            return {
                "{title}": debt.name,
                "{debtName}": debt.name,
                "{amount}": f"{debt.currency} {debt.current_balance:.2f}",
                "{dueDate}": debt.due_date.isoformat() if debt.due_date else "",
            }

        income = await self.repos.recurring_incomes.get_by_id(entity_id)
        if income is not None:
            next_date = income.next_occurrence_after(datetime.now())
            return {
                "{title}": income.title,
                "{amount}": f"{income.currency} {income.amount:.2f}",
                "{dueDate}": next_date.isoformat() if next_date else "",
                "{category}": income.category_id,
            }
        return {}

    async def on_notification_deleted(self, payload: NotificationPayload) -> None:
        """Remove the reminder rule behind a deleted finance notification."""
        reminder_id = payload.extras.get("reminderId")
        target_id = payload.extras.get(fc.EXTRA_TARGET_ENTITY_ID)
        if not reminder_id or not target_id:
            return

        bill = await self.repos.bills.get_by_id(target_id)
        if bill is not None:
            kept = [r for r in bill.reminders if r.id != reminder_id]
            if len(kept) != len(bill.reminders):
                await self.repos.bills.save(bill.model_copy(update={"reminders": kept}))
                logger.info(f"Removed reminder {reminder_id} from bill {target_id}")
            return

        debt = await self.repos.debts.get_by_id(target_id)
        if debt is not None:
            kept = [r for r in debt.reminders if r.id != reminder_id]
            if len(kept) != len(debt.reminders):
                await self.repos.debts.save(debt.model_copy(update={"reminders": kept}))
                logger.info(f"Removed reminder {reminder_id} from debt {target_id}")

    def route_for(self, payload: NotificationPayload) -> str:
        screen = payload.extras.get(fc.EXTRA_SCREEN)
        return f"/finance/{screen}" if screen else self.route


class SleepNotificationAdapter(BaseNotificationAdapter):
    route = "/sleep"

    BED_TIME_KEY = "sleep_target_bed_time"
    WAKE_TIME_KEY = "sleep_target_wake_time"
    TARGET_HOURS_KEY = "sleep_target_hours"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(
            ModuleId.SLEEP,
            sections=[
                ModuleSection(id="bedtime", display_name="Bedtime"),
                ModuleSection(id="wakeup", display_name="Wake Up"),
                ModuleSection(id="winddown", display_name="Wind-Down"),
            ],
        )

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        bed = _parse_clock(await self.settings_store.get_value(self.BED_TIME_KEY), (22, 0))
        wake = _parse_clock(await self.settings_store.get_value(self.WAKE_TIME_KEY), (6, 0))
        target_hours = await self.settings_store.get_value(self.TARGET_HOURS_KEY)
        try:
            hours = float(target_hours) if target_hours is not None else 8.0
        except (TypeError, ValueError):
            hours = 8.0

        variables = {
            "{goalName}": f"{hours:.1f} hours",
            "{duration}": f"{hours:.1f}h",
            "{bedtime}": format_clock(*bed),
            "{wakeTime}": format_clock(*wake),
        }
        weekday = weekday_from_entity_id(entity_id)
        if weekday is not None:
            variables["{weekday}"] = WEEKDAY_NAMES[weekday]
        return variables

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        if action_id in ("go_to_sleep", "dismiss"):
            if action_id == "go_to_sleep":
                self.last_route = self.route
            return True
        return await super().on_notification_action(action_id, payload, notification_id)


class MoodNotificationAdapter(BaseNotificationAdapter):
    route = "/mood"

    DAILY_REMINDER_KEY = "mbt_mood_daily_reminder_enabled"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(
            ModuleId.MBT_MOOD,
            sections=[ModuleSection(id="mood_checkin", display_name="Mood Check-in")],
        )

    @property
    def custom_notification_types(self) -> list[NotificationType]:
        return [
            NotificationType(
                id="mbt_mood_daily_checkin",
                display_name="Daily Mood Check-in",
                module_id=ModuleId.MBT_MOOD.value,
                section_id="mood_checkin",
                default_config=DeliveryConfig(channel_key="task_reminders"),
            )
        ]

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        today = date.today()
        return {"{date}": today.isoformat(), "{weekday}": WEEKDAY_NAMES[today.weekday()]}

    async def on_notification_action(
        self,
        action_id: str,
        payload: NotificationPayload,
        notification_id: int | None = None,
    ) -> bool:
        if action_id == "log_now":
            await self.on_notification_tapped(payload)
            return True
        return await super().on_notification_action(action_id, payload, notification_id)

    async def on_notification_deleted(self, payload: NotificationPayload) -> None:
        if payload.entity_id == "mbt_mood_daily_checkin":
            await self.settings_store.set_value(self.DAILY_REMINDER_KEY, False)


class BehaviorNotificationAdapter(BaseNotificationAdapter):
    route = "/behavior"

    @property
    def module(self) -> ModuleDescriptor:
        return ModuleDescriptor.for_module(
            ModuleId.BEHAVIOR,
            sections=[ModuleSection(id="daily_reminder", display_name="Daily Reminder")],
        )

    async def resolve_variables_for_entity(
        self, entity_id: str, section: str
    ) -> dict[str, str]:
        weekday = weekday_from_entity_id(entity_id)
        if weekday is None:
            return {}
        return {"{weekday}": WEEKDAY_NAMES[weekday]}


def default_adapters(
    repos: Repositories, settings_store: ModuleSettingsStore
) -> list[BaseNotificationAdapter]:
    """One adapter per built-in module."""
    return [
        adapter_cls(repos, settings_store)
        for adapter_cls in (
            TaskNotificationAdapter,
            HabitNotificationAdapter,
            FinanceNotificationAdapter,
            SleepNotificationAdapter,
            MoodNotificationAdapter,
            BehaviorNotificationAdapter,
        )
    ]
