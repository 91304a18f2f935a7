"""Pydantic models for Reminder Hub."""

from reminder_hub.models.dashboard import (
    DashboardSummary,
    ScheduledNotificationInfo,
    UpcomingNotification,
)
from reminder_hub.models.delivery import (
    BUILT_IN_TYPES,
    DeliveryConfig,
    ModuleNotificationSettings,
    NotificationType,
    TypeDeliveryOverride,
    TypeLevel,
)
from reminder_hub.models.finance import (
    Bill,
    BillReminder,
    Budget,
    Debt,
    DebtDirection,
    FinanceNotificationSettings,
    RecurringIncome,
    SavingsGoal,
)
from reminder_hub.models.log_entry import LogEntry
from reminder_hub.models.module import (
    MODULE_DISPLAY_NAMES,
    MODULE_ID_RANGES,
    IdRange,
    ModuleDescriptor,
    ModuleId,
    ModuleSection,
)
from reminder_hub.models.notification import (
    NativeAlarm,
    NotificationAction,
    NotificationEvent,
    NotificationRequest,
    PendingNotification,
    ReminderCondition,
    ReminderTiming,
    ScheduledNotification,
    ScheduleResult,
)
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.models.policy import ModulePolicyDecision, PolicyReason
from reminder_hub.models.recovery import (
    FinanceSyncResult,
    RecoveryResult,
    UniversalSyncResult,
)
from reminder_hub.models.tasks import Habit, Task
from reminder_hub.models.universal import UniversalNotification

__all__ = [
    # Dashboard
    "DashboardSummary",
    "ScheduledNotificationInfo",
    "UpcomingNotification",
    # Delivery
    "BUILT_IN_TYPES",
    "DeliveryConfig",
    "ModuleNotificationSettings",
    "NotificationType",
    "TypeDeliveryOverride",
    "TypeLevel",
    # Finance
    "Bill",
    "BillReminder",
    "Budget",
    "Debt",
    "DebtDirection",
    "FinanceNotificationSettings",
    "RecurringIncome",
    "SavingsGoal",
    # Log
    "LogEntry",
    # Modules
    "MODULE_DISPLAY_NAMES",
    "MODULE_ID_RANGES",
    "IdRange",
    "ModuleDescriptor",
    "ModuleId",
    "ModuleSection",
    # Notifications
    "NativeAlarm",
    "NotificationAction",
    "NotificationEvent",
    "NotificationRequest",
    "PendingNotification",
    "ReminderCondition",
    "ReminderTiming",
    "ScheduledNotification",
    "ScheduleResult",
    "NotificationPayload",
    # Policy
    "ModulePolicyDecision",
    "PolicyReason",
    # Recovery
    "FinanceSyncResult",
    "RecoveryResult",
    "UniversalSyncResult",
    # Tasks & habits
    "Habit",
    "Task",
    "UniversalNotification",
]
