"""Notification hub, schedulers and recovery."""

from reminder_hub.manager.finance_scheduler import FinanceNotificationScheduler
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.manager.legacy_reminders import LegacyReminder, LegacyReminderService
from reminder_hub.manager.log_store import NotificationLogStore
from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.manager.policy import NotificationModulePolicy
from reminder_hub.manager.recovery import NotificationRecoveryService
from reminder_hub.manager.refresher import NotificationSystemRefresher, SettingsSignature
from reminder_hub.manager.source_resolver import (
    NotificationSourceResolver,
    ResolvedNotificationSource,
)
from reminder_hub.manager.type_registry import NotificationTypeRegistry
from reminder_hub.manager.universal_scheduler import UniversalNotificationScheduler

__all__ = [
    "FinanceNotificationScheduler",
    "LegacyReminder",
    "LegacyReminderService",
    "ModuleSettingsStore",
    "NotificationHub",
    "NotificationLogStore",
    "NotificationModulePolicy",
    "NotificationRecoveryService",
    "NotificationSourceResolver",
    "NotificationSystemRefresher",
    "NotificationTypeRegistry",
    "ResolvedNotificationSource",
    "SettingsSignature",
    "UniversalNotificationScheduler",
]
