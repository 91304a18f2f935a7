"""Explicit construction of every service.

Both the HTTP app and the headless recovery entry point build the same
object graph here, so their notification ids, settings and logs agree.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from reminder_hub.config import Settings, get_settings
from reminder_hub.db.client import SupabaseKeyValueStore
from reminder_hub.db.repositories import Repositories
from reminder_hub.db.store import InMemoryKeyValueStore, KeyValueStore
from reminder_hub.manager.adapters import default_adapters
from reminder_hub.manager.finance_scheduler import FinanceNotificationScheduler
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.manager.legacy_reminders import LegacyReminderService
from reminder_hub.manager.log_store import NotificationLogStore
from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.manager.policy import NotificationModulePolicy
from reminder_hub.manager.recovery import NotificationRecoveryService
from reminder_hub.manager.refresher import NotificationSystemRefresher
from reminder_hub.manager.type_registry import NotificationTypeRegistry
from reminder_hub.manager.universal_scheduler import UniversalNotificationScheduler
from reminder_hub.services.gateway import (
    HttpNotificationGateway,
    InMemoryNotificationGateway,
    NotificationGateway,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    store: KeyValueStore
    gateway: NotificationGateway
    repos: Repositories
    settings_store: ModuleSettingsStore
    policy: NotificationModulePolicy
    log_store: NotificationLogStore
    type_registry: NotificationTypeRegistry
    hub: NotificationHub
    universal_scheduler: UniversalNotificationScheduler
    finance_scheduler: FinanceNotificationScheduler
    legacy_reminders: LegacyReminderService
    recovery: NotificationRecoveryService
    refresher: NotificationSystemRefresher


def build_store(settings: Settings) -> KeyValueStore:
    if settings.storage_backend == "supabase":
        return SupabaseKeyValueStore(table=settings.supabase_table)
    return InMemoryKeyValueStore()


def build_gateway(
    settings: Settings, clock: Callable[[], datetime] = datetime.now
) -> NotificationGateway:
    if settings.gateway_backend == "http":
        if not settings.gateway_base_url:
            raise ValueError("GATEWAY_BASE_URL must be set when GATEWAY_BACKEND=http")
        return HttpNotificationGateway(
            settings.gateway_base_url, timeout=settings.gateway_timeout_seconds
        )
    return InMemoryNotificationGateway(clock=clock)


def build_context(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    gateway: NotificationGateway | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> ServiceContext:
    """Wire the hub, schedulers, recovery and refresher over one store and gateway.

    Args:
        settings: Defaults to ``get_settings()``
        store: Overrides the configured storage backend
        gateway: Overrides the configured OS gateway
        clock: Local wall clock shared by every service

    Returns:
        A context with every module adapter registered on the hub
    """
    settings = settings or get_settings()
    store = store or build_store(settings)
    gateway = gateway or build_gateway(settings, clock)

    repos = Repositories.from_store(store)
    settings_store = ModuleSettingsStore(store)
    policy = NotificationModulePolicy(settings_store)
    log_store = NotificationLogStore(
        store,
        max_entries=settings.log_max_entries,
        default_limit=settings.history_default_limit,
    )
    type_registry = NotificationTypeRegistry()
    hub = NotificationHub(
        gateway=gateway,
        log_store=log_store,
        settings_store=settings_store,
        universal_repository=repos.universal,
        type_registry=type_registry,
        clock=clock,
    )

    async def register_missing_adapters() -> None:
        for adapter in default_adapters(repos, settings_store):
            if not hub.is_registered(adapter.module.module_id):
                hub.register_adapter(adapter)

    for adapter in default_adapters(repos, settings_store):
        hub.register_adapter(adapter)

    universal_scheduler = UniversalNotificationScheduler(
        hub, repos, policy, settings_store, settings=settings, clock=clock
    )
    finance_scheduler = FinanceNotificationScheduler(
        hub, repos, settings_store, settings=settings, clock=clock
    )
    legacy_reminders = LegacyReminderService(hub, clock=clock)
    recovery = NotificationRecoveryService(
        hub,
        repos,
        policy,
        universal_scheduler,
        finance_scheduler,
        legacy_reminders,
        settings=settings,
        bootstrap=register_missing_adapters,
    )
    refresher = NotificationSystemRefresher(
        recovery, settings_store, settings=settings, clock=clock
    )

    logger.info(
        f"Service context built (storage={settings.storage_backend}, "
        f"gateway={settings.gateway_backend})"
    )
    return ServiceContext(
        settings=settings,
        store=store,
        gateway=gateway,
        repos=repos,
        settings_store=settings_store,
        policy=policy,
        log_store=log_store,
        type_registry=type_registry,
        hub=hub,
        universal_scheduler=universal_scheduler,
        finance_scheduler=finance_scheduler,
        legacy_reminders=legacy_reminders,
        recovery=recovery,
        refresher=refresher,
    )


# Process-wide context
_context: ServiceContext | None = None


def has_context() -> bool:
    return _context is not None


def get_context() -> ServiceContext:
    """Get or create the process-wide service context."""
    global _context
    if _context is None:
        _context = build_context()
    return _context


def set_context(context: ServiceContext | None) -> None:
    """Replace the process-wide context (None resets it)."""
    global _context
    _context = context
