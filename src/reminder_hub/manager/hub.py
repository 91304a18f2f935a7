"""Notification hub: the single entry point for scheduling, cancelling and
reacting to notifications across every module."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from reminder_hub.db.repositories import UniversalNotificationRepository
from reminder_hub.exceptions import (
    GatewayError,
    ModuleNotRegisteredError,
    PolicyReadError,
    StorageError,
)
from reminder_hub.manager.adapters import NotificationAdapter
from reminder_hub.manager.identity import (
    generate_notification_id,
    is_in_any_module_range,
    is_in_module_range,
    module_for_id,
)
from reminder_hub.manager.log_store import NotificationLogStore
from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.manager.source_resolver import NotificationSourceResolver
from reminder_hub.manager.type_registry import NotificationTypeRegistry
from reminder_hub.models.dashboard import (
    DashboardSummary,
    ScheduledNotificationInfo,
    UpcomingNotification,
)
from reminder_hub.models.delivery import ModuleNotificationSettings
from reminder_hub.models.log_entry import LogEntry
from reminder_hub.models.module import ModuleDescriptor
from reminder_hub.models.notification import (
    NotificationEvent,
    NotificationRequest,
    PendingNotification,
    ScheduledNotification,
    ScheduleResult,
)
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.services.gateway import NotificationGateway

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "task_reminders"
DEFAULT_SNOOZE_MINUTES = 10
SNOOZE_ID_OFFSET = 100_000
DASHBOARD_HISTORY_LIMIT = 1500
SCHEDULED_AT_CACHE_SIZE = 2000

GATEWAY_FAILURE_MESSAGE = (
    "Could not schedule. Check app notification settings, "
    "time (must be in future), or quiet hours."
)

# Canonical ids adapters handle; variants are mapped before dispatch
ACTION_ALIASES = {"done": "mark_done", "open": "view"}


def _module_name(module_id: str) -> str:
    return module_id[:1].upper() + module_id[1:] if module_id else "Module"


class NotificationHub:
    """Routes scheduling through module adapters, the type registry and the
    OS gateway, and records every lifecycle event in the activity log."""

    def __init__(
        self,
        gateway: NotificationGateway,
        log_store: NotificationLogStore,
        settings_store: ModuleSettingsStore,
        universal_repository: UniversalNotificationRepository,
        type_registry: NotificationTypeRegistry | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.gateway = gateway
        self.log_store = log_store
        self.settings_store = settings_store
        self.universal_repository = universal_repository
        self.type_registry = type_registry or NotificationTypeRegistry()
        self.resolver = NotificationSourceResolver(universal_repository)
        self._clock = clock

        self._adapters: dict[str, NotificationAdapter] = {}
        self._enabled_states: dict[str, bool] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        # notification id -> ISO fire time of the last logged schedule, oldest first
        self._last_scheduled_at: dict[int, str] = {}
        self.scheduled_at_cache_size = SCHEDULED_AT_CACHE_SIZE

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load persisted module states. Safe to call repeatedly.

        If the stored states cannot be read the hub runs on adapter
        defaults and tries again on the next call.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                stored = await self.settings_store.get_enabled_states()
            except StorageError as e:
                logger.warning(f"Could not load module states, using defaults: {e}")
                return
            self._enabled_states.update(stored)
            self._reload_types()
            self._initialized = True
            logger.info(f"Notification hub initialized with {len(self._adapters)} modules")

    async def _record(self, entry: LogEntry) -> None:
        try:
            await self.log_store.append(entry)
        except StorageError as e:
            logger.warning(
                f"Could not log {entry.event.value} for {entry.module_id}/{entry.entity_id}: {e}"
            )

    def _remember_scheduled_at(self, notification_id: int, scheduled_at_iso: str) -> None:
        self._last_scheduled_at.pop(notification_id, None)
        self._last_scheduled_at[notification_id] = scheduled_at_iso
        while len(self._last_scheduled_at) > self.scheduled_at_cache_size:
            del self._last_scheduled_at[next(iter(self._last_scheduled_at))]

    # ------------------------------------------------------------------
    # Adapters and module state
    # ------------------------------------------------------------------

    def register_adapter(self, adapter: NotificationAdapter) -> None:
        module = adapter.module
        if not module.module_id:
            return
        self._adapters[module.module_id] = adapter
        self._enabled_states.setdefault(module.module_id, module.default_enabled)
        if adapter.custom_notification_types:
            self.type_registry.register_custom_types(adapter.custom_notification_types)

    def unregister_adapter(self, module_id: str) -> None:
        self._adapters.pop(module_id, None)
        self.type_registry.unregister_module_types(module_id)

    def _reload_types(self) -> None:
        for module_id in list(self._adapters):
            self.type_registry.unregister_module_types(module_id)
        for adapter in self._adapters.values():
            self.type_registry.register_custom_types(adapter.custom_notification_types)

    def is_registered(self, module_id: str) -> bool:
        return module_id in self._adapters

    def adapter_for(self, module_id: str) -> NotificationAdapter | None:
        return self._adapters.get(module_id)

    def require_adapter(self, module_id: str) -> NotificationAdapter:
        adapter = self._adapters.get(module_id)
        if adapter is None:
            raise ModuleNotRegisteredError(module_id)
        return adapter

    def registered_modules(self) -> list[ModuleDescriptor]:
        return sorted(
            (a.module for a in self._adapters.values()), key=lambda m: m.display_name
        )

    def module_display_name(self, module_id: str) -> str:
        adapter = self._adapters.get(module_id)
        return adapter.module.display_name if adapter else module_id

    def section_display_name(self, module_id: str, section_id: str) -> str | None:
        adapter = self._adapters.get(module_id)
        if adapter is None or not section_id:
            return None
        for section in adapter.module.sections:
            if section.id == section_id:
                return section.display_name
        return None

    async def get_module_enabled_states(self) -> dict[str, bool]:
        await self.initialize()
        return {
            m.module_id: self._enabled_states.get(m.module_id, m.default_enabled)
            for m in self.registered_modules()
        }

    async def is_module_enabled(self, module_id: str) -> bool:
        await self.initialize()
        if module_id in self._enabled_states:
            return self._enabled_states[module_id]
        adapter = self._adapters.get(module_id)
        return adapter.module.default_enabled if adapter else True

    async def set_module_enabled(self, module_id: str, enabled: bool) -> None:
        await self.initialize()
        self._enabled_states[module_id] = enabled
        await self.settings_store.set_module_enabled(module_id, enabled)

    async def get_module_settings(self, module_id: str) -> ModuleNotificationSettings:
        try:
            return await self.settings_store.get_module_settings(module_id)
        except PolicyReadError as e:
            logger.warning(f"Using default settings for {module_id}: {e}")
            return ModuleNotificationSettings()

    async def set_module_settings(
        self, module_id: str, settings: ModuleNotificationSettings
    ) -> None:
        await self.settings_store.set_module_settings(module_id, settings)

    def generate_notification_id(
        self,
        module_id: str,
        entity_id: str,
        reminder_type: str = "at_time",
        reminder_value: int = 0,
        reminder_unit: str = "minutes",
        scheduled_at: datetime | None = None,
    ) -> int:
        return generate_notification_id(
            module_id, entity_id, reminder_type, reminder_value, reminder_unit, scheduled_at
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def schedule(self, request: NotificationRequest) -> ScheduleResult:
        """Schedule one notification. Never raises.

        Policy rejections (unregistered or disabled module) are returned
        without logging; every gateway outcome is logged.
        """
        await self.initialize()
        module_id = request.module_id

        adapter = self._adapters.get(module_id)
        if adapter is None:
            logger.debug(f"Schedule rejected: module {module_id} not registered")
            return ScheduleResult.failed(
                f'Module "{module_id}" is not registered. Restart the app.'
            )

        if not await self.is_module_enabled(module_id):
            logger.debug(f"Schedule rejected: module {module_id} disabled")
            return ScheduleResult.failed(
                f"{_module_name(module_id)} is disabled. Enable it in Notification Hub."
            )

        module_settings = await self.get_module_settings(module_id)
        if module_settings.notifications_enabled is False:
            logger.debug(f"Schedule rejected: notifications off for {module_id}")
            return ScheduleResult.failed(
                f"Notifications are off for {_module_name(module_id)}. "
                "Enable them in Notification Hub."
            )

        notification_id = request.notification_id
        if notification_id is None:
            notification_id = self.generate_notification_id(
                module_id,
                request.entity_id,
                request.reminder_type,
                request.reminder_value,
                request.reminder_unit,
                request.scheduled_at,
            )

        extras = dict(request.extras)
        if request.type and "type" not in extras:
            extras["type"] = request.type

        payload = NotificationPayload(
            module_id=module_id,
            entity_id=request.entity_id,
            reminder_type=request.reminder_type,
            reminder_value=str(request.reminder_value),
            reminder_unit=request.reminder_unit,
            extras=extras,
        ).encode()

        config = self.type_registry.resolve(
            request.type,
            max_allowed_type=module_settings.max_allowed_type,
            module_default_channel=(
                module_settings.default_channel
                or adapter.module.default_channel
                or DEFAULT_CHANNEL
            ),
        )
        override = module_settings.override_for_type(request.type)

        channel_key = request.channel_key or override.channel_key or config.channel_key
        sound_key = next(
            v
            for v in (
                request.sound_key,
                override.sound_key,
                config.sound_key,
                module_settings.default_sound,
                "default",
            )
            if v is not None
        )
        vibration_id = next(
            v
            for v in (
                request.vibration_pattern_id,
                override.vibration_pattern_id,
                config.vibration_pattern_id,
                module_settings.default_vibration_pattern,
                "default",
            )
            if v is not None
        )
        audio_stream = (
            request.audio_stream
            or override.audio_stream
            or config.audio_stream
            or module_settings.audio_stream
            or "notification"
        )
        use_alarm_mode = _first_bool(
            request.use_alarm_mode, override.use_alarm_mode, config.use_alarm_mode
        )
        use_full_screen = _first_bool(
            request.use_full_screen_intent,
            override.use_full_screen_intent,
            config.use_full_screen_intent,
        )
        bypass_quiet_hours = _first_bool(
            request.bypass_quiet_hours,
            override.bypass_quiet_hours,
            config.bypass_quiet_hours,
        )
        is_special = request.type == "special"

        notification = ScheduledNotification(
            id=notification_id,
            fire_at=request.scheduled_at,
            title=request.title,
            body=request.body,
            payload=payload,
            channel_key=channel_key,
            sound_key=sound_key,
            vibration_pattern_id=vibration_id,
            audio_stream=audio_stream,
            use_alarm_mode=use_alarm_mode,
            use_full_screen_intent=use_full_screen,
            bypass_quiet_hours=bypass_quiet_hours,
            use_alarm_clock_schedule_mode=request.use_alarm_clock_schedule_mode,
            priority=request.priority,
            icon_code_point=request.icon_code_point,
            color_value=request.color_value,
            actions=request.actions,
        )

        error: str | None = None
        try:
            success = await self.gateway.schedule(notification)
        except GatewayError as e:
            logger.error(f"Gateway failed scheduling {notification_id}: {e}")
            success = False
            error = str(e)

        scheduled_at_iso = request.scheduled_at.isoformat()
        redundant = success and self._last_scheduled_at.get(notification_id) == scheduled_at_iso
        if success:
            self._remember_scheduled_at(notification_id, scheduled_at_iso)

        if not redundant:
            metadata: dict[str, Any] = {
                "scheduledAt": scheduled_at_iso,
                "type": request.type,
                "channelKey": channel_key,
                "soundKey": sound_key,
                "vibrationPatternId": vibration_id,
                "audioStream": audio_stream,
                "useAlarmMode": use_alarm_mode,
                "bypassQuietHours": bypass_quiet_hours,
                "isSpecial": is_special,
                "useFullScreenIntent": use_full_screen,
            }
            if module_settings.max_allowed_type is not None:
                metadata["maxAllowedType"] = module_settings.max_allowed_type
            if override.has_overrides:
                metadata["typeOverride"] = override.model_dump(exclude_none=True)
            if request.priority is not None:
                metadata["priority"] = request.priority
            if extras:
                metadata["extras"] = extras
            if error is not None:
                metadata["error"] = error

            await self._record(
                LogEntry.create(
                    module_id=module_id,
                    entity_id=request.entity_id,
                    notification_id=notification_id,
                    title=request.title,
                    body=request.body,
                    payload=payload,
                    channel_key=channel_key,
                    sound_key=sound_key,
                    event=NotificationEvent.SCHEDULED if success else NotificationEvent.FAILED,
                    metadata=metadata,
                    timestamp=self._clock(),
                )
            )

        if success:
            return ScheduleResult.ok()
        return ScheduleResult.failed(GATEWAY_FAILURE_MESSAGE)

    async def snooze(
        self,
        payload: str,
        title: str,
        body: str = "",
        notification_id: int | None = None,
        custom_minutes: int | None = None,
    ) -> bool:
        """Re-fire a notification after the module's snooze duration."""
        parsed = NotificationPayload.try_parse(payload)
        if parsed is None:
            return False
        await self.initialize()

        module_settings = await self.get_module_settings(parsed.module_id)
        minutes = (
            custom_minutes
            or module_settings.default_snooze_minutes
            or DEFAULT_SNOOZE_MINUTES
        )

        base_id = notification_id
        if base_id is None:
            base_id = self.generate_notification_id(
                parsed.module_id,
                parsed.entity_id,
                parsed.reminder_type,
                parsed.reminder_value,
                parsed.reminder_unit,
            )
        snooze_id = base_id + SNOOZE_ID_OFFSET if base_id < SNOOZE_ID_OFFSET else base_id

        adapter = self._adapters.get(parsed.module_id)
        default_channel = adapter.module.default_channel if adapter else DEFAULT_CHANNEL
        notification = ScheduledNotification(
            id=snooze_id,
            fire_at=self._clock() + timedelta(minutes=minutes),
            title=title,
            body=body,
            payload=payload,
            channel_key=module_settings.default_channel or default_channel,
            sound_key=module_settings.default_sound or "default",
            vibration_pattern_id=module_settings.default_vibration_pattern or "default",
        )
        try:
            success = await self.gateway.schedule(notification)
        except GatewayError as e:
            logger.error(f"Gateway failed snoozing {snooze_id}: {e}")
            success = False

        await self._record(
            LogEntry.create(
                module_id=parsed.module_id,
                entity_id=parsed.entity_id,
                notification_id=notification_id,
                title=title,
                body=body,
                payload=payload,
                event=NotificationEvent.SNOOZED if success else NotificationEvent.FAILED,
                metadata={"snoozeDurationMinutes": minutes}
                if success
                else {"reason": "snooze_failed", "snoozeDurationMinutes": minutes},
                timestamp=self._clock(),
            )
        )
        return success

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_for_entity(
        self, module_id: str, entity_id: str, keep_universal: bool = False
    ) -> int:
        """Cancel every pending notification for one entity.

        With ``keep_universal`` notifications owned by a universal
        definition are left in place.
        """
        return await self._cancel_pending_matching(
            lambda pending_module, pending_entity, parsed: (
                pending_module == module_id
                and pending_entity == entity_id
                and not (keep_universal and _is_universal_owned(parsed))
            ),
            source="cancel_for_entity",
        )

    async def cancel_for_module(self, module_id: str) -> int:
        """Cancel every pending notification owned by a module."""
        return await self._cancel_pending_matching(
            lambda pending_module, _entity, _parsed: pending_module == module_id,
            source="cancel_for_module",
        )

    async def _cancel_pending_matching(
        self,
        matches: Callable[[str, str, NotificationPayload | None], bool],
        source: str,
    ) -> int:
        await self.initialize()
        cancelled: set[int] = set()
        for pending in await self.gateway.list_pending():
            parsed = NotificationPayload.try_parse(pending.payload)
            pending_module = parsed.module_id if parsed else self._module_for_pending(pending)
            pending_entity = parsed.entity_id if parsed else (pending.entity_id or "")
            if not matches(pending_module, pending_entity, parsed) or pending.id in cancelled:
                continue
            if not await self._cancel_id(pending.id):
                continue
            cancelled.add(pending.id)

            await self._record(
                LogEntry.create(
                    module_id=pending_module,
                    entity_id=pending_entity,
                    notification_id=pending.id,
                    title=pending.title,
                    body=pending.body,
                    payload=pending.payload,
                    event=NotificationEvent.CANCELLED,
                    metadata={"source": source},
                    timestamp=self._clock(),
                )
            )
        return len(cancelled)

    async def cancel_by_notification_id(
        self,
        notification_id: int,
        entity_id: str | None = None,
        payload: str | None = None,
        title: str | None = None,
        body: str | None = None,
        metadata: dict[str, Any] | None = None,
        module_id: str | None = None,
        section: str | None = None,
    ) -> None:
        """Cancel one notification and log enough context to show what it was.

        When neither the payload nor ``module_id`` names a module, the
        source is recovered through the resolver.
        """
        await self.initialize()
        await self._cancel_id(notification_id)

        parsed = NotificationPayload.try_parse(payload)
        log_module = parsed.module_id if parsed else module_id
        log_entity = entity_id or (parsed.entity_id if parsed else "")

        if not log_module or log_module == "unknown":
            resolved = await self.resolver.resolve(notification_id)
            if resolved is not None:
                log_module = resolved.module_id
                log_entity = log_entity or resolved.entity_id
                if not payload:
                    payload = resolved.to_payload()
            else:
                log_module = "unknown"
        elif not payload and section:
            payload = NotificationPayload.for_source(log_module, log_entity, section).encode()

        await self._record(
            LogEntry.create(
                module_id=log_module,
                entity_id=log_entity,
                notification_id=notification_id,
                title=title or "",
                body=body or "",
                payload=payload,
                event=NotificationEvent.CANCELLED,
                metadata=metadata,
                timestamp=self._clock(),
            )
        )

    async def cancel_out_of_range_pending(self) -> int:
        """Cancel pending notifications whose id is outside their module's range.

        Such ids come from builds that predate the reserved ranges.
        """
        await self.initialize()
        cancelled = 0
        for pending in await self.gateway.list_pending():
            module_id = self._module_for_pending(pending)
            if is_in_any_module_range(pending.id) and is_in_module_range(module_id, pending.id):
                continue
            if not await self._cancel_id(pending.id):
                continue
            cancelled += 1
            logger.debug(
                f"Cancelled out-of-range notification {pending.id} (module={module_id})"
            )
        if cancelled:
            logger.info(f"Cancelled {cancelled} out-of-range pending notifications")
        return cancelled

    async def delete_and_notify_module(
        self, notification_id: int, entity_id: str, payload: str
    ) -> bool:
        """Cancel a notification and let its module drop the underlying rule."""
        await self.initialize()
        parsed = NotificationPayload.try_parse(payload)
        module_id = parsed.module_id if parsed else "unknown"

        await self._cancel_id(notification_id)

        adapter = self._adapters.get(parsed.module_id) if parsed else None
        if adapter is not None and parsed is not None:
            try:
                await adapter.on_notification_deleted(parsed)
            except Exception as e:
                logger.error(f"Delete handler failed for {module_id}/{entity_id}: {e}")
                await self._record(
                    LogEntry.create(
                        module_id=module_id,
                        entity_id=entity_id,
                        notification_id=notification_id,
                        payload=payload,
                        event=NotificationEvent.FAILED,
                        metadata={"reason": "delete_notify_error", "error": str(e)},
                        timestamp=self._clock(),
                    )
                )
                return False

        await self._record(
            LogEntry.create(
                module_id=module_id,
                entity_id=entity_id,
                notification_id=notification_id,
                payload=payload,
                event=NotificationEvent.CANCELLED,
                metadata={"source": "hub_delete_permanent"},
                timestamp=self._clock(),
            )
        )
        return True

    async def _cancel_id(self, notification_id: int) -> bool:
        """Cancel an id and its snooze twin. False if the gateway failed."""
        try:
            await self.gateway.cancel(notification_id)
            if notification_id < SNOOZE_ID_OFFSET:
                await self.gateway.cancel(notification_id + SNOOZE_ID_OFFSET)
        except GatewayError as e:
            logger.warning(f"Gateway failed cancelling {notification_id}: {e}")
            return False
        self._forget_scheduled_at(notification_id)
        return True

    def _forget_scheduled_at(self, notification_id: int) -> None:
        self._last_scheduled_at.pop(notification_id, None)
        if notification_id >= SNOOZE_ID_OFFSET:
            self._last_scheduled_at.pop(notification_id - SNOOZE_ID_OFFSET, None)
        else:
            self._last_scheduled_at.pop(notification_id + SNOOZE_ID_OFFSET, None)

    # ------------------------------------------------------------------
    # Callbacks from the device
    # ------------------------------------------------------------------

    async def handle_notification_tap(self, payload: str) -> bool:
        parsed = NotificationPayload.try_parse(payload)
        if parsed is None:
            return False
        await self.initialize()

        adapter = self._adapters.get(parsed.module_id)
        if adapter is None:
            await self._log_failure(parsed, payload, "adapter_not_registered_for_tap")
            return False

        try:
            await adapter.on_notification_tapped(parsed)
        except Exception as e:
            logger.error(f"Tap handler failed for {parsed.module_id}: {e}")
            await self._log_failure(parsed, payload, "tap_handler_error", error=str(e))
            return False

        await self._record(
            LogEntry.create(
                module_id=parsed.module_id,
                entity_id=parsed.entity_id,
                payload=payload,
                event=NotificationEvent.TAPPED,
                timestamp=self._clock(),
            )
        )
        return True

    async def handle_notification_action(
        self, action_id: str, payload: str, notification_id: int | None = None
    ) -> bool:
        parsed = NotificationPayload.try_parse(payload)
        if parsed is None:
            return False
        await self.initialize()

        adapter = self._adapters.get(parsed.module_id)
        if adapter is None:
            await self._log_failure(
                parsed,
                payload,
                "adapter_not_registered_for_action",
                notification_id=notification_id,
                action_id=action_id,
            )
            return False

        canonical = ACTION_ALIASES.get(action_id, action_id)
        try:
            handled = await adapter.on_notification_action(
                canonical, parsed, notification_id=notification_id
            )
            if not handled and canonical == "view":
                # Open/view falls back to the tap handler
                try:
                    await adapter.on_notification_tapped(parsed)
                    handled = True
                except Exception as e:
                    logger.warning(f"Tap fallback failed for {parsed.module_id}: {e}")
        except Exception as e:
            logger.error(f"Action handler failed for {parsed.module_id}/{action_id}: {e}")
            await self._log_failure(
                parsed,
                payload,
                "action_handler_error",
                notification_id=notification_id,
                action_id=action_id,
                error=str(e),
            )
            return False

        if not handled:
            await self._log_failure(
                parsed,
                payload,
                "action_not_handled_by_adapter",
                notification_id=notification_id,
                action_id=action_id,
            )
            return False

        if canonical == "mark_done":
            await self.cancel_for_entity(parsed.module_id, parsed.entity_id)

        await self._record(
            LogEntry.create(
                module_id=parsed.module_id,
                entity_id=parsed.entity_id,
                notification_id=notification_id,
                payload=payload,
                action_id=action_id,
                event=NotificationEvent.ACTION,
                timestamp=self._clock(),
            )
        )
        return True

    async def handle_notification_delivered(
        self,
        notification_id: int,
        payload: str | None = None,
        title: str = "",
        body: str = "",
    ) -> None:
        """Record a delivery reported by the device."""
        parsed = NotificationPayload.try_parse(payload)
        module_id = parsed.module_id if parsed else None
        entity_id = parsed.entity_id if parsed else ""
        if module_id is None:
            resolved = await self.resolver.resolve(notification_id)
            module_id = resolved.module_id if resolved else "unknown"
            if resolved is not None:
                entity_id = resolved.entity_id
                payload = payload or resolved.to_payload()

        await self._record(
            LogEntry.create(
                module_id=module_id,
                entity_id=entity_id,
                notification_id=notification_id,
                title=title,
                body=body,
                payload=payload,
                event=NotificationEvent.DELIVERED,
                timestamp=self._clock(),
            )
        )

    async def _log_failure(
        self,
        parsed: NotificationPayload,
        payload: str,
        reason: str,
        notification_id: int | None = None,
        action_id: str | None = None,
        error: str | None = None,
    ) -> None:
        metadata: dict[str, Any] = {"reason": reason}
        if error is not None:
            metadata["error"] = error
        await self._record(
            LogEntry.create(
                module_id=parsed.module_id,
                entity_id=parsed.entity_id,
                notification_id=notification_id,
                payload=payload,
                action_id=action_id,
                event=NotificationEvent.FAILED,
                metadata=metadata,
                timestamp=self._clock(),
            )
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def get_history(
        self,
        module_id: str | None = None,
        event: NotificationEvent | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[LogEntry]:
        return await self.log_store.query(
            module_id=module_id,
            event=event,
            from_time=from_time,
            to_time=to_time,
            search=search,
            limit=limit,
        )

    async def clear_history(self) -> None:
        await self.log_store.clear()

    async def compact_redundant_history_entries(self) -> int:
        return await self.log_store.compact_redundant_scheduled_entries()

    async def delete_log_entry(self, entry_id: str) -> bool:
        return await self.log_store.delete_by_id(entry_id)

    async def delete_log_entries(self, entry_ids: set[str]) -> int:
        return await self.log_store.delete_by_ids(entry_ids)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    async def get_dashboard_summary(self) -> DashboardSummary:
        """Pending counts from the gateway plus today's counts from the log."""
        await self.initialize()
        pending = await self.gateway.list_pending()

        pending_by_module: dict[str, int] = {}
        next_upcoming: UpcomingNotification | None = None
        for info in pending:
            module_id = self._module_for_pending(info)
            pending_by_module[module_id] = pending_by_module.get(module_id, 0) + 1
            if info.fire_at is None:
                continue
            if next_upcoming is None or info.fire_at < next_upcoming.scheduled_at:
                next_upcoming = UpcomingNotification(
                    module_id=module_id, title=info.title, scheduled_at=info.fire_at
                )

        now = self._clock()
        start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        todays = await self.log_store.query(
            from_time=start_of_today,
            to_time=start_of_today + timedelta(days=1),
            limit=DASHBOARD_HISTORY_LIMIT,
        )
        counts = {event: 0 for event in NotificationEvent}
        for entry in todays:
            counts[entry.event] += 1

        return DashboardSummary(
            total_pending=len(pending),
            pending_by_module=pending_by_module,
            next_upcoming=next_upcoming,
            scheduled_today=counts[NotificationEvent.SCHEDULED],
            tapped_today=counts[NotificationEvent.TAPPED],
            action_today=counts[NotificationEvent.ACTION],
            snoozed_today=counts[NotificationEvent.SNOOZED],
            cancelled_today=counts[NotificationEvent.CANCELLED],
            failed_today=counts[NotificationEvent.FAILED],
        )

    async def get_all_scheduled_notifications(self) -> list[ScheduledNotificationInfo]:
        """Every pending notification, soonest first."""
        await self.initialize()
        results: list[ScheduledNotificationInfo] = []
        for info in await self.gateway.list_pending():
            parsed = NotificationPayload.try_parse(info.payload)
            extras = parsed.extras if parsed else {}
            universal_id = extras.get("universalId") or None

            item = ScheduledNotificationInfo(
                id=info.id,
                title=info.title,
                body=info.body,
                scheduled_at=info.fire_at,
                module_id=self._module_for_pending(info),
                type=extras.get("type", ""),
                entity_id=parsed.entity_id if parsed else "",
                payload=info.payload,
                target_entity_id=extras.get("targetEntityId"),
                condition=extras.get("condition"),
                section=extras.get("section"),
                channel_key=info.channel_key,
                sound_key=info.sound_key,
                audio_stream=info.audio_stream,
                use_alarm_mode=info.use_alarm_mode,
                universal_id=universal_id,
                reminder_type=parsed.reminder_type if parsed else "at_time",
                reminder_value=parsed.reminder_value if parsed else "0",
                reminder_unit=parsed.reminder_unit if parsed else "minutes",
            )

            if universal_id:
                definition = await self.universal_repository.get_by_id(universal_id)
                if definition is not None:
                    item = item.model_copy(
                        update={
                            "entity_name": definition.entity_name,
                            "icon_code_point": definition.icon_code_point,
                            "color_value": definition.color_value,
                            "actions_enabled": definition.actions_enabled,
                            "type_id": definition.type_id,
                            "timing": definition.timing,
                            "timing_value": definition.timing_value,
                            "timing_unit": definition.timing_unit,
                            "hour": definition.hour,
                            "minute": definition.minute,
                        }
                    )
            results.append(item)

        results.sort(key=lambda n: (n.scheduled_at is None, n.scheduled_at or datetime.max))
        return results

    async def get_scheduled_notifications_for_module(
        self, module_id: str
    ) -> list[ScheduledNotificationInfo]:
        return [
            n for n in await self.get_all_scheduled_notifications() if n.module_id == module_id
        ]

    async def get_scheduled_count_for_module(self, module_id: str) -> int:
        await self.initialize()
        count = 0
        for info in await self.gateway.list_pending():
            if self._module_for_pending(info) == module_id:
                count += 1
        return count

    @staticmethod
    def _module_for_pending(info: PendingNotification) -> str:
        """Payload module first, then the id range, then the OS type tag."""
        parsed = NotificationPayload.try_parse(info.payload)
        if parsed is not None and parsed.module_id:
            return parsed.module_id
        return module_for_id(info.id) or info.type or "unknown"


def _is_universal_owned(parsed: NotificationPayload | None) -> bool:
    return parsed is not None and (
        "universalId" in parsed.extras or parsed.extras.get("sourceFlow") == "universal_sync"
    )


def _first_bool(*values: bool | None) -> bool:
    for value in values:
        if value is not None:
            return value
    return False
