"""Registry of notification types and their delivery configuration."""

import logging

from reminder_hub.models.delivery import (
    BUILT_IN_TYPES,
    REGULAR_TYPE,
    DeliveryConfig,
    NotificationType,
    TypeLevel,
)

logger = logging.getLogger(__name__)


class NotificationTypeRegistry:
    """Built-in types plus module-scoped types registered by adapters."""

    def __init__(self) -> None:
        self._types: dict[str, NotificationType] = {t.id: t for t in BUILT_IN_TYPES}

    def register_custom_types(self, types: list[NotificationType]) -> None:
        for notification_type in types:
            if notification_type.module_id is None:
                logger.warning(
                    f"Ignoring custom type {notification_type.id}: no module id"
                )
                continue
            self._types[notification_type.id] = notification_type

    def unregister_module_types(self, module_id: str) -> None:
        self._types = {
            type_id: t for type_id, t in self._types.items() if t.module_id != module_id
        }

    def get(self, type_id: str) -> NotificationType | None:
        return self._types.get(type_id)

    def all_types(self) -> list[NotificationType]:
        return list(self._types.values())

    def types_for_module(self, module_id: str) -> list[NotificationType]:
        """Built-in types followed by the module's own types."""
        return [t for t in self._types.values() if t.module_id in (None, module_id)]

    def resolve(
        self,
        type_id: str,
        max_allowed_type: str | None = None,
        module_default_channel: str = "task_reminders",
    ) -> DeliveryConfig:
        """Resolve the delivery configuration for a type.

        Args:
            type_id: Requested type; unknown ids fall back to ``regular``
            max_allowed_type: Built-in type the module is capped at
            module_default_channel: Channel used when the type leaves it empty

        Returns:
            A concrete DeliveryConfig
        """
        notification_type = self._types.get(type_id)
        if notification_type is None:
            logger.debug(f"Unknown notification type {type_id}, using regular")
            notification_type = REGULAR_TYPE
        config = notification_type.default_config

        if max_allowed_type:
            cap = self._types.get(max_allowed_type)
            if cap is not None and TypeLevel.of_config(config) > TypeLevel.of(max_allowed_type):
                config = cap.default_config

        if not config.channel_key:
            config = config.model_copy(update={"channel_key": module_default_channel})
        return config
