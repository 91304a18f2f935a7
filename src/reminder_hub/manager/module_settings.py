"""Persisted notification settings: module enabled states, per-module
delivery settings and the loose flags other modules write."""

import logging
from typing import Any

from pydantic import ValidationError

from reminder_hub.db.store import SETTINGS_COLLECTION, KeyValueStore
from reminder_hub.exceptions import PolicyReadError, StorageError
from reminder_hub.models.delivery import ModuleNotificationSettings

logger = logging.getLogger(__name__)

MODULE_ENABLED_KEY = "notification_hub_module_settings_v1"
MODULE_SETTINGS_PREFIX = "notification_hub_module_settings_v1_"
GLOBAL_SETTINGS_KEY = "notification_settings"
HABIT_SETTINGS_KEY = "habit_notification_settings"

SLEEP_REMINDERS_KEY = "sleep_enable_reminders"
SLEEP_WINDDOWN_KEY = "sleep_winddown_enabled"


class ModuleSettingsStore:
    """Reads and writes notification settings in the ``settings`` collection."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def get_enabled_states(self) -> dict[str, bool]:
        raw = await self.store.get(SETTINGS_COLLECTION, MODULE_ENABLED_KEY)
        if not isinstance(raw, dict):
            return {}
        return {str(k): bool(v) for k, v in raw.items()}

    async def set_module_enabled(self, module_id: str, enabled: bool) -> None:
        states = await self.get_enabled_states()
        states[module_id] = enabled
        await self.store.put(SETTINGS_COLLECTION, MODULE_ENABLED_KEY, states)

    async def get_module_settings(self, module_id: str) -> ModuleNotificationSettings:
        """Load settings for one module.

        Raises:
            PolicyReadError: If the stored value cannot be read or parsed
        """
        try:
            raw = await self.store.get(SETTINGS_COLLECTION, MODULE_SETTINGS_PREFIX + module_id)
            return ModuleNotificationSettings.from_raw(raw)
        except (StorageError, ValidationError, ValueError) as e:
            raise PolicyReadError(module_id, str(e)) from e

    async def set_module_settings(
        self, module_id: str, settings: ModuleNotificationSettings
    ) -> None:
        await self.store.put(
            SETTINGS_COLLECTION,
            MODULE_SETTINGS_PREFIX + module_id,
            settings.model_dump(mode="json", exclude_none=True),
        )

    async def get_value(self, key: str) -> Any | None:
        return await self.store.get(SETTINGS_COLLECTION, key)

    async def set_value(self, key: str, value: Any) -> None:
        await self.store.put(SETTINGS_COLLECTION, key, value)

    async def remove_value(self, key: str) -> None:
        await self.store.delete(SETTINGS_COLLECTION, key)

    async def get_flag(self, key: str, default: bool) -> bool:
        """Read a boolean flag, returning the default when unset or unreadable."""
        try:
            value = await self.store.get(SETTINGS_COLLECTION, key)
        except StorageError as e:
            logger.warning(f"Could not read flag {key}, using {default}: {e}")
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return default
