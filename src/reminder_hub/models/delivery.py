"""Notification types, delivery configuration and per-module settings."""

import json
from typing import Any

from pydantic import BaseModel, Field


class DeliveryConfig(BaseModel):
    """Concrete delivery behaviour resolved from a notification type."""

    channel_key: str  # Empty means "use the module default channel"
    audio_stream: str = "notification"
    use_alarm_mode: bool = False
    use_full_screen_intent: bool = False
    bypass_dnd: bool = False
    bypass_quiet_hours: bool = False
    persistent: bool = False
    wake_screen: bool = False
    sound_key: str | None = None  # None = module default, "" = silent
    vibration_pattern_id: str | None = None


class NotificationType(BaseModel):
    """A named bundle of delivery behaviour.

    Built-in types have no ``module_id``; adapters may register
    module-scoped types on top of them.
    """

    id: str
    display_name: str
    module_id: str | None = None
    section_id: str | None = None
    default_config: DeliveryConfig


class TypeLevel:
    """Ordering used when clamping a type to a module's maximum."""

    SILENT = 0
    REGULAR = 1
    ALARM = 2
    SPECIAL = 3

    _BY_ID = {"silent": SILENT, "regular": REGULAR, "alarm": ALARM, "special": SPECIAL}

    @classmethod
    def of(cls, type_id: str) -> int:
        return cls._BY_ID.get(type_id, cls.REGULAR)

    @classmethod
    def of_config(cls, config: DeliveryConfig) -> int:
        if config.use_full_screen_intent and config.use_alarm_mode:
            return cls.SPECIAL
        if config.use_alarm_mode or config.bypass_dnd:
            return cls.ALARM
        if config.channel_key == "silent_reminders":
            return cls.SILENT
        return cls.REGULAR


SPECIAL_TYPE = NotificationType(
    id="special",
    display_name="Special Alert",
    default_config=DeliveryConfig(
        channel_key="urgent_reminders",
        audio_stream="alarm",
        use_alarm_mode=True,
        use_full_screen_intent=True,
        bypass_dnd=True,
        bypass_quiet_hours=True,
        persistent=True,
        wake_screen=True,
    ),
)

ALARM_TYPE = NotificationType(
    id="alarm",
    display_name="Alarm",
    default_config=DeliveryConfig(
        channel_key="urgent_reminders",
        audio_stream="alarm",
        use_alarm_mode=True,
        bypass_dnd=True,
        wake_screen=True,
    ),
)

REGULAR_TYPE = NotificationType(
    id="regular",
    display_name="Regular",
    default_config=DeliveryConfig(channel_key=""),
)

SILENT_TYPE = NotificationType(
    id="silent",
    display_name="Silent",
    default_config=DeliveryConfig(
        channel_key="silent_reminders",
        sound_key="",
        vibration_pattern_id="",
    ),
)

BUILT_IN_TYPES: list[NotificationType] = [SPECIAL_TYPE, ALARM_TYPE, REGULAR_TYPE, SILENT_TYPE]


class TypeDeliveryOverride(BaseModel):
    """Per-type override stored in module settings. None means "no override"."""

    channel_key: str | None = None
    sound_key: str | None = None
    audio_stream: str | None = None
    vibration_pattern_id: str | None = None
    use_alarm_mode: bool | None = None
    use_full_screen_intent: bool | None = None
    bypass_quiet_hours: bool | None = None

    @property
    def has_overrides(self) -> bool:
        return any(value is not None for value in self.model_dump().values())


class ModuleNotificationSettings(BaseModel):
    """Per-module notification overrides. None means "use the global default"."""

    notifications_enabled: bool | None = None
    default_channel: str | None = None
    default_sound: str | None = None
    default_vibration_pattern: str | None = None
    audio_stream: str | None = None
    max_allowed_type: str | None = None
    default_snooze_minutes: int | None = None
    allow_during_quiet_hours: bool | None = None
    type_overrides: dict[str, TypeDeliveryOverride] = Field(default_factory=dict)

    def override_for_type(self, type_id: str) -> TypeDeliveryOverride:
        return self.type_overrides.get(type_id) or TypeDeliveryOverride()

    @classmethod
    def from_raw(cls, raw: Any) -> "ModuleNotificationSettings":
        """Build settings from a stored value (dict or JSON string)."""
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, str):
            raw = json.loads(raw)
        return cls.model_validate(raw)
