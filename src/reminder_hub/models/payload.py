"""Compact pipe-delimited payload attached to every scheduled notification.

Wire format::

    moduleId|entityId|reminderType|reminderValue|reminderUnit[|key:value...]

New extras may be appended freely; older decoders ignore keys they do not
know, so the format only ever evolves additively.
"""

from pydantic import BaseModel, Field

from reminder_hub.exceptions import PayloadError

_SEPARATOR = "|"
_EXTRA_SEPARATOR = ":"
_REQUIRED_PARTS = 5


class NotificationPayload(BaseModel):
    """Decoded notification payload."""

    module_id: str
    entity_id: str
    reminder_type: str = "at_time"
    reminder_value: str = "0"
    reminder_unit: str = "minutes"
    extras: dict[str, str] = Field(default_factory=dict)

    def encode(self) -> str:
        parts = [
            self.module_id,
            self.entity_id,
            self.reminder_type,
            self.reminder_value,
            self.reminder_unit,
        ]
        for key, value in self.extras.items():
            if not key:
                continue
            parts.append(f"{key}{_EXTRA_SEPARATOR}{value}")
        return _SEPARATOR.join(parts)

    @classmethod
    def parse(cls, raw: str | None) -> "NotificationPayload":
        """Decode a raw payload, raising PayloadError when malformed."""
        if raw is None:
            raise PayloadError("Payload is empty")
        text = raw.strip()
        if not text:
            raise PayloadError("Payload is empty")

        parts = text.split(_SEPARATOR)
        if len(parts) < _REQUIRED_PARTS:
            raise PayloadError(
                f"Payload has {len(parts)} fields, expected at least {_REQUIRED_PARTS}"
            )

        module_id, entity_id = parts[0].strip(), parts[1].strip()
        if not module_id:
            raise PayloadError("Payload has no module id")

        extras: dict[str, str] = {}
        for segment in parts[_REQUIRED_PARTS:]:
            key, sep, value = segment.partition(_EXTRA_SEPARATOR)
            if not sep or not key:
                continue
            extras[key] = value

        return cls(
            module_id=module_id,
            entity_id=entity_id,
            reminder_type=parts[2] or "at_time",
            reminder_value=parts[3] or "0",
            reminder_unit=parts[4] or "minutes",
            extras=extras,
        )

    @classmethod
    def try_parse(cls, raw: str | None) -> "NotificationPayload | None":
        """Decode a raw payload, returning None instead of raising."""
        try:
            return cls.parse(raw)
        except PayloadError:
            return None

    @classmethod
    def for_source(
        cls, module_id: str, entity_id: str, section: str = ""
    ) -> "NotificationPayload":
        """Minimal payload used when logging a notification whose rule is gone."""
        extras = {"section": section} if section else {}
        return cls(module_id=module_id, entity_id=entity_id, extras=extras)
