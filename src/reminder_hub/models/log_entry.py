"""Activity log entry model."""

import itertools
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from reminder_hub.models.notification import NotificationEvent

_sequence = itertools.count()


class LogEntry(BaseModel):
    """Append-only audit record for one notification lifecycle event."""

    id: str
    module_id: str
    entity_id: str = ""
    notification_id: int | None = None
    title: str = ""
    body: str = ""
    payload: str | None = None
    channel_key: str | None = None
    sound_key: str | None = None
    action_id: str | None = None
    event: NotificationEvent
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        module_id: str,
        event: NotificationEvent,
        entity_id: str = "",
        notification_id: int | None = None,
        title: str = "",
        body: str = "",
        payload: str | None = None,
        channel_key: str | None = None,
        sound_key: str | None = None,
        action_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> "LogEntry":
        """Create an entry with a fresh id and the current local time."""
        now = timestamp or datetime.now()
        micros = int(now.timestamp() * 1_000_000)
        return cls(
            id=f"{micros}-{next(_sequence)}",
            module_id=module_id,
            entity_id=entity_id,
            notification_id=notification_id,
            title=title,
            body=body,
            payload=payload,
            channel_key=channel_key,
            sound_key=sound_key,
            action_id=action_id,
            event=event,
            timestamp=now,
            metadata=dict(metadata or {}),
        )

    @property
    def scheduled_at_key(self) -> str | None:
        value = self.metadata.get("scheduledAt")
        return str(value) if value is not None else None

    @property
    def dedup_key(self) -> tuple[str, str, int | None, str | None]:
        """Identity used to collapse repeated ``scheduled`` entries."""
        return (self.module_id, self.entity_id, self.notification_id, self.scheduled_at_key)
