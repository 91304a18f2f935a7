"""Dashboard aggregation models."""

from datetime import datetime

from pydantic import BaseModel, Field


class UpcomingNotification(BaseModel):
    """The soonest pending notification."""

    module_id: str
    title: str
    scheduled_at: datetime


class DashboardSummary(BaseModel):
    """Pending counts from the OS plus today's activity from the log."""

    total_pending: int = 0
    pending_by_module: dict[str, int] = Field(default_factory=dict)
    next_upcoming: UpcomingNotification | None = None
    scheduled_today: int = 0
    tapped_today: int = 0
    action_today: int = 0
    snoozed_today: int = 0
    cancelled_today: int = 0
    failed_today: int = 0


class ScheduledNotificationInfo(BaseModel):
    """A pending OS notification decoded for display.

    Universal-definition fields are filled only when the payload names a
    definition that still exists.
    """

    id: int
    title: str = ""
    body: str = ""
    scheduled_at: datetime | None = None
    module_id: str
    type: str = ""
    entity_id: str = ""
    payload: str | None = None
    target_entity_id: str | None = None
    condition: str | None = None
    section: str | None = None
    channel_key: str | None = None
    sound_key: str | None = None
    audio_stream: str | None = None
    use_alarm_mode: bool = False
    universal_id: str | None = None
    reminder_type: str = "at_time"
    reminder_value: str = "0"
    reminder_unit: str = "minutes"

    # From the universal definition
    entity_name: str | None = None
    icon_code_point: int | None = None
    color_value: int | None = None
    actions_enabled: bool | None = None
    type_id: str | None = None
    timing: str | None = None
    timing_value: int | None = None
    timing_unit: str | None = None
    hour: int | None = None
    minute: int | None = None
