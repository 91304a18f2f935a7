"""Notification request, lifecycle and gateway models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class NotificationEvent(str, Enum):
    """Lifecycle events recorded in the activity log."""

    SCHEDULED = "scheduled"
    DELIVERED = "delivered"
    TAPPED = "tapped"
    ACTION = "action"
    SNOOZED = "snoozed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    MISSED = "missed"

    @property
    def consumes_once(self) -> bool:
        """Whether this event marks a "once" reminder as used up.

        ``scheduled`` counts as consumed: delivery is not reported by the
        device, so without it a once-key would only be recorded on a tap.
        """
        match self:
            case (
                NotificationEvent.SCHEDULED
                | NotificationEvent.DELIVERED
                | NotificationEvent.TAPPED
                | NotificationEvent.ACTION
                | NotificationEvent.MISSED
            ):
                return True
            case (
                NotificationEvent.SNOOZED
                | NotificationEvent.CANCELLED
                | NotificationEvent.FAILED
            ):
                return False


class ReminderCondition(str, Enum):
    """When a reminder rule is allowed to fire."""

    ALWAYS = "always"
    ONCE = "once"
    IF_UNPAID = "if_unpaid"
    IF_OVERDUE = "if_overdue"

    @classmethod
    def _missing_(cls, value):
        # Unrecognised stored conditions fire like "always"
        return cls.ALWAYS


class ReminderTiming(str, Enum):
    """Offset direction relative to the due date."""

    BEFORE = "before"
    ON_DUE = "on_due"
    AFTER_DUE = "after_due"


class NotificationAction(BaseModel):
    """Action button shown on a notification."""

    action_id: str
    label: str
    shows_user_interface: bool = False
    cancel_notification: bool = True


class NotificationRequest(BaseModel):
    """One desired scheduled notification.

    Built fresh on every scheduling pass and never persisted; only its
    effect (an OS alarm plus a log entry) outlives the pass.
    """

    module_id: str
    entity_id: str
    title: str
    body: str = ""
    scheduled_at: datetime

    # Reminder semantics, e.g. before/3/days
    reminder_type: str = "at_time"
    reminder_value: int = 0
    reminder_unit: str = "minutes"

    # Derived from the fields above when not supplied
    notification_id: int | None = None

    # Presentation
    icon_code_point: int | None = None
    color_value: int | None = None
    extras: dict[str, str] = Field(default_factory=dict)
    actions: list[NotificationAction] = Field(default_factory=list)

    # Notification type id resolved through the type registry
    type: str = "regular"

    # Per-request delivery overrides (None = use type/module defaults)
    channel_key: str | None = None
    sound_key: str | None = None
    vibration_pattern_id: str | None = None
    audio_stream: str | None = None
    use_alarm_mode: bool | None = None
    use_full_screen_intent: bool | None = None
    bypass_quiet_hours: bool | None = None
    use_alarm_clock_schedule_mode: bool = False
    priority: str | None = None  # "High", "Medium" or "Low"


class ScheduleResult(BaseModel):
    """Outcome of a schedule attempt."""

    success: bool
    failure_reason: str | None = None

    @classmethod
    def ok(cls) -> "ScheduleResult":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: str) -> "ScheduleResult":
        return cls(success=False, failure_reason=reason)


class ScheduledNotification(BaseModel):
    """Fully resolved notification handed to the OS capability."""

    id: int
    fire_at: datetime
    title: str
    body: str = ""
    payload: str
    channel_key: str
    sound_key: str = "default"
    vibration_pattern_id: str = "default"
    audio_stream: str = "notification"
    use_alarm_mode: bool = False
    use_full_screen_intent: bool = False
    bypass_quiet_hours: bool = False
    use_alarm_clock_schedule_mode: bool = False
    priority: str | None = None
    icon_code_point: int | None = None
    color_value: int | None = None
    actions: list[NotificationAction] = Field(default_factory=list)


class PendingNotification(BaseModel):
    """A notification the OS currently reports as scheduled."""

    id: int
    title: str = ""
    body: str = ""
    payload: str | None = None
    fire_at: datetime | None = None
    entity_id: str | None = None
    channel_key: str | None = None
    sound_key: str | None = None
    audio_stream: str | None = None
    use_alarm_mode: bool = False
    type: str = ""


class NativeAlarm(BaseModel):
    """An alarm registered through the lower-level native alarm path."""

    id: int
    payload: str = ""
    fire_at: datetime | None = None
