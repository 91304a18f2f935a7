"""User-authored reminder definitions ("universal notifications")."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from reminder_hub.models.notification import NotificationAction, ReminderCondition


class UniversalNotification(BaseModel):
    """A reminder rule attached to one entity in any module.

    Title and body are templates; ``{placeholder}`` variables are filled in
    by the owning module's adapter at scheduling time.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    module_id: str
    section: str = ""
    entity_id: str
    entity_name: str = ""

    title_template: str
    body_template: str = ""
    icon_code_point: int | None = None
    color_value: int | None = None

    actions: list[NotificationAction] = Field(default_factory=list)
    actions_enabled: bool = False
    type_id: str = "regular"

    timing: str = "before"  # before, on_due, after_due
    timing_value: int = 1
    timing_unit: str = "days"  # minutes, hours, days, weeks
    hour: int = Field(default=9, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    condition: ReminderCondition = ReminderCondition.ALWAYS
    enabled: bool = True

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
