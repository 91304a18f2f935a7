"""Feature modules and their reserved notification id ranges."""

from enum import Enum

from pydantic import BaseModel, Field


class ModuleId(str, Enum):
    """Feature modules that own notifications."""

    TASK = "task"
    HABIT = "habit"
    FINANCE = "finance"
    SLEEP = "sleep"
    MBT_MOOD = "mbt_mood"
    BEHAVIOR = "behavior"


class IdRange(BaseModel):
    """Inclusive block of notification ids reserved for one module."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def contains(self, notification_id: int) -> bool:
        return self.start <= notification_id <= self.end


# Each module owns a disjoint block of 100,000 ids.
MODULE_ID_RANGES: dict[str, IdRange] = {
    ModuleId.TASK.value: IdRange(start=100_000, end=199_999),
    ModuleId.HABIT.value: IdRange(start=200_000, end=299_999),
    ModuleId.FINANCE.value: IdRange(start=300_000, end=399_999),
    ModuleId.SLEEP.value: IdRange(start=400_000, end=499_999),
    ModuleId.MBT_MOOD.value: IdRange(start=500_000, end=599_999),
    ModuleId.BEHAVIOR.value: IdRange(start=600_000, end=699_999),
}

MODULE_DISPLAY_NAMES: dict[str, str] = {
    ModuleId.TASK.value: "Tasks",
    ModuleId.HABIT.value: "Habits",
    ModuleId.FINANCE.value: "Finance Manager",
    ModuleId.SLEEP.value: "Sleep",
    ModuleId.MBT_MOOD.value: "Mood",
    ModuleId.BEHAVIOR.value: "Behavior",
}


class ModuleSection(BaseModel):
    """A named group of notifications inside a module."""

    id: str
    display_name: str


class ModuleDescriptor(BaseModel):
    """Static description of a module as registered with the hub."""

    module_id: str
    display_name: str
    id_range: IdRange | None = None
    default_enabled: bool = True
    default_channel: str = "task_reminders"
    sections: list[ModuleSection] = Field(default_factory=list)

    @classmethod
    def for_module(
        cls,
        module_id: ModuleId,
        default_channel: str = "task_reminders",
        sections: list[ModuleSection] | None = None,
    ) -> "ModuleDescriptor":
        """Build a descriptor from the built-in module catalog."""
        return cls(
            module_id=module_id.value,
            display_name=MODULE_DISPLAY_NAMES[module_id.value],
            id_range=MODULE_ID_RANGES[module_id.value],
            default_channel=default_channel,
            sections=sections or [],
        )
