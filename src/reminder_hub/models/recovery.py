"""Sync and recovery result models."""

from typing import Any

from pydantic import BaseModel, Field


class UniversalSyncResult(BaseModel):
    """Counters from one universal scheduler pass."""

    processed: int = 0
    scheduled: int = 0
    cancelled: int = 0
    skipped: int = 0
    failed: int = 0
    duration_ms: int = 0


class FinanceSyncResult(BaseModel):
    """Counters from one finance scheduler pass."""

    cancelled: int = 0
    scheduled: int = 0
    failed: int = 0
    scheduled_by_section: dict[str, int] = Field(default_factory=dict)


class RecoveryResult(BaseModel):
    """Summary of one reconciliation pass. Logged, then discarded."""

    success: bool
    source_flow: str = "app_runtime"
    duration_ms: int = 0
    modules_processed: int = 0
    skipped_reasons: list[str] = Field(default_factory=list)
    finance_scheduled: int = 0
    finance_cancelled: int = 0
    universal_scheduled: int = 0
    universal_cancelled: int = 0
    universal_skipped: int = 0
    universal_failed: int = 0
    task_rescheduled: int = 0
    habit_rescheduled: int = 0
    task_skipped_by_cap: int = 0
    habit_skipped_by_cap: int = 0
    legacy_resync_skipped_headless: bool = False
    error: str | None = None

    def to_map(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def summary_line(self) -> str:
        line = (
            f"source={self.source_flow} success={self.success} "
            f"duration_ms={self.duration_ms} "
            f"modules_processed={self.modules_processed} "
            f"finance_scheduled={self.finance_scheduled} "
            f"finance_cancelled={self.finance_cancelled} "
            f"universal_scheduled={self.universal_scheduled} "
            f"universal_cancelled={self.universal_cancelled} "
            f"universal_skipped={self.universal_skipped} "
            f"universal_failed={self.universal_failed} "
            f"task_rescheduled={self.task_rescheduled} "
            f"habit_rescheduled={self.habit_rescheduled} "
            f"task_skipped_by_cap={self.task_skipped_by_cap} "
            f"habit_skipped_by_cap={self.habit_skipped_by_cap} "
            f"legacy_resync_skipped_headless={self.legacy_resync_skipped_headless} "
            f"skipped_reasons={','.join(self.skipped_reasons)}"
        )
        if self.error is not None:
            line += f" error={self.error}"
        return line
