"""Configuration and environment loading for Reminder Hub."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Storage ("memory" or "supabase")
    storage_backend: str = "memory"
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_table: str = "kv_store"

    # OS notification gateway ("memory" or "http")
    gateway_backend: str = "memory"
    gateway_base_url: str | None = None
    gateway_timeout_seconds: float = 10.0

    # Activity log
    log_max_entries: int = 1200
    history_default_limit: int = 300

    # Scheduling windows
    finance_max_total_alarms: int = 480
    stale_window_hours: int = 24  # Older fire times are dropped and cancelled
    past_clamp_minutes: int = 2  # Recent past fire times move to now + this
    universal_planning_window_days: int = 90

    # Recovery
    max_task_resync_per_run: int = 300
    max_habit_resync_per_run: int = 400
    native_alarm_prune_cap: int = 200
    min_resync_interval_seconds: int = 45
    recovery_enabled: bool = False  # Set to True to run the periodic loop
    recovery_cron: str = "*/15 * * * *"
    health_check_on_start: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
