"""Throttled entry point for app lifecycle resyncs.

Startup, resume and restore flows call ``resync_all``. A run is skipped
when notification settings have not changed since the last successful
sync, debounced when triggered again within a short interval, and never
overlaps with another run.
"""

import hashlib
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from reminder_hub.config import Settings, get_settings
from reminder_hub.db.store import SETTINGS_COLLECTION
from reminder_hub.manager.module_settings import (
    GLOBAL_SETTINGS_KEY,
    HABIT_SETTINGS_KEY,
    MODULE_ENABLED_KEY,
    MODULE_SETTINGS_PREFIX,
    ModuleSettingsStore,
)
from reminder_hub.manager.recovery import NotificationRecoveryService
from reminder_hub.models.recovery import RecoveryResult

logger = logging.getLogger(__name__)

SIGNATURE_KEY = "notification_resync_last_settings_signature_v1"
PENDING_SYSTEM_RESYNC_KEY = "notification_pending_system_resync"
HARD_RESYNC_MARKERS = ("timezone_change", "backup_restore")


class SettingsSignature(BaseModel):
    """Current settings signature and whether it differs from the stored one."""

    current: str
    changed: bool


def serialize_setting(value: Any) -> str:
    if value is None:
        return "<null>"
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return json.dumps(value, sort_keys=True, default=str)


def requires_hard_resync(reason: str) -> bool:
    return any(marker in reason for marker in HARD_RESYNC_MARKERS)


class NotificationSystemRefresher:
    """Debounced, change-aware wrapper around the recovery orchestrator."""

    def __init__(
        self,
        recovery: NotificationRecoveryService,
        settings_store: ModuleSettingsStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.recovery = recovery
        self.settings_store = settings_store
        self.settings = settings or get_settings()
        self._clock = clock

        self._last_resync_at: datetime | None = None
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def on_app_resumed(self) -> RecoveryResult | None:
        """Resync after the app returns to the foreground.

        A pending system resync flag (set when the device clock or time zone
        changed) forces a full run.
        """
        if self._in_progress:
            return None
        if await self._consume_pending_system_resync():
            return await self.resync_all(
                "app_resume_timezone_change", force=True, debounce=False
            )
        return await self.resync_all("app_resume")

    async def resync_all(
        self, reason: str, force: bool = False, debounce: bool = True
    ) -> RecoveryResult | None:
        """Run recovery unless throttled. Never raises.

        Args:
            reason: Trigger label, recorded as the recovery source flow
            force: Skip both the change check and the debounce
            debounce: Apply the minimum interval between runs

        Returns:
            The recovery result, or None if the run was skipped or failed
        """
        now = self._clock()
        if self._in_progress:
            logger.debug(f"Skip resync ({reason}): already in progress")
            return None

        # Claimed before the first await so concurrent triggers see it
        self._in_progress = True
        ran = False
        try:
            signature = await self.read_signature()
            if not force and not requires_hard_resync(reason) and not signature.changed:
                logger.debug(f"Fast-skip resync ({reason}): settings unchanged since last sync")
                self._last_resync_at = now
                return None

            if not force and debounce and self._last_resync_at is not None:
                elapsed = now - self._last_resync_at
                if elapsed < timedelta(seconds=self.settings.min_resync_interval_seconds):
                    if not signature.changed:
                        logger.debug(
                            f"Debounced resync ({reason}), last run "
                            f"{int(elapsed.total_seconds())}s ago"
                        )
                        return None
                    logger.debug(f"Bypass debounce ({reason}): settings changed")

            ran = True
            logger.info(f"Refreshing notification schedules (reason={reason})")
            result = await self.recovery.run_recovery(source_flow=reason)
            if result.success:
                await self.settings_store.set_value(SIGNATURE_KEY, signature.current)
            return result
        except Exception as e:
            logger.error(f"Refresh failed ({reason}): {e}", exc_info=True)
            return None
        finally:
            if ran:
                self._last_resync_at = self._clock()
            self._in_progress = False

    async def read_signature(self) -> SettingsSignature:
        previous = await self.settings_store.get_value(SIGNATURE_KEY)
        current = await self.compute_signature()
        return SettingsSignature(current=current, changed=previous != current)

    async def compute_signature(self) -> str:
        """sha256 over every notification-relevant setting, in key order."""
        store = self.settings_store.store
        module_keys = [
            key
            for key in await store.keys(SETTINGS_COLLECTION)
            if key.startswith(MODULE_SETTINGS_PREFIX)
        ]
        keys = sorted([GLOBAL_SETTINGS_KEY, HABIT_SETTINGS_KEY, MODULE_ENABLED_KEY, *module_keys])

        parts: list[str] = []
        for key in keys:
            value = await store.get(SETTINGS_COLLECTION, key)
            parts.append(f"{key}={serialize_setting(value)};")
        return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()

    async def _consume_pending_system_resync(self) -> bool:
        try:
            pending = await self.settings_store.get_flag(PENDING_SYSTEM_RESYNC_KEY, False)
            if pending:
                await self.settings_store.remove_value(PENDING_SYSTEM_RESYNC_KEY)
            return pending
        except Exception as e:
            logger.warning(f"Could not read pending system resync flag: {e}")
            return False
