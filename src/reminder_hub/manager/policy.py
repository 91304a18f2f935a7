"""Module policy gate.

Answers "may this module schedule right now?". Every call re-reads the
stored settings; nothing is cached, so a toggle takes effect on the next
scheduling pass. Any failure while reading fails open and reports
``POLICY_ERROR`` as the reason.
"""

import logging

from reminder_hub.manager.module_settings import ModuleSettingsStore
from reminder_hub.models.policy import ModulePolicyDecision, PolicyReason

logger = logging.getLogger(__name__)


class NotificationModulePolicy:
    """Decides whether a module is allowed to schedule notifications."""

    def __init__(self, settings_store: ModuleSettingsStore) -> None:
        self.settings_store = settings_store

    async def read(self, module_id: str) -> ModulePolicyDecision:
        try:
            states = await self.settings_store.get_enabled_states()
            if not states.get(module_id, True):
                return ModulePolicyDecision(
                    module_id=module_id,
                    enabled=False,
                    reason=PolicyReason.MODULE_DISABLED,
                )

            module_settings = await self.settings_store.get_module_settings(module_id)
            if module_settings.notifications_enabled is False:
                return ModulePolicyDecision(
                    module_id=module_id,
                    enabled=False,
                    reason=PolicyReason.MODULE_NOTIFICATIONS_DISABLED,
                )
        except Exception as e:
            logger.warning(f"Policy read failed for {module_id}, failing open: {e}")
            return ModulePolicyDecision(
                module_id=module_id,
                enabled=True,
                reason=PolicyReason.POLICY_ERROR,
            )

        return ModulePolicyDecision(
            module_id=module_id, enabled=True, reason=PolicyReason.ENABLED
        )

    async def is_scheduling_enabled(self, module_id: str) -> bool:
        decision = await self.read(module_id)
        return decision.enabled
