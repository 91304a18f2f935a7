"""Recover (module, section, entity) for a bare notification id."""

import logging

from pydantic import BaseModel

from reminder_hub.db.repositories import UniversalNotificationRepository
from reminder_hub.exceptions import StorageError
from reminder_hub.manager.identity import (
    legacy_notification_id,
    module_for_id,
    universal_notification_id,
)
from reminder_hub.models.payload import NotificationPayload

logger = logging.getLogger(__name__)


class ResolvedNotificationSource(BaseModel):
    """Where a notification came from, as far as can be determined."""

    module_id: str
    section: str = ""
    entity_id: str = ""
    entity_name: str | None = None

    def to_payload(self) -> str:
        """Minimal parseable payload for logging."""
        return NotificationPayload.for_source(
            self.module_id, self.entity_id, self.section
        ).encode()


class NotificationSourceResolver:
    """Matches ids against live universal definitions, then id ranges.

    Definitions are tested against both the current stable id and the
    legacy id older releases derived from the definition's own id.
    """

    def __init__(self, repository: UniversalNotificationRepository) -> None:
        self.repository = repository

    async def resolve(self, notification_id: int) -> ResolvedNotificationSource | None:
        try:
            definitions = await self.repository.get_all()
        except StorageError as e:
            logger.warning(f"Could not read definitions while resolving {notification_id}: {e}")
            definitions = []

        for definition in definitions:
            stable_id = universal_notification_id(
                definition.module_id,
                definition.entity_id,
                definition.id,
                definition.timing,
                definition.timing_value,
                definition.timing_unit,
            )
            if notification_id in (stable_id, legacy_notification_id(definition.id)):
                return ResolvedNotificationSource(
                    module_id=definition.module_id,
                    section=definition.section,
                    entity_id=definition.entity_id,
                    entity_name=definition.entity_name or None,
                )

        module_id = module_for_id(notification_id)
        if module_id is not None:
            return ResolvedNotificationSource(module_id=module_id)
        return None
