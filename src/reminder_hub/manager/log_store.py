"""Activity log persisted as one newest-first list under a single key.

Every mutation rewrites the whole list; the entry cap keeps that cheap.
"""

import logging
from datetime import datetime

from pydantic import ValidationError

from reminder_hub.db.store import HUB_COLLECTION, KeyValueStore
from reminder_hub.exceptions import StorageError
from reminder_hub.models.log_entry import LogEntry
from reminder_hub.models.notification import NotificationEvent

logger = logging.getLogger(__name__)

LOG_KEY = "notification_hub_history_v1"
DEFAULT_MAX_ENTRIES = 1200
LEGACY_CANCEL_SOURCE = "legacy_cancel"


class NotificationLogStore:
    """Capped, deduplicating store of notification lifecycle events."""

    def __init__(
        self,
        store: KeyValueStore,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_limit: int = 300,
    ) -> None:
        self.store = store
        self.max_entries = max_entries
        self.default_limit = default_limit

    async def get_all(self) -> list[LogEntry]:
        """Return every entry, newest first. Unreadable data reads as empty."""
        try:
            raw = await self.store.get(HUB_COLLECTION, LOG_KEY)
        except StorageError as e:
            logger.warning(f"Could not read activity log: {e}")
            return []
        if not isinstance(raw, list):
            return []

        entries: list[LogEntry] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(LogEntry.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Dropping unreadable log entry: {e}")
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    async def append(self, entry: LogEntry) -> bool:
        """Add an entry at the head of the log.

        Returns:
            False if the entry was a redundant ``scheduled`` record and
            nothing was written
        """
        entries = await self.get_all()
        if self._is_redundant_scheduled(entries, entry):
            return False
        entries.insert(0, entry)
        del entries[self.max_entries:]
        await self._save(entries)
        return True

    async def query(
        self,
        module_id: str | None = None,
        event: NotificationEvent | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[LogEntry]:
        """Filter the log, newest first.

        Args:
            module_id: Only entries for this module
            event: Only entries with this event
            from_time: Inclusive lower bound on timestamp
            to_time: Exclusive upper bound on timestamp
            search: Case-insensitive text matched against module, entity,
                title, body, payload, action id and event name
            limit: Maximum entries returned (defaults to the store's limit)
        """
        needle = (search or "").strip().lower()
        limit = self.default_limit if limit is None else limit

        results: list[LogEntry] = []
        for entry in await self.get_all():
            if module_id and entry.module_id != module_id:
                continue
            if event is not None and entry.event != event:
                continue
            if from_time is not None and entry.timestamp < from_time:
                continue
            if to_time is not None and entry.timestamp >= to_time:
                continue
            if needle:
                haystack = " ".join(
                    [
                        entry.module_id,
                        entry.entity_id,
                        entry.title,
                        entry.body,
                        entry.payload or "",
                        entry.action_id or "",
                        entry.event.value,
                    ]
                ).lower()
                if needle not in haystack:
                    continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    async def clear(self) -> None:
        await self.store.delete(HUB_COLLECTION, LOG_KEY)

    async def delete_by_id(self, entry_id: str) -> bool:
        return await self.delete_by_ids({entry_id}) > 0

    async def delete_by_ids(self, entry_ids: set[str]) -> int:
        if not entry_ids:
            return 0
        entries = await self.get_all()
        kept = [e for e in entries if e.id not in entry_ids]
        removed = len(entries) - len(kept)
        if removed:
            await self._save(kept)
        return removed

    async def compact_redundant_scheduled_entries(self) -> int:
        """Collapse duplicate ``scheduled`` entries and purge bulk legacy cancels.

        Returns:
            Total number of entries removed
        """
        entries = await self.get_all()
        seen: set[tuple[str, str, int | None, str | None]] = set()
        compacted: list[LogEntry] = []
        for entry in entries:
            if entry.event != NotificationEvent.SCHEDULED or not entry.scheduled_at_key:
                compacted.append(entry)
                continue
            if entry.dedup_key in seen:
                continue
            seen.add(entry.dedup_key)
            compacted.append(entry)

        removed = len(entries) - len(compacted)
        if removed:
            await self._save(compacted)
        removed += await self.purge_legacy_cancel_entries()
        if removed:
            logger.info(f"Compacted activity log: removed {removed} entries")
        return removed

    async def purge_legacy_cancel_entries(self) -> int:
        """Remove ``cancelled`` entries written by bulk legacy cancellation."""
        entries = await self.get_all()
        kept = [
            e
            for e in entries
            if not (
                e.event == NotificationEvent.CANCELLED
                and e.metadata.get("source") == LEGACY_CANCEL_SOURCE
            )
        ]
        removed = len(entries) - len(kept)
        if removed:
            await self._save(kept)
        return removed

    async def _save(self, entries: list[LogEntry]) -> None:
        await self.store.put(
            HUB_COLLECTION, LOG_KEY, [e.model_dump(mode="json") for e in entries]
        )

    @staticmethod
    def _is_redundant_scheduled(existing: list[LogEntry], candidate: LogEntry) -> bool:
        if candidate.event != NotificationEvent.SCHEDULED or not candidate.scheduled_at_key:
            return False
        key = candidate.dedup_key
        return any(
            e.event == NotificationEvent.SCHEDULED and e.dedup_key == key
            for e in existing
        )
