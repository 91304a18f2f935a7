"""Tests for the activity log store."""

from datetime import datetime, timedelta

import pytest

from reminder_hub.db.store import HUB_COLLECTION
from reminder_hub.manager.log_store import LOG_KEY, NotificationLogStore
from reminder_hub.models.log_entry import LogEntry
from reminder_hub.models.notification import NotificationEvent

BASE = datetime(2026, 3, 10, 8, 0)


def scheduled_entry(i: int, notification_id: int | None = None) -> LogEntry:
    at = BASE + timedelta(minutes=i)
    return LogEntry.create(
        module_id="task",
        entity_id=f"t{i}",
        notification_id=notification_id if notification_id is not None else 100_000 + i,
        title=f"Task {i}",
        event=NotificationEvent.SCHEDULED,
        metadata={"scheduledAt": (at + timedelta(hours=1)).isoformat()},
        timestamp=at,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def log_store(store) -> NotificationLogStore:
    return NotificationLogStore(store, max_entries=1200, default_limit=300)


class TestAppend:
    """Tests for append, the entry cap and deduplication."""

    @pytest.mark.asyncio
    async def test_cap_keeps_newest_first(self, log_store, store):
        older = [scheduled_entry(i) for i in range(1249, -1, -1)]
        await store.put(HUB_COLLECTION, LOG_KEY, [e.model_dump(mode="json") for e in older])
        for i in range(1250, 1300):
            await log_store.append(scheduled_entry(i))

        entries = await log_store.get_all()

        assert len(entries) == 1200
        assert entries[0].entity_id == "t1299"
        assert entries[-1].entity_id == "t100"
        timestamps = [e.timestamp for e in entries]
        assert timestamps == sorted(timestamps, reverse=True)

    @pytest.mark.asyncio
    async def test_identical_scheduled_entry_is_noop(self, log_store):
        first = scheduled_entry(1)
        assert await log_store.append(first) is True

        duplicate = first.model_copy(update={"id": "other", "timestamp": BASE + timedelta(hours=2)})
        assert await log_store.append(duplicate) is False

        assert len(await log_store.get_all()) == 1

    @pytest.mark.asyncio
    async def test_non_scheduled_events_never_deduplicated(self, log_store):
        for _ in range(3):
            await log_store.append(
                LogEntry.create(
                    module_id="task",
                    entity_id="t1",
                    notification_id=100_001,
                    event=NotificationEvent.CANCELLED,
                    timestamp=BASE,
                )
            )
        assert len(await log_store.get_all()) == 3

    @pytest.mark.asyncio
    async def test_unreadable_rows_are_dropped(self, log_store, store):
        good = scheduled_entry(1).model_dump(mode="json")
        await store.put(HUB_COLLECTION, LOG_KEY, [good, {"bad": True}, "junk"])

        entries = await log_store.get_all()

        assert [e.entity_id for e in entries] == ["t1"]


async def populate(log_store: NotificationLogStore) -> NotificationLogStore:
    await log_store.append(scheduled_entry(0))
    await log_store.append(
        LogEntry.create(
            module_id="finance",
            entity_id="bill:b1:r1:20260311",
            title="Rent due tomorrow",
            event=NotificationEvent.TAPPED,
            timestamp=BASE + timedelta(minutes=5),
        )
    )
    await log_store.append(
        LogEntry.create(
            module_id="finance",
            entity_id="bill:b2:r1:20260312",
            title="Phone bill",
            event=NotificationEvent.CANCELLED,
            timestamp=BASE + timedelta(minutes=10),
        )
    )
    return log_store


class TestQuery:
    """Tests for filtered history queries."""

    @pytest.mark.asyncio
    async def test_filter_by_module_and_event(self, log_store):
        populated = await populate(log_store)
        finance = await populated.query(module_id="finance")
        tapped = await populated.query(module_id="finance", event=NotificationEvent.TAPPED)

        assert len(finance) == 2
        assert [e.title for e in tapped] == ["Rent due tomorrow"]

    @pytest.mark.asyncio
    async def test_time_window_is_half_open(self, log_store):
        populated = await populate(log_store)
        entries = await populated.query(
            from_time=BASE + timedelta(minutes=5), to_time=BASE + timedelta(minutes=10)
        )
        assert [e.title for e in entries] == ["Rent due tomorrow"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, log_store):
        populated = await populate(log_store)
        entries = await populated.query(search="PHONE")
        assert [e.entity_id for e in entries] == ["bill:b2:r1:20260312"]

    @pytest.mark.asyncio
    async def test_limit(self, log_store):
        populated = await populate(log_store)
        assert len(await populated.query(limit=1)) == 1


class TestCompaction:
    """Tests for compaction and deletion."""

    @pytest.mark.asyncio
    async def test_compact_collapses_duplicates_and_legacy_cancels(self, log_store, store):
        original = scheduled_entry(1)
        duplicate = original.model_copy(update={"id": "dup"})
        legacy_cancel = LogEntry.create(
            module_id="task",
            event=NotificationEvent.CANCELLED,
            metadata={"source": "legacy_cancel"},
            timestamp=BASE,
        )
        # Written directly, bypassing append-time dedup
        await store.put(
            HUB_COLLECTION,
            LOG_KEY,
            [e.model_dump(mode="json") for e in (original, duplicate, legacy_cancel)],
        )

        removed = await log_store.compact_redundant_scheduled_entries()

        assert removed == 2
        assert len(await log_store.get_all()) == 1

    @pytest.mark.asyncio
    async def test_delete_by_id(self, log_store):
        entry = scheduled_entry(1)
        await log_store.append(entry)

        assert await log_store.delete_by_id(entry.id) is True
        assert await log_store.delete_by_id(entry.id) is False
        assert await log_store.get_all() == []

    @pytest.mark.asyncio
    async def test_clear(self, log_store):
        await log_store.append(scheduled_entry(1))
        await log_store.clear()
        assert await log_store.get_all() == []
