"""Tests for the module policy gate and the settings store behind it."""

from unittest.mock import AsyncMock

import pytest

from reminder_hub.db.store import SETTINGS_COLLECTION
from reminder_hub.exceptions import PolicyReadError, StorageError
from reminder_hub.manager.module_settings import (
    MODULE_SETTINGS_PREFIX,
    ModuleSettingsStore,
)
from reminder_hub.manager.policy import NotificationModulePolicy
from reminder_hub.models.delivery import ModuleNotificationSettings
from reminder_hub.models.policy import PolicyReason


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_store(store) -> ModuleSettingsStore:
    return ModuleSettingsStore(store)


@pytest.fixture
def policy(settings_store) -> NotificationModulePolicy:
    return NotificationModulePolicy(settings_store)


class TestPolicyRead:
    """Tests for NotificationModulePolicy.read."""

    @pytest.mark.asyncio
    async def test_enabled_by_default(self, policy):
        decision = await policy.read("task")
        assert decision.enabled is True
        assert decision.reason == PolicyReason.ENABLED

    @pytest.mark.asyncio
    async def test_module_disabled(self, policy, settings_store):
        await settings_store.set_module_enabled("habit", False)

        decision = await policy.read("habit")

        assert decision.enabled is False
        assert decision.reason == PolicyReason.MODULE_DISABLED

    @pytest.mark.asyncio
    async def test_module_notifications_disabled(self, policy, settings_store):
        await settings_store.set_module_settings(
            "finance", ModuleNotificationSettings(notifications_enabled=False)
        )

        decision = await policy.read("finance")

        assert decision.enabled is False
        assert decision.reason == PolicyReason.MODULE_NOTIFICATIONS_DISABLED

    @pytest.mark.asyncio
    async def test_fails_open_when_store_raises(self):
        broken = AsyncMock()
        broken.get.side_effect = StorageError("get", SETTINGS_COLLECTION, "connection reset")
        policy = NotificationModulePolicy(ModuleSettingsStore(broken))

        decision = await policy.read("task")

        assert decision.enabled is True
        assert decision.reason == PolicyReason.POLICY_ERROR

    @pytest.mark.asyncio
    async def test_fails_open_on_corrupt_module_settings(self, policy, store):
        await store.put(SETTINGS_COLLECTION, MODULE_SETTINGS_PREFIX + "task", "{not json")

        decision = await policy.read("task")

        assert decision.enabled is True
        assert decision.reason == PolicyReason.POLICY_ERROR

    @pytest.mark.asyncio
    async def test_toggle_takes_effect_immediately(self, policy, settings_store):
        assert await policy.is_scheduling_enabled("sleep") is True
        await settings_store.set_module_enabled("sleep", False)
        assert await policy.is_scheduling_enabled("sleep") is False
        await settings_store.set_module_enabled("sleep", True)
        assert await policy.is_scheduling_enabled("sleep") is True


class TestModuleSettingsStore:
    """Tests for ModuleSettingsStore."""

    @pytest.mark.asyncio
    async def test_settings_from_json_string(self, settings_store, store):
        await store.put(
            SETTINGS_COLLECTION,
            MODULE_SETTINGS_PREFIX + "task",
            '{"default_channel": "quiet", "max_allowed_type": "regular"}',
        )

        loaded = await settings_store.get_module_settings("task")

        assert loaded.default_channel == "quiet"
        assert loaded.max_allowed_type == "regular"

    @pytest.mark.asyncio
    async def test_corrupt_settings_raise_policy_read_error(self, settings_store, store):
        await store.put(SETTINGS_COLLECTION, MODULE_SETTINGS_PREFIX + "task", "{oops")

        with pytest.raises(PolicyReadError) as exc_info:
            await settings_store.get_module_settings("task")

        assert exc_info.value.module_id == "task"

    @pytest.mark.asyncio
    async def test_get_flag(self, settings_store):
        assert await settings_store.get_flag("missing", True) is True
        await settings_store.set_value("flag_bool", False)
        await settings_store.set_value("flag_str", "yes")
        await settings_store.set_value("flag_other", 3)

        assert await settings_store.get_flag("flag_bool", True) is False
        assert await settings_store.get_flag("flag_str", False) is True
        assert await settings_store.get_flag("flag_other", True) is True

    @pytest.mark.asyncio
    async def test_remove_value(self, settings_store):
        await settings_store.set_value("k", 1)
        await settings_store.remove_value("k")
        assert await settings_store.get_value("k") is None
