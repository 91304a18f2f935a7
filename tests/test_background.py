"""Tests for the headless recovery task."""

from unittest.mock import patch

import pytest

from reminder_hub.background import run_notification_recovery_task
from reminder_hub.context import get_context, has_context, set_context
from reminder_hub.manager.recovery import TASK_NAME


class TestRunNotificationRecoveryTask:
    """Tests for run_notification_recovery_task."""

    @pytest.mark.asyncio
    async def test_foreign_task_ignored(self):
        assert await run_notification_recovery_task("someOtherTask") is True
        assert has_context() is False

    @pytest.mark.asyncio
    async def test_bootstraps_context_when_missing(self):
        assert await run_notification_recovery_task(TASK_NAME) is True
        assert has_context() is True

    @pytest.mark.asyncio
    async def test_uses_existing_context(self, ctx):
        set_context(ctx)

        assert await run_notification_recovery_task(TASK_NAME) is True
        assert get_context() is ctx

    @pytest.mark.asyncio
    async def test_bootstrap_failure_returns_false(self):
        with patch(
            "reminder_hub.background.build_context", side_effect=ValueError("bad config")
        ):
            assert await run_notification_recovery_task(TASK_NAME) is False
