"""Recovery orchestrator.

Runs every scheduler in a fixed order so the OS notification state
converges on what the stored data asks for. Individual stages may fail
without aborting the run, and the run itself never raises: a failure is
reported as a failed ``RecoveryResult``.
"""

import logging
import time
from collections.abc import Awaitable, Callable

from reminder_hub.config import Settings, get_settings
from reminder_hub.db.repositories import Repositories
from reminder_hub.manager.finance_scheduler import FinanceNotificationScheduler
from reminder_hub.manager.hub import NotificationHub
from reminder_hub.manager.legacy_reminders import LegacyReminderService
from reminder_hub.manager.policy import NotificationModulePolicy
from reminder_hub.manager.universal_scheduler import UniversalNotificationScheduler
from reminder_hub.models.module import ModuleId
from reminder_hub.models.recovery import RecoveryResult
from reminder_hub.models.tasks import Task

logger = logging.getLogger(__name__)

TASK_NAME = "notificationRecovery"
DEFAULT_SOURCE_FLOW = "app_runtime"
HEALTH_CHECK_SOURCE_FLOW = "health_check"


def task_needs_reminders(task: Task) -> bool:
    """Whether a task should currently hold OS reminders."""
    return task.needs_reminders


class NotificationRecoveryService:
    """Reconciles OS notifications with every module's stored reminders."""

    def __init__(
        self,
        hub: NotificationHub,
        repos: Repositories,
        policy: NotificationModulePolicy,
        universal_scheduler: UniversalNotificationScheduler,
        finance_scheduler: FinanceNotificationScheduler,
        legacy_reminders: LegacyReminderService,
        settings: Settings | None = None,
        bootstrap: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.hub = hub
        self.repos = repos
        self.policy = policy
        self.universal_scheduler = universal_scheduler
        self.finance_scheduler = finance_scheduler
        self.legacy_reminders = legacy_reminders
        self.settings = settings or get_settings()
        self._bootstrap = bootstrap

    async def run_recovery(
        self,
        bootstrap_for_background: bool = False,
        source_flow: str = DEFAULT_SOURCE_FLOW,
    ) -> RecoveryResult:
        """Run one full reconciliation pass.

        Args:
            bootstrap_for_background: The process was started headless;
                initialize storage first and skip everything that needs
                the native alarm path
            source_flow: Label recorded with the summary

        Returns:
            Aggregate counters for the run. A failing stage is recorded in
            ``skipped_reasons`` and the rest still run; ``success`` is False
            only if bootstrap or hub setup raised.
        """
        started = time.monotonic()
        try:
            result = await self._run(bootstrap_for_background, source_flow, started)
        except Exception as e:
            logger.error(f"Recovery failed ({source_flow}): {e}", exc_info=True)
            failed = RecoveryResult(
                success=False,
                source_flow=source_flow,
                duration_ms=int((time.monotonic() - started) * 1000),
                error=str(e),
                skipped_reasons=["recovery_exception"],
            )
            logger.info(
                f"recovery_summary reason=recovery_failed {failed.summary_line()}",
                extra={
                    "event": "recovery_summary",
                    "source_flow": source_flow,
                    "reason": "recovery_failed",
                },
            )
            return failed

        logger.info(
            f"recovery_summary {result.summary_line()}",
            extra={"event": "recovery_summary", "source_flow": source_flow},
        )
        return result

    async def _run(
        self, headless: bool, source_flow: str, started: float
    ) -> RecoveryResult:
        if headless and self._bootstrap is not None:
            await self._bootstrap()
        await self.hub.initialize()

        result = RecoveryResult(success=True, source_flow=source_flow)

        if not headless and self.hub.gateway.supports_native_alarms:
            try:
                pruned = await self.hub.cancel_out_of_range_pending()
                if pruned > 0:
                    result.skipped_reasons.append(f"out_of_range_pruned_{pruned}")
            except Exception as e:
                logger.warning(f"Out-of-range cleanup failed: {e}")
        elif headless:
            result.skipped_reasons.append("out_of_range_skip_headless")
        else:
            result.skipped_reasons.append("out_of_range_skip_platform")

        await self._sync_finance(result)
        await self._sync_universal(result)

        if headless:
            result.legacy_resync_skipped_headless = True
            result.skipped_reasons.append("legacy_resync_skipped_headless")
            logger.debug("Headless run, skipping legacy task/habit resync")
        else:
            pruned = await self.prune_orphaned_alarms()
            if pruned:
                logger.info(f"Pruned {pruned} orphaned native alarm(s)")
            await self._resync_tasks(result)
            await self._resync_habits(result)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result

    async def _sync_finance(self, result: RecoveryResult) -> None:
        try:
            if not await self._finance_enabled():
                result.skipped_reasons.append("finance_disabled")
                return
            finance = await self.finance_scheduler.sync_schedules()
        except Exception as e:
            logger.error(f"Finance sync failed: {e}")
            result.skipped_reasons.append("finance_failed")
            return
        result.finance_scheduled = finance.scheduled
        result.finance_cancelled = finance.cancelled
        result.modules_processed += 1

    async def _sync_universal(self, result: RecoveryResult) -> None:
        try:
            universal = await self.universal_scheduler.sync_all_with_metrics()
        except Exception as e:
            logger.error(f"Universal sync failed: {e}")
            result.skipped_reasons.append("universal_failed")
            return
        result.universal_scheduled = universal.scheduled
        result.universal_cancelled = universal.cancelled
        result.universal_skipped = universal.skipped
        result.universal_failed = universal.failed
        if universal.failed > 0:
            result.skipped_reasons.append(f"universal_failed_{universal.failed}")
        result.modules_processed += 1

    async def _finance_enabled(self) -> bool:
        decision = await self.policy.read(ModuleId.FINANCE.value)
        if not decision.enabled:
            return False
        finance_settings = await self.finance_scheduler.load_settings()
        return finance_settings.notifications_enabled

    async def _resync_tasks(self, result: RecoveryResult) -> None:
        decision = await self.policy.read(ModuleId.TASK.value)
        if not decision.enabled:
            result.skipped_reasons.append(f"task_{decision.reason.value}")
            return
        try:
            candidates = [t for t in await self.repos.tasks.get_all() if task_needs_reminders(t)]
            cap = self.settings.max_task_resync_per_run
            for task in candidates[:cap]:
                await self.legacy_reminders.reschedule_task(task)
                result.task_rescheduled += 1
            result.task_skipped_by_cap = max(len(candidates) - cap, 0)
            result.modules_processed += 1
            if result.task_skipped_by_cap:
                logger.info(
                    f"Task resync capped at {cap}, skipped {result.task_skipped_by_cap}"
                )
        except Exception as e:
            logger.error(f"Task resync failed: {e}")

    async def _resync_habits(self, result: RecoveryResult) -> None:
        decision = await self.policy.read(ModuleId.HABIT.value)
        if not decision.enabled:
            result.skipped_reasons.append(f"habit_{decision.reason.value}")
            return
        try:
            habits = await self.repos.habits.get_all(include_archived=True)
            candidates = [h for h in habits if h.needs_reminders]
            cap = self.settings.max_habit_resync_per_run
            for habit in candidates[:cap]:
                await self.legacy_reminders.reschedule_habit(habit)
                result.habit_rescheduled += 1
            result.habit_skipped_by_cap = max(len(candidates) - cap, 0)
            result.modules_processed += 1
            if result.habit_skipped_by_cap:
                logger.info(
                    f"Habit resync capped at {cap}, skipped {result.habit_skipped_by_cap}"
                )
        except Exception as e:
            logger.error(f"Habit resync failed: {e}")

    async def prune_orphaned_alarms(self) -> int:
        """Cancel native alarms whose task or habit no longer exists."""
        gateway = self.hub.gateway
        if not gateway.supports_native_alarms:
            return 0
        try:
            alarms = await gateway.list_native_alarms()
            if not alarms:
                return 0
            task_ids = {t.id for t in await self.repos.tasks.get_all()}
            habit_ids = {h.id for h in await self.repos.habits.get_all(include_archived=True)}

            pruned = 0
            for alarm in alarms[: self.settings.native_alarm_prune_cap]:
                parts = alarm.payload.split("|")
                if len(parts) < 2 or not parts[1]:
                    continue
                kind, entity_id = parts[0], parts[1]
                orphan = (kind == ModuleId.TASK.value and entity_id not in task_ids) or (
                    kind == ModuleId.HABIT.value and entity_id not in habit_ids
                )
                if orphan:
                    await gateway.cancel_native_alarm(alarm.id)
                    pruned += 1
            return pruned
        except Exception as e:
            logger.warning(f"Native alarm prune failed: {e}")
            return 0

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------

    async def run_health_check_if_needed(self) -> RecoveryResult | None:
        """Run recovery if the OS reports nothing pending but reminders are expected.

        Returns:
            The recovery result, or None when no recovery was needed
        """
        try:
            await self.hub.initialize()
            if await self.hub.gateway.list_pending():
                return None

            expectations = {
                "universal": await self.has_enabled_universal_notifications(),
                "finance": await self.has_enabled_finance_notifications(),
                "tasks": await self.has_active_task_reminders(),
                "habits": await self.has_active_habit_reminders(),
            }
            if not any(expectations.values()):
                return None

            logger.info(
                "Health check found 0 pending notifications but expects some "
                f"({', '.join(f'{k}={v}' for k, v in expectations.items())}), resyncing"
            )
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return None
        return await self.run_recovery(source_flow=HEALTH_CHECK_SOURCE_FLOW)

    async def has_enabled_universal_notifications(self) -> bool:
        return bool(await self.repos.universal.get_all(enabled_only=True))

    async def has_enabled_finance_notifications(self) -> bool:
        finance_settings = await self.finance_scheduler.load_settings()
        return finance_settings.notifications_enabled and finance_settings.any_section_enabled

    async def has_active_task_reminders(self) -> bool:
        try:
            if not await self.policy.is_scheduling_enabled(ModuleId.TASK.value):
                return False
            return any(task_needs_reminders(t) for t in await self.repos.tasks.get_all())
        except Exception as e:
            logger.warning(f"Could not check task reminders: {e}")
            return False

    async def has_active_habit_reminders(self) -> bool:
        try:
            if not await self.policy.is_scheduling_enabled(ModuleId.HABIT.value):
                return False
            habits = await self.repos.habits.get_all(include_archived=True)
            return any(h.needs_reminders for h in habits)
        except Exception as e:
            logger.warning(f"Could not check habit reminders: {e}")
            return False
