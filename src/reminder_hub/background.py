"""Headless entry point for the periodic recovery task."""

import logging

from reminder_hub.context import build_context, get_context, has_context, set_context
from reminder_hub.manager.recovery import TASK_NAME

logger = logging.getLogger(__name__)

BACKGROUND_SOURCE_FLOW = "background_task"


async def run_notification_recovery_task(task_name: str) -> bool:
    """Run recovery for a background task dispatch.

    Args:
        task_name: Name the task was registered under. Anything other than
            ``notificationRecovery`` is not ours and is reported as done.

    Returns:
        True if the task succeeded or was ignored
    """
    if task_name != TASK_NAME:
        logger.debug(f"Ignoring background task {task_name}")
        return True

    try:
        if not has_context():
            logger.info("No service context, bootstrapping headless")
            set_context(build_context())
        context = get_context()
        result = await context.recovery.run_recovery(
            bootstrap_for_background=True, source_flow=BACKGROUND_SOURCE_FLOW
        )
        return result.success
    except Exception as e:
        logger.error(f"Background recovery task failed: {e}", exc_info=True)
        return False
