"""FastAPI application entry point for Reminder Hub."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from croniter import croniter
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reminder_hub import __version__
from reminder_hub.api.routes import router
from reminder_hub.background import run_notification_recovery_task
from reminder_hub.config import get_settings
from reminder_hub.context import get_context
from reminder_hub.manager.recovery import TASK_NAME

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Background task handle
_recovery_task: asyncio.Task | None = None


def seconds_until_next_run(cron_expression: str, now: datetime) -> float:
    next_run = croniter(cron_expression, now).get_next(datetime)
    return max((next_run - now).total_seconds(), 0.0)


async def recovery_loop():
    """Run notification recovery on the configured cron schedule.

    Each run goes through the headless entry point, so a failure is logged
    and the loop carries on to the next fire time.
    """
    settings = get_settings()
    logger.info(f"Recovery loop started (cron={settings.recovery_cron})")

    while True:
        try:
            delay = seconds_until_next_run(settings.recovery_cron, datetime.now())
            await asyncio.sleep(delay)
            ok = await run_notification_recovery_task(TASK_NAME)
            if not ok:
                logger.warning("Scheduled recovery reported failure")
        except asyncio.CancelledError:
            logger.info("Recovery loop shutting down")
            break
        except Exception as e:
            logger.error(f"Recovery loop error: {e}")
            await asyncio.sleep(5)  # Back off on error


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    global _recovery_task

    # Startup
    logger.info(f"Starting Reminder Hub v{__version__}")
    settings = get_settings()
    logger.info(f"Debug mode: {settings.debug}")

    context = get_context()
    await context.hub.initialize()
    if settings.health_check_on_start:
        await context.recovery.run_health_check_if_needed()

    if settings.recovery_enabled:
        logger.info("Starting recovery loop...")
        _recovery_task = asyncio.create_task(recovery_loop())
    else:
        logger.info("Recovery loop disabled (set RECOVERY_ENABLED=true to enable)")

    yield

    # Shutdown
    if _recovery_task:
        logger.info("Stopping recovery loop...")
        _recovery_task.cancel()
        try:
            await _recovery_task
        except asyncio.CancelledError:
            pass
        _recovery_task = None

    logger.info("Shutting down Reminder Hub")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Reminder Hub",
        description="Notification scheduling and recovery reconciliation service",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "reminder_hub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
