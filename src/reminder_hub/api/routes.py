"""FastAPI routes for the notification hub, schedulers and recovery."""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from reminder_hub import __version__
from reminder_hub.context import ServiceContext, get_context
from reminder_hub.models.dashboard import DashboardSummary, ScheduledNotificationInfo
from reminder_hub.models.log_entry import LogEntry
from reminder_hub.models.notification import NotificationEvent, ScheduleResult
from reminder_hub.models.payload import NotificationPayload
from reminder_hub.models.recovery import FinanceSyncResult, UniversalSyncResult

logger = logging.getLogger(__name__)

router = APIRouter()

Context = Annotated[ServiceContext, Depends(get_context)]


class RecoveryRunRequest(BaseModel):
    bootstrap_for_background: bool = False
    source_flow: str = "api"


class ResyncRequest(BaseModel):
    reason: str
    force: bool = False


class TapRequest(BaseModel):
    payload: str


class ActionRequest(BaseModel):
    action_id: str
    payload: str
    notification_id: int | None = None


class SnoozeRequest(BaseModel):
    payload: str
    title: str
    body: str = ""
    minutes: int | None = None


class ModuleEnabledUpdate(BaseModel):
    enabled: bool


def _require_payload(raw: str) -> NotificationPayload:
    parsed = NotificationPayload.try_parse(raw)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid notification payload",
        )
    return parsed


def _require_module(ctx: ServiceContext, module_id: str) -> None:
    if not ctx.hub.is_registered(module_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Module {module_id} not registered",
        )


@router.get("/health")
async def health(ctx: Context) -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "modules": [m.module_id for m in ctx.hub.registered_modules()],
        "native_alarms": ctx.gateway.supports_native_alarms,
    }


# -----------------------------------------------------------------------------
# Dashboard and history
# -----------------------------------------------------------------------------


@router.get("/dashboard", response_model=DashboardSummary)
async def dashboard(ctx: Context) -> DashboardSummary:
    return await ctx.hub.get_dashboard_summary()


@router.get("/history", response_model=list[LogEntry])
async def history(
    ctx: Context,
    module_id: str | None = None,
    event: NotificationEvent | None = None,
    from_time: Annotated[datetime | None, Query(alias="from")] = None,
    to_time: Annotated[datetime | None, Query(alias="to")] = None,
    search: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[LogEntry]:
    """Query the activity log, newest first.

    Args:
        module_id: Only entries for this module
        event: Only entries with this lifecycle event
        from_time: Inclusive lower bound on the entry timestamp
        to_time: Exclusive upper bound on the entry timestamp
        search: Case-insensitive text match across the entry's fields
        limit: Maximum entries returned (defaults to the configured limit)
    """
    return await ctx.hub.get_history(
        module_id=module_id,
        event=event,
        from_time=from_time,
        to_time=to_time,
        search=search,
        limit=limit,
    )


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(ctx: Context) -> None:
    await ctx.hub.clear_history()
    logger.info("Cleared notification history")


@router.post("/history/compact")
async def compact_history(ctx: Context) -> dict:
    """Drop repeated ``scheduled`` entries for the same notification and fire time."""
    removed = await ctx.hub.compact_redundant_history_entries()
    return {"removed": removed}


@router.delete("/history/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_entry(entry_id: str, ctx: Context) -> None:
    if not await ctx.hub.delete_log_entry(entry_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Log entry not found",
        )


@router.get("/scheduled", response_model=list[ScheduledNotificationInfo])
async def scheduled(ctx: Context, module_id: str | None = None) -> list[ScheduledNotificationInfo]:
    """Pending OS notifications sorted by fire time."""
    if module_id:
        return await ctx.hub.get_scheduled_notifications_for_module(module_id)
    return await ctx.hub.get_all_scheduled_notifications()


# -----------------------------------------------------------------------------
# Recovery and resync
# -----------------------------------------------------------------------------


@router.post("/recovery/run")
async def run_recovery(request: RecoveryRunRequest, ctx: Context) -> dict[str, Any]:
    """Run one reconciliation pass. Failures are reported, not raised."""
    result = await ctx.recovery.run_recovery(
        bootstrap_for_background=request.bootstrap_for_background,
        source_flow=request.source_flow,
    )
    return result.to_map()


@router.post("/recovery/health-check")
async def health_check(ctx: Context) -> dict[str, Any]:
    result = await ctx.recovery.run_health_check_if_needed()
    return {"ran": result is not None, "result": result.to_map() if result else None}


@router.post("/resync")
async def resync(request: ResyncRequest, ctx: Context) -> dict[str, Any]:
    """Throttled resync. ``skipped`` is true when the refresher declined to run."""
    result = await ctx.refresher.resync_all(request.reason, force=request.force)
    return {"skipped": result is None, "result": result.to_map() if result else None}


@router.post("/lifecycle/resume")
async def app_resumed(ctx: Context) -> dict[str, Any]:
    result = await ctx.refresher.on_app_resumed()
    return {"skipped": result is None, "result": result.to_map() if result else None}


# -----------------------------------------------------------------------------
# Notification interactions
# -----------------------------------------------------------------------------


@router.post("/notifications/tap")
async def notification_tap(request: TapRequest, ctx: Context) -> dict:
    """Dispatch a tap. ``route`` is the screen the owning module asked to open."""
    parsed = _require_payload(request.payload)
    handled = await ctx.hub.handle_notification_tap(request.payload)
    adapter = ctx.hub.adapter_for(parsed.module_id)
    route = getattr(adapter, "last_route", None) if handled else None
    return {"handled": handled, "route": route}


@router.post("/notifications/action")
async def notification_action(request: ActionRequest, ctx: Context) -> dict:
    _require_payload(request.payload)
    handled = await ctx.hub.handle_notification_action(
        request.action_id, request.payload, notification_id=request.notification_id
    )
    return {"handled": handled}


@router.post("/notifications/{notification_id}/snooze")
async def snooze_notification(
    notification_id: int, request: SnoozeRequest, ctx: Context
) -> dict:
    _require_payload(request.payload)
    snoozed = await ctx.hub.snooze(
        request.payload,
        request.title,
        body=request.body,
        notification_id=notification_id,
        custom_minutes=request.minutes,
    )
    return {"snoozed": snoozed}


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    ctx: Context,
    payload: str | None = None,
    entity_id: str | None = None,
    permanent: bool = False,
) -> None:
    """Cancel one notification.

    With ``permanent`` the owning module is told to drop the underlying
    reminder rule as well, which needs a valid payload.
    """
    if permanent:
        parsed = _require_payload(payload or "")
        await ctx.hub.delete_and_notify_module(
            notification_id, entity_id or parsed.entity_id, payload or ""
        )
        return
    await ctx.hub.cancel_by_notification_id(
        notification_id, entity_id=entity_id, payload=payload
    )


# -----------------------------------------------------------------------------
# Modules
# -----------------------------------------------------------------------------


@router.get("/modules/{module_id}/enabled")
async def get_module_enabled(module_id: str, ctx: Context) -> dict:
    _require_module(ctx, module_id)
    return {"module_id": module_id, "enabled": await ctx.hub.is_module_enabled(module_id)}


@router.put("/modules/{module_id}/enabled")
async def set_module_enabled(
    module_id: str, update: ModuleEnabledUpdate, ctx: Context
) -> dict:
    _require_module(ctx, module_id)
    await ctx.hub.set_module_enabled(module_id, update.enabled)
    logger.info(f"Module {module_id} enabled={update.enabled}")
    return {"module_id": module_id, "enabled": update.enabled}


# -----------------------------------------------------------------------------
# Schedulers
# -----------------------------------------------------------------------------


@router.post("/universal/sync", response_model=UniversalSyncResult)
async def universal_sync(ctx: Context) -> UniversalSyncResult:
    return await ctx.universal_scheduler.sync_all_with_metrics()


@router.post("/universal/entities/{entity_id}/sync", response_model=ScheduleResult)
async def universal_entity_sync(entity_id: str, ctx: Context) -> ScheduleResult:
    if not await ctx.repos.universal.get_by_entity(entity_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No reminders defined for {entity_id}",
        )
    return await ctx.universal_scheduler.sync_for_entity(entity_id)


@router.post("/finance/sync", response_model=FinanceSyncResult)
async def finance_sync(ctx: Context) -> FinanceSyncResult:
    return await ctx.finance_scheduler.sync_schedules()
