"""FastAPI router for the health aggregation layer.

Endpoints (prefix /api/v1/health):
- GET    /status                  manager state, platform, permission state
- POST   /permissions/request     prompt for permissions
- GET    /permissions             re-check permissions with a real read
- GET    /daily                   daily snapshot (?day=, default today)
- GET    /weekly                  per-metric series (?start=&end=, default last 7 days)
- POST   /records                 write a partial snapshot
- POST   /settings/open           open the platform health settings
- GET    /widgets/steps           steps widget projection
- GET    /widgets/hydration       hydration widget projection
- POST   /widgets/refresh         push widget projections in the background
- PUT    /widgets/{widget}/goal   set the goal shown on a widget
- POST   /widgets/entries         record in-app steps or hydration for a day
- POST   /app-state               app lifecycle change (pushes widgets when active)
- GET    /archive/profile         current week, history and rolling averages
- GET    /archive/history         most recent archived weeks (?weeks=)
- DELETE /archive                 clear the archive
- GET    /report                  weekly report for a clinician (not archived)

Permission and availability problems surface as problem+json with a
remediation pointing at /settings/open.
"""

from datetime import UTC, date, datetime, timedelta
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from health.archive import HistoricalArchive
from health.deps import get_archive, get_manager, get_widget_bridge
from health.domain.models import (
    AppStateChange,
    HealthDataRange,
    HealthDataWrite,
    InAppEntry,
    WidgetGoalUpdate,
)
from health.permissions import PermissionManager
from health.reports import format_report_for_doctor, generate_weekly_report
from health.widgets import WidgetSyncBridge
from shared.config import settings
from shared.exceptions import InvalidDateRangeError
from shared.middleware import request_id_var

router = APIRouter(prefix=f"/api/{settings.api_version}/health")


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _envelope(data: Any) -> dict[str, Any]:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    return {"data": data, "meta": _meta()}


def _range(start: date | None, end: date | None) -> HealthDataRange | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        # One-sided ranges extend to a 7-day window
        start = start or end - timedelta(days=6)
        end = end or start + timedelta(days=6)
    if start > end:
        raise InvalidDateRangeError(str(start), str(end))
    return HealthDataRange(start=start, end=end)


@router.get("/status")
async def get_status(manager: PermissionManager = Depends(get_manager)):
    available = await manager.is_health_available()
    return _envelope(
        {
            "platform": manager.provider.platform,
            "available": available,
            "state": manager.state.value,
            "has_permissions": manager.has_permissions,
            "is_loading": manager.is_loading,
            "permission": manager.permission_state.model_dump(mode="json"),
            "last_error": str(manager.last_error) if manager.last_error else None,
        }
    )


@router.post("/permissions/request")
async def request_permissions(manager: PermissionManager = Depends(get_manager)):
    return _envelope(await manager.request_permissions())


@router.get("/permissions")
async def check_permissions(manager: PermissionManager = Depends(get_manager)):
    return _envelope(await manager.check_permissions())


@router.get("/daily")
async def get_daily(
    manager: PermissionManager = Depends(get_manager),
    day: date | None = Query(None),
):
    return _envelope(await manager.load_daily_data(day))


@router.get("/weekly")
async def get_weekly(
    manager: PermissionManager = Depends(get_manager),
    start: date | None = Query(None),
    end: date | None = Query(None),
):
    return _envelope(await manager.load_weekly_data(_range(start, end)))


@router.post("/records")
async def write_records(
    body: HealthDataWrite,
    manager: PermissionManager = Depends(get_manager),
):
    written = await manager.write_health_data(body)
    return _envelope({"written": written, "fields": sorted(body.present_fields())})


@router.post("/settings/open")
async def open_settings(manager: PermissionManager = Depends(get_manager)):
    await manager.open_health_settings()
    return _envelope({"opened": True})


@router.get("/widgets/steps")
async def get_steps_widget(bridge: WidgetSyncBridge = Depends(get_widget_bridge)):
    return _envelope(await bridge.get_steps_projection())


@router.get("/widgets/hydration")
async def get_hydration_widget(bridge: WidgetSyncBridge = Depends(get_widget_bridge)):
    return _envelope(await bridge.get_hydration_projection())


@router.post("/widgets/refresh", status_code=202)
async def refresh_widgets(bridge: WidgetSyncBridge = Depends(get_widget_bridge)):
    bridge.schedule_push()
    return _envelope({"scheduled": True})


@router.put("/widgets/{widget}/goal")
async def set_widget_goal(
    widget: Literal["steps", "hydration"],
    body: WidgetGoalUpdate,
    bridge: WidgetSyncBridge = Depends(get_widget_bridge),
):
    return _envelope(await bridge.set_goal(widget, body.goal))


@router.post("/widgets/entries")
async def record_widget_entry(
    body: InAppEntry,
    bridge: WidgetSyncBridge = Depends(get_widget_bridge),
):
    if body.steps is not None:
        await bridge.record_steps(body.steps, body.day)
    if body.hydration is not None:
        await bridge.record_hydration(body.hydration, body.day)
    recorded = [name for name in ("steps", "hydration") if getattr(body, name) is not None]
    return _envelope({"recorded": recorded})


@router.post("/app-state")
async def app_state_change(
    body: AppStateChange,
    bridge: WidgetSyncBridge = Depends(get_widget_bridge),
):
    scheduled = await bridge.on_app_state_change(body.state)
    return _envelope({"state": body.state, "push_scheduled": scheduled})


@router.get("/archive/profile")
async def get_profile(archive: HistoricalArchive = Depends(get_archive)):
    return _envelope(await archive.get_all_data_for_profile())


@router.get("/archive/history")
async def get_history(
    archive: HistoricalArchive = Depends(get_archive),
    weeks: int = Query(4, ge=1, le=52),
):
    entries = await archive.get_historical_data(weeks)
    return _envelope([e.model_dump(mode="json") for e in entries])


@router.delete("/archive", status_code=204)
async def clear_archive(archive: HistoricalArchive = Depends(get_archive)):
    await archive.clear_all_data()


@router.get("/report")
async def get_report(
    manager: PermissionManager = Depends(get_manager),
    patient_name: str = Query(..., min_length=1),
    steps_goal: int = Query(10000, ge=1),
    format: str = Query("json", pattern="^(json|text)$"),
):
    """Weekly report over the last 7 days, as JSON or plain text for sharing.

    Reads fresh data without saving it to the archive.
    """
    weekly = await manager.load_weekly_data(archive=False)
    if weekly is None:
        return _envelope(None)
    report = generate_weekly_report(weekly, patient_name, steps_goal)
    if format == "text":
        return PlainTextResponse(format_report_for_doctor(report))
    return _envelope(report)
