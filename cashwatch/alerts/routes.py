"""
Cash Gap Alert API routes.

Monitoring runs, alert listing, lifecycle transitions and alert settings.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cashwatch.database import get_db
from .monitor import (
    AlertNotFoundError,
    CashGapMonitor,
    InvalidAlertTransition,
    acknowledge_alert,
    dismiss_alert,
    list_alerts,
    resolve_alert,
)
from .scheduler import monitoring_scheduler
from .schemas import (
    AlertListResponse,
    AlertResponse,
    AlertSettingsResponse,
    AlertSettingsUpdate,
    DismissAlertRequest,
    MonitorResponse,
    ResolveAlertRequest,
)
from .settings import get_or_create_settings, update_alert_settings

router = APIRouter()


def get_monitor() -> CashGapMonitor:
    return CashGapMonitor()


def _lifecycle_error(e: Exception) -> HTTPException:
    if isinstance(e, AlertNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))


@router.post("/monitor", response_model=MonitorResponse)
async def run_monitor(
    user_id: str = Query(..., description="User ID"),
    monitor: CashGapMonitor = Depends(get_monitor),
):
    """
    Run cash gap monitoring for a user now.

    Detects, reconciles and persists alerts, then dispatches notifications
    for critical ones.
    """
    result = await monitor.monitor_cash_gaps(user_id)
    if result.error:
        raise HTTPException(status_code=500, detail=f"Error monitoring cash gaps: {result.error}")
    return MonitorResponse(
        alerts=[AlertResponse.model_validate(a) for a in result.alerts],
        summary=result.summary,
    )


@router.get("/monitor/status")
async def get_monitor_status():
    """Scheduled monitoring status: whether a run is in progress and when the last one started."""
    return monitoring_scheduler.get_status()


@router.get("", response_model=AlertListResponse)
async def get_alerts(
    user_id: str = Query(..., description="User ID"),
    status: Optional[Literal["active", "acknowledged", "resolved", "dismissed"]] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List a user's alerts, most severe first."""
    try:
        alerts = await list_alerts(db, user_id, status=status, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing alerts: {str(e)}")
    return AlertListResponse(
        alerts=[AlertResponse.model_validate(a) for a in alerts],
        total=len(alerts),
    )


@router.get("/settings", response_model=AlertSettingsResponse)
async def get_settings(
    user_id: str = Query(..., description="User ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get alert settings, creating defaults on first access."""
    alert_settings = await get_or_create_settings(db, user_id)
    await db.commit()
    return AlertSettingsResponse.model_validate(alert_settings)


@router.put("/settings", response_model=AlertSettingsResponse)
async def put_settings(
    data: AlertSettingsUpdate,
    user_id: str = Query(..., description="User ID"),
    db: AsyncSession = Depends(get_db),
):
    """
    Update alert settings.

    Only provided fields are updated.
    """
    updates = data.model_dump(exclude_unset=True)
    alert_settings = await update_alert_settings(db, user_id, updates)
    await db.commit()
    return AlertSettingsResponse.model_validate(alert_settings)


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge(
    alert_id: str,
    user_id: str = Query(..., description="User ID"),
    db: AsyncSession = Depends(get_db),
):
    """Acknowledge an active alert (mark as seen)."""
    try:
        alert = await acknowledge_alert(db, alert_id, user_id=user_id)
    except (AlertNotFoundError, InvalidAlertTransition) as e:
        raise _lifecycle_error(e)
    await db.commit()
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve(
    alert_id: str,
    data: Optional[ResolveAlertRequest] = None,
    user_id: str = Query(..., description="User ID"),
    db: AsyncSession = Depends(get_db),
):
    """Resolve an active or acknowledged alert."""
    try:
        alert = await resolve_alert(db, alert_id, notes=data.notes if data else None, user_id=user_id)
    except (AlertNotFoundError, InvalidAlertTransition) as e:
        raise _lifecycle_error(e)
    await db.commit()
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/dismiss", response_model=AlertResponse)
async def dismiss(
    alert_id: str,
    data: Optional[DismissAlertRequest] = None,
    user_id: str = Query(..., description="User ID"),
    db: AsyncSession = Depends(get_db),
):
    """Dismiss an active or acknowledged alert without resolving."""
    try:
        alert = await dismiss_alert(db, alert_id, reason=data.reason if data else None, user_id=user_id)
    except (AlertNotFoundError, InvalidAlertTransition) as e:
        raise _lifecycle_error(e)
    await db.commit()
    return AlertResponse.model_validate(alert)
