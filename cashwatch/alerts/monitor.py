"""
Cash Gap Monitor

Entry point `monitor_cash_gaps(user_id)`:
1. Generate the realistic forecast
2. Detect candidate alerts (pure, see detection.py)
3. Reconcile candidates against stored alerts by (user_id, type, projected_date):
   - open match -> refreshed in place (counted as updated when severity or
     recommendations change)
   - no open match -> insert, unless a dismissal of equal or higher severity exists
   - open alert not reproduced -> resolved with reason "condition_cleared"
4. Commit, then dispatch notifications for critical active alerts

Runs for one user are serialized by a per-user lock. Lifecycle operations
(acknowledge / resolve / dismiss) live at the bottom of this module.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cashwatch.database import async_session_maker
from cashwatch.forecast.service import CashFlowForecastService
from cashwatch.forecast.types import ForecastOptions, ScenarioForecast
from cashwatch.notifications.models import NotificationChannel
from cashwatch.notifications.providers import ChannelSender, get_channel_senders
from cashwatch.notifications.service import NotificationDispatcher
from .detection import DetectionContext
from .models import CashGapAlert
from .settings import get_or_create_settings
from .types import (
    AlertCandidate,
    AlertSeverity,
    AlertStatus,
    OPEN_STATUSES,
    severity_weight,
)

logger = logging.getLogger(__name__)

RESOLUTION_CONDITION_CLEARED = "condition_cleared"


class UserLockRegistry:
    """
    Per-user locks for monitoring runs.

    Concurrent runs for the same user would race on inserts. A lock lives
    only while some run holds or waits on it, so the registry stays bounded
    by the users currently being monitored.
    """

    def __init__(self):
        self._entries: Dict[str, List[Any]] = {}  # user_id -> [lock, holders]

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, user_id: str):
        entry = self._entries.get(user_id)
        if entry is None:
            entry = self._entries[user_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[user_id]


_user_locks = UserLockRegistry()


class AlertNotFoundError(ValueError):
    """No alert with the given id (for the given user)."""


class InvalidAlertTransition(Exception):
    """The requested status change is not allowed from the alert's current status."""


@dataclass
class ReconcileStats:
    alerts: List[CashGapAlert] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    resolved: int = 0
    suppressed: int = 0


@dataclass
class MonitorResult:
    """Outcome of one monitoring run. `error` is set when the run failed."""
    alerts: List[CashGapAlert]
    summary: Dict[str, Any]
    error: Optional[str] = None
    notifications_sent: int = 0


def _open_status_values() -> List[str]:
    return [s.value for s in OPEN_STATUSES]


def build_alert_summary(
    alerts: List[CashGapAlert],
    scenario: Optional[ScenarioForecast],
    stats: Optional[ReconcileStats] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Totals by severity and type, worst shortfall, nearest alert and forecast headline."""
    by_severity = {s.value: 0 for s in sorted(AlertSeverity, key=severity_weight, reverse=True)}
    by_type: Dict[str, int] = {}
    for alert in alerts:
        by_severity[alert.severity] = by_severity.get(alert.severity, 0) + 1
        by_type[alert.alert_type] = by_type.get(alert.alert_type, 0) + 1

    nearest = None
    if alerts:
        if today is not None:
            nearest = min(max(0, (a.projected_date - today).days) for a in alerts)
        else:
            nearest = min(a.days_until_shortfall for a in alerts)

    summary: Dict[str, Any] = {
        "total_alerts": len(alerts),
        "by_severity": by_severity,
        "by_type": by_type,
        "worst_case_shortfall": max([a.projected_shortfall for a in alerts] + [0.0]),
        "nearest_alert_days": nearest,
    }

    if scenario is not None:
        summary["forecast_summary"] = {
            "starting_cash": scenario.starting_cash,
            "projected_end_cash": scenario.total_projected_cash,
            "worst_week": scenario.worst_week.isoformat() if scenario.worst_week else None,
            "minimum_cash_position": scenario.minimum_cash_position,
            "confidence": round(scenario.average_confidence, 1),
        }

    if stats is not None:
        summary["created"] = stats.created
        summary["updated"] = stats.updated
        summary["resolved"] = stats.resolved
        summary["suppressed"] = stats.suppressed

    return summary


def _apply_candidate(alert: CashGapAlert, candidate: AlertCandidate) -> None:
    alert.severity = candidate.severity.value
    alert.title = candidate.title
    alert.description = candidate.description
    alert.projected_shortfall = candidate.projected_shortfall
    alert.week_number = candidate.week_number
    alert.triggers = candidate.triggers_as_dicts()
    alert.recommendations = candidate.recommendations_as_dicts()
    alert.extra_data = dict(candidate.metadata)


def _needs_update(alert: CashGapAlert, candidate: AlertCandidate) -> bool:
    return (
        alert.severity != candidate.severity.value
        or (alert.recommendations or []) != candidate.recommendations_as_dicts()
    )


async def reconcile_alerts(
    db: AsyncSession,
    user_id: str,
    candidates: List[AlertCandidate],
    now: Optional[datetime] = None,
) -> ReconcileStats:
    """Merge a fresh candidate set into the user's stored alerts."""
    now = now or datetime.utcnow()
    stats = ReconcileStats()

    result = await db.execute(
        select(CashGapAlert)
        .where(CashGapAlert.user_id == user_id)
        .where(CashGapAlert.status.in_(_open_status_values()))
        .order_by(CashGapAlert.created_at, CashGapAlert.id)
    )
    open_alerts = result.scalars().all()
    existing: Dict[Tuple[str, date], CashGapAlert] = {}
    for alert in open_alerts:
        existing.setdefault((alert.alert_type, alert.projected_date), alert)

    result = await db.execute(
        select(CashGapAlert)
        .where(CashGapAlert.user_id == user_id)
        .where(CashGapAlert.status == AlertStatus.DISMISSED.value)
    )
    dismissed: Dict[Tuple[str, date], int] = {}
    for alert in result.scalars().all():
        key = (alert.alert_type, alert.projected_date)
        dismissed[key] = max(dismissed.get(key, 0), severity_weight(alert.severity))

    matched_ids = set()
    for candidate in candidates:
        key = (candidate.alert_type.value, candidate.projected_date)
        alert = existing.get(key)

        if alert is not None:
            matched_ids.add(alert.id)
            if _needs_update(alert, candidate):
                stats.updated += 1
            else:
                stats.unchanged += 1
            # Figures always follow the latest forecast
            _apply_candidate(alert, candidate)
            stats.alerts.append(alert)
            continue

        if key in dismissed and dismissed[key] >= severity_weight(candidate.severity):
            stats.suppressed += 1
            continue

        alert = CashGapAlert(
            user_id=user_id,
            alert_type=candidate.alert_type.value,
            status=AlertStatus.ACTIVE.value,
            projected_date=candidate.projected_date,
        )
        _apply_candidate(alert, candidate)
        db.add(alert)
        stats.created += 1
        stats.alerts.append(alert)

    for alert in open_alerts:
        if alert.id in matched_ids:
            continue
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_at = now
        alert.extra_data = {
            **(alert.extra_data or {}),
            "resolution_reason": RESOLUTION_CONDITION_CLEARED,
        }
        stats.resolved += 1

    await db.flush()
    return stats


class CashGapMonitor:
    """
    Monitors one user's realistic forecast for cash gaps.

    Called:
    - On a schedule (see scheduler.py)
    - On demand via POST /api/alerts/monitor
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        forecast_service: Optional[CashFlowForecastService] = None,
        senders: Optional[Dict[str, ChannelSender]] = None,
        clock: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or async_session_maker
        self.clock = clock or date.today
        self.now = now or datetime.utcnow
        self.forecast_service = forecast_service or CashFlowForecastService(
            session_factory=self.session_factory,
            clock=self.clock,
        )
        self.senders = senders if senders is not None else get_channel_senders(c.value for c in NotificationChannel)

    @property
    def engine(self):
        return self.forecast_service.engine

    async def monitor_cash_gaps(self, user_id: str) -> MonitorResult:
        try:
            async with _user_locks.hold(user_id):
                return await self._monitor(user_id)
        except Exception as e:
            logger.error(f"Cash gap monitoring failed for user {user_id}: {e}")
            return MonitorResult(alerts=[], summary={}, error=str(e))

    async def _monitor(self, user_id: str) -> MonitorResult:
        run = await self.forecast_service.run(user_id, ForecastOptions(include_scenarios=False))
        scenario = run.analysis.realistic
        if scenario is None:
            raise RuntimeError("Realistic scenario missing from forecast")

        today = run.today
        overdue_total = sum(inv.amount for inv in run.inputs.overdue_invoices(today))

        async with self.session_factory() as db:
            alert_settings = await get_or_create_settings(db, user_id)

            candidates = self.engine.detect_cash_gaps(DetectionContext(
                user_id=user_id,
                scenario=scenario,
                thresholds=alert_settings.to_thresholds(),
                today=today,
                overdue_total=overdue_total,
            ))

            stats = await reconcile_alerts(db, user_id, candidates, now=self.now())
            await db.commit()

            notifications_sent = await self._dispatch(db, stats.alerts, alert_settings, today)

            summary = build_alert_summary(stats.alerts, scenario, stats, today)
            summary["notifications_sent"] = notifications_sent

        logger.info(
            f"Cash gap monitoring for user {user_id}: {len(stats.alerts)} open alerts "
            f"({stats.created} created, {stats.updated} updated, {stats.resolved} resolved)"
        )
        return MonitorResult(alerts=stats.alerts, summary=summary, notifications_sent=notifications_sent)

    async def _dispatch(self, db: AsyncSession, alerts, alert_settings, today: date) -> int:
        """Alerts are already committed; a failure here only loses the notification log."""
        dispatcher = NotificationDispatcher(db, senders=self.senders, now=self.now)
        try:
            sent = await dispatcher.dispatch(alerts, alert_settings, today)
            await db.commit()
            return len(sent)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Notification dispatch failed for user {alert_settings.user_id}: {e}")
            return 0


async def monitor_cash_gaps(user_id: str) -> MonitorResult:
    """Module-level entry point using the default session factory."""
    return await CashGapMonitor().monitor_cash_gaps(user_id)


# =============================================================================
# Alert lifecycle
# =============================================================================

async def list_alerts(
    db: AsyncSession,
    user_id: str,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[CashGapAlert]:
    """Alerts for a user, most severe first, soonest projected date within a severity."""
    severity_rank = case(
        {s.value: severity_weight(s) for s in AlertSeverity},
        value=CashGapAlert.severity,
        else_=0,
    )
    query = select(CashGapAlert).where(CashGapAlert.user_id == user_id)
    if status:
        query = query.where(CashGapAlert.status == AlertStatus(status).value)
    result = await db.execute(
        query.order_by(severity_rank.desc(), CashGapAlert.projected_date, CashGapAlert.id).limit(limit)
    )
    return list(result.scalars().all())


async def get_alert(db: AsyncSession, alert_id: str, user_id: Optional[str] = None) -> CashGapAlert:
    query = select(CashGapAlert).where(CashGapAlert.id == alert_id)
    if user_id:
        query = query.where(CashGapAlert.user_id == user_id)
    result = await db.execute(query)
    alert = result.scalar_one_or_none()

    if not alert:
        raise AlertNotFoundError(f"Alert {alert_id} not found")
    return alert


def _require_status(alert: CashGapAlert, allowed, action: str) -> None:
    allowed_values = [s.value for s in allowed]
    if alert.status not in allowed_values:
        raise InvalidAlertTransition(
            f"Cannot {action} alert {alert.id} with status '{alert.status}'"
        )


async def acknowledge_alert(
    db: AsyncSession, alert_id: str, user_id: Optional[str] = None
) -> CashGapAlert:
    """Mark an active alert as seen."""
    alert = await get_alert(db, alert_id, user_id)
    _require_status(alert, [AlertStatus.ACTIVE], "acknowledge")

    alert.status = AlertStatus.ACKNOWLEDGED.value
    alert.acknowledged_at = datetime.utcnow()
    await db.flush()
    return alert


async def resolve_alert(
    db: AsyncSession, alert_id: str, notes: Optional[str] = None, user_id: Optional[str] = None
) -> CashGapAlert:
    """Mark an open alert as resolved."""
    alert = await get_alert(db, alert_id, user_id)
    _require_status(alert, OPEN_STATUSES, "resolve")

    alert.status = AlertStatus.RESOLVED.value
    alert.resolved_at = datetime.utcnow()
    if notes:
        alert.resolution_notes = notes
    alert.extra_data = {**(alert.extra_data or {}), "resolution_reason": "user_resolved"}
    await db.flush()
    return alert


async def dismiss_alert(
    db: AsyncSession, alert_id: str, reason: Optional[str] = None, user_id: Optional[str] = None
) -> CashGapAlert:
    """Dismiss an open alert without resolving."""
    alert = await get_alert(db, alert_id, user_id)
    _require_status(alert, OPEN_STATUSES, "dismiss")

    alert.status = AlertStatus.DISMISSED.value
    alert.dismissed_at = datetime.utcnow()
    if reason:
        alert.dismiss_reason = reason
    await db.flush()
    return alert
