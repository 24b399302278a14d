"""
Monitoring Scheduler

Background job that runs cash gap monitoring for every known user at a
fixed interval (MONITOR_INTERVAL_HOURS, daily by default).

Uses APScheduler for job scheduling.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, union
from sqlalchemy.ext.asyncio import async_sessionmaker

from cashwatch.config import settings
from cashwatch.data.models import CashAccount, CashFlowInvoice
from cashwatch.database import async_session_maker
from .models import AlertSettings
from .monitor import CashGapMonitor

logger = logging.getLogger(__name__)


class MonitoringScheduler:
    """
    Manages scheduled monitoring runs.

    This class can be used with APScheduler or any other job scheduler.
    It provides methods that can be called on schedule.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        monitor: Optional[CashGapMonitor] = None,
    ):
        self.session_factory = session_factory or async_session_maker
        self.monitor = monitor or CashGapMonitor(session_factory=self.session_factory)
        self._running = False
        self._last_run: Optional[datetime] = None

    async def get_user_ids(self) -> List[str]:
        """Users with alert settings, invoices or cash accounts."""
        query = union(
            select(AlertSettings.user_id),
            select(CashFlowInvoice.user_id),
            select(CashAccount.user_id),
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            return sorted(row[0] for row in result.fetchall())

    async def run_for_all_users(self) -> dict:
        """
        Run cash gap monitoring for all users.

        Returns summary of alerts created, updated and resolved.
        """
        logger.info("Starting cash gap monitoring run")
        self._running = True
        self._last_run = datetime.utcnow()

        summary = {
            "run_type": "scheduled",
            "started_at": self._last_run.isoformat(),
            "users_processed": 0,
            "alerts_created": 0,
            "alerts_updated": 0,
            "alerts_resolved": 0,
            "notifications_sent": 0,
            "errors": [],
        }

        try:
            user_ids = await self.get_user_ids()
        except Exception as e:
            logger.error(f"Cash gap monitoring run failed: {e}")
            summary["errors"].append({"error": str(e)})
            user_ids = []

        for user_id in user_ids:
            result = await self.monitor.monitor_cash_gaps(user_id)
            if result.error:
                summary["errors"].append({"user_id": user_id, "error": result.error})
                continue

            summary["users_processed"] += 1
            summary["alerts_created"] += result.summary.get("created", 0)
            summary["alerts_updated"] += result.summary.get("updated", 0)
            summary["alerts_resolved"] += result.summary.get("resolved", 0)
            summary["notifications_sent"] += result.notifications_sent

        self._running = False
        summary["completed_at"] = datetime.utcnow().isoformat()
        logger.info(
            f"Cash gap monitoring run completed: {summary['users_processed']} users, "
            f"{summary['alerts_created']} alerts created, {summary['alerts_resolved']} resolved"
        )
        return summary

    def get_status(self) -> dict:
        """Get scheduler status including last run time."""
        return {
            "running": self._running,
            "last_run": self._last_run.isoformat() if self._last_run else None,
        }


# Singleton instance for use across the application
monitoring_scheduler = MonitoringScheduler()


def setup_apscheduler(scheduler, monitoring: Optional[MonitoringScheduler] = None):
    """
    Configure APScheduler with the monitoring job.

    Usage:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler)
        scheduler.start()

    Args:
        scheduler: APScheduler instance (AsyncIOScheduler)
        monitoring: MonitoringScheduler to run (defaults to the singleton)
    """
    monitoring = monitoring or monitoring_scheduler

    scheduler.add_job(
        monitoring.run_for_all_users,
        'interval',
        hours=settings.MONITOR_INTERVAL_HOURS,
        id='cash_gap_monitoring',
        name='Cash Gap Monitoring Run',
        replace_existing=True,
    )

    logger.info("Cash gap monitoring job configured")
