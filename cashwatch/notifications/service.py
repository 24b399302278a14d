"""
Notification Dispatcher

Consumes the alerts a monitoring run persisted and requests delivery of
the critical, still-active ones through each enabled channel.

Delivery is a side effect separate from detection: a failing channel is
logged and recorded with delivered=False, and never raises to the caller.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashwatch.alerts.models import AlertSettings, CashGapAlert
from cashwatch.alerts.types import AlertSeverity, AlertStatus

from .models import NotificationLog, RepeatInterval
from .providers import ChannelSender, ConsoleChannelSender, NotificationRequest, SendResult

logger = logging.getLogger(__name__)

# Minimum gap between two deliveries of one alert on one channel
REPEAT_COOLDOWNS = {
    RepeatInterval.DAILY: timedelta(days=1),
    RepeatInterval.WEEKLY: timedelta(days=7),
}

# Most frequent first, used to pick among overlapping timing entries
_REPEAT_PRIORITY = [RepeatInterval.DAILY, RepeatInterval.WEEKLY, RepeatInterval.ONCE]


def build_request(alert: CashGapAlert, channel: str) -> NotificationRequest:
    if channel == "sms":
        message = f"Critical: {alert.title}"
    else:
        message = f"{alert.title} - {alert.description or ''}".rstrip(" -")
    return NotificationRequest(
        user_id=alert.user_id,
        alert_id=alert.id,
        channel=channel,
        severity=alert.severity,
        subject=alert.title,
        message=message,
    )


def applicable_repeat_interval(
    alert_settings: AlertSettings, channel: str, days_until: int
) -> Optional[RepeatInterval]:
    """
    Repeat interval governing this channel for an alert `days_until` away,
    or None when no timing entry covers it.

    With no timing entries configured, every channel sends once.
    """
    timings = alert_settings.notification_timing or []
    if not timings:
        return RepeatInterval.ONCE

    matched = []
    for timing in timings:
        channels = timing.get("channels") or []
        if channels and channel not in channels:
            continue
        if days_until > timing.get("days_before_shortfall", 0):
            continue
        matched.append(RepeatInterval(timing.get("repeat_interval", "once")))

    if not matched:
        return None
    return min(matched, key=_REPEAT_PRIORITY.index)


class NotificationDispatcher:
    """Sends notification requests for critical active alerts."""

    def __init__(
        self,
        db: AsyncSession,
        senders: Optional[Dict[str, ChannelSender]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.senders = senders or {}
        self.now = now or datetime.utcnow

    def _sender_for(self, channel: str) -> ChannelSender:
        sender = self.senders.get(channel)
        if sender is None:
            sender = ConsoleChannelSender(channel)
            self.senders[channel] = sender
        return sender

    async def _check_recent_notification(
        self, alert_id: str, channel: str, interval: RepeatInterval
    ) -> bool:
        """
        Check if this alert was already delivered on this channel within
        the repeat cooldown. `once` means any earlier delivery counts.
        """
        query = (
            select(NotificationLog.id)
            .where(NotificationLog.alert_id == alert_id)
            .where(NotificationLog.channel == channel)
            .where(NotificationLog.delivered == True)
        )
        cooldown = REPEAT_COOLDOWNS.get(interval)
        if cooldown is not None:
            query = query.where(NotificationLog.sent_at > self.now() - cooldown)

        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def _log_notification(self, request: NotificationRequest, result: SendResult) -> NotificationLog:
        log = NotificationLog(
            user_id=request.user_id,
            alert_id=request.alert_id,
            channel=request.channel,
            severity=request.severity,
            subject=request.subject,
            message=request.message,
            sent_at=self.now(),
            delivered=result.success,
            error_message=result.error,
            external_id=result.message_id,
        )
        self.db.add(log)
        return log

    async def dispatch(
        self,
        alerts: List[CashGapAlert],
        alert_settings: AlertSettings,
        today: Optional[date] = None,
    ) -> List[NotificationRequest]:
        """
        Request delivery for every critical, active alert on each enabled
        channel. Returns the requests that were delivered.
        """
        today = today or self.now().date()
        delivered: List[NotificationRequest] = []
        channels = alert_settings.enabled_channels()
        if not channels:
            return delivered

        for alert in alerts:
            if alert.severity != AlertSeverity.CRITICAL.value or alert.status != AlertStatus.ACTIVE.value:
                continue

            days_until = max(0, (alert.projected_date - today).days)
            for channel in channels:
                interval = applicable_repeat_interval(alert_settings, channel, days_until)
                if interval is None:
                    logger.debug(f"No timing entry covers alert {alert.id} on {channel}")
                    continue

                if await self._check_recent_notification(alert.id, channel, interval):
                    logger.debug(f"Recent {channel} notification already sent for alert {alert.id}")
                    continue

                request = build_request(alert, channel)
                try:
                    result = await self._sender_for(channel).send(request)
                except Exception as e:
                    result = SendResult(success=False, error=str(e))

                await self._log_notification(request, result)

                if result.success:
                    logger.info(f"Sent {channel} notification for alert {alert.id}")
                    delivered.append(request)
                else:
                    logger.error(f"Failed to send {channel} notification for alert {alert.id}: {result.error}")

        return delivered
