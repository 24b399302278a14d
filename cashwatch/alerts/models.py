"""
Cash Gap Alert Models

Stored alerts and per-user alert settings.
"""
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import Column, String, DateTime, Date, Boolean, Integer, Float, Text, JSON, Index

from cashwatch.config import settings
from cashwatch.database import Base
from cashwatch.data.base import generate_id
from cashwatch.notifications.models import NotificationChannel
from .detection import AlertThresholds, CustomRule
from .types import AlertStatus


class CashGapAlert(Base):
    """
    A detected cash gap risk.

    Identity for reconciliation is (user_id, alert_type, projected_date).
    Status moves active -> acknowledged -> resolved/dismissed.
    """
    __tablename__ = "cash_flow_alerts"

    id = Column(String, primary_key=True, default=lambda: generate_id("cgalert"))
    user_id = Column(String, nullable=False)

    alert_type = Column(String, nullable=False)  # AlertType value
    severity = Column(String, nullable=False)  # AlertSeverity value
    status = Column(String, nullable=False, default=AlertStatus.ACTIVE.value)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    projected_shortfall = Column(Float, nullable=False, default=0.0)
    projected_date = Column(Date, nullable=False)
    week_number = Column(Integer, nullable=False)

    triggers = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)

    resolution_notes = Column(Text, nullable=True)
    dismiss_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_cash_flow_alerts_identity", "user_id", "alert_type", "projected_date"),
        Index("ix_cash_flow_alerts_user_status", "user_id", "status"),
    )

    @property
    def days_until_shortfall(self) -> int:
        return (self.extra_data or {}).get("days_until_shortfall", 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "status": self.status,
            "title": self.title,
            "description": self.description,
            "projected_shortfall": self.projected_shortfall,
            "projected_date": self.projected_date.isoformat() if self.projected_date else None,
            "week_number": self.week_number,
            "triggers": self.triggers or [],
            "recommendations": self.recommendations or [],
            "metadata": self.extra_data or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "dismissed_at": self.dismissed_at.isoformat() if self.dismissed_at else None,
        }


class AlertSettings(Base):
    """
    Per-user alert configuration.

    Created lazily with defaults the first time a user is monitored.
    """
    __tablename__ = "cash_flow_alert_settings"

    id = Column(String, primary_key=True, default=lambda: generate_id("alset"))
    user_id = Column(String, nullable=False, unique=True, index=True)

    minimum_cash_buffer = Column(Float, nullable=False, default=lambda: settings.DEFAULT_MINIMUM_CASH_BUFFER)
    warning_threshold_days = Column(Integer, nullable=False, default=lambda: settings.DEFAULT_WARNING_THRESHOLD_DAYS)
    critical_threshold_days = Column(Integer, nullable=False, default=lambda: settings.DEFAULT_CRITICAL_THRESHOLD_DAYS)

    enable_email_notifications = Column(Boolean, nullable=False, default=True)
    enable_sms_notifications = Column(Boolean, nullable=False, default=False)
    enable_slack_notifications = Column(Boolean, nullable=False, default=False)

    # [{"days_before_shortfall": 14, "repeat_interval": "daily", "channels": ["email"]}, ...]
    notification_timing = Column(JSON, nullable=False, default=list)
    # [{"name": ..., "condition": ..., "threshold": ..., "operator": ..., "severity": ..., "enabled": true}]
    custom_rules = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def enabled_channels(self) -> List[str]:
        """
        Channels switched on by their flag, plus flagless channels
        (e.g. in_app) named in a timing entry.
        """
        flags = {
            NotificationChannel.EMAIL.value: self.enable_email_notifications,
            NotificationChannel.SMS.value: self.enable_sms_notifications,
            NotificationChannel.SLACK.value: self.enable_slack_notifications,
        }
        channels = [name for name, enabled in flags.items() if enabled]
        for timing in self.notification_timing or []:
            for channel in timing.get("channels", []):
                if channel not in flags and channel not in channels:
                    channels.append(channel)
        return channels

    def to_thresholds(self) -> AlertThresholds:
        return AlertThresholds(
            minimum_cash_buffer=float(self.minimum_cash_buffer),
            warning_threshold_days=int(self.warning_threshold_days),
            critical_threshold_days=int(self.critical_threshold_days),
            custom_rules=[CustomRule.from_dict(r) for r in (self.custom_rules or [])],
        )
