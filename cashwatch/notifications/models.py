"""
Notification Models

Delivery channels and the log of every outbound notification request.
"""
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey, Index

from cashwatch.database import Base


class NotificationChannel(str, Enum):
    """Delivery channels for notifications."""
    EMAIL = "email"
    SMS = "sms"
    SLACK = "slack"
    IN_APP = "in_app"


class RepeatInterval(str, Enum):
    """How often an alert may be re-sent on one channel."""
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"


class NotificationLog(Base):
    """
    Log of notification requests for audit and repeat cooldowns.
    """
    __tablename__ = "notification_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False)

    # Reference to the alert that triggered it
    alert_id = Column(String, ForeignKey("cash_flow_alerts.id", ondelete="CASCADE"), nullable=True)

    # What was sent
    channel = Column(String, nullable=False)
    severity = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=True)

    # Status
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    delivered = Column(Boolean, default=True)
    error_message = Column(String, nullable=True)

    # External reference (e.g., provider message ID)
    external_id = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_notification_logs_alert_channel", "alert_id", "channel"),
    )
