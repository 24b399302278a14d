"""
Channel senders.

Abstract delivery per channel. Transport integrations (email, SMS, Slack
APIs) plug in as ChannelSender subclasses; the console sender logs the
request instead of delivering it and is the default for every channel.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class NotificationRequest:
    """One outbound notification for one alert on one channel."""
    user_id: str
    alert_id: str
    channel: str
    severity: str
    subject: str
    message: str


@dataclass
class SendResult:
    """Result of sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class ChannelSender(ABC):
    """Abstract base class for channel senders."""

    @abstractmethod
    async def send(self, request: NotificationRequest) -> SendResult:
        """Deliver a notification request."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the sender is properly configured."""
        pass


class ConsoleChannelSender(ChannelSender):
    """
    Console sender for development/testing.

    Logs notifications instead of sending.
    """

    def __init__(self, channel: str = "console"):
        self.channel = channel

    def is_configured(self) -> bool:
        return True

    async def send(self, request: NotificationRequest) -> SendResult:
        logger.info(
            f"\n{'='*60}\n"
            f"{request.channel.upper()} (Console Mode)\n"
            f"{'='*60}\n"
            f"User: {request.user_id}\n"
            f"Severity: {request.severity}\n"
            f"Subject: {request.subject}\n"
            f"{'='*60}\n"
            f"{request.message}\n"
            f"{'='*60}\n"
        )
        return SendResult(success=True, message_id=f"console-{request.channel}")


def get_channel_senders(channels: Iterable[str]) -> Dict[str, ChannelSender]:
    """Sender per channel. Every channel uses the console sender until a transport is wired in."""
    return {channel: ConsoleChannelSender(channel) for channel in channels}
