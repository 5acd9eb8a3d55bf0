# backend/core/notification_adapter.py

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from .mixins import utcnow

logger = logging.getLogger(__name__)


class NotificationChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


@dataclass
class NotificationMessage:
    """Standard notification message structure"""

    channel: NotificationChannel
    recipient: str
    message: str
    subject: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


class NotificationAdapter(ABC):
    """
    Abstract base class for notification adapters

    Implement this interface to deliver SMS or e-mail through a real
    provider. Adapters return False rather than raising when delivery fails.
    """

    @abstractmethod
    def send(self, message: NotificationMessage) -> bool:
        """Deliver a single message"""

    @abstractmethod
    def get_adapter_name(self) -> str:
        """Return the name of this adapter"""

    def send_sms(self, phone: str, text: str, **metadata) -> bool:
        return self.send(
            NotificationMessage(
                channel=NotificationChannel.SMS,
                recipient=phone,
                message=text,
                metadata=metadata,
            )
        )

    def send_email(self, address: str, subject: str, body: str, **metadata) -> bool:
        return self.send(
            NotificationMessage(
                channel=NotificationChannel.EMAIL,
                recipient=address,
                subject=subject,
                message=body,
                metadata=metadata,
            )
        )


class LoggingAdapter(NotificationAdapter):
    """
    Default adapter that logs every notification.

    Used in development and tests; ``sent`` keeps the delivered messages so
    callers can inspect them.
    """

    def __init__(self):
        self.sent: List[NotificationMessage] = []

    def send(self, message: NotificationMessage) -> bool:
        logger.info(
            f"[{message.channel.value.upper()}] to {message.recipient}: "
            f"{message.subject + ' - ' if message.subject else ''}{message.message}"
        )
        self.sent.append(message)
        return True

    def get_adapter_name(self) -> str:
        return "logging"


_adapter: NotificationAdapter = LoggingAdapter()


def get_notification_adapter() -> NotificationAdapter:
    """FastAPI dependency returning the configured adapter."""
    return _adapter
