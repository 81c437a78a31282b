"""Notification channel port and the logging adapter used in place of real providers."""

import uuid
from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)

EMAIL = "EMAIL"
SMS = "SMS"
PUSH = "PUSH"
DEEP_LINK = "DEEP_LINK"

ALL_CHANNELS = (EMAIL, SMS, PUSH, DEEP_LINK)


class NotificationChannel(ABC):
    """Abstract interface for a customer-facing message channel."""

    name: str

    @abstractmethod
    def send(self, order_id: int, kind: str, title: str, message: str) -> dict:
        """Send one message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...


class LoggingChannel(NotificationChannel):
    """Channel that logs each message and keeps it in memory."""

    def __init__(self, name: str):
        self.name = name
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = f"{name} delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None) -> None:
        """Configure the adapter behavior for testing."""
        self.should_succeed = should_succeed
        if failure_reason is not None:
            self.failure_reason = failure_reason

    def send(self, order_id: int, kind: str, title: str, message: str) -> dict:
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"{self.name.lower()}-{uuid.uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "order_id": order_id,
                "kind": kind,
                "title": title,
                "message": message,
            }
        )
        logger.info("Notification sent", channel=self.name, order_id=order_id, kind=kind, message_id=message_id)
        return {"message_id": message_id, "status": "sent"}

    def reset(self) -> None:
        self.sent.clear()
        self.should_succeed = True


def default_channels() -> dict[str, NotificationChannel]:
    return {name: LoggingChannel(name) for name in ALL_CHANNELS}
