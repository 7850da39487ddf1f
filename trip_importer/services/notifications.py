"""Delivery of plain-text messages to a trip's chat."""
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def send(self, trip_id: str, text: str) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: the host application plugs in real chat delivery."""

    async def send(self, trip_id: str, text: str) -> None:
        logger.info(f"[Notify] trip={trip_id}: {text}")


notification_sink = LoggingNotificationSink()
