"""
Notification dispatch.

Business events are written to the ``notifications`` table inside the same
transaction as the change that caused them (one row per channel), then handed
to a ``NotificationSink`` once the transaction has committed. Sink failures are
logged and never propagate: a delivered-or-not notification must not undo a
reservation or a payment.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

import httpx
from libs.common.logging import get_logger
from services.courts_service.models import Notification, NotificationEvent
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class OutboundNotification:
    event: NotificationEvent
    channels: list[str]
    recipient: str
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    async def send(
        self,
        event: NotificationEvent,
        channels: Sequence[str],
        recipient: str,
        payload: dict[str, Any],
    ) -> None: ...


class LoggingNotificationSink:
    """Sink used when no notifications service is configured."""

    async def send(self, event, channels, recipient, payload) -> None:
        logger.info(
            "Notification %s -> %s via %s", event.value, recipient, ",".join(channels)
        )


class HttpNotificationSink:
    """
    Forwards events to an external notifications service.

    ``POST {base_url}/notifications/send`` with the event, channels, recipient
    and payload. Connection errors and non-2xx answers raise; the dispatcher
    decides what to do with them.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def send(self, event, channels, recipient, payload) -> None:
        body = {
            "event": event.value,
            "channels": list(channels),
            "recipient": recipient,
            "payload": payload,
        }
        url = f"{self.base_url}/notifications/send"
        if self._client is not None:
            response = await self._client.post(url, json=body, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=body)
        response.raise_for_status()


class NotificationDispatcher:
    def __init__(self, sink: NotificationSink, channels: Sequence[str]):
        self.sink = sink
        self.channels = list(channels)

    def stage(
        self,
        session: AsyncSession,
        event: NotificationEvent,
        recipient: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> OutboundNotification:
        """Add one notification row per channel to the pending transaction."""
        payload = payload or {}
        for channel in self.channels:
            session.add(
                Notification(
                    channel=channel,
                    recipient=recipient,
                    event=event,
                    payload=payload,
                )
            )
        return OutboundNotification(
            event=event,
            channels=list(self.channels),
            recipient=recipient,
            payload=payload,
        )

    async def deliver(self, outbox: Sequence[OutboundNotification]) -> None:
        """Hand committed notifications to the sink. Never raises."""
        for item in outbox:
            try:
                await self.sink.send(item.event, item.channels, item.recipient, item.payload)
            except Exception as e:
                logger.warning(
                    f"Failed to deliver {item.event.value} notification to {item.recipient}: {e}"
                )
