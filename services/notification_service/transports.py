from typing import Optional, Protocol

import httpx
import structlog

from .messages import Notification

logger = structlog.get_logger(__name__)


class Transport(Protocol):
    async def send(self, message: Notification) -> None: ...


class LogTransport:
    """Writes the message as a structured log line. Used when no webhook is configured."""

    async def send(self, message: Notification) -> None:
        logger.info(
            "notification",
            kind=message.kind,
            to=message.to,
            subject=message.subject,
            order_id=message.order_id,
            total=message.total,
        )


class WebhookTransport:
    """POSTs the message JSON to a mail relay or automation hook."""

    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send(self, message: Notification) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, json=message.model_dump(mode="json"))
            resp.raise_for_status()
