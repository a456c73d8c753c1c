import httpx
import structlog

from shared.config import settings
from shared.observability.metrics import backoffice_notifications_total

from . import messages
from .transports import LogTransport, Transport, WebhookTransport

logger = structlog.get_logger(__name__)

BUILDERS = (
    ("customer_confirmation", messages.customer_confirmation),
    ("staff_notice", messages.staff_notice),
)


class NotificationDispatcher:
    """
    Sends the order emails after the order is committed.

    Best effort: each message is sent on its own and a failure is logged
    and counted, never raised, so it can't affect the order.
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    async def dispatch_order_placed(self, order, customer) -> dict:
        if customer is None:
            # Ledger row gone since the commit; the order's own copy of the contact is used
            logger.warning("notification_without_customer", order_id=order.id)
        results = {}
        for kind, build in BUILDERS:
            try:
                message = build(order, customer)
            except (ValueError, TypeError, AttributeError) as exc:
                backoffice_notifications_total.labels(kind=kind, status="failed").inc()
                logger.error("notification_build_failed", kind=kind, order_id=order.id, error=str(exc))
                results[kind] = "failed"
                continue
            if message is None:
                continue
            results[kind] = await self._send(message)
        return results

    async def _send(self, message: messages.Notification) -> str:
        try:
            await self.transport.send(message)
        except (httpx.HTTPError, OSError) as exc:
            backoffice_notifications_total.labels(kind=message.kind, status="failed").inc()
            logger.error(
                "notification_failed",
                kind=message.kind,
                order_id=message.order_id,
                error=str(exc),
            )
            return "failed"
        backoffice_notifications_total.labels(kind=message.kind, status="sent").inc()
        logger.info("notification_sent", kind=message.kind, order_id=message.order_id)
        return "sent"


def build_transport() -> Transport:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookTransport(settings.NOTIFICATION_WEBHOOK_URL)
    return LogTransport()


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(build_transport())
