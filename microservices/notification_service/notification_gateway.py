"""
Notification Gateway

Decouples order flows from notification delivery. ``notify`` only enqueues;
a background worker resolves the recipient's email and publishes the event to
NATS for the email sender. Nothing here can fail or slow down a checkout.
"""

import asyncio
import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from .models import NotificationKind, OrderNotification, OrderNotificationEventData
from .protocols import AccountClientProtocol, EventBusProtocol

logger = logging.getLogger(__name__)


_EVENT_TYPES = {
    NotificationKind.ORDER_CREATED: EventType.NOTIFICATION_ORDER_CREATED,
    NotificationKind.ORDER_STATUS_CHANGED: EventType.NOTIFICATION_ORDER_STATUS_CHANGED,
}


class NotificationGateway:
    """
    Queue-backed order notification dispatcher.

    Args:
        event_bus: Where delivered notifications are published
        account_client: Optional lookup for the recipient's email address
        queue_size: Pending notifications kept before new ones are dropped
    """

    def __init__(
        self,
        event_bus: Optional[EventBusProtocol],
        account_client: Optional[AccountClientProtocol] = None,
        queue_size: int = 1000,
    ):
        self.event_bus = event_bus
        self.account_client = account_client
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def notify(self, notification: OrderNotification) -> None:
        """Queue a notification; drops it with an error log when the queue is full"""
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.error(
                f"Notification queue full, dropped {notification.kind.value} "
                f"for order {notification.order.order_number}"
            )

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-gateway")
            logger.info("Notification gateway started")

    async def flush(self) -> None:
        """Wait until every queued notification has been handled"""
        await self._queue.join()

    async def stop(self) -> None:
        """Deliver what is queued, then stop the worker"""
        if self._worker is None:
            return
        await self.flush()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info(
            f"Notification gateway stopped (delivered={self.delivered}, "
            f"failed={self.failed}, dropped={self.dropped})"
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self.deliver(notification)
            finally:
                self._queue.task_done()

    async def deliver(self, notification: OrderNotification) -> bool:
        """Publish one notification; failures are logged and counted, never raised"""
        order = notification.order
        try:
            if self.event_bus is None:
                logger.warning(f"Event bus not available, skipping {notification.kind.value} for {order.order_number}")
                self.failed += 1
                return False

            recipient_email = await self._recipient_email(notification.user_id)
            event = Event(
                event_type=_EVENT_TYPES[notification.kind],
                source=ServiceSource.ORDER_SERVICE,
                data=OrderNotificationEventData.build(notification, recipient_email).model_dump(mode='json'),
                subject=order.order_number,
            )
            published = await self.event_bus.publish_event(event)
            if published is False:
                self.failed += 1
                logger.error(f"❌ Failed to publish {event.type} for order {order.order_number}")
                return False

            self.delivered += 1
            logger.info(f"✅ Published {event.type} for order {order.order_number}")
            return True

        except Exception as e:
            self.failed += 1
            logger.error(f"❌ Notification {notification.kind.value} for order {order.order_number} failed: {e}")
            return False

    async def _recipient_email(self, user_id: str) -> Optional[str]:
        if self.account_client is None:
            return None
        profile = await self.account_client.get_account_profile(user_id)
        email = profile.get("email") if profile else None
        if not email:
            logger.warning(f"No email on file for user {user_id}, notification sent without recipient address")
        return email
