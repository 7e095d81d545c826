"""
Notification Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_notification_gateway
    gateway = await create_notification_gateway()
"""
from typing import Optional

from core.config import get_settings

from .notification_gateway import NotificationGateway


async def create_notification_gateway(event_bus=None, account_client=None, queue_size: Optional[int] = None) -> NotificationGateway:
    """
    Create and start a NotificationGateway with real dependencies.

    Use this in production, NOT in tests.

    Args:
        event_bus: Event bus; connects the shared NATS bus when omitted
        account_client: Account client; an HTTP client when omitted
        queue_size: Override NOTIFICATION_QUEUE_SIZE
    """
    # Import real clients here (not at module level)
    from core.nats_client import get_event_bus
    from .clients import AccountServiceClient

    settings = get_settings()
    if event_bus is None:
        event_bus = await get_event_bus("notification_service")
    if account_client is None:
        account_client = AccountServiceClient()

    gateway = NotificationGateway(
        event_bus=event_bus,
        account_client=account_client,
        queue_size=queue_size or settings.commerce.notification_queue_size,
    )
    await gateway.start()
    return gateway
