"""
Notification Service Package

Queued delivery of order notifications to the email collaborator
"""

from .models import NotificationKind, OrderNotification
from .notification_gateway import NotificationGateway

__version__ = "1.0.0"
__all__ = [
    "NotificationGateway",
    "NotificationKind",
    "OrderNotification",
]
