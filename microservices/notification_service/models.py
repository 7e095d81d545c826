"""
Notification Service Data Models

Order notifications handed to the email collaborator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from microservices.order_service.models import Order, OrderStatus


class NotificationKind(str, Enum):
    """Order notification kinds"""
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"


class OrderNotification(BaseModel):
    """An order event addressed to the user who placed the order"""
    kind: NotificationKind
    user_id: str
    order: Order
    previous_status: Optional[OrderStatus] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def order_created(cls, order: Order) -> 'OrderNotification':
        return cls(kind=NotificationKind.ORDER_CREATED, user_id=order.user_id, order=order)

    @classmethod
    def status_changed(cls, order: Order, previous_status: OrderStatus) -> 'OrderNotification':
        return cls(
            kind=NotificationKind.ORDER_STATUS_CHANGED,
            user_id=order.user_id,
            order=order,
            previous_status=previous_status,
        )

    @property
    def subject(self) -> str:
        if self.kind == NotificationKind.ORDER_CREATED:
            return f"Order Confirmation - {self.order.order_number}"
        return f"Order Status Update - {self.order.order_number}"


class OrderNotificationEventData(BaseModel):
    """Payload of notification.order.* events consumed by the email sender"""
    kind: NotificationKind
    user_id: str
    recipient_email: Optional[str] = None
    subject: str
    order_id: str
    order_number: str
    order_status: OrderStatus
    previous_status: Optional[OrderStatus] = None
    payment_status: str
    total_amount: str
    order: Order

    @classmethod
    def build(cls, notification: OrderNotification, recipient_email: Optional[str]) -> 'OrderNotificationEventData':
        order = notification.order
        return cls(
            kind=notification.kind,
            user_id=notification.user_id,
            recipient_email=recipient_email,
            subject=notification.subject,
            order_id=order.order_id,
            order_number=order.order_number,
            order_status=order.order_status,
            previous_status=notification.previous_status,
            payment_status=order.payment_status.value,
            total_amount=str(order.total_amount),
            order=order,
        )
