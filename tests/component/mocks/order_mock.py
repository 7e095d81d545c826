"""
In-memory order repository for component tests.

Status updates, deletes and ``get_order(for_update=True)`` take the order's
row lock, and ``next_order_number`` locks the month's counter row, mirroring
what PostgreSQL holds until commit.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from microservices.order_service.models import (
    Order, OrderStatus, PaymentStatus, format_order_number, order_period,
)
from microservices.order_service.protocols import DuplicateOrderNumberError

from .db_mock import RowLocks, journal
from .recorder import CallRecorder


class MockOrderRepository(CallRecorder):
    """Mock for OrderRepository"""

    def __init__(self):
        super().__init__()
        self.orders: Dict[str, Order] = {}
        self.sequences: Dict[str, int] = {}
        self.locks = RowLocks()

    def seed(self, *orders: Order):
        for order in orders:
            self.orders[order.order_id] = order

    async def create_order(self, order: Order, conn: Any = None) -> Order:
        self._log_call("create_order", order=order, conn=conn)
        if any(o.order_number == order.order_number for o in self.orders.values()):
            raise DuplicateOrderNumberError(f"Order number {order.order_number} already exists")
        self.orders[order.order_id] = order
        journal(conn, lambda: self.orders.pop(order.order_id, None))
        return order

    async def get_order(self, order_id: str, conn: Any = None, for_update: bool = False) -> Optional[Order]:
        self._log_call("get_order", order_id=order_id, conn=conn, for_update=for_update)
        # a database round trip lets other coroutines run
        await asyncio.sleep(0)
        if for_update:
            await self.locks.acquire(("order", order_id), conn)
        return self.orders.get(order_id)

    async def get_order_by_number(self, order_number: str, conn: Any = None) -> Optional[Order]:
        self._log_call("get_order_by_number", order_number=order_number, conn=conn)
        return next((o for o in self.orders.values() if o.order_number == order_number), None)

    async def list_user_orders(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Order]:
        self._log_call("list_user_orders", user_id=user_id, limit=limit, offset=offset)
        orders = sorted(
            (o for o in self.orders.values() if o.user_id == user_id),
            key=lambda o: (o.created_at, o.order_number),
            reverse=True,
        )
        return orders[offset:offset + limit]

    async def count_user_orders(self, user_id: str) -> int:
        self._log_call("count_user_orders", user_id=user_id)
        return sum(1 for o in self.orders.values() if o.user_id == user_id)

    async def next_order_number(self, year: int, month: int, conn: Any = None) -> str:
        self._log_call("next_order_number", year=year, month=month, conn=conn)
        period = order_period(year, month)
        await self.locks.acquire(("sequence", period), conn)
        previous = self.sequences.get(period)
        self.sequences[period] = (previous or 0) + 1
        journal(conn, lambda: self._restore_sequence(period, previous))
        return format_order_number(year, month, self.sequences[period])

    async def transition_status(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        reason: Optional[str] = None,
        conn: Any = None,
    ) -> Optional[Order]:
        from_statuses = set(from_statuses)
        self._log_call("transition_status", order_id=order_id, from_statuses=from_statuses,
                       to_status=to_status, reason=reason, conn=conn)
        await self.locks.acquire(("order", order_id), conn)
        order = self.orders.get(order_id)
        if order is None or order.order_status not in from_statuses:
            return None
        update = {"order_status": to_status, "updated_at": datetime.now(timezone.utc)}
        if reason is not None:
            update["cancellation_reason"] = reason
        return self._replace(order, update, conn)

    async def update_payment_status(self, order_id: str, status: PaymentStatus, conn: Any = None) -> Optional[Order]:
        self._log_call("update_payment_status", order_id=order_id, status=status, conn=conn)
        await self.locks.acquire(("order", order_id), conn)
        order = self.orders.get(order_id)
        if order is None:
            return None
        return self._replace(order, {"payment_status": status, "updated_at": datetime.now(timezone.utc)}, conn)

    async def delete_order(self, order_id: str, conn: Any = None) -> bool:
        self._log_call("delete_order", order_id=order_id, conn=conn)
        await self.locks.acquire(("order", order_id), conn)
        order = self.orders.pop(order_id, None)
        if order is None:
            return False
        journal(conn, lambda: self.orders.__setitem__(order_id, order))
        return True

    def _replace(self, order: Order, update: Dict[str, Any], conn: Any) -> Order:
        self.orders[order.order_id] = order.model_copy(update=update)
        journal(conn, lambda: self.orders.__setitem__(order.order_id, order))
        return self.orders[order.order_id]

    def _restore_sequence(self, period: str, previous: Optional[int]):
        if previous is None:
            self.sequences.pop(period, None)
        else:
            self.sequences[period] = previous
