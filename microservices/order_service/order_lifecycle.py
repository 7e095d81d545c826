"""
Order Lifecycle

Status state machine for placed orders, kept consistent with inventory:

    pending -> confirmed -> processing -> shipped -> delivered
    pending | confirmed -> cancelled   (stock released)

Forward moves may skip steps; nothing moves backward or out of a terminal
status. Every change is a compare-and-set on the stored status, so two
concurrent callers cannot both apply a transition.
"""

import logging
from typing import Callable, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import CommerceConfig, get_settings
from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.inventory_service.protocols import CatalogLookupProtocol
from microservices.notification_service.models import OrderNotification

from .models import (
    CANCELLABLE_STATUSES, STATUS_CHAIN, TERMINAL_STATUSES,
    ErrorCode, Order, OrderError, OrderListResponse, OrderResult, OrderStatus, PaymentStatus,
)
from .protocols import (
    STORAGE_ERRORS,
    ConcurrencyConflictError,
    InvalidOrderStateError,
    NotCancellableError,
    NotificationGatewayProtocol,
    OrderNotFoundError,
    OrderRepositoryProtocol,
    TransactionManagerProtocol,
)

logger = logging.getLogger(__name__)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True when ``target`` is strictly later in the chain and ``current`` is live"""
    if current in TERMINAL_STATUSES or target not in STATUS_CHAIN:
        return False
    return STATUS_CHAIN.index(target) > STATUS_CHAIN.index(current)


class OrderLifecycle:
    """
    Order status and payment management

    Cancel and delete release stock inside the same transaction as the status
    change; transient storage failures are retried with a fresh transaction.
    """

    def __init__(
        self,
        catalog: CatalogLookupProtocol,
        order_repository: OrderRepositoryProtocol,
        transaction_manager: TransactionManagerProtocol,
        notification_gateway: Optional[NotificationGatewayProtocol] = None,
        ledger: Optional[InventoryLedger] = None,
        config: Optional[CommerceConfig] = None,
    ):
        self.orders = order_repository
        self.transactions = transaction_manager
        self.notifications = notification_gateway
        self.ledger = ledger or InventoryLedger(catalog)
        self.config = config or get_settings().commerce

        logger.info("✅ OrderLifecycle initialized")

    # Forward transitions

    async def confirm(self, order_id: str) -> OrderResult:
        return await self._advance(order_id, OrderStatus.CONFIRMED)

    async def start_processing(self, order_id: str) -> OrderResult:
        return await self._advance(order_id, OrderStatus.PROCESSING)

    async def ship(self, order_id: str) -> OrderResult:
        return await self._advance(order_id, OrderStatus.SHIPPED)

    async def deliver(self, order_id: str) -> OrderResult:
        return await self._advance(order_id, OrderStatus.DELIVERED)

    async def _advance(self, order_id: str, target: OrderStatus) -> OrderResult:
        try:
            order = await self._require_order(order_id)
            previous = order.order_status
            if not can_transition(previous, target):
                raise InvalidOrderStateError(
                    f"Order {order.order_number} cannot move from {previous.value} to {target.value}"
                )

            updated = await self.orders.transition_status(order_id, [previous], target)
            if updated is None:
                raise ConcurrencyConflictError(
                    f"Order {order.order_number} changed status while moving to {target.value}"
                )

        except OrderNotFoundError as e:
            return OrderResult.fail(OrderError.of(ErrorCode.ORDER_NOT_FOUND, str(e)))
        except InvalidOrderStateError as e:
            return OrderResult.fail(OrderError.of(ErrorCode.INVALID_TRANSITION, str(e)), order=order)
        except ConcurrencyConflictError as e:
            logger.warning(str(e))
            return OrderResult.fail(OrderError.of(ErrorCode.CONCURRENCY_CONFLICT, str(e)))
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to move order {order_id} to {target.value}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.PERSISTENCE_FAILURE, f"Failed to update order: {e}"))

        logger.info(f"Order {updated.order_number}: {previous.value} -> {target.value}")
        self._notify(OrderNotification.status_changed(updated, previous))
        return OrderResult.ok(updated, message=f"Order {updated.order_number} is now {target.value}")

    # Cancellation and deletion

    async def cancel(self, order_id: str, reason: Optional[str] = None) -> OrderResult:
        """
        Cancel a pending or confirmed order and put its stock back

        Args:
            order_id: Order to cancel
            reason: Optional cancellation reason stored on the order

        Returns:
            OrderResult with the cancelled order, or NOT_CANCELLABLE with stock untouched
        """
        async def attempt():
            async with self.transactions.transaction() as conn:
                order = await self._require_order(order_id, conn=conn, for_update=True)
                if order.order_status not in CANCELLABLE_STATUSES:
                    raise NotCancellableError(
                        f"Order {order.order_number} is {order.order_status.value} and can no longer be cancelled"
                    )

                cancelled = await self.orders.transition_status(
                    order_id, CANCELLABLE_STATUSES, OrderStatus.CANCELLED, reason=reason, conn=conn
                )
                if cancelled is None:
                    # a concurrent cancel or transition got there first
                    raise NotCancellableError(f"Order {order.order_number} changed status before it could be cancelled")

                await self.ledger.release_all(order.lines, conn=conn)
                return order.order_status, cancelled

        try:
            previous, cancelled = await self._with_retry(attempt)
        except OrderNotFoundError as e:
            return OrderResult.fail(OrderError.of(ErrorCode.ORDER_NOT_FOUND, str(e)))
        except NotCancellableError as e:
            logger.info(str(e))
            return OrderResult.fail(OrderError.of(ErrorCode.NOT_CANCELLABLE, str(e)))
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to cancel order {order_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.PERSISTENCE_FAILURE, f"Failed to cancel order: {e}"))

        logger.info(f"Order {cancelled.order_number} cancelled, {len(cancelled.lines)} lines released")
        self._notify(OrderNotification.status_changed(cancelled, previous))
        return OrderResult.ok(cancelled, message=f"Order {cancelled.order_number} cancelled")

    async def delete_order(self, order_id: str) -> OrderResult:
        """
        Administrative delete: release stock (unless a cancel already did), then remove the order
        """
        async def attempt():
            async with self.transactions.transaction() as conn:
                # locked, so a concurrent cancel either finished first or waits for us
                order = await self._require_order(order_id, conn=conn, for_update=True)
                if order.order_status != OrderStatus.CANCELLED:
                    await self.ledger.release_all(order.lines, conn=conn)
                if not await self.orders.delete_order(order_id, conn=conn):
                    raise OrderNotFoundError(f"Order {order_id} not found")
                return order

        try:
            deleted = await self._with_retry(attempt)
        except OrderNotFoundError as e:
            return OrderResult.fail(OrderError.of(ErrorCode.ORDER_NOT_FOUND, str(e)))
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.PERSISTENCE_FAILURE, f"Failed to delete order: {e}"))

        logger.info(f"Order {deleted.order_number} deleted")
        return OrderResult.ok(deleted, message=f"Order {deleted.order_number} deleted")

    # Payment status (independent of order status)

    async def mark_paid(self, order_id: str) -> OrderResult:
        return await self._set_payment_status(order_id, PaymentStatus.PAID)

    async def mark_failed(self, order_id: str) -> OrderResult:
        return await self._set_payment_status(order_id, PaymentStatus.FAILED)

    async def mark_refunded(self, order_id: str) -> OrderResult:
        return await self._set_payment_status(order_id, PaymentStatus.REFUNDED)

    async def _set_payment_status(self, order_id: str, status: PaymentStatus) -> OrderResult:
        try:
            updated = await self.orders.update_payment_status(order_id, status)
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to set payment status of order {order_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.PERSISTENCE_FAILURE, f"Failed to update payment: {e}"))

        if updated is None:
            return OrderResult.fail(OrderError.of(ErrorCode.ORDER_NOT_FOUND, f"Order {order_id} not found"))

        logger.info(f"Order {updated.order_number} payment {status.value}")
        return OrderResult.ok(updated, message=f"Order {updated.order_number} payment {status.value}")

    # Queries

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self.orders.get_order(order_id)

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        return await self.orders.get_order_by_number(order_number)

    async def get_user_orders(self, user_id: str, page: int = 1, page_size: int = 20) -> OrderListResponse:
        """A user's order history, newest first"""
        page = max(page, 1)
        orders = await self.orders.list_user_orders(user_id, limit=page_size, offset=(page - 1) * page_size)
        total = await self.orders.count_user_orders(user_id)
        return OrderListResponse(
            orders=orders,
            total_count=total,
            page=page,
            page_size=page_size,
            has_next=page * page_size < total,
        )

    async def get_latest_order(self, user_id: str) -> Optional[Order]:
        orders = await self.orders.list_user_orders(user_id, limit=1, offset=0)
        return orders[0] if orders else None

    # Helpers

    async def _require_order(self, order_id: str, conn=None, for_update: bool = False) -> Order:
        order = await self.orders.get_order(order_id, conn=conn, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    async def _with_retry(self, attempt: Callable):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.release_max_attempts)),
            wait=wait_exponential(multiplier=0.05, max=2),
            retry=retry_if_exception_type(STORAGE_ERRORS),
            reraise=True,
        )
        async for retry_attempt in retrying:
            with retry_attempt:
                if retry_attempt.retry_state.attempt_number > 1:
                    logger.warning(f"Retrying after storage failure (attempt {retry_attempt.retry_state.attempt_number})")
                result = await attempt()
        return result

    def _notify(self, notification: OrderNotification) -> None:
        if not self.notifications:
            return
        try:
            self.notifications.notify(notification)
        except Exception as e:
            logger.error(f"Failed to queue {notification.kind.value} notification: {e}")
