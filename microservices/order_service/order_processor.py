"""
Order Processor - Checkout

Turns a user's cart into a persisted order. One checkout attempt is one
database transaction: read the cart, check every item, freeze prices,
allocate an order number, insert the order, reserve stock and clear the cart.
Any failure rolls the whole attempt back, so a failed checkout leaves cart,
stock and orders exactly as they were and can be retried by the caller.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import CommerceConfig, get_settings
from microservices.cart_service.models import CartLine
from microservices.cart_service.protocols import CartStoreProtocol
from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.inventory_service.models import ItemRef, StockReason
from microservices.inventory_service.protocols import (
    CatalogLookupProtocol, InsufficientStockError, InvalidQuantityError,
)
from microservices.notification_service.models import OrderNotification

from . import pricing
from .models import (
    CartPreview, CheckoutRequest, ErrorCode, Order, OrderError, OrderLine, OrderResult,
    OrderStatus, PaymentStatus,
)
from .protocols import (
    STORAGE_ERRORS,
    ConcurrencyConflictError,
    DuplicateOrderNumberError,
    ItemUnavailableError,
    NotificationGatewayProtocol,
    OrderRepositoryProtocol,
    OrderValidationError,
    TransactionManagerProtocol,
)

logger = logging.getLogger(__name__)


class OrderProcessor:
    """
    Checkout business logic

    Dependencies are injected so tests can run against in-memory stores.
    """

    def __init__(
        self,
        catalog: CatalogLookupProtocol,
        cart_store: CartStoreProtocol,
        order_repository: OrderRepositoryProtocol,
        transaction_manager: TransactionManagerProtocol,
        notification_gateway: Optional[NotificationGatewayProtocol] = None,
        ledger: Optional[InventoryLedger] = None,
        config: Optional[CommerceConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.cart_store = cart_store
        self.orders = order_repository
        self.transactions = transaction_manager
        self.notifications = notification_gateway
        self.ledger = ledger or InventoryLedger(catalog)
        self.config = config or get_settings().commerce
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        logger.info("✅ OrderProcessor initialized")

    async def checkout(self, request: CheckoutRequest, lines: Optional[Sequence[CartLine]] = None) -> OrderResult:
        """
        Place an order from the user's cart

        Args:
            request: Checkout request
            lines: Cart lines to check out; read from the cart store when omitted

        Returns:
            OrderResult with the created order and its pricing summary, or a typed error
        """
        try:
            order = await self._place_order(request, lines)
        except (OrderValidationError, InvalidQuantityError) as e:
            return OrderResult.fail(OrderError.of(ErrorCode.VALIDATION_ERROR, str(e)))
        except ItemUnavailableError as e:
            logger.info(f"Checkout rejected for user {request.user_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.ITEM_UNAVAILABLE, str(e), item=e.item, reason=e.reason))
        except ConcurrencyConflictError as e:
            logger.warning(f"Checkout conflict for user {request.user_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.CONCURRENCY_CONFLICT, str(e), item=e.item))
        except STORAGE_ERRORS as e:
            logger.error(f"Checkout failed for user {request.user_id}: {e}")
            return OrderResult.fail(OrderError.of(ErrorCode.PERSISTENCE_FAILURE, f"Failed to place order: {e}"))

        logger.info(
            f"Order {order.order_number} placed for user {request.user_id}: "
            f"{len(order.lines)} lines, total {order.total_amount}"
        )
        self._notify(OrderNotification.order_created(order))

        return OrderResult.ok(
            order,
            message=f"Order {order.order_number} placed successfully",
            summary=pricing.summarize(order.lines, self.config),
        )

    async def preview(self, user_id: str, lines: Optional[Sequence[CartLine]] = None) -> CartPreview:
        """Validate a cart and price it without changing anything"""
        try:
            cart_lines = list(lines) if lines is not None else await self.cart_store.list_lines(user_id)
            order_lines = await self._price_lines(cart_lines)
        except (OrderValidationError, InvalidQuantityError) as e:
            return CartPreview(valid=False, error=OrderError.of(ErrorCode.VALIDATION_ERROR, str(e)))
        except ItemUnavailableError as e:
            return CartPreview(
                valid=False,
                error=OrderError.of(ErrorCode.ITEM_UNAVAILABLE, str(e), item=e.item, reason=e.reason),
            )
        except STORAGE_ERRORS as e:
            logger.error(f"Cart preview failed for user {user_id}: {e}")
            return CartPreview(valid=False, error=OrderError.of(ErrorCode.PERSISTENCE_FAILURE, str(e)))

        return CartPreview(valid=True, summary=pricing.summarize(order_lines, self.config))

    async def _place_order(self, request: CheckoutRequest, lines: Optional[Sequence[CartLine]]) -> Order:
        async with self.transactions.transaction() as conn:
            if lines is not None:
                cart_lines = list(lines)
            else:
                cart_lines = await self.cart_store.list_lines(request.user_id, conn=conn, for_update=True)
            order_lines = await self._price_lines(cart_lines, conn=conn)

            now = self._clock()
            # create_order runs in a savepoint, so a taken number only costs
            # the insert and the counter moves on inside this transaction
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max(1, self.config.checkout_max_attempts)),
                wait=wait_exponential(multiplier=0.05, max=1),
                retry=retry_if_exception_type(DuplicateOrderNumberError),
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            f"Allocating another order number for user {request.user_id} "
                            f"(attempt {attempt.retry_state.attempt_number})"
                        )
                    order_number = await self.orders.next_order_number(now.year, now.month, conn=conn)
                    created = await self.orders.create_order(
                        self._build_order(request, order_number, order_lines, now), conn=conn
                    )

            try:
                await self.ledger.reserve_all(order_lines, conn=conn)
            except InsufficientStockError as e:
                if e.reason == StockReason.INSUFFICIENT_QUANTITY:
                    raise ConcurrencyConflictError(
                        f"Stock for {e.item} was taken by a concurrent order", item=e.item
                    ) from e
                raise ItemUnavailableError(e.item, e.reason) from e

            cleared = await self.cart_store.clear(request.user_id, [line.ref for line in cart_lines], conn=conn)
            if lines is None and cleared != len(cart_lines):
                # the cart changed under us; another checkout already billed it
                raise ConcurrencyConflictError(
                    f"Cart for user {request.user_id} changed during checkout ({cleared} of {len(cart_lines)} lines cleared)"
                )

        return created

    @staticmethod
    def _build_order(request: CheckoutRequest, order_number: str, order_lines: List[OrderLine], now: datetime) -> Order:
        return Order(
            order_id=f"order_{uuid.uuid4().hex[:12]}",
            order_number=order_number,
            user_id=request.user_id,
            lines=order_lines,
            total_amount=pricing.order_total(order_lines),
            order_status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_method=request.payment_method,
            shipping_address=request.shipping_address,
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )

    async def _price_lines(self, cart_lines: List[CartLine], conn=None) -> List[OrderLine]:
        """Check every line against the catalog and snapshot its price"""
        if not cart_lines:
            raise OrderValidationError("Cart is empty")

        requested: Dict[ItemRef, int] = {}
        for line in cart_lines:
            if line.quantity <= 0:
                raise OrderValidationError(f"Invalid quantity {line.quantity} for {line.ref}")
            requested[line.ref] = requested.get(line.ref, 0) + line.quantity

        order_lines = []
        for line in cart_lines:
            item = await self.catalog.get_item(line.ref, conn=conn)
            if item is None:
                raise ItemUnavailableError(line.ref, StockReason.NOT_FOUND)
            reason = item.unavailable_reason(requested[line.ref])
            if reason is not None:
                raise ItemUnavailableError(line.ref, reason)

            order_lines.append(
                OrderLine(
                    kind=line.kind,
                    item_id=line.item_id,
                    quantity=line.quantity,
                    unit_price=item.price,
                    total_price=pricing.line_total(item.price, line.quantity),
                )
            )
        return order_lines

    def _notify(self, notification: OrderNotification) -> None:
        if not self.notifications:
            return
        try:
            self.notifications.notify(notification)
        except Exception as e:
            logger.error(f"Failed to queue {notification.kind.value} notification: {e}")
