"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, AsyncContextManager, Iterable, List, Optional, Protocol, runtime_checkable

from microservices.cart_service.protocols import CartPersistenceError
from microservices.inventory_service.models import ItemRef, StockReason
from microservices.inventory_service.protocols import CatalogPersistenceError

# Import only models (no I/O dependencies)
from .models import Order, OrderStatus, PaymentStatus


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class OrderServiceError(Exception):
    """Base exception for order service errors"""
    pass


class OrderValidationError(OrderServiceError):
    """Order validation error"""
    pass


class ItemUnavailableError(OrderServiceError):
    """A cart line references an item that cannot be sold in that quantity"""

    def __init__(self, item: ItemRef, reason: StockReason, message: Optional[str] = None):
        self.item = item
        self.reason = reason
        super().__init__(message or f"Item {item} is unavailable: {reason.value}")


class OrderNotFoundError(OrderServiceError):
    """Order not found error"""
    pass


class NotCancellableError(OrderServiceError):
    """Order is past the point where it can be cancelled"""
    pass


class InvalidOrderStateError(OrderServiceError):
    """Invalid order state transition"""
    pass


class ConcurrencyConflictError(OrderServiceError):
    """Lost a race for stock, an order number or an order status"""

    def __init__(self, message: str, item: Optional[ItemRef] = None):
        self.item = item
        super().__init__(message)


class DuplicateOrderNumberError(ConcurrencyConflictError):
    """Order number already taken"""
    pass


class PersistenceError(OrderServiceError):
    """Order storage failed"""
    pass


# Storage failures from any repository the order flows touch
STORAGE_ERRORS = (PersistenceError, CatalogPersistenceError, CartPersistenceError)


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    async def create_order(self, order: Order, conn: Any = None) -> Order:
        """Persist an order with its lines; raises DuplicateOrderNumberError"""
        ...

    async def get_order(self, order_id: str, conn: Any = None, for_update: bool = False) -> Optional[Order]:
        """Get order by ID; ``for_update`` locks the row in ``conn``'s transaction"""
        ...

    async def get_order_by_number(self, order_number: str, conn: Any = None) -> Optional[Order]:
        """Get order by order number"""
        ...

    async def list_user_orders(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Order]:
        """A user's orders, newest first"""
        ...

    async def count_user_orders(self, user_id: str) -> int:
        """Number of orders a user has placed"""
        ...

    async def next_order_number(self, year: int, month: int, conn: Any = None) -> str:
        """Atomically allocate the next order number for a month"""
        ...

    async def transition_status(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        reason: Optional[str] = None,
        conn: Any = None,
    ) -> Optional[Order]:
        """Set status only if the current one is in from_statuses; None otherwise"""
        ...

    async def update_payment_status(self, order_id: str, status: PaymentStatus, conn: Any = None) -> Optional[Order]:
        """Set payment status"""
        ...

    async def delete_order(self, order_id: str, conn: Any = None) -> bool:
        """Delete order and its lines"""
        ...


@runtime_checkable
class TransactionManagerProtocol(Protocol):
    """Opens a unit of work; commit on normal exit, rollback on exception"""

    def transaction(self) -> AsyncContextManager[Any]:
        """Yield the connection handle repositories join with ``conn=``"""
        ...


@runtime_checkable
class NotificationGatewayProtocol(Protocol):
    """Interface for order notifications; never raises, never blocks"""

    def notify(self, notification: Any) -> None:
        """Queue a notification for delivery"""
        ...

