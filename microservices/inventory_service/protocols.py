"""
Inventory Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Optional, Protocol, runtime_checkable

from .models import ItemRef, StockableItem, StockReason


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class InventoryError(Exception):
    """Base exception for inventory errors"""
    pass


class InsufficientStockError(InventoryError):
    """Item cannot be reserved in the requested quantity"""

    def __init__(self, item: ItemRef, reason: StockReason, message: Optional[str] = None):
        self.item = item
        self.reason = reason
        super().__init__(message or f"Cannot reserve {item}: {reason.value}")


class InvalidQuantityError(InventoryError, ValueError):
    """Quantity is not a positive integer"""
    pass


class CatalogPersistenceError(InventoryError):
    """Catalog storage failed (connection lost, statement error)"""
    pass


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class CatalogLookupProtocol(Protocol):
    """
    Interface for the catalog stock store.

    ``decrease_stock`` must be a single atomic check-and-decrement: it returns
    the new stock level, or None when the item is missing, disabled or short.
    """

    async def get_item(self, ref: ItemRef, conn: Any = None) -> Optional[StockableItem]:
        """Current read of a catalog item"""
        ...

    async def decrease_stock(self, ref: ItemRef, quantity: int, conn: Any = None) -> Optional[int]:
        """Conditionally decrement stock"""
        ...

    async def increase_stock(self, ref: ItemRef, quantity: int, conn: Any = None) -> Optional[int]:
        """Increment stock; None when the item no longer exists"""
        ...
